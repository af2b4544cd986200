#!/usr/bin/env python3
# encoding=utf-8

import sys, unittest

import schemamerge
from schemamerge import ActionUniverse, SchemaMergeEngine, merge_new_identifiers
from inputmodel import ActionElementMap, ControllerIdentifier, ControllerMap, ControllerType, ElementType


def button (action_id, element_id):
  return ActionElementMap(action_id, ElementType.BUTTON, element_id)


def saved_map ():
  cmap = ControllerMap(ControllerType.JOYSTICK, 0, 0, element_maps=[ button(1, 0), button(2, 1) ])
  return cmap


def default_map ():
  return ControllerMap(ControllerType.JOYSTICK, 0, 0, element_maps=[
    button(1, 0), button(2, 1), button(3, 2), button(4, 1) ])


class TestKnownIds (unittest.TestCase):
  def test_format_parse (self):
    self.assertEqual(schemamerge.format_known_ids([ 1, 20, 3 ]), "1,20,3")
    self.assertEqual(schemamerge.parse_known_ids("1,20,3"), [ 1, 20, 3 ])
    self.assertEqual(schemamerge.parse_known_ids("1,,x, 4 ,"), [ 1, 4 ])
    self.assertEqual(schemamerge.parse_known_ids(""), [])
    self.assertEqual(schemamerge.parse_known_ids(None), [])


class TestActionUniverse (unittest.TestCase):
  def test_memoized_until_invalidated (self):
    u = ActionUniverse([ 1, 2 ])
    ids = u.action_ids
    self.assertEqual(u.action_ids_string, "1,2")
    self.assertTrue(u.action_ids is ids)
    u.set_actions([ 1, 2, 3 ])
    self.assertEqual(u.action_ids, [ 1, 2, 3 ])
    self.assertEqual(u.action_ids_string, "1,2,3")

  def test_default_map_lookup (self):
    u = ActionUniverse([ 1 ])
    generic = ControllerMap(ControllerType.JOYSTICK, 0, 0, element_maps=[ button(1, 0) ])
    specific = ControllerMap(ControllerType.JOYSTICK, 0, 0, element_maps=[ button(1, 5) ])
    u.register_default_map(generic)
    u.register_default_map(specific, hardware_type_guid="d74a350e-fe8b-4e9e-bbcd-efff16d34115")
    known = ControllerIdentifier(ControllerType.JOYSTICK, 0, "Pad", "d74a350e-fe8b-4e9e-bbcd-efff16d34115")
    unknown = ControllerIdentifier(ControllerType.JOYSTICK, 0, "Other")
    self.assertEqual(u.default_map(known, 0, 0).element_maps[0].element_id, 5)
    self.assertEqual(u.default_map(unknown, 0, 0).element_maps[0].element_id, 0)
    self.assertEqual(u.default_map(unknown, 1, 0), None)
    # A fresh copy each time.
    u.default_map(known, 0, 0).create_element_map(button(9, 9))
    self.assertEqual(u.default_map(known, 0, 0).element_map_count, 1)


class TestMerge (unittest.TestCase):
  def test_adds_new_actions_without_conflict (self):
    loaded = saved_map()
    merged = merge_new_identifiers(loaded, [ 1, 2 ], [ 1, 2, 3, 4 ], default_map())
    self.assertFalse(merged is loaded)
    self.assertEqual([ (a.action_id, a.element_id) for a in merged.element_maps ], [ (1, 0), (2, 1), (3, 2) ])
    self.assertFalse(merged.is_modified)
    self.assertEqual(loaded.element_map_count, 2)

  def test_nothing_unknown_returns_same_object (self):
    loaded = saved_map()
    loaded.is_modified = True
    merged = merge_new_identifiers(loaded, [ 1, 2, 3 ], [ 1, 2, 3 ], default_map())
    self.assertTrue(merged is loaded)
    self.assertTrue(merged.is_modified)

  def test_no_snapshot_or_no_defaults (self):
    loaded = saved_map()
    self.assertTrue(merge_new_identifiers(loaded, [], [ 1, 2, 3 ], default_map()) is loaded)
    self.assertTrue(merge_new_identifiers(loaded, [ 1 ], [ 1, 2, 3 ], None) is loaded)
    self.assertEqual(merge_new_identifiers(None, [ 1 ], [ 1, 2 ], default_map()), None)

  def test_all_conflicting_returns_same_object (self):
    loaded = saved_map()
    self.assertTrue(merge_new_identifiers(loaded, [ 1, 2, 3 ], [ 1, 2, 3, 4 ], default_map()) is loaded)

  def test_custom_conflict_predicate (self):
    loaded = saved_map()
    merged = merge_new_identifiers(loaded, [ 1, 2 ], [ 1, 2, 3, 4 ], default_map(), lambda m, a: False)
    self.assertEqual(sorted(a.action_id for a in merged.element_maps), [ 1, 2, 3, 4 ])

  def test_idempotent (self):
    once = merge_new_identifiers(saved_map(), [ 1, 2 ], [ 1, 2, 3, 4 ], default_map())
    twice = merge_new_identifiers(once, [ 1, 2 ], [ 1, 2, 3, 4 ], default_map())
    self.assertEqual(twice, once)

  def test_engine (self):
    u = ActionUniverse([ 1, 2, 3, 4 ])
    u.register_default_map(default_map())
    engine = SchemaMergeEngine(u)
    ident = ControllerIdentifier(ControllerType.JOYSTICK, 0, "Pad")
    merged = engine.merge(saved_map(), [ 1, 2 ], ident)
    self.assertEqual(merged.element_map_count, 3)
    self.assertEqual(engine.merge(None, [ 1 ], ident), None)


if __name__ == "__main__":
  unittest.main()
