#!/usr/bin/env python3
# encoding=utf-8

import sys, unittest

from rolemirror import RoleEntry, RoleBindingRecord, RoleMirrorEngine
from prefkeys import KeyCodec
from prefstore import MemoryRecordStore
from inputmodel import ActionElementMap, AxisRange, Controller, ControllerElement, ControllerMap, \
  ControllerType, ElementType, ParseFailure, Pole


def pad_a ():
  return Controller(ControllerType.JOYSTICK, 0, "Pad A", elements=[
    ControllerElement(0, ElementType.BUTTON, "button_south"),
    ControllerElement(1, ElementType.BUTTON, "button_east"),
    ControllerElement(2, ElementType.AXIS, "trigger_left"),
    ControllerElement(3, ElementType.BUTTON, None),
    ])

def pad_b ():
  # Same roles on different element ids; the trigger is a button here.
  return Controller(ControllerType.JOYSTICK, 1, "Pad B", elements=[
    ControllerElement(10, ElementType.BUTTON, "button_east"),
    ControllerElement(11, ElementType.BUTTON, "button_south"),
    ControllerElement(12, ElementType.BUTTON, "trigger_left"),
    ])


def bindings (cmap):
  return sorted((a.action_id, a.element_id, a.element_type, a.axis_range, a.axis_contribution, a.invert)
                for a in cmap.element_maps)


class TestConversion (unittest.TestCase):
  def setUp (self):
    self.button = ControllerElement(5, ElementType.BUTTON, "r")
    self.axis = ControllerElement(6, ElementType.AXIS, "r")

  def test_same_kind (self):
    a = RoleEntry(1, ElementType.AXIS, AxisRange.NEGATIVE, Pole.NEGATIVE, True).to_assignment(self.axis)
    self.assertEqual((a.element_id, a.axis_range, a.axis_contribution, a.invert), (6, AxisRange.NEGATIVE, Pole.NEGATIVE, True))

  def test_full_axis_to_button (self):
    a = RoleEntry(1, ElementType.AXIS, AxisRange.FULL, Pole.POSITIVE, True).to_assignment(self.button)
    self.assertEqual((a.element_type, a.axis_range, a.axis_contribution, a.invert),
                     (ElementType.BUTTON, AxisRange.FULL, Pole.NEGATIVE, False))
    a = RoleEntry(1, ElementType.AXIS, AxisRange.FULL, Pole.POSITIVE, False).to_assignment(self.button)
    self.assertEqual((a.axis_range, a.axis_contribution, a.invert), (AxisRange.FULL, Pole.POSITIVE, False))

  def test_half_axis_to_button (self):
    a = RoleEntry(1, ElementType.AXIS, AxisRange.NEGATIVE, Pole.NEGATIVE, True).to_assignment(self.button)
    self.assertEqual((a.axis_range, a.axis_contribution, a.invert), (AxisRange.NEGATIVE, Pole.NEGATIVE, False))

  def test_button_to_axis (self):
    a = RoleEntry(1, ElementType.BUTTON, AxisRange.FULL, Pole.NEGATIVE, True).to_assignment(self.axis)
    self.assertEqual((a.element_type, a.axis_range, a.axis_contribution, a.invert),
                     (ElementType.AXIS, AxisRange.POSITIVE, Pole.NEGATIVE, False))


class TestRecord (unittest.TestCase):
  def test_text (self):
    rec = RoleBindingRecord("button_south", [ RoleEntry(1, ElementType.BUTTON), RoleEntry(2, ElementType.AXIS, AxisRange.POSITIVE) ])
    self.assertEqual(RoleBindingRecord.from_text("button_south", rec.to_text()), rec)
    empty = RoleBindingRecord("x")
    back = RoleBindingRecord.from_text("x", empty.to_text())
    self.assertTrue(back.is_empty)

  def test_bad_text (self):
    self.assertRaises(ParseFailure, RoleBindingRecord.from_text, "r", '"ElementRoleMap" "flat"')
    self.assertRaises(ParseFailure, RoleBindingRecord.from_text, "r",
                      '"ElementRoleMap" { "data" { "entry" { "actionId" "1" } } }')


class TestRoleMirrorEngine (unittest.TestCase):
  def setUp (self):
    self.store = MemoryRecordStore()
    self.engine = RoleMirrorEngine(KeyCodec("Game"), self.store)
    self.map_a = ControllerMap(ControllerType.JOYSTICK, 0, 0, element_maps=[
      ActionElementMap(1, ElementType.BUTTON, 0),
      ActionElementMap(2, ElementType.BUTTON, 0),
      ActionElementMap(3, ElementType.AXIS, 2, AxisRange.FULL, Pole.POSITIVE, True),
      ActionElementMap(4, ElementType.BUTTON, 3),
      ])

  def test_group_includes_unbound_roles (self):
    groups = self.engine.group_by_role(pad_a(), self.map_a)
    self.assertEqual(list(groups), [ "button_south", "button_east", "trigger_left" ])
    self.assertEqual([ e.action_id for e in groups["button_south"].entries ], [ 1, 2 ])
    self.assertTrue(groups["button_east"].is_empty)

  def test_save_and_load (self):
    self.engine.save("P", pad_a(), self.map_a)
    self.assertEqual(len(self.store.keys()), 3)
    rec = self.engine.load("P", "button_south", 0, 0)
    self.assertEqual([ e.action_id for e in rec.entries ], [ 1, 2 ])
    self.assertTrue(self.engine.load("P", "button_east", 0, 0).is_empty)
    self.assertEqual(self.engine.load("P", "button_west", 0, 0), None)
    self.assertEqual(self.engine.load("Q", "button_south", 0, 0), None)
    self.assertEqual(self.engine.load("P", None, 0, 0), None)

  def test_unreadable_record_is_absent (self):
    self.store.set_string(self.engine.key("P", "button_south", 0, 0), "garbage {")
    with self.assertLogs("rolemirror", level="WARNING"):
      self.assertEqual(self.engine.load("P", "button_south", 0, 0), None)

  def test_reconstitute_other_device (self):
    self.engine.save("P", pad_a(), self.map_a)
    target = pad_b()
    records = self.engine.load_all("P", target, 0, 0)
    self.assertEqual(sorted(records), [ "button_east", "button_south", "trigger_left" ])
    base = ControllerMap(ControllerType.JOYSTICK, 0, 0, element_maps=[
      ActionElementMap(9, ElementType.BUTTON, 11, enabled=False),
      ActionElementMap(8, ElementType.BUTTON, 10),
      ])
    base.is_modified = True
    merged = self.engine.reconstitute(base, records, target)
    self.assertEqual(bindings(merged), [
      (1, 11, ElementType.BUTTON, AxisRange.FULL, Pole.POSITIVE, False),
      (2, 11, ElementType.BUTTON, AxisRange.FULL, Pole.POSITIVE, False),
      (3, 12, ElementType.BUTTON, AxisRange.FULL, Pole.NEGATIVE, False),
      ])
    # Enabled state of the replaced button_south bindings carries over.
    self.assertEqual([ a.enabled for a in merged.element_maps if a.element_id == 11 ], [ False, False ])
    self.assertFalse(merged.is_modified)
    self.assertEqual(base.element_map_count, 2)

  def test_empty_role_deletes_bindings (self):
    # User removed every button_east binding on pad A; pad B's saved map still has one.
    self.engine.save("P", pad_a(), self.map_a)
    target = pad_b()
    base = ControllerMap(ControllerType.JOYSTICK, 0, 0, element_maps=[ ActionElementMap(8, ElementType.BUTTON, 10) ])
    merged = self.engine.reconstitute(base, self.engine.load_all("P", target, 0, 0), target)
    self.assertEqual([ a for a in merged.element_maps if a.element_id == 10 ], [])

  def test_role_missing_on_target (self):
    target = Controller(ControllerType.JOYSTICK, 2, "Pad C", elements=[ ControllerElement(20, ElementType.BUTTON, "button_north") ])
    records = { "button_south": RoleBindingRecord("button_south", [ RoleEntry(1, ElementType.BUTTON) ]) }
    base = ControllerMap(ControllerType.JOYSTICK, element_maps=[ ActionElementMap(5, ElementType.BUTTON, 20) ])
    merged, added = self.engine.reconstitute_counted(base, records, target)
    self.assertEqual(added, 0)
    self.assertEqual(bindings(merged), bindings(base))

  def test_shared_role_binds_every_control (self):
    target = Controller(ControllerType.JOYSTICK, 2, "Twin", elements=[
      ControllerElement(1, ElementType.BUTTON, "r"),
      ControllerElement(2, ElementType.BUTTON, "r"),
      ])
    records = { "r": RoleBindingRecord("r", [ RoleEntry(7, ElementType.BUTTON) ]) }
    with self.assertLogs("rolemirror", level="WARNING"):
      merged, added = self.engine.reconstitute_counted(ControllerMap(ControllerType.JOYSTICK), records, target)
    self.assertEqual(added, 2)
    self.assertEqual(sorted(a.element_id for a in merged.element_maps), [ 1, 2 ])

  def test_no_records_is_copy (self):
    merged = self.engine.reconstitute(self.map_a, {}, pad_a())
    self.assertFalse(merged is self.map_a)
    self.assertEqual(merged, self.map_a)


if __name__ == "__main__":
  unittest.main()
