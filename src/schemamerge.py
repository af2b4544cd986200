#!/usr/bin/env python3
# encoding=utf-8

# Default bindings for actions added after a controller map was saved.
#
# Each saved controller map carries a snapshot of the action ids that existed
# when it was written.  On load, actions missing from that snapshot get the
# bindings of the default map, unless they would clash with the user's own.

import logging

from inputmodel import ControllerType, as_guid

logger = logging.getLogger(__name__)



def format_known_ids (action_ids):
  return ",".join(str(i) for i in action_ids)


def parse_known_ids (text):
  """Action ids from comma-separated text; blank and non-integer items are skipped."""
  ids = []
  if not text:
    return ids
  for item in text.split(","):
    item = item.strip()
    if not item:
      continue
    try:
      ids.append(int(item))
    except ValueError:
      continue
  return ids


class ActionUniverse (object):
  """Current action ids and default controller maps.

action_ids and action_ids_string are computed once and cached until
set_actions() or invalidate().
"""
  def __init__ (self, actions=None):
    self._actions = list(actions or [])
    self._defaults = {}
    self.__all_action_ids = None
    self.__all_action_ids_string = None

  def set_actions (self, actions):
    self._actions = list(actions)
    self.invalidate()

  def invalidate (self):
    self.__all_action_ids = None
    self.__all_action_ids_string = None

  @property
  def action_ids (self):
    if self.__all_action_ids is None:
      self.__all_action_ids = list(self._actions)
    return self.__all_action_ids

  @property
  def action_ids_string (self):
    if self.__all_action_ids_string is None:
      self.__all_action_ids_string = format_known_ids(self.action_ids)
    return self.__all_action_ids_string

  @staticmethod
  def _hardware_key (controller_type, hardware_type_guid=None, hardware_identifier=None):
    if controller_type != ControllerType.JOYSTICK:
      return None
    guid = as_guid(hardware_type_guid)
    if guid is not None:
      return guid
    return hardware_identifier or None

  def register_default_map (self, controller_map, hardware_type_guid=None, hardware_identifier=None):
    """Default map for its type, category and layout; hardware narrows it to one joystick model."""
    hw = self._hardware_key(controller_map.controller_type, hardware_type_guid, hardware_identifier)
    k = (controller_map.controller_type, hw, controller_map.category_id, controller_map.layout_id)
    self._defaults[k] = controller_map.copy()

  def default_map (self, identifier, category_id, layout_id):
    """Fresh copy of the default map for identifier, or None."""
    hw = self._hardware_key(identifier.controller_type, identifier.hardware_type_guid, identifier.hardware_identifier)
    for k in ((identifier.controller_type, hw, category_id, layout_id),
              (identifier.controller_type, None, category_id, layout_id)):
      if k in self._defaults:
        return self._defaults[k].copy()
    return None


def merge_new_identifiers (loaded, known_ids, current_ids, defaults, conflicts=None):
  """Add default bindings for actions absent from known_ids.

Returns loaded itself when nothing is missing or there is no default map;
otherwise a merged copy whose modified flag is cleared.  conflicts(map, aem)
decides whether a default would clash with an existing binding; by default
ControllerMap.does_assignment_conflict.
"""
  if loaded is None or not known_ids:
    return loaded
  known = set(known_ids)
  unknown = set(i for i in current_ids if i not in known)
  if not unknown:
    return loaded
  if defaults is None:
    return loaded
  if conflicts is None:
    conflicts = lambda cmap, aem: cmap.does_assignment_conflict(aem)

  merged = loaded.copy()
  added = 0
  for aem in defaults.element_maps:
    if aem.action_id not in unknown:
      continue
    if conflicts(merged, aem):
      logger.debug("Default binding for action %s skipped, element %s already bound", aem.action_id, aem.element_id)
      continue
    if merged.create_element_map(aem) is not None:
      added += 1

  if not added:
    return loaded
  merged.is_modified = False
  logger.debug("Added %d default bindings for new actions %s", added, sorted(unknown))
  return merged


class SchemaMergeEngine (object):
  """merge_new_identifiers() against an ActionUniverse."""
  def __init__ (self, universe):
    self.universe = universe

  def merge (self, loaded, known_ids, identifier):
    if loaded is None:
      return None
    defaults = self.universe.default_map(identifier, loaded.category_id, loaded.layout_id)
    return merge_new_identifiers(loaded, known_ids, self.universe.action_ids, defaults)
