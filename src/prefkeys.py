#!/usr/bin/env python3
# encoding=utf-8

# Key construction for records kept in a string key/value store.
#
# A key is a prefix followed by '|name=value' segments.  Controller map keys
# changed layout over time; every historical layout stays buildable so data
# saved under an older layout is still found:
#
#   0 : original, free-text hardware identifier first
#   1 : adds the duplicate index of same-type joysticks
#   2 : hardware type guid first (identifier only for unrecognized hardware),
#       so maps of disconnected recognized controllers can be looked up;
#       the key carries its own version marker "kv=2"

import uuid

from inputmodel import ControllerType, as_guid



class InvalidDescriptor (ValueError):
  """Record descriptor is missing a required attribute."""
  pass


# Data types.
DATA_CONTROLLER_MAP = "ControllerMap"
DATA_KNOWN_ACTION_IDS = "ControllerMap_KnownActionIds"
DATA_ELEMENT_ROLE_MAP = "ElementRoleMap"
DATA_CALIBRATION_MAP = "CalibrationMap"
DATA_INPUT_BEHAVIOR = "InputBehavior"
DATA_CONTROLLER_ASSIGNMENTS = "ControllerAssignments"

# Controller map key versions.
MAP_KEY_VERSION_DUPLICATE_INDEX = 1
MAP_KEY_VERSION_DISCONNECTED = 2
MAP_KEY_VERSION_FORMAT_MARKER = 2
MAP_KEY_VERSION = 2

ROLE_MAP_KEY_VERSION = 0

CURRENT_VERSIONS = {
  DATA_CONTROLLER_MAP: MAP_KEY_VERSION,
  DATA_KNOWN_ACTION_IDS: MAP_KEY_VERSION,
  DATA_ELEMENT_ROLE_MAP: ROLE_MAP_KEY_VERSION,
  DATA_CALIBRATION_MAP: 0,
  DATA_INPUT_BEHAVIOR: 0,
  DATA_CONTROLLER_ASSIGNMENTS: 0,
}

MAP_TYPE_NAMES = {
  ControllerType.JOYSTICK: "JoystickMap",
  ControllerType.KEYBOARD: "KeyboardMap",
  ControllerType.MOUSE: "MouseMap",
  ControllerType.CUSTOM: "CustomControllerMap",
}

EMPTY_GUID = str(uuid.UUID(int=0))

DEFAULT_PREFIX = "InputPrefs"

SEPARATOR = "|"

# '%' first, so escapes are not escaped again.
_ESCAPES = (("%", "%25"), ("|", "%7C"), ("=", "%3D"), ("&", "%26"))



def escape_segment (text):
  """Escape free text so it cannot be mistaken for segment structure."""
  text = str(text)
  for raw, esc in _ESCAPES:
    text = text.replace(raw, esc)
  return text

def unescape_segment (text):
  for raw, esc in reversed(_ESCAPES):
    text = text.replace(esc, raw)
  return text


def split_key (key):
  """Prefix and list of (name, value) segments of a key, values unescaped."""
  parts = key.split(SEPARATOR)
  segments = []
  for part in parts[1:]:
    name, _, value = part.partition("=")
    segments.append((name, unescape_segment(value)))
  return parts[0], segments


def canonical_guid (x):
  """Lowercase hyphenated guid; EMPTY_GUID for none."""
  try:
    g = as_guid(x)
  except ValueError:
    raise InvalidDescriptor("Malformed guid {!r}".format(x))
  return EMPTY_GUID if g is None else str(g)


def duplicate_index (owned, controller):
  """Ordinal of controller among the same-type controllers in owned.

Recognized joysticks count as the same type by hardware type guid; anything
else by hardware identifier.  Zero when controller is not connected.
"""
  if controller is None:
    return 0
  count = 0
  for c in owned:
    if c.controller_type != controller.controller_type:
      continue
    recognized = False
    if controller.controller_type == ControllerType.JOYSTICK:
      if c.hardware_type_guid != controller.hardware_type_guid:
        continue
      if controller.hardware_type_guid is not None:
        recognized = True
    if not recognized and c.hardware_identifier != controller.hardware_identifier:
      continue
    if c.controller_id == controller.controller_id:
      return count
    count += 1
  return count




class RecordDescriptor (object):
  """Semantic attributes of one record; KeyCodec turns it into a key.

controller is anything with controller_type, hardware_identifier and
hardware_type_guid (a Controller or ControllerIdentifier).
"""
  def __init__ (self, data_type, subject=None, category_id=None, layout_id=None, controller=None, duplicate=0, role=None, behavior_id=None):
    self.data_type = data_type
    self.subject = subject
    self.category_id = category_id
    self.layout_id = layout_id
    self.controller = controller
    self.duplicate = duplicate
    self.role = role
    self.behavior_id = behavior_id

  def with_data_type (self, data_type):
    return RecordDescriptor(data_type, self.subject, self.category_id, self.layout_id,
                            self.controller, self.duplicate, self.role, self.behavior_id)

  def _require (self, *names):
    for name in names:
      val = getattr(self, name)
      if val is None or val == "":
        raise InvalidDescriptor("{} descriptor requires '{}'".format(self.data_type, name))

  def validate (self):
    if self.data_type in (DATA_CONTROLLER_MAP, DATA_KNOWN_ACTION_IDS):
      self._require('subject', 'category_id', 'layout_id', 'controller')
      if self.controller.controller_type not in MAP_TYPE_NAMES:
        raise InvalidDescriptor("Unknown controller type {!r}".format(self.controller.controller_type))
    elif self.data_type == DATA_ELEMENT_ROLE_MAP:
      self._require('subject', 'category_id', 'layout_id', 'role')
    elif self.data_type == DATA_CALIBRATION_MAP:
      self._require('controller')
    elif self.data_type == DATA_INPUT_BEHAVIOR:
      self._require('subject', 'behavior_id')
    elif self.data_type != DATA_CONTROLLER_ASSIGNMENTS:
      raise InvalidDescriptor("Unknown data type {!r}".format(self.data_type))
    return self

  def __repr__ (self):
    return "{}({!r}, subject={!r}, category_id={!r}, layout_id={!r}, role={!r})".format(
            self.__class__.__name__,
            self.data_type, self.subject, self.category_id, self.layout_id, self.role)


# Descriptor shorthands.

def controller_map_descriptor (subject, controller, category_id, layout_id, owned=()):
  """Descriptor of a controller map; duplicate index from current ownership order."""
  return RecordDescriptor(DATA_CONTROLLER_MAP, subject, category_id, layout_id, controller,
                          duplicate_index(owned, controller))

def role_map_descriptor (subject, role, category_id, layout_id):
  return RecordDescriptor(DATA_ELEMENT_ROLE_MAP, subject, category_id, layout_id, role=role)

def calibration_descriptor (joystick):
  return RecordDescriptor(DATA_CALIBRATION_MAP, controller=joystick)

def input_behavior_descriptor (subject, behavior_id):
  return RecordDescriptor(DATA_INPUT_BEHAVIOR, subject, behavior_id=behavior_id)

def assignments_descriptor ():
  return RecordDescriptor(DATA_CONTROLLER_ASSIGNMENTS)




class KeyCodec (object):
  """Builds store keys from RecordDescriptors; see module notes for versions."""
  def __init__ (self, prefix=DEFAULT_PREFIX):
    if not prefix:
      raise InvalidDescriptor("Key prefix must not be empty")
    if SEPARATOR in prefix or "=" in prefix:
      raise InvalidDescriptor("Key prefix {!r} may not contain '|' or '='".format(prefix))
    self.prefix = prefix

  @staticmethod
  def current_version (data_type):
    try:
      return CURRENT_VERSIONS[data_type]
    except KeyError:
      raise InvalidDescriptor("Unknown data type {!r}".format(data_type))

  def build_key (self, descriptor, version=None):
    descriptor.validate()
    current = self.current_version(descriptor.data_type)
    if version is None:
      version = current
    if not (0 <= version <= current):
      raise InvalidDescriptor("No key version {} for {}".format(version, descriptor.data_type))

    if descriptor.data_type == DATA_CONTROLLER_ASSIGNMENTS:
      return "{}_{}".format(self.prefix, DATA_CONTROLLER_ASSIGNMENTS)

    parts = [ self.prefix ]
    if descriptor.data_type != DATA_CALIBRATION_MAP:
      self._segment(parts, "playerName", escape_segment(descriptor.subject))
    self._segment(parts, "dataType", descriptor.data_type)

    if descriptor.data_type in (DATA_CONTROLLER_MAP, DATA_KNOWN_ACTION_IDS):
      self._controller_map_suffix(parts, descriptor, version)
    elif descriptor.data_type == DATA_ELEMENT_ROLE_MAP:
      self._segment(parts, "kv", version)
      self._segment(parts, "categoryId", descriptor.category_id)
      self._segment(parts, "layoutId", descriptor.layout_id)
      self._segment(parts, "role", escape_segment(descriptor.role))
    elif descriptor.data_type == DATA_CALIBRATION_MAP:
      joystick = descriptor.controller
      self._segment(parts, "controllerType", joystick.controller_type)
      self._segment(parts, "hardwareIdentifier", escape_segment(joystick.hardware_identifier))
      self._segment(parts, "hardwareGuid", canonical_guid(joystick.hardware_type_guid))
    elif descriptor.data_type == DATA_INPUT_BEHAVIOR:
      self._segment(parts, "id", descriptor.behavior_id)
    return "".join(parts)

  @staticmethod
  def _segment (parts, name, value):
    parts.append("{}{}={}".format(SEPARATOR, name, value))

  def _controller_map_suffix (self, parts, descriptor, version):
    controller = descriptor.controller
    is_joystick = (controller.controller_type == ControllerType.JOYSTICK)
    guid = canonical_guid(controller.hardware_type_guid)
    identifier = escape_segment(controller.hardware_identifier)

    if version >= MAP_KEY_VERSION_FORMAT_MARKER:
      self._segment(parts, "kv", version)
    self._segment(parts, "controllerMapType", MAP_TYPE_NAMES[controller.controller_type])
    self._segment(parts, "categoryId", descriptor.category_id)
    self._segment(parts, "layoutId", descriptor.layout_id)

    if version >= MAP_KEY_VERSION_DISCONNECTED:
      self._segment(parts, "hardwareGuid", guid)
      # Unrecognized hardware has no guid; the identifier tells devices apart.
      if guid == EMPTY_GUID:
        self._segment(parts, "hardwareIdentifier", identifier)
      if is_joystick:
        self._segment(parts, "duplicate", descriptor.duplicate)
    else:
      self._segment(parts, "hardwareIdentifier", identifier)
      if is_joystick:
        self._segment(parts, "hardwareGuid", guid)
        if version >= MAP_KEY_VERSION_DUPLICATE_INDEX:
          self._segment(parts, "duplicate", descriptor.duplicate)

  def candidate_keys (self, descriptor, max_version=None):
    """(key, version) pairs from max_version down to 0."""
    if max_version is None:
      max_version = self.current_version(descriptor.data_type)
    for version in range(max_version, -1, -1):
      yield (self.build_key(descriptor, version), version)

  def find_existing (self, descriptor, exists, max_version=None):
    """First (key, version), newest first, for which exists(key); None when not found."""
    for key, version in self.candidate_keys(descriptor, max_version):
      if exists(key):
        return (key, version)
    return None
