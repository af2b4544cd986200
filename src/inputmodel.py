#!/usr/bin/env python3
# encoding=utf-8

# Object model for per-player input configuration.
#
# Controllers and their elements, action-to-element bindings (controller maps),
# input behaviors, joystick calibration, players and the connected-device catalog.
#
# Records are converted to kvtext with .encode_kv(), and back with the
# decode_kv()/from_text() static methods, which raise ParseFailure.

import time
import types
import uuid
from collections import OrderedDict

import kvtext



class ParseFailure (ValueError):
  """Record text could not be decoded into its record type."""
  pass


# Enumerations.
ControllerType = types.SimpleNamespace(
  JOYSTICK="Joystick",
  KEYBOARD="Keyboard",
  MOUSE="Mouse",
  CUSTOM="Custom",
  )
ElementType = types.SimpleNamespace(
  AXIS="Axis",
  BUTTON="Button",
  )
AxisRange = types.SimpleNamespace(
  FULL="Full",
  POSITIVE="Positive",
  NEGATIVE="Negative",
  )
Pole = types.SimpleNamespace(
  POSITIVE="Positive",
  NEGATIVE="Negative",
  )



####################
# Helper functions #
####################


def filter_enum (namespace, initval):
  """Canonical member of namespace matching initval (case-insensitive), or None."""
  if initval is None:
    return None
  for v in namespace.__dict__.values():
    if v.lower() == str(initval).lower():
      return v
  return None


def as_guid (x):
  """Coerce to uuid.UUID; None, empty string and the nil UUID all mean 'no guid'."""
  if x is None or x == "":
    return None
  if not isinstance(x, uuid.UUID):
    x = uuid.UUID(str(x))
  if x.int == 0:
    return None
  return x


def check_constraint (key, val, constraint):
  """Raise ValueError unless val satisfies constraint.

Tuples indicate an inclusive numeric range, such that tuple[0] <= value <= tuple[1]
List specifies the set of acceptable values
SimpleNamespace contains acceptable values: namespace.__dict__.values()
A type requires the value to be of that type (bool is not accepted as int)
None for no constraint
"""
  if constraint is None:
    return
  if isinstance(constraint, tuple):
    lower, upper = constraint
    if isinstance(val, bool) or not isinstance(val, (int, float)) or (val < lower) or (upper < val):
      raise ValueError("Value {!r} for {} not within constraints {}".format(val, key, constraint))
  elif isinstance(constraint, list):
    if not (val in constraint):
      raise ValueError("Value {!r} for {} not within constraints {}".format(val, key, constraint))
  elif isinstance(constraint, types.SimpleNamespace):
    if not (val in constraint.__dict__.values()):
      raise ValueError("Value {!r} for {} not within namespace constraint {}".format(val, key, constraint))
  elif constraint is float:
    if isinstance(val, bool) or not isinstance(val, (int, float)):
      raise ValueError("Value {!r} for {} not within constraints type({})".format(val, key, constraint.__name__))
  else:
    if type(val) != constraint:
      raise ValueError("Value {!r} for {} not within constraints type({})".format(val, key, constraint.__name__))


def _field (kv, key, conv=str, default=ParseFailure):
  """Decode one scalar field of a record; ParseFailure when missing or malformed."""
  try:
    raw = kv[key]
  except (KeyError, TypeError):
    if default is ParseFailure:
      raise ParseFailure("Missing field '{}'".format(key))
    return default
  if not isinstance(raw, str):
    raise ParseFailure("Field '{}' is not a scalar".format(key))
  try:
    return conv(raw)
  except (TypeError, ValueError) as e:
    raise ParseFailure("Field '{}': {}".format(key, e))


def _enum_field (kv, key, namespace, default=ParseFailure):
  raw = _field(kv, key, str, None)
  if raw is None:
    if default is ParseFailure:
      raise ParseFailure("Missing field '{}'".format(key))
    return default
  val = filter_enum(namespace, raw)
  if val is None:
    raise ParseFailure("Field '{}': unknown value {!r}".format(key, raw))
  return val


def _flag (s):
  if s in ("1", "true", "True"): return True
  if s in ("0", "false", "False"): return False
  raise ValueError("not a flag: {!r}".format(s))


def _blocks (kv, key):
  """All nested blocks under key."""
  try:
    found = kv.get_all(key, [])
  except AttributeError:
    raise ParseFailure("Record is not a block")
  for blk in found:
    if not kvtext._dictlike(blk):
      raise ParseFailure("Field '{}' is not a block".format(key))
  return found


def parse_record (text):
  """Parse record text; KVSyntaxError becomes ParseFailure."""
  if not text:
    raise ParseFailure("Empty record")
  try:
    return kvtext.loads(text)
  except kvtext.KVSyntaxError as e:
    raise ParseFailure(str(e))




###########
# Devices #
###########


class ControllerElement (object):
  """One physical control; role is a device-independent tag like 'button_south'."""
  def __init__ (self, element_id, element_type, role=None, name=None):
    self.element_id = element_id
    self.element_type = element_type
    self.role = role or None
    self.name = name
  def __repr__ (self):
    return "{}({!r}, {!r}, role={!r})".format(
            self.__class__.__name__,
            self.element_id, self.element_type, self.role)


class ControllerIdentifier (object):
  """Identity attributes of a controller, enough to key its saved data."""
  def __init__ (self, controller_type, controller_id=0, hardware_identifier="", hardware_type_guid=None, device_instance_guid=None):
    self.controller_type = controller_type
    self.controller_id = controller_id
    self.hardware_identifier = hardware_identifier or ""
    self.hardware_type_guid = as_guid(hardware_type_guid)
    self.device_instance_guid = as_guid(device_instance_guid)
  def __repr__ (self):
    return "{}({!r}, {!r}, hardware_identifier={!r}, hardware_type_guid={!r})".format(
            self.__class__.__name__,
            self.controller_type, self.controller_id,
            self.hardware_identifier, self.hardware_type_guid)


class Controller (object):
  """A connected input device.

controller_id is session-local: it identifies the device only while it stays connected.
device_instance_guid is the stable per-device identity, when the platform reports one.
hardware_identifier is free text naming the model; hardware_type_guid is set for recognized models.
"""
  def __init__ (self, controller_type, controller_id, hardware_identifier="", hardware_type_guid=None, device_instance_guid=None, elements=None, name=None):
    self.controller_type = controller_type
    self.controller_id = controller_id
    self.hardware_identifier = hardware_identifier or ""
    self.hardware_type_guid = as_guid(hardware_type_guid)
    self.device_instance_guid = as_guid(device_instance_guid)
    self.elements = list(elements or [])
    self.name = name or self.hardware_identifier
    self.calibration = CalibrationMap() if controller_type == ControllerType.JOYSTICK else None

  @property
  def identifier (self):
    return ControllerIdentifier(self.controller_type, self.controller_id,
                                self.hardware_identifier, self.hardware_type_guid,
                                self.device_instance_guid)

  @property
  def has_precise_identity (self):
    return self.device_instance_guid is not None

  def element_by_id (self, element_id):
    for elt in self.elements:
      if elt.element_id == element_id:
        return elt
    return None

  def elements_with_role (self, role):
    return [ elt for elt in self.elements if role and elt.role == role ]

  def roles (self):
    """Distinct element roles, in element order."""
    seen = []
    for elt in self.elements:
      if elt.role and elt.role not in seen:
        seen.append(elt.role)
    return seen

  def __repr__ (self):
    return "{}({!r}, {!r}, {!r})".format(
            self.__class__.__name__,
            self.controller_type, self.controller_id, self.hardware_identifier)




############
# Bindings #
############


class ActionElementMap (object):
  """One binding of an action to an element of a controller."""
  def __init__ (self, action_id, element_type, element_id, axis_range=AxisRange.FULL, axis_contribution=Pole.POSITIVE, invert=False, enabled=True, key_code=None, modifier_flags=0, aem_id=None):
    self.action_id = action_id
    self.element_type = element_type
    self.element_id = element_id
    self.axis_range = axis_range
    self.axis_contribution = axis_contribution
    self.invert = invert
    self.enabled = enabled
    self.key_code = key_code
    self.modifier_flags = modifier_flags
    self.aem_id = aem_id

  def copy (self):
    return ActionElementMap(self.action_id, self.element_type, self.element_id,
                            self.axis_range, self.axis_contribution, self.invert,
                            self.enabled, self.key_code, self.modifier_flags, self.aem_id)

  def _binding (self):
    return (self.action_id, self.element_type, self.element_id, self.axis_range,
            self.axis_contribution, self.invert, self.key_code, self.modifier_flags)

  def same_binding (self, other):
    """Equal apart from id and enabled state."""
    return self._binding() == other._binding()

  def overlaps (self, other):
    """True when both claim the same part of the same element."""
    if (self.element_id, self.key_code, self.modifier_flags) != (other.element_id, other.key_code, other.modifier_flags):
      return False
    if self.element_type != ElementType.AXIS or other.element_type != ElementType.AXIS:
      return True
    if AxisRange.FULL in (self.axis_range, other.axis_range):
      return True
    return self.axis_range == other.axis_range

  def encode_kv (self):
    kv = kvtext.KVDict()
    if self.aem_id is not None:
      kv['id'] = str(self.aem_id)
    kv['actionId'] = str(self.action_id)
    kv['elementType'] = self.element_type
    kv['elementId'] = str(self.element_id)
    kv['axisRange'] = self.axis_range
    kv['axisContribution'] = self.axis_contribution
    kv['invert'] = self.invert
    kv['enabled'] = self.enabled
    if self.key_code is not None:
      kv['keyCode'] = str(self.key_code)
    if self.modifier_flags:
      kv['modifierFlags'] = str(self.modifier_flags)
    return kv

  @staticmethod
  def decode_kv (kv):
    return ActionElementMap(
      _field(kv, 'actionId', int),
      _enum_field(kv, 'elementType', ElementType),
      _field(kv, 'elementId', int),
      _enum_field(kv, 'axisRange', AxisRange, AxisRange.FULL),
      _enum_field(kv, 'axisContribution', Pole, Pole.POSITIVE),
      _field(kv, 'invert', _flag, False),
      _field(kv, 'enabled', _flag, True),
      _field(kv, 'keyCode', str, None),
      _field(kv, 'modifierFlags', int, 0),
      _field(kv, 'id', int, None))

  def __eq__ (self, other):
    if not isinstance(other, ActionElementMap):
      return NotImplemented
    return self.same_binding(other) and (self.enabled, self.aem_id) == (other.enabled, other.aem_id)

  def __repr__ (self):
    return "{}(action_id={!r}, element_type={!r}, element_id={!r}, axis_range={!r}, axis_contribution={!r}, invert={!r})".format(
            self.__class__.__name__,
            self.action_id, self.element_type, self.element_id,
            self.axis_range, self.axis_contribution, self.invert)


class ControllerMap (object):
  """Bindings of one controller for one (map category, layout).

is_modified is raised by every edit, and cleared by automatic merges so
they are not mistaken for user edits.
"""
  def __init__ (self, controller_type, category_id=0, layout_id=0, controller_id=None, element_maps=None, modified_time=0):
    self.controller_type = controller_type
    self.category_id = category_id
    self.layout_id = layout_id
    self.controller_id = controller_id
    self.modified_time = modified_time
    self.is_modified = False
    self._element_maps = []
    self._next_id = 0
    for aem in (element_maps or []):
      self._adopt(aem.copy())

  def _adopt (self, aem):
    if aem.aem_id is None:
      aem.aem_id = self._next_id
    self._next_id = max(self._next_id, aem.aem_id + 1)
    self._element_maps.append(aem)
    return aem

  @property
  def element_maps (self):
    return list(self._element_maps)

  @property
  def element_map_count (self):
    return len(self._element_maps)

  def create_element_map (self, assignment):
    """Add a copy of assignment; None when an identical binding already exists."""
    for extant in self._element_maps:
      if extant.same_binding(assignment):
        return None
    aem = assignment.copy()
    aem.aem_id = None
    self._adopt(aem)
    self.is_modified = True
    self.modified_time = time.time()
    return aem

  def delete_element_map (self, aem_id):
    for i, extant in enumerate(self._element_maps):
      if extant.aem_id == aem_id:
        del self._element_maps[i]
        self.is_modified = True
        self.modified_time = time.time()
        return True
    return False

  def does_assignment_conflict (self, assignment):
    for extant in self._element_maps:
      if extant.overlaps(assignment):
        return True
    return False

  def copy (self):
    other = ControllerMap(self.controller_type, self.category_id, self.layout_id,
                          self.controller_id, self._element_maps, self.modified_time)
    other.is_modified = self.is_modified
    return other

  def encode_kv (self):
    kv = kvtext.KVDict()
    kv['controllerType'] = self.controller_type
    kv['categoryId'] = str(self.category_id)
    kv['layoutId'] = str(self.layout_id)
    kv['modifiedTime'] = repr(float(self.modified_time))
    elts = kvtext.KVDict()
    for aem in self._element_maps:
      elts['elementMap'] = aem.encode_kv()
    kv['elementMaps'] = elts
    return kv

  @staticmethod
  def decode_kv (kv):
    try:
      elts = kv.get('elementMaps', None)
    except AttributeError:
      raise ParseFailure("Record is not a block")
    element_maps = []
    if elts is not None:
      for blk in _blocks(elts, 'elementMap'):
        element_maps.append(ActionElementMap.decode_kv(blk))
    return ControllerMap(
      _enum_field(kv, 'controllerType', ControllerType),
      _field(kv, 'categoryId', int),
      _field(kv, 'layoutId', int),
      None,
      element_maps,
      _field(kv, 'modifiedTime', float, 0))

  def to_text (self):
    return kvtext.dumps([ ('ControllerMap', self.encode_kv()) ])

  @staticmethod
  def from_text (text, controller_type=None):
    """Decode text written by to_text(); controller_type, when given, must match."""
    kv = parse_record(text)
    body = kv.get('ControllerMap', None)
    if body is None or isinstance(body, (str, list)):
      raise ParseFailure("Not a ControllerMap record")
    cmap = ControllerMap.decode_kv(body)
    if controller_type is not None and cmap.controller_type != controller_type:
      raise ParseFailure("ControllerMap is for {}, expected {}".format(cmap.controller_type, controller_type))
    return cmap

  def __eq__ (self, other):
    if not isinstance(other, ControllerMap):
      return NotImplemented
    return ((self.controller_type, self.category_id, self.layout_id, self._element_maps) ==
            (other.controller_type, other.category_id, other.layout_id, other._element_maps))

  def __repr__ (self):
    return "{}({!r}, category_id={!r}, layout_id={!r}, element_maps={!r})".format(
            self.__class__.__name__,
            self.controller_type, self.category_id, self.layout_id, self._element_maps)




#######################
# Settings-only records #
#######################


class SettingsRecord (object):
  """Record made of scalar settings, with per-setting defaults and constraints.

Values read back from text are coerced to the type of their default.
Unknown settings in text are kept as strings.
"""
  DEFAULTS = OrderedDict()
  _Settings = {}

  def __init__ (self, **settings):
    self.settings = OrderedDict(self.DEFAULTS)
    for k, v in settings.items():
      self.set(k, v)

  def get (self, key, default=None):
    return self.settings.get(key, default)

  def set (self, key, val):
    check_constraint(key, val, self._Settings.get(key, None))
    self.settings[key] = val

  def _coerce (self, key, raw):
    proto = self.DEFAULTS.get(key, None)
    if isinstance(proto, bool):
      return _flag(raw)
    if isinstance(proto, int):
      return int(raw)
    if isinstance(proto, float):
      return float(raw)
    return raw

  def encode_settings (self, kv):
    for k, v in self.settings.items():
      if isinstance(v, float):
        v = repr(v)
      kv[k] = v if isinstance(v, (bool, str)) else str(v)
    return kv

  def decode_settings (self, kv):
    """Replace settings from kv block; ParseFailure leaves self untouched."""
    staged = OrderedDict(self.DEFAULTS)
    for k, raw in kv.items():
      if not isinstance(raw, str):
        continue
      try:
        val = self._coerce(k, raw)
        check_constraint(k, val, self._Settings.get(k, None))
      except ValueError as e:
        raise ParseFailure("Setting '{}': {}".format(k, e))
      staged[k] = val
    self.settings = staged
    return self

  def __eq__ (self, other):
    if not isinstance(other, self.__class__):
      return NotImplemented
    return self.settings == other.settings


class InputBehavior (SettingsRecord):
  """Per-player tuning of how raw input turns into action values."""
  DEFAULTS = OrderedDict([
    ("digitalAxisSimulation", True),
    ("digitalAxisSnap", True),
    ("digitalAxisGravity", 3.0),
    ("digitalAxisSensitivity", 3.0),
    ("joystickAxisSensitivity", 1.0),
    ("mouseXYAxisSensitivity", 1.0),
    ("buttonDoublePressSpeed", 0.3),
    ("buttonShortPressTime", 0.25),
    ("buttonLongPressTime", 1.0),
    ])
  _Settings = {
    "digitalAxisSimulation": bool,
    "digitalAxisSnap": bool,
    "digitalAxisGravity": (0.0, 1000.0),
    "digitalAxisSensitivity": (0.0, 1000.0),
    "joystickAxisSensitivity": (0.0, 1000.0),
    "mouseXYAxisSensitivity": (0.0, 1000.0),
    "buttonDoublePressSpeed": (0.0, 60.0),
    "buttonShortPressTime": (0.0, 60.0),
    "buttonLongPressTime": (0.0, 60.0),
  }

  def __init__ (self, behavior_id, name="Default", **settings):
    SettingsRecord.__init__(self, **settings)
    self.behavior_id = behavior_id
    self.name = name

  def to_text (self):
    kv = kvtext.KVDict()
    kv['id'] = str(self.behavior_id)
    kv['name'] = self.name
    kv['settings'] = self.encode_settings(kvtext.KVDict())
    return kvtext.dumps([ ('InputBehavior', kv) ])

  def import_text (self, text):
    """Replace settings from text written by to_text(); ParseFailure on bad text."""
    kv = parse_record(text)
    body = kv.get('InputBehavior', None)
    if not kvtext._dictlike(body):
      raise ParseFailure("Not an InputBehavior record")
    settings = body.get('settings', None)
    if not kvtext._dictlike(settings):
      raise ParseFailure("InputBehavior has no settings")
    self.decode_settings(settings)
    return True


class AxisCalibration (SettingsRecord):
  DEFAULTS = OrderedDict([
    ("enabled", True),
    ("deadZone", 0.0),
    ("zero", 0.0),
    ("min", -1.0),
    ("max", 1.0),
    ("invert", False),
    ("sensitivity", 1.0),
    ])
  _Settings = {
    "enabled": bool,
    "deadZone": (0.0, 1.0),
    "zero": (-1.0, 1.0),
    "min": (-1.0, 1.0),
    "max": (-1.0, 1.0),
    "invert": bool,
    "sensitivity": (0.0, 100.0),
  }


class CalibrationMap (object):
  """Calibration of every axis of one joystick, keyed by axis index."""
  def __init__ (self, axes=None):
    self.axes = OrderedDict(axes or {})

  def axis (self, index):
    """Calibration for axis index, created with defaults on first access."""
    if index not in self.axes:
      self.axes[index] = AxisCalibration()
    return self.axes[index]

  def to_text (self):
    kv = kvtext.KVDict()
    for index, cal in self.axes.items():
      blk = kvtext.KVDict()
      blk['index'] = str(index)
      cal.encode_settings(blk)
      kv['axis'] = blk
    return kvtext.dumps([ ('CalibrationMap', kv) ])

  def import_text (self, text):
    """Replace all axes from text written by to_text(); ParseFailure on bad text."""
    kv = parse_record(text)
    body = kv.get('CalibrationMap', None)
    if not kvtext._dictlike(body):
      raise ParseFailure("Not a CalibrationMap record")
    staged = OrderedDict()
    for blk in _blocks(body, 'axis'):
      index = _field(blk, 'index', int)
      settings = kvtext.KVDict((k, v) for k, v in blk.items() if k != 'index')
      staged[index] = AxisCalibration().decode_settings(settings)
    self.axes = staged
    return True

  def __eq__ (self, other):
    if not isinstance(other, CalibrationMap):
      return NotImplemented
    return list(self.axes.items()) == list(other.axes.items())




###########
# Players #
###########


class PlayerControllers (object):
  """Devices assigned to one player."""
  def __init__ (self, has_keyboard=False, has_mouse=False):
    self.has_keyboard = has_keyboard
    self.has_mouse = has_mouse
    self._assigned = []

  @property
  def joysticks (self):
    return [ c for c in self._assigned if c.controller_type == ControllerType.JOYSTICK ]

  @property
  def joystick_count (self):
    return len(self.joysticks)

  @property
  def controllers (self):
    """Assigned movable and custom controllers, in assignment order."""
    return list(self._assigned)

  def add_controller (self, controller):
    if not self.contains_controller(controller.controller_type, controller.controller_id):
      self._assigned.append(controller)

  def remove_controller (self, controller):
    self._assigned = [ c for c in self._assigned
                       if (c.controller_type, c.controller_id) != (controller.controller_type, controller.controller_id) ]

  def clear_controllers_of_type (self, controller_type):
    self._assigned = [ c for c in self._assigned if c.controller_type != controller_type ]

  def contains_controller (self, controller_type, controller_id):
    if controller_type == ControllerType.KEYBOARD:
      return self.has_keyboard
    if controller_type == ControllerType.MOUSE:
      return self.has_mouse
    for c in self._assigned:
      if (c.controller_type, c.controller_id) == (controller_type, controller_id):
        return True
    return False


class Player (object):
  """Logical user owning devices, controller maps and input behaviors."""
  def __init__ (self, player_id, name, has_keyboard=False, has_mouse=False, behaviors=None):
    self.player_id = player_id
    self.name = name
    self.controllers = PlayerControllers(has_keyboard, has_mouse)
    self.behaviors = OrderedDict()
    for behavior in (behaviors or [ InputBehavior(0) ]):
      self.behaviors[behavior.behavior_id] = behavior
    self._maps = OrderedDict()

  def get_map (self, controller_type, controller_id, category_id, layout_id):
    return self._maps.get((controller_type, controller_id, category_id, layout_id), None)

  def add_map (self, controller, controller_map):
    """Attach controller_map to controller, replacing any map for the same category and layout."""
    controller_map.controller_id = controller.controller_id
    k = (controller.controller_type, controller.controller_id, controller_map.category_id, controller_map.layout_id)
    self._maps[k] = controller_map

  def maps_for (self, controller_type, controller_id):
    return [ m for (t, cid, cat, lay), m in self._maps.items()
             if (t, cid) == (controller_type, controller_id) ]

  def all_maps (self):
    """List of (controller_type, controller_id, map)."""
    return [ (t, cid, m) for (t, cid, cat, lay), m in self._maps.items() ]

  def __repr__ (self):
    return "{}({!r}, {!r})".format(self.__class__.__name__, self.player_id, self.name)




###########
# Catalog #
###########


class MapCategory (object):
  def __init__ (self, category_id, name="Default", user_assignable=True):
    self.category_id = category_id
    self.name = name
    self.user_assignable = user_assignable


class DeviceCatalog (object):
  """Currently connected devices, with connect/disconnect notification.

Listeners may implement any of on_controller_connected(controller),
on_controller_pre_disconnect(controller), on_controller_disconnected(controller).
"""
  def __init__ (self, joysticks=None, keyboard=None, mouse=None, auto_assign_joysticks=True):
    self.keyboard = keyboard or Controller(ControllerType.KEYBOARD, 0, "Keyboard")
    self.mouse = mouse or Controller(ControllerType.MOUSE, 0, "Mouse")
    self.joysticks = list(joysticks or [])
    self.auto_assign_joysticks = auto_assign_joysticks
    self.listeners = []

  @property
  def joystick_count (self):
    return len(self.joysticks)

  def get_joystick (self, controller_id):
    for j in self.joysticks:
      if j.controller_id == controller_id:
        return j
    return None

  def get_controller (self, controller_type, controller_id):
    if controller_type == ControllerType.KEYBOARD:
      return self.keyboard
    if controller_type == ControllerType.MOUSE:
      return self.mouse
    if controller_type == ControllerType.JOYSTICK:
      return self.get_joystick(controller_id)
    return None

  def _notify (self, event, controller):
    for listener in list(self.listeners):
      handler = getattr(listener, event, None)
      if handler is not None:
        handler(controller)

  def connect (self, controller, players=()):
    """Add controller; with auto_assign_joysticks it goes to a player before listeners hear of it."""
    self.joysticks.append(controller)
    if self.auto_assign_joysticks and players:
      self.auto_assign(players, [ controller ])
    self._notify('on_controller_connected', controller)

  def disconnect (self, controller_id, players=()):
    controller = self.get_joystick(controller_id)
    if controller is None:
      return None
    self._notify('on_controller_pre_disconnect', controller)
    self.joysticks.remove(controller)
    for player in players:
      player.controllers.remove_controller(controller)
    self._notify('on_controller_disconnected', controller)
    return controller

  def auto_assign (self, players, joysticks=None):
    """Hand each unowned joystick to the first player without one; list of (player, joystick)."""
    if joysticks is None:
      joysticks = self.joysticks
    made = []
    for joystick in joysticks:
      if any(p.controllers.contains_controller(ControllerType.JOYSTICK, joystick.controller_id) for p in players):
        continue
      for player in players:
        if player.controllers.joystick_count == 0:
          player.controllers.add_controller(joystick)
          made.append((player, joystick))
          break
    return made


class InputManager (object):
  """Players, devices, map categories and layouts of one running application."""
  def __init__ (self, players=None, devices=None, categories=None, layouts=None):
    self.players = list(players or [])
    self.devices = devices or DeviceCatalog()
    self.categories = list(categories or [ MapCategory(0) ])
    self.layouts = dict(layouts or {})

  def get_player (self, player_id):
    for p in self.players:
      if p.player_id == player_id:
        return p
    return None

  def map_layouts (self, controller_type):
    return self.layouts.get(controller_type, [ 0 ])
