#!/usr/bin/env python3
# encoding=utf-8

# Settings of the preference store, read from a YAML file.
#
#   enabled: true
#   action_mapping_save_mode: by_element_role
#   store_path: ~/.local/share/mygame/prefs.vdf
#
# Environment variables override file values:
#   PREFSYNC_STORE_PATH, PREFSYNC_KEY_PREFIX, PREFSYNC_ENABLED

import os
import types
from collections import OrderedDict

import yaml

from inputmodel import check_constraint


ActionMappingSaveMode = types.SimpleNamespace(
  BY_CONTROLLER="by_controller",
  BY_ELEMENT_ROLE="by_element_role",
  )


ENV_OVERRIDES = OrderedDict([
  ("PREFSYNC_STORE_PATH", "store_path"),
  ("PREFSYNC_KEY_PREFIX", "key_prefix"),
  ("PREFSYNC_ENABLED", "enabled"),
  ])


def _env_flag (s):
  v = s.strip().lower()
  if v in ("1", "true", "yes", "on"): return True
  if v in ("0", "false", "no", "off"): return False
  raise ValueError("Not a boolean: {!r}".format(s))


class StoreConfig (object):
  """Validated store settings; attribute access per setting name."""
  DEFAULTS = OrderedDict([
    ("enabled", True),
    ("load_data_on_start", True),
    ("load_joystick_assignments", True),
    ("load_keyboard_assignments", True),
    ("load_mouse_assignments", True),
    ("action_mapping_save_mode", ActionMappingSaveMode.BY_CONTROLLER),
    ("key_prefix", "InputPrefs"),
    ("allow_imprecise_matching", True),
    ("defer_assignment_on_connect", True),
    ("store_path", None),
    ])
  _Settings = {
    "enabled": bool,
    "load_data_on_start": bool,
    "load_joystick_assignments": bool,
    "load_keyboard_assignments": bool,
    "load_mouse_assignments": bool,
    "action_mapping_save_mode": ActionMappingSaveMode,
    "key_prefix": str,
    "allow_imprecise_matching": bool,
    "defer_assignment_on_connect": bool,
    "store_path": None,
  }

  def __init__ (self, **settings):
    self.__dict__['settings'] = OrderedDict(self.DEFAULTS)
    for k, v in settings.items():
      self.set(k, v)

  def set (self, key, val):
    if key not in self.DEFAULTS:
      raise ValueError("Unknown setting {!r}".format(key))
    check_constraint(key, val, self._Settings[key])
    if key == "key_prefix" and not val:
      raise ValueError("Setting key_prefix must not be empty")
    if key == "key_prefix" and ("|" in val or "=" in val):
      raise ValueError("Setting key_prefix may not contain '|' or '='")
    if key == "store_path" and val is not None and not isinstance(val, str):
      raise ValueError("Setting store_path must be a string, not {!r}".format(val))
    self.settings[key] = val

  def __getattr__ (self, key):
    try:
      return self.__dict__['settings'][key]
    except KeyError:
      raise AttributeError(key)

  def __setattr__ (self, key, val):
    self.set(key, val)

  @property
  def load_controller_assignments (self):
    return (self.load_joystick_assignments
            or self.load_keyboard_assignments
            or self.load_mouse_assignments)

  def apply_environment (self, environ=None):
    """Override settings from PREFSYNC_* variables."""
    if environ is None:
      environ = os.environ
    for var, key in ENV_OVERRIDES.items():
      if var not in environ:
        continue
      raw = environ[var]
      if key == "enabled":
        self.set(key, _env_flag(raw))
      else:
        self.set(key, raw)
    return self

  def as_dict (self):
    return OrderedDict(self.settings)

  @staticmethod
  def from_dict (d):
    if d is None:
      d = {}
    if not isinstance(d, dict):
      raise ValueError("Store configuration must be a mapping, not {}".format(type(d).__name__))
    return StoreConfig(**d)

  @staticmethod
  def loads (text):
    return StoreConfig.from_dict(yaml.safe_load(text))

  @staticmethod
  def load (path=None, environ=None):
    """Settings from YAML file at path (defaults when None), then environment overrides."""
    if path is None:
      cfg = StoreConfig()
    else:
      with open(path, "rt") as f:
        cfg = StoreConfig.from_dict(yaml.safe_load(f))
    return cfg.apply_environment(environ)

  def __repr__ (self):
    return "{}({})".format(self.__class__.__name__,
            ", ".join("{}={!r}".format(k, v) for k, v in self.settings.items()))
