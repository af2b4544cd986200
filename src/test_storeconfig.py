#!/usr/bin/env python3
# encoding=utf-8

import sys, unittest
import os
import tempfile

import yaml

from storeconfig import StoreConfig, ActionMappingSaveMode


class TestStoreConfig (unittest.TestCase):
  def test_defaults (self):
    cfg = StoreConfig()
    self.assertTrue(cfg.enabled)
    self.assertEqual(cfg.action_mapping_save_mode, ActionMappingSaveMode.BY_CONTROLLER)
    self.assertEqual(cfg.key_prefix, "InputPrefs")
    self.assertEqual(cfg.store_path, None)
    self.assertTrue(cfg.load_controller_assignments)
    self.assertRaises(AttributeError, getattr, cfg, "bogus")

  def test_loads (self):
    cfg = StoreConfig.loads("""
enabled: false
action_mapping_save_mode: by_element_role
key_prefix: MyGame
""")
    self.assertFalse(cfg.enabled)
    self.assertEqual(cfg.action_mapping_save_mode, ActionMappingSaveMode.BY_ELEMENT_ROLE)
    self.assertEqual(cfg.key_prefix, "MyGame")
    self.assertEqual(StoreConfig.loads("").as_dict(), StoreConfig().as_dict())

  def test_rejects_bad_values (self):
    self.assertRaises(ValueError, StoreConfig.loads, "bogus: 1")
    self.assertRaises(ValueError, StoreConfig.loads, "enabled: maybe")
    self.assertRaises(ValueError, StoreConfig.loads, "action_mapping_save_mode: sideways")
    self.assertRaises(ValueError, StoreConfig.loads, "key_prefix: ''")
    self.assertRaises(ValueError, StoreConfig.loads, "key_prefix: 'a|b'")
    self.assertRaises(ValueError, StoreConfig.loads, "key_prefix: 'a=b'")
    self.assertRaises(ValueError, StoreConfig.loads, "store_path: 5")
    self.assertRaises(ValueError, StoreConfig.loads, "- a\n- b")
    self.assertRaises(yaml.YAMLError, StoreConfig.loads, "enabled: [")
    cfg = StoreConfig()
    with self.assertRaises(ValueError):
      cfg.enabled = "yes"
    self.assertTrue(cfg.enabled)

  def test_derived_flag (self):
    cfg = StoreConfig(load_joystick_assignments=False, load_keyboard_assignments=False, load_mouse_assignments=False)
    self.assertFalse(cfg.load_controller_assignments)
    cfg.load_mouse_assignments = True
    self.assertTrue(cfg.load_controller_assignments)

  def test_environment (self):
    cfg = StoreConfig().apply_environment({
      "PREFSYNC_STORE_PATH": "/tmp/p.vdf",
      "PREFSYNC_ENABLED": "off",
      "UNRELATED": "x",
      })
    self.assertEqual(cfg.store_path, "/tmp/p.vdf")
    self.assertFalse(cfg.enabled)
    self.assertRaises(ValueError, StoreConfig().apply_environment, { "PREFSYNC_ENABLED": "perhaps" })
    self.assertRaises(ValueError, StoreConfig().apply_environment, { "PREFSYNC_KEY_PREFIX": "" })

  def test_load_file (self):
    with tempfile.TemporaryDirectory() as tmp:
      path = os.path.join(tmp, "store.yaml")
      with open(path, "wt") as f:
        f.write("key_prefix: FromFile\nstore_path: prefs.vdf\n")
      cfg = StoreConfig.load(path, { "PREFSYNC_KEY_PREFIX": "FromEnv" })
      self.assertEqual(cfg.key_prefix, "FromEnv")
      self.assertEqual(cfg.store_path, "prefs.vdf")
      self.assertRaises(FileNotFoundError, StoreConfig.load, os.path.join(tmp, "missing.yaml"), {})
    self.assertEqual(StoreConfig.load(None, {}).as_dict(), StoreConfig().as_dict())


if __name__ == "__main__":
  unittest.main()
