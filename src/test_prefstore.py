#!/usr/bin/env python3
# encoding=utf-8

import sys, unittest
import os
import tempfile
from unittest import mock

import prefstore
from prefstore import MemoryRecordStore, FileRecordStore, RecordStore


class TestMemoryRecordStore (unittest.TestCase):
  def test_basic (self):
    store = MemoryRecordStore({"a": "1"})
    self.assertFalse(store.dirty)
    self.assertTrue(store.has("a"))
    self.assertEqual(store.get_string("a"), "1")
    self.assertEqual(store.get_string("missing"), "")
    self.assertEqual(store.get_string("missing", None), None)
    store.set_string("b", "2")
    self.assertTrue(store.dirty)
    self.assertEqual(store.keys(), [ "a", "b" ])
    self.assertTrue(store.delete_key("a"))
    self.assertFalse(store.delete_key("a"))
    store.clear()
    self.assertEqual(store.keys(), [])

  def test_bad_write_keeps_old_value (self):
    store = MemoryRecordStore({"a": "1"})
    self.assertRaises(TypeError, store.set_string, "a", 5)
    self.assertRaises(TypeError, store.set_string, "", "x")
    self.assertRaises(TypeError, store.set_string, None, "x")
    self.assertEqual(store.get_string("a"), "1")

  def test_unencodable_text_rejected (self):
    store = MemoryRecordStore({"a": "1"})
    self.assertRaises(UnicodeEncodeError, store.set_string, "a", "P\udc80")
    self.assertRaises(UnicodeEncodeError, store.set_string, "P\udc80", "x")
    self.assertEqual(store.keys(), [ "a" ])
    self.assertEqual(store.get_string("a"), "1")

  def test_base_class (self):
    base = RecordStore()
    self.assertRaises(NotImplementedError, base.has, "a")
    self.assertRaises(NotImplementedError, base.set_string, "a", "b")
    base.flush()


class TestFileRecordStore (unittest.TestCase):
  def setUp (self):
    self.tmp = tempfile.TemporaryDirectory()
    self.path = os.path.join(self.tmp.name, "sub", "prefs.vdf")

  def tearDown (self):
    self.tmp.cleanup()

  def test_missing_file_is_empty (self):
    store = FileRecordStore(self.path)
    self.assertEqual(store.keys(), [])
    store.flush()
    self.assertFalse(os.path.exists(self.path))

  def test_persists (self):
    store = FileRecordStore(self.path)
    store.set_string("Game|playerName=P|dataType=X", '"quoted" {text}\nline two')
    store.set_string("empty", "")
    store.flush()
    self.assertFalse(store.dirty)
    again = FileRecordStore(self.path)
    self.assertEqual(again.keys(), [ "Game|playerName=P|dataType=X", "empty" ])
    self.assertEqual(again.get_string("Game|playerName=P|dataType=X"), '"quoted" {text}\nline two')
    self.assertTrue(again.has("empty"))
    self.assertEqual(os.listdir(os.path.dirname(self.path)), [ "prefs.vdf" ])

  def test_control_characters_persist (self):
    key = "Game|dataType=CalibrationMap|hardwareIdentifier=Pad\x00\x00"
    store = FileRecordStore(self.path)
    store.set_string(key, "cal")
    store.set_string("newlines", "a\r\nb\rc")
    store.set_string("other", "kept")
    store.flush()
    again = FileRecordStore(self.path)
    self.assertEqual(again.keys(), [ key, "newlines", "other" ])
    self.assertEqual(again.get_string(key), "cal")
    self.assertEqual(again.get_string("newlines"), "a\r\nb\rc")

  def test_corrupt_file (self):
    os.makedirs(os.path.dirname(self.path))
    with open(self.path, "wt") as f:
      f.write('"prefs" { "a" ')
    with self.assertLogs("prefstore", level="ERROR"):
      store = FileRecordStore(self.path)
    self.assertEqual(store.keys(), [])
    with open(self.path, "rt") as f:
      self.assertEqual(f.read(), '"prefs" { "a" ')

  def test_failed_flush_keeps_previous_file (self):
    store = FileRecordStore(self.path)
    store.set_string("a", "1")
    store.flush()
    store.set_string("a", "2")
    with mock.patch.object(prefstore.os, "replace", side_effect=OSError("disk full")):
      self.assertRaises(OSError, store.flush)
    self.assertEqual(FileRecordStore(self.path).get_string("a"), "1")
    self.assertEqual(os.listdir(os.path.dirname(self.path)), [ "prefs.vdf" ])
    self.assertTrue(store.dirty)

  def test_reload (self):
    store = FileRecordStore(self.path)
    store.set_string("a", "1")
    store.reload()
    self.assertFalse(store.has("a"))


if __name__ == "__main__":
  unittest.main()
