#!/usr/bin/env python3
# encoding=utf-8

import sys, unittest
import io
import os
import tempfile
from contextlib import redirect_stdout, redirect_stderr
from unittest import mock

import prefkeys
import prefstool
from prefstore import FileRecordStore
from inputmodel import Controller, ControllerType


PAD_GUID = "d74a350e-fe8b-4e9e-bbcd-efff16d34115"


class TestPrefsTool (unittest.TestCase):
  def setUp (self):
    self.tmp = tempfile.TemporaryDirectory()
    self.path = os.path.join(self.tmp.name, "prefs.vdf")
    codec = prefkeys.KeyCodec("InputPrefs")
    joystick = Controller(ControllerType.JOYSTICK, 0, "Xbox Controller", PAD_GUID)
    desc = prefkeys.controller_map_descriptor("Player0", joystick, 0, 0)
    self.map_key = codec.build_key(desc, 1)
    self.behavior_key = codec.build_key(prefkeys.input_behavior_descriptor("Player0", 0))
    store = FileRecordStore(self.path)
    store.set_string(self.map_key, '"ControllerMap"\n{\n}\n')
    store.set_string(self.behavior_key, "behavior")
    store.flush()
    self.env = mock.patch.dict(os.environ, clear=True)
    self.env.start()

  def tearDown (self):
    self.env.stop()
    self.tmp.cleanup()

  def run_cli (self, *argv):
    out, err = io.StringIO(), io.StringIO()
    with redirect_stdout(out), redirect_stderr(err):
      rc = prefstool.cli([ "prefstool" ] + list(argv))
    return rc, out.getvalue(), err.getvalue()

  def test_keys (self):
    rc, out, err = self.run_cli("-s", self.path, "keys")
    self.assertEqual(rc, 0)
    self.assertEqual(out.splitlines(), [ self.map_key, self.behavior_key ])
    rc, out, err = self.run_cli("-s", self.path, "keys", "--data-type", "InputBehavior")
    self.assertEqual(out.splitlines(), [ self.behavior_key ])

  def test_show (self):
    rc, out, err = self.run_cli("-s", self.path, "show", self.behavior_key)
    self.assertEqual((rc, out), (0, "behavior\n"))
    rc, out, err = self.run_cli("-s", self.path, "show", "nothing")
    self.assertEqual(rc, 1)
    self.assertTrue("nothing" in err)

  def test_decode (self):
    rc, out, err = self.run_cli("decode", "P|playerName=a%7Cb|dataType=InputBehavior|id=0")
    self.assertEqual(rc, 0)
    self.assertEqual(out.splitlines(), [ "prefix\tP", "playerName\ta|b", "dataType\tInputBehavior", "id\t0" ])

  def test_find (self):
    rc, out, err = self.run_cli("-s", self.path, "find", "--player", "Player0",
                                "--hardware-guid", PAD_GUID, "--hardware-identifier", "Xbox Controller")
    self.assertEqual((rc, out), (0, "v1\t{}\n".format(self.map_key)))
    rc, out, err = self.run_cli("-s", self.path, "find", "--player", "Player1",
                                "--hardware-guid", PAD_GUID, "--hardware-identifier", "Xbox Controller")
    self.assertEqual(rc, 1)
    self.assertEqual(len([ line for line in err.splitlines() if line.startswith("  v") ]), 3)
    rc, out, err = self.run_cli("-s", self.path, "find", "--player", "Player0", "--type", "Gamepad")
    self.assertEqual(rc, 2)

  def test_store_from_config (self):
    cfgpath = os.path.join(self.tmp.name, "store.yaml")
    with open(cfgpath, "wt") as f:
      f.write("store_path: {}\n".format(self.path))
    rc, out, err = self.run_cli("-c", cfgpath, "keys")
    self.assertEqual(len(out.splitlines()), 2)
    with open(cfgpath, "wt") as f:
      f.write("bogus: 1\n")
    rc, out, err = self.run_cli("-c", cfgpath, "keys")
    self.assertEqual(rc, 2)
    self.assertRaises(SystemExit, self.run_cli, "keys")

  def test_no_command (self):
    rc, out, err = self.run_cli()
    self.assertEqual(rc, 2)


if __name__ == "__main__":
  unittest.main()
