#!/usr/bin/env python3
# encoding=utf-8

# Inspect a file-backed preference store.
#
#   prefstool.py -s prefs.vdf keys [--data-type ControllerMap]
#   prefstool.py -s prefs.vdf show KEY
#   prefstool.py decode KEY
#   prefstool.py -s prefs.vdf find --player Player0 --type Joystick --hardware-guid GUID

import sys, argparse
import logging

import yaml

import prefkeys
from inputmodel import ControllerIdentifier, ControllerType, filter_enum
from prefstore import FileRecordStore
from storeconfig import StoreConfig


def open_store (args, cfg):
  path = args.store[-1] if args.store else cfg.store_path
  if not path:
    raise SystemExit("No store given; use --store or store_path in the configuration")
  return FileRecordStore(path)


def cmd_keys (args, cfg):
  store = open_store(args, cfg)
  data_type = args.data_type[-1] if args.data_type else None
  for key in store.keys():
    if data_type is not None:
      _, segments = prefkeys.split_key(key)
      if ("dataType", data_type) not in segments:
        continue
    print(key)
  return 0


def cmd_show (args, cfg):
  store = open_store(args, cfg)
  if not store.has(args.key):
    print("No such key: {}".format(args.key), file=sys.stderr)
    return 1
  text = store.get_string(args.key)
  sys.stdout.write(text)
  if not text.endswith("\n"):
    sys.stdout.write("\n")
  return 0


def cmd_decode (args, cfg):
  prefix, segments = prefkeys.split_key(args.key)
  print("prefix\t{}".format(prefix))
  for name, value in segments:
    print("{}\t{}".format(name, value))
  return 0


def cmd_find (args, cfg):
  store = open_store(args, cfg)
  controller_type = filter_enum(ControllerType, args.type[-1] if args.type else ControllerType.JOYSTICK)
  if controller_type is None:
    print("Unknown controller type: {}".format(args.type[-1]), file=sys.stderr)
    return 2
  identifier = ControllerIdentifier(controller_type, 0,
                                    args.hardware_identifier[-1] if args.hardware_identifier else "",
                                    args.hardware_guid[-1] if args.hardware_guid else None)
  desc = prefkeys.RecordDescriptor(prefkeys.DATA_CONTROLLER_MAP,
                                   args.player[-1] if args.player else None,
                                   args.category[-1] if args.category else 0,
                                   args.layout[-1] if args.layout else 0,
                                   identifier,
                                   args.duplicate[-1] if args.duplicate else 0)
  codec = prefkeys.KeyCodec(cfg.key_prefix)
  found = codec.find_existing(desc, store.has)
  if found is None:
    print("Not found; tried:", file=sys.stderr)
    for key, version in codec.candidate_keys(desc):
      print("  v{}  {}".format(version, key), file=sys.stderr)
    return 1
  key, version = found
  print("v{}\t{}".format(version, key))
  return 0


def cli (argv):
  parser = argparse.ArgumentParser(description='Inspect a saved input preference store')
  parser.add_argument('-c', '--config', metavar='FILE', nargs=1,
                      help='YAML store configuration')
  parser.add_argument('-s', '--store', metavar='FILE', nargs=1,
                      help='Preference store file [store_path from configuration]')
  parser.add_argument('-v', '--verbose', action='count', default=0,
                      help='More logging (repeat for debug)')
  sub = parser.add_subparsers(dest='command')

  p = sub.add_parser('keys', help='List stored keys')
  p.add_argument('--data-type', metavar='TYPE', nargs=1,
                 help='Only keys of this data type (ControllerMap, ElementRoleMap, ...)')
  p.set_defaults(func=cmd_keys)

  p = sub.add_parser('show', help='Print the record stored under a key')
  p.add_argument('key')
  p.set_defaults(func=cmd_show)

  p = sub.add_parser('decode', help='Split a key into its segments')
  p.add_argument('key')
  p.set_defaults(func=cmd_decode)

  p = sub.add_parser('find', help='Locate a controller map, newest key version first')
  p.add_argument('--player', metavar='NAME', nargs=1, required=True)
  p.add_argument('--type', metavar='TYPE', nargs=1,
                 help='Controller type [Joystick]')
  p.add_argument('--hardware-guid', metavar='GUID', nargs=1)
  p.add_argument('--hardware-identifier', metavar='TEXT', nargs=1)
  p.add_argument('--category', metavar='N', type=int, nargs=1)
  p.add_argument('--layout', metavar='N', type=int, nargs=1)
  p.add_argument('--duplicate', metavar='N', type=int, nargs=1)
  p.set_defaults(func=cmd_find)

  args = parser.parse_args(argv[1:])

  level = logging.WARNING
  if args.verbose == 1:
    level = logging.INFO
  elif args.verbose > 1:
    level = logging.DEBUG
  logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

  if not args.command:
    parser.print_help()
    return 2

  try:
    cfg = StoreConfig.load(args.config[-1] if args.config else None)
  except (OSError, ValueError, yaml.YAMLError) as e:
    print("Bad configuration: {}".format(e), file=sys.stderr)
    return 2

  try:
    return args.func(args, cfg)
  except prefkeys.InvalidDescriptor as e:
    print("Invalid record description: {}".format(e), file=sys.stderr)
    return 2


def main ():
  sys.exit(cli(sys.argv))


if __name__ == "__main__":
  main()
