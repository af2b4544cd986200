#!/usr/bin/env python3
# encoding=utf-8

# Re-attach joysticks to players across sessions.
#
# An AssignmentSnapshot remembers, per player, the keyboard/mouse flags and the
# joysticks owned at save time.  Reconciliation matches remembered joysticks
# against the ones connected now:
#
#   1. clear every joystick assignment
#   2. precise pass: stable device instance guid equal to the remembered one
#   3. imprecise pass: same hardware identifier, first unclaimed candidate
#   4. anything still unowned goes to the auto-assigner
#
# All precise matches complete before any imprecise one, so exact matches
# claim their devices first when several identical models are connected.  The
# history of (device, remembered session-local id) keeps one device from
# being imprecisely handed to two players.

import logging
from collections import OrderedDict

import kvtext
from inputmodel import ControllerType, ParseFailure, as_guid, parse_record, _field, _flag, _blocks

logger = logging.getLogger(__name__)



##############
# Snapshot   #
##############


class JoystickInfo (object):
  """Remembered joystick: stable instance guid, model identifier, session-local id."""
  def __init__ (self, instance_guid=None, hardware_identifier="", joystick_id=-1):
    self.instance_guid = as_guid(instance_guid)
    self.hardware_identifier = hardware_identifier or ""
    self.joystick_id = joystick_id

  def encode_kv (self):
    kv = kvtext.KVDict()
    kv['instanceGuid'] = str(self.instance_guid) if self.instance_guid else ""
    kv['hardwareIdentifier'] = self.hardware_identifier
    kv['id'] = str(self.joystick_id)
    return kv

  @staticmethod
  def decode_kv (kv):
    try:
      guid = as_guid(_field(kv, 'instanceGuid', str, None))
    except ValueError as e:
      raise ParseFailure("Field 'instanceGuid': {}".format(e))
    return JoystickInfo(guid, _field(kv, 'hardwareIdentifier', str, ""), _field(kv, 'id', int))

  def __repr__ (self):
    return "{}({!r}, {!r}, {!r})".format(self.__class__.__name__,
            self.instance_guid, self.hardware_identifier, self.joystick_id)


class PlayerInfo (object):
  def __init__ (self, player_id, has_keyboard=False, has_mouse=False, joysticks=None):
    self.player_id = player_id
    self.has_keyboard = has_keyboard
    self.has_mouse = has_mouse
    self.joysticks = list(joysticks or [])

  def encode_kv (self):
    kv = kvtext.KVDict()
    kv['id'] = str(self.player_id)
    kv['hasKeyboard'] = self.has_keyboard
    kv['hasMouse'] = self.has_mouse
    js = kvtext.KVDict()
    for j in self.joysticks:
      js['joystick'] = j.encode_kv()
    kv['joysticks'] = js
    return kv

  @staticmethod
  def decode_kv (kv):
    js = kv.get('joysticks', kvtext.KVDict())
    if not kvtext._dictlike(js):
      raise ParseFailure("Field 'joysticks' is not a block")
    return PlayerInfo(
      _field(kv, 'id', int),
      _field(kv, 'hasKeyboard', _flag, False),
      _field(kv, 'hasMouse', _flag, False),
      [ JoystickInfo.decode_kv(blk) for blk in _blocks(js, 'joystick') ])


class AssignmentSnapshot (object):
  """Device assignments of every player, as saved at one moment."""
  def __init__ (self, players=None):
    self.players = list(players or [])

  @property
  def player_count (self):
    return len(self.players)

  def index_of_player (self, player_id):
    for i, info in enumerate(self.players):
      if info.player_id == player_id:
        return i
    return -1

  def contains_player (self, player_id):
    return self.index_of_player(player_id) >= 0

  def player (self, player_id):
    i = self.index_of_player(player_id)
    return self.players[i] if i >= 0 else None

  def remembered_instance_guids (self):
    return set(j.instance_guid for info in self.players for j in info.joysticks if j.instance_guid)

  @staticmethod
  def capture (players):
    """Snapshot of the current assignments of players."""
    infos = []
    for player in players:
      joysticks = [ JoystickInfo(j.device_instance_guid, j.hardware_identifier, j.controller_id)
                    for j in player.controllers.joysticks ]
      infos.append(PlayerInfo(player.player_id, player.controllers.has_keyboard,
                              player.controllers.has_mouse, joysticks))
    return AssignmentSnapshot(infos)

  def to_text (self):
    kv = kvtext.KVDict()
    for info in self.players:
      kv['player'] = info.encode_kv()
    return kvtext.dumps([ ('ControllerAssignments', kv) ])

  @staticmethod
  def from_text (text):
    """Decode text written by to_text(); ParseFailure when malformed."""
    kv = parse_record(text)
    body = kv.get('ControllerAssignments', None)
    if not kvtext._dictlike(body):
      raise ParseFailure("Not a ControllerAssignments record")
    return AssignmentSnapshot([ PlayerInfo.decode_kv(blk) for blk in _blocks(body, 'player') ])




##################
# Reconciliation #
##################


class AssignmentHistory (object):
  """(device, remembered joystick id) pairs claimed during one reconciliation."""
  def __init__ (self):
    self.entries = []

  def contains_device (self, device):
    return any(d is device for d, _ in self.entries)

  def find_by_old_id (self, old_id):
    for d, oid in self.entries:
      if oid == old_id:
        return d
    return None

  def add (self, device, old_id):
    """Record device; first write wins per device."""
    if not self.contains_device(device):
      self.entries.append((device, old_id))


class ReconcileResult (object):
  """Outcome of one reconciliation run.

changed is False when nothing was touched (no snapshot, no joysticks).
mapping is player_id -> list of joystick controller ids.
"""
  def __init__ (self, changed=False, mapping=None, auto_assigned=None):
    self.changed = changed
    self.mapping = mapping if mapping is not None else OrderedDict()
    self.auto_assigned = list(auto_assigned or [])

  def __repr__ (self):
    return "{}(changed={!r}, mapping={!r})".format(self.__class__.__name__, self.changed, dict(self.mapping))


def find_precise (info, devices):
  if info is None or info.instance_guid is None:
    return None
  for device in devices:
    if device.device_instance_guid == info.instance_guid:
      return device
  return None


def find_imprecise (info, devices, reserved=()):
  """Devices with the remembered hardware identifier, in enumeration order.

Devices whose instance guid is remembered somewhere in the snapshot are
reserved for their exact match and never returned.
"""
  if info is None or not info.hardware_identifier:
    return []
  wanted = info.hardware_identifier.lower()
  return [ d for d in devices
           if d.hardware_identifier.lower() == wanted
           and not (d.has_precise_identity and d.device_instance_guid in reserved) ]


class DeviceReconciliationEngine (object):
  """Two-pass matching of remembered joysticks to connected ones.

auto_assigner(players, devices) hands unowned devices out after matching;
returns a list of (player, device).
"""
  def __init__ (self, allow_imprecise=True, auto_assigner=None):
    self.allow_imprecise = allow_imprecise
    self.auto_assigner = auto_assigner

  def plan (self, snapshot, players, devices):
    """player_id -> devices to assign, computed without touching players."""
    history = AssignmentHistory()
    plan = OrderedDict((p.player_id, []) for p in players)
    unresolved = []

    for player in players:
      info = snapshot.player(player.player_id)
      if info is None:
        continue
      for jinfo in info.joysticks:
        device = find_precise(jinfo, devices)
        if device is None:
          unresolved.append((player, jinfo))
          continue
        history.add(device, jinfo.joystick_id)
        if device not in plan[player.player_id]:
          plan[player.player_id].append(device)

    if not self.allow_imprecise:
      return plan

    reserved = snapshot.remembered_instance_guids()
    for player, jinfo in unresolved:
      device = history.find_by_old_id(jinfo.joystick_id)
      if device is None:
        for match in find_imprecise(jinfo, devices, reserved):
          if history.contains_device(match):
            continue
          device = match
          break
        if device is None:
          continue
        history.add(device, jinfo.joystick_id)
      if device not in plan[player.player_id]:
        plan[player.player_id].append(device)
    return plan

  def reconcile (self, snapshot, players, devices):
    """Apply the snapshot to players; all or nothing."""
    devices = list(devices)
    if snapshot is None or snapshot.player_count == 0 or not devices:
      return ReconcileResult(False)

    plan = self.plan(snapshot, players, devices)

    for player in players:
      player.controllers.clear_controllers_of_type(ControllerType.JOYSTICK)
    for player in players:
      for device in plan[player.player_id]:
        player.controllers.add_controller(device)

    auto = []
    if self.auto_assigner is not None:
      owned = set(id(d) for devs in plan.values() for d in devs)
      residual = [ d for d in devices if id(d) not in owned ]
      if residual:
        auto = self.auto_assigner(players, residual) or []

    mapping = OrderedDict((p.player_id, [ j.controller_id for j in p.controllers.joysticks ]) for p in players)
    logger.debug("Reconciled joysticks: %s (auto-assigned %d)", dict(mapping), len(auto))
    return ReconcileResult(True, mapping, auto)


def apply_fixed_assignments (snapshot, players, keyboard=True, mouse=True):
  """Restore keyboard/mouse ownership flags; number of players touched."""
  if snapshot is None:
    return 0
  count = 0
  for player in players:
    info = snapshot.player(player.player_id)
    if info is None:
      continue
    if keyboard:
      player.controllers.has_keyboard = info.has_keyboard
    if mouse:
      player.controllers.has_mouse = info.has_mouse
    count += 1
  return count




############
# Deferral #
############


class TickScheduler (object):
  """Runs queued callables at the host's next yield point (end of frame)."""
  def __init__ (self):
    self.queue = []

  def call_soon (self, fn):
    self.queue.append(fn)

  def run_pending (self):
    """Run everything queued so far; callables queued meanwhile wait for the next tick."""
    batch, self.queue = self.queue, []
    for fn in batch:
      fn()
    return len(batch)


class DeferredReconciliation (object):
  """Single-shot reconciliation postponed to the next tick.

While pending, further requests are ignored, and callers should hold off
saving assignments, so devices connecting in a burst are reconciled together.
"""
  def __init__ (self, schedule, task):
    self.schedule = schedule
    self.task = task
    self.pending = False

  def request (self):
    if self.pending:
      return False
    self.pending = True
    self.schedule(self._run)
    return True

  def _run (self):
    try:
      self.task()
    finally:
      self.pending = False
