#!/usr/bin/env python3
# encoding=utf-8

# Saving and loading every kind of user input data through a RecordStore.
#
# UserDataStore ties the pieces together: KeyCodec for keys, SchemaMergeEngine
# for actions added since a map was saved, RoleMirrorEngine when mappings are
# saved by element role, and DeviceReconciliationEngine for joystick
# ownership.  It also listens to the DeviceCatalog so joystick data follows
# devices as they come and go.
#
# One bad record never stops a batch: faults are logged and the batch goes on.
# InvalidDescriptor is a caller bug and always propagates.

import logging

import prefkeys
from inputmodel import ControllerMap, ControllerType, ParseFailure
from prefkeys import KeyCodec, InvalidDescriptor, RecordDescriptor, duplicate_index
from reconcile import AssignmentSnapshot, DeferredReconciliation, DeviceReconciliationEngine, \
  TickScheduler, apply_fixed_assignments
from rolemirror import RoleMirrorEngine
from schemamerge import ActionUniverse, SchemaMergeEngine, parse_known_ids
from storeconfig import ActionMappingSaveMode, StoreConfig

logger = logging.getLogger(__name__)



class UserDataStore (object):
  """Persistence of players' input data for one InputManager.

manager : InputManager with players, devices, categories and layouts
store : RecordStore
actions : ActionUniverse, or an iterable of current action ids
config : StoreConfig
scheduler : object with call_soon(fn); defaults to a TickScheduler
"""
  def __init__ (self, manager, store, actions=None, config=None, scheduler=None):
    self.manager = manager
    self.store = store
    self.config = config if config is not None else StoreConfig()
    if isinstance(actions, ActionUniverse):
      self.actions = actions
    else:
      self.actions = ActionUniverse(actions)
    self.codec = KeyCodec(self.config.key_prefix)
    self.merger = SchemaMergeEngine(self.actions)
    self.roles = RoleMirrorEngine(self.codec, self.store)
    self.reconciler = DeviceReconciliationEngine(self.config.allow_imprecise_matching, self._auto_assign)
    self.scheduler = scheduler if scheduler is not None else TickScheduler()
    self.deferred = DeferredReconciliation(self.scheduler.call_soon, self._run_deferred_assignments)
    self.joystick_ever_detected = False

  @property
  def by_role (self):
    return self.config.action_mapping_save_mode == ActionMappingSaveMode.BY_ELEMENT_ROLE

  @property
  def assignments_key (self):
    return self.codec.build_key(prefkeys.assignments_descriptor())

  def _check_enabled (self, what):
    if not self.config.enabled:
      logger.warning("User data store is disabled and will not %s any data", what)
      return False
    return True

  def _guard (self, what, fn, *args):
    """Run fn(*args); unexpected faults are logged and yield None."""
    try:
      return fn(*args)
    except InvalidDescriptor:
      raise
    except Exception:
      logger.exception("Failed to %s", what)
      return None

  def _read (self, key):
    if not self.store.has(key):
      return None
    return self.store.get_string(key) or None

  def _player (self, player_id):
    return self.manager.get_player(player_id)

  def _assignable_categories (self):
    return [ c.category_id for c in self.manager.categories if c.user_assignable ]


  ################
  # Public saves #
  ################

  def save (self):
    """Save everything: all players, all calibration and controller assignments."""
    if not self._check_enabled("save"):
      return
    for player in self.manager.players:
      self._save_player_data(player)
    for joystick in self.manager.devices.joysticks:
      self._guard("save calibration of {}".format(joystick), self._save_calibration, joystick)
    if self.config.load_controller_assignments:
      self._guard("save controller assignments", self._write_controller_assignments)
    self.store.flush()
    for player in self.manager.players:
      self._on_controller_maps_saved(player)
    logger.info("Saved user data of %d players", len(self.manager.players))

  def save_player_data (self, player_id):
    if not self._check_enabled("save"):
      return
    player = self._player(player_id)
    if player is None:
      return
    self._save_player_data(player)
    self.store.flush()
    self._on_controller_maps_saved(player)

  def save_controller_data (self, player_id, controller_type, controller_id):
    """Save maps of one controller of one player, and its calibration."""
    if not self._check_enabled("save"):
      return
    player = self._player(player_id)
    if player is not None and player.controllers.contains_controller(controller_type, controller_id):
      self._save_controller_maps(player, controller_type, controller_id)
    self._save_device_data(controller_type, controller_id)
    self.store.flush()

  def save_device_data (self, controller_type, controller_id):
    """Save data of a controller that belongs to no player (calibration)."""
    if not self._check_enabled("save"):
      return
    self._save_device_data(controller_type, controller_id)
    self.store.flush()

  def save_input_behavior (self, player_id, behavior_id):
    if not self._check_enabled("save"):
      return
    player = self._player(player_id)
    if player is None or behavior_id not in player.behaviors:
      return
    self._guard("save input behavior {} of {}".format(behavior_id, player),
                self._save_input_behavior, player, player.behaviors[behavior_id])
    self.store.flush()

  def save_controller_map (self, player_id, controller_map):
    if controller_map is None:
      return
    player = self._player(player_id)
    if player is None:
      return
    controller = self.manager.devices.get_controller(controller_map.controller_type, controller_map.controller_id)
    if controller is None:
      logger.debug("Not saving map of disconnected %s %s", controller_map.controller_type, controller_map.controller_id)
      return
    self._save_controller_map(player, controller, controller_map)
    self.store.flush()

  def save_controller_assignments (self):
    if not self._check_enabled("save"):
      return
    self._write_controller_assignments()
    self.store.flush()


  ################
  # Public loads #
  ################

  def load (self):
    """Load everything; returns the number of records applied."""
    if not self._check_enabled("load"):
      return 0
    count = 0
    # Assignments first, so maps are loaded for the right devices.
    if self.config.load_controller_assignments:
      if self._guard("load controller assignments", self._load_controller_assignments):
        count += 1
    for player in self.manager.players:
      count += self._load_player_data(player)
    for joystick in self.manager.devices.joysticks:
      count += self._guard("load calibration of {}".format(joystick), self._load_calibration, joystick) or 0
    logger.info("Loaded %d user data records", count)
    return count

  def load_player_data (self, player_id):
    if not self._check_enabled("load"):
      return 0
    player = self._player(player_id)
    if player is None:
      return 0
    return self._load_player_data(player)

  def load_controller_data (self, player_id, controller_type, controller_id):
    if not self._check_enabled("load"):
      return 0
    count = 0
    player = self._player(player_id)
    controller = self.manager.devices.get_controller(controller_type, controller_id)
    if player is not None and controller is not None:
      count += self._load_controller_maps(player, controller)
    count += self._load_device_data(controller_type, controller_id)
    return count

  def load_device_data (self, controller_type, controller_id):
    if not self._check_enabled("load"):
      return 0
    return self._load_device_data(controller_type, controller_id)

  def load_input_behavior (self, player_id, behavior_id):
    if not self._check_enabled("load"):
      return 0
    player = self._player(player_id)
    if player is None or behavior_id not in player.behaviors:
      return 0
    return self._guard("load input behavior {} of {}".format(behavior_id, player),
                       self._load_input_behavior, player, player.behaviors[behavior_id]) or 0

  def load_controller_map (self, player_id, identifier, category_id, layout_id):
    """Saved map of the controller identified by identifier, merged with new actions; None when absent."""
    player = self._player(player_id)
    if player is None:
      return None
    return self._load_controller_map(player, identifier, category_id, layout_id)


  ##########
  # Events #
  ##########

  def initialize (self):
    """Start listening to the device catalog and load saved data."""
    if self not in self.manager.devices.listeners:
      self.manager.devices.listeners.append(self)
    if not self.config.load_data_on_start:
      return
    self.load()
    # Only with joysticks present, so a start without any does not
    # overwrite the saved assignments.
    if (self.config.enabled and self.config.load_controller_assignments
        and self.manager.devices.joystick_count > 0):
      self.joystick_ever_detected = True
      self._guard("save controller assignments", self.save_controller_assignments)

  def on_controller_connected (self, controller):
    if not self.config.enabled:
      return
    if controller.controller_type != ControllerType.JOYSTICK:
      return
    count = self._load_joystick_data(controller)
    if count:
      logger.info("Loaded %d records for joystick %s", count, controller.hardware_identifier)

    reconciled = False
    if (self.config.load_data_on_start and self.config.load_joystick_assignments
        and not self.joystick_ever_detected):
      if self.config.defer_assignment_on_connect:
        self.deferred.request()
      else:
        # Saves the assignments itself.
        self._run_deferred_assignments()
        reconciled = True

    if self.config.load_joystick_assignments and not self.deferred.pending and not reconciled:
      self._guard("save controller assignments", self.save_controller_assignments)
    self.joystick_ever_detected = True

  def on_controller_pre_disconnect (self, controller):
    if not self.config.enabled:
      return
    if controller.controller_type != ControllerType.JOYSTICK:
      return
    for player in self.manager.players:
      if player.controllers.contains_controller(ControllerType.JOYSTICK, controller.controller_id):
        self._save_controller_maps(player, ControllerType.JOYSTICK, controller.controller_id)
    self._guard("save calibration of {}".format(controller), self._save_calibration, controller)
    self.store.flush()

  def on_controller_disconnected (self, controller):
    if not self.config.enabled:
      return
    if self.config.load_controller_assignments:
      self._guard("save controller assignments", self.save_controller_assignments)


  ###############
  # Assignments #
  ###############

  def _auto_assign (self, players, joysticks):
    devices = self.manager.devices
    if not devices.auto_assign_joysticks:
      return []
    return devices.auto_assign(players, joysticks)

  def _write_controller_assignments (self):
    snapshot = AssignmentSnapshot.capture(self.manager.players)
    self.store.set_string(self.assignments_key, snapshot.to_text())

  def load_assignment_snapshot (self):
    """Saved AssignmentSnapshot; None when absent, empty or unreadable."""
    key = self.assignments_key
    text = self._read(key)
    if text is None:
      return None
    try:
      snapshot = AssignmentSnapshot.from_text(text)
    except ParseFailure as e:
      logger.warning("Ignoring unreadable controller assignments %s: %s", key, e)
      return None
    if snapshot.player_count == 0:
      return None
    return snapshot

  def _load_controller_assignments (self):
    snapshot = self.load_assignment_snapshot()
    if snapshot is None:
      return False
    if self.config.load_keyboard_assignments or self.config.load_mouse_assignments:
      apply_fixed_assignments(snapshot, self.manager.players,
                              self.config.load_keyboard_assignments, self.config.load_mouse_assignments)
    if self.config.load_joystick_assignments:
      self._load_joystick_assignments(snapshot)
    return True

  def _load_joystick_assignments (self, snapshot=None):
    """Reconcile joystick ownership with the saved snapshot; ReconcileResult or None."""
    devices = self.manager.devices
    if devices.joystick_count == 0:
      return None
    if snapshot is None:
      snapshot = self.load_assignment_snapshot()
      if snapshot is None:
        return None
    return self.reconciler.reconcile(snapshot, self.manager.players, devices.joysticks)

  def _run_deferred_assignments (self):
    self._guard("load joystick assignments", self._load_joystick_assignments)
    # Saved again in case anything moved or a new joystick showed up.
    self._guard("save controller assignments", self.save_controller_assignments)


  ###################
  # Controller maps #
  ###################

  def _map_descriptor (self, player, identifier, category_id, layout_id):
    connected = self.manager.devices.get_controller(identifier.controller_type, identifier.controller_id)
    dup = duplicate_index(player.controllers.controllers, connected)
    return RecordDescriptor(prefkeys.DATA_CONTROLLER_MAP, player.name, category_id, layout_id, identifier, dup)

  def _save_controller_map (self, player, controller, controller_map):
    desc = self._map_descriptor(player, controller.identifier, controller_map.category_id, controller_map.layout_id)
    self.store.set_string(self.codec.build_key(desc), controller_map.to_text())
    self.store.set_string(self.codec.build_key(desc.with_data_type(prefkeys.DATA_KNOWN_ACTION_IDS)),
                          self.actions.action_ids_string)
    if self.by_role:
      # The whole map as well, for controls without a role.
      self.roles.save(player.name, controller, controller_map)

  def _saveable_maps (self, player, controller_type=None, controller_id=None):
    """(controller, map) of player in user-assignable categories, oldest edit first when saving by role."""
    categories = self._assignable_categories()
    found = []
    for t, cid, cmap in player.all_maps():
      if controller_type is not None and (t, cid) != (controller_type, controller_id):
        continue
      if cmap.category_id not in categories:
        continue
      controller = self.manager.devices.get_controller(t, cid)
      if controller is None:
        continue
      found.append((controller, cmap))
    if self.by_role:
      # Later saves overwrite shared role records, so the newest edit wins.
      found.sort(key=lambda pair: pair[1].modified_time)
    return found

  def _save_controller_maps (self, player, controller_type=None, controller_id=None):
    for controller, cmap in self._saveable_maps(player, controller_type, controller_id):
      self._guard("save map {}/{} of {} for {}".format(cmap.category_id, cmap.layout_id, controller, player),
                  self._save_controller_map, player, controller, cmap)

  def _known_action_ids (self, descriptor):
    found = self.codec.find_existing(descriptor.with_data_type(prefkeys.DATA_KNOWN_ACTION_IDS), self.store.has)
    if found is None:
      return []
    return parse_known_ids(self.store.get_string(found[0]))

  def _load_controller_map (self, player, identifier, category_id, layout_id):
    desc = self._map_descriptor(player, identifier, category_id, layout_id)
    found = self.codec.find_existing(desc, self.store.has)
    if found is None:
      return None
    key, version = found
    text = self.store.get_string(key)
    if not text:
      return None
    try:
      cmap = ControllerMap.from_text(text, identifier.controller_type)
    except ParseFailure as e:
      logger.warning("Ignoring unreadable controller map %s: %s", key, e)
      return None
    if version != self.codec.current_version(prefkeys.DATA_CONTROLLER_MAP):
      logger.debug("Controller map found under key version %d: %s", version, key)
    return self.merger.merge(cmap, self._known_action_ids(desc), identifier)

  def _load_map_by_role (self, player, controller, category_id, layout_id):
    records = self.roles.load_all(player.name, controller, category_id, layout_id)
    cmap = self._load_controller_map(player, controller.identifier, category_id, layout_id)
    loaded = cmap is not None
    if cmap is None:
      cmap = player.get_map(controller.controller_type, controller.controller_id, category_id, layout_id)
      if cmap is None:
        if not records:
          return None
        cmap = ControllerMap(controller.controller_type, category_id, layout_id)
    if records:
      cmap, added = self.roles.reconstitute_counted(cmap, records, controller)
      loaded = loaded or added > 0
    return cmap if loaded else None

  def _load_controller_maps (self, player, controller):
    count = 0
    if self.by_role:
      load = self._load_map_by_role
    else:
      load = lambda p, c, cat, lay: self._load_controller_map(p, c.identifier, cat, lay)
    for category_id in self._assignable_categories():
      for layout_id in self.manager.map_layouts(controller.controller_type):
        cmap = self._guard("load map {}/{} of {} for {}".format(category_id, layout_id, controller, player),
                           load, player, controller, category_id, layout_id)
        if cmap is None:
          continue
        player.add_map(controller, cmap)
        count += 1
    return count

  def _on_controller_maps_saved (self, player):
    # Saving by role: reload so every joystick of the player picks up shared edits.
    if not self.by_role:
      return
    joysticks = player.controllers.joysticks
    if len(joysticks) <= 1:
      return
    for joystick in joysticks:
      self._load_controller_maps(player, joystick)


  ##############################
  # Behaviors and calibration #
  ##############################

  def _save_input_behavior (self, player, behavior):
    key = self.codec.build_key(prefkeys.input_behavior_descriptor(player.name, behavior.behavior_id))
    self.store.set_string(key, behavior.to_text())

  def _load_input_behavior (self, player, behavior):
    key = self.codec.build_key(prefkeys.input_behavior_descriptor(player.name, behavior.behavior_id))
    text = self._read(key)
    if text is None:
      return 0
    try:
      behavior.import_text(text)
    except ParseFailure as e:
      logger.warning("Ignoring unreadable input behavior %s: %s", key, e)
      return 0
    return 1

  def _save_calibration (self, joystick):
    key = self.codec.build_key(prefkeys.calibration_descriptor(joystick))
    self.store.set_string(key, joystick.calibration.to_text())

  def _load_calibration (self, joystick):
    key = self.codec.build_key(prefkeys.calibration_descriptor(joystick))
    text = self._read(key)
    if text is None:
      return 0
    try:
      joystick.calibration.import_text(text)
    except ParseFailure as e:
      logger.warning("Ignoring unreadable calibration %s: %s", key, e)
      return 0
    return 1

  def _save_device_data (self, controller_type, controller_id):
    if controller_type != ControllerType.JOYSTICK:
      return
    joystick = self.manager.devices.get_joystick(controller_id)
    if joystick is not None:
      self._guard("save calibration of {}".format(joystick), self._save_calibration, joystick)

  def _load_device_data (self, controller_type, controller_id):
    if controller_type != ControllerType.JOYSTICK:
      return 0
    joystick = self.manager.devices.get_joystick(controller_id)
    if joystick is None:
      return 0
    return self._guard("load calibration of {}".format(joystick), self._load_calibration, joystick) or 0


  ###########
  # Players #
  ###########

  def _save_player_data (self, player):
    for behavior in player.behaviors.values():
      self._guard("save input behavior {} of {}".format(behavior.behavior_id, player),
                  self._save_input_behavior, player, behavior)
    self._save_controller_maps(player)

  def _load_player_data (self, player):
    count = 0
    for behavior in player.behaviors.values():
      count += self._guard("load input behavior {} of {}".format(behavior.behavior_id, player),
                           self._load_input_behavior, player, behavior) or 0
    devices = self.manager.devices
    count += self._load_controller_maps(player, devices.keyboard)
    count += self._load_controller_maps(player, devices.mouse)
    for joystick in player.controllers.joysticks:
      count += self._load_controller_maps(player, joystick)
    return count

  def _load_joystick_data (self, joystick):
    count = 0
    for player in self.manager.players:
      if player.controllers.contains_controller(ControllerType.JOYSTICK, joystick.controller_id):
        count += self._load_controller_maps(player, joystick)
    count += self._guard("load calibration of {}".format(joystick), self._load_calibration, joystick) or 0
    return count
