#!/usr/bin/env python3
# encoding=utf-8

# Bindings stored per element role instead of per device.
#
# Every control of a device may carry a role tag ('button_south', 'stick_left_x').
# Saving by role writes one record per role present on the device, listing the
# bindings of the controls with that role; a role with no bindings still gets
# an (empty) record, which tells a later load that the role's bindings were
# deleted.  Loading onto any device rebuilds its controller map from the role
# records, so compatible devices share edits.

import logging
from collections import OrderedDict

import kvtext
import prefkeys
from inputmodel import ActionElementMap, AxisRange, ElementType, ParseFailure, Pole, \
  parse_record, _field, _enum_field, _flag, _blocks

logger = logging.getLogger(__name__)



class RoleEntry (object):
  """One binding with the control left out."""
  def __init__ (self, action_id, element_type, axis_range=AxisRange.FULL, axis_contribution=Pole.POSITIVE, invert=False):
    self.action_id = action_id
    self.element_type = element_type
    self.axis_range = axis_range
    self.axis_contribution = axis_contribution
    self.invert = invert

  @staticmethod
  def from_element_map (aem):
    return RoleEntry(aem.action_id, aem.element_type, aem.axis_range, aem.axis_contribution, aem.invert)

  def to_assignment (self, target):
    """Binding of this entry on control target, converting between axis and button.

  axis, full range  -> button : full range; negative pole when inverted
  axis, half range  -> button : same range and pole
  button            -> axis   : positive range, same pole
Invert is cleared by any conversion.
"""
    if target.element_type == self.element_type:
      return ActionElementMap(self.action_id, target.element_type, target.element_id,
                              self.axis_range, self.axis_contribution, self.invert)
    if self.element_type == ElementType.AXIS and target.element_type == ElementType.BUTTON:
      pole = self.axis_contribution
      if self.axis_range == AxisRange.FULL and self.invert:
        pole = Pole.NEGATIVE
      return ActionElementMap(self.action_id, target.element_type, target.element_id,
                              self.axis_range, pole, False)
    if self.element_type == ElementType.BUTTON and target.element_type == ElementType.AXIS:
      return ActionElementMap(self.action_id, target.element_type, target.element_id,
                              AxisRange.POSITIVE, self.axis_contribution, False)
    return None

  def encode_kv (self):
    kv = kvtext.KVDict()
    kv['actionId'] = str(self.action_id)
    kv['elementType'] = self.element_type
    kv['axisRange'] = self.axis_range
    kv['invert'] = self.invert
    kv['axisContribution'] = self.axis_contribution
    return kv

  @staticmethod
  def decode_kv (kv):
    return RoleEntry(
      _field(kv, 'actionId', int),
      _enum_field(kv, 'elementType', ElementType),
      _enum_field(kv, 'axisRange', AxisRange, AxisRange.FULL),
      _enum_field(kv, 'axisContribution', Pole, Pole.POSITIVE),
      _field(kv, 'invert', _flag, False))

  def __eq__ (self, other):
    if not isinstance(other, RoleEntry):
      return NotImplemented
    return ((self.action_id, self.element_type, self.axis_range, self.axis_contribution, self.invert) ==
            (other.action_id, other.element_type, other.axis_range, other.axis_contribution, other.invert))

  def __repr__ (self):
    return "{}({!r}, {!r}, {!r}, {!r}, invert={!r})".format(
            self.__class__.__name__,
            self.action_id, self.element_type, self.axis_range, self.axis_contribution, self.invert)


class RoleBindingRecord (object):
  """Bindings of one role; the role itself lives in the record's key."""
  def __init__ (self, role, entries=None):
    self.role = role
    self.entries = list(entries or [])

  @property
  def is_empty (self):
    return len(self.entries) == 0

  def add (self, aem):
    self.entries.append(RoleEntry.from_element_map(aem))

  def to_text (self):
    kv = kvtext.KVDict()
    data = kvtext.KVDict()
    for entry in self.entries:
      data['entry'] = entry.encode_kv()
    kv['data'] = data
    return kvtext.dumps([ ('ElementRoleMap', kv) ])

  @staticmethod
  def from_text (role, text):
    kv = parse_record(text)
    body = kv.get('ElementRoleMap', None)
    if not kvtext._dictlike(body):
      raise ParseFailure("Not an ElementRoleMap record")
    data = body.get('data', kvtext.KVDict())
    if not kvtext._dictlike(data):
      raise ParseFailure("Field 'data' is not a block")
    return RoleBindingRecord(role, [ RoleEntry.decode_kv(blk) for blk in _blocks(data, 'entry') ])

  def __eq__ (self, other):
    if not isinstance(other, RoleBindingRecord):
      return NotImplemented
    return (self.role, self.entries) == (other.role, other.entries)

  def __repr__ (self):
    return "{}({!r}, {!r})".format(self.__class__.__name__, self.role, self.entries)




class RoleMirrorEngine (object):
  """Save, load and re-apply per-role binding records through a RecordStore."""
  def __init__ (self, codec, store):
    self.codec = codec
    self.store = store

  @staticmethod
  def group_by_role (controller, controller_map):
    """Role -> RoleBindingRecord for every role on controller, including unbound ones."""
    groups = OrderedDict()
    for role in controller.roles():
      groups[role] = RoleBindingRecord(role)
    for aem in controller_map.element_maps:
      element = controller.element_by_id(aem.element_id)
      if element is None or not element.role:
        continue
      groups[element.role].add(aem)
    return groups

  def key (self, subject, role, category_id, layout_id):
    return self.codec.build_key(prefkeys.role_map_descriptor(subject, role, category_id, layout_id))

  def save (self, subject, controller, controller_map):
    """Write one record per role of controller; returns the records written."""
    groups = self.group_by_role(controller, controller_map)
    for role, record in groups.items():
      self.store.set_string(self.key(subject, role, controller_map.category_id, controller_map.layout_id),
                            record.to_text())
    return groups

  def load (self, subject, role, category_id, layout_id):
    """RoleBindingRecord saved for role, or None when absent or unreadable."""
    if not role:
      return None
    k = self.key(subject, role, category_id, layout_id)
    if not self.store.has(k):
      return None
    text = self.store.get_string(k)
    if not text:
      return None
    try:
      return RoleBindingRecord.from_text(role, text)
    except ParseFailure as e:
      logger.warning("Ignoring unreadable role record %s: %s", k, e)
      return None

  def load_all (self, subject, controller, category_id, layout_id):
    """Role -> record for every role on controller that has a saved record."""
    found = OrderedDict()
    for role in controller.roles():
      record = self.load(subject, role, category_id, layout_id)
      if record is not None:
        found[role] = record
    return found

  def reconstitute (self, base_map, role_records, target):
    """Copy of base_map with the bindings of every loaded role replaced by role_records."""
    return self.reconstitute_counted(base_map, role_records, target)[0]

  def reconstitute_counted (self, base_map, role_records, target):
    """As reconstitute(); also returns the number of bindings added."""
    merged = base_map.copy()
    if not role_records:
      return merged, 0

    # Enabled state per role, from the bindings being replaced.
    enabled = {}
    removed = 0
    for aem in reversed(merged.element_maps):
      element = target.element_by_id(aem.element_id)
      if element is None or element.role not in role_records:
        continue
      enabled[element.role] = aem.enabled
      merged.delete_element_map(aem.aem_id)
      removed += 1

    added = 0
    for role in sorted(role_records):
      record = role_records[role]
      if record.is_empty:
        continue
      controls = target.elements_with_role(role)
      if len(controls) > 1:
        logger.warning("Role %r is shared by %d controls of %s; binding all of them",
                       role, len(controls), target.hardware_identifier)
      for control in controls:
        for entry in record.entries:
          assignment = entry.to_assignment(control)
          if assignment is None:
            continue
          aem = merged.create_element_map(assignment)
          if aem is None:
            continue
          if role in enabled:
            aem.enabled = enabled[role]
          added += 1

    if removed or added:
      merged.is_modified = False
    return merged, added
