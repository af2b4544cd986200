#!/usr/bin/env python3
# encoding=utf-8

# String key/value stores holding saved input preferences.
#
# RecordStore is the contract the persistence layer talks to; keys and values
# are both plain text.  FileRecordStore keeps everything in one kvtext file.

import logging
import os
import tempfile
from collections import OrderedDict

import kvtext

logger = logging.getLogger(__name__)



class RecordStore (object):
  """Durable string key/value medium."""
  def has (self, key):
    raise NotImplementedError("Executing has() on base class")
  def get_string (self, key, default=""):
    raise NotImplementedError("Executing get_string() on base class")
  def set_string (self, key, value):
    raise NotImplementedError("Executing set_string() on base class")
  def delete_key (self, key):
    raise NotImplementedError("Executing delete_key() on base class")
  def keys (self):
    raise NotImplementedError("Executing keys() on base class")
  def flush (self):
    """Make every set_string() so far durable."""
    pass


class MemoryRecordStore (RecordStore):
  """Dict-backed store; durable only for the life of the object."""
  def __init__ (self, initial=None):
    self._data = OrderedDict()
    self.dirty = False
    for k, v in (initial or {}).items():
      self.set_string(k, v)
    self.dirty = False

  def has (self, key):
    return key in self._data

  def get_string (self, key, default=""):
    return self._data.get(key, default)

  def set_string (self, key, value):
    # Check before touching anything, so a bad write never clobbers the old value.
    if not isinstance(key, str) or not key:
      raise TypeError("Store key must be a non-empty str, not {!r}".format(key))
    if not isinstance(value, str):
      raise TypeError("Store value for {!r} must be str, not {}".format(key, type(value).__name__))
    # Stored text must encode as UTF-8 (no lone surrogates).
    key.encode("utf-8")
    value.encode("utf-8")
    self._data[key] = value
    self.dirty = True

  def delete_key (self, key):
    if key in self._data:
      del self._data[key]
      self.dirty = True
      return True
    return False

  def keys (self):
    return list(self._data.keys())

  def clear (self):
    self._data.clear()
    self.dirty = True


class FileRecordStore (MemoryRecordStore):
  """Store persisted as one kvtext document:

"prefs"
{
	"<key>"		"<value>"
	...
}

flush() writes a temporary file beside the target and renames it over the
target, so the previous file survives a failed write.
"""
  ROOT = "prefs"

  def __init__ (self, path, autoload=True):
    MemoryRecordStore.__init__(self)
    self.path = path
    if autoload:
      self.reload()

  def reload (self):
    """Replace contents with the file's; a missing or corrupt file yields an empty store."""
    self._data = OrderedDict()
    self.dirty = False
    if not os.path.exists(self.path):
      return self
    try:
      with open(self.path, "rt", encoding="utf-8", newline="") as f:
        doc = kvtext.load(f)
      body = doc.get(self.ROOT, kvtext.KVDict())
      if not kvtext._dictlike(body):
        raise kvtext.KVSyntaxError("'{}' is not a block".format(self.ROOT))
      for k, v in body.items():
        if isinstance(v, str):
          self._data[k] = v
    except (OSError, UnicodeDecodeError, kvtext.KVSyntaxError) as e:
      logger.error("Could not read preference store %s, starting empty: %s", self.path, e)
      self._data = OrderedDict()
    return self

  def flush (self):
    if not self.dirty:
      return
    dirname = os.path.dirname(os.path.abspath(self.path))
    os.makedirs(dirname, exist_ok=True)
    fd, tmpname = tempfile.mkstemp(prefix=".prefs-", suffix=".tmp", dir=dirname)
    try:
      with os.fdopen(fd, "wt", encoding="utf-8", newline="") as f:
        kvtext.dump([ (self.ROOT, self._data) ], f)
        f.flush()
        os.fsync(f.fileno())
      os.replace(tmpname, self.path)
    except BaseException:
      if os.path.exists(tmpname):
        os.remove(tmpname)
      raise
    self.dirty = False
    logger.debug("Flushed %d records to %s", len(self._data), self.path)
