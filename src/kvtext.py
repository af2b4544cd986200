#!/usr/bin/env python3
# encoding=utf-8

# Quoted key/value text format, used to serialize every persisted record.
#
# Layout is the Valve KeyValue style: "key" "value" pairs, with "key" { ... }
# for nested blocks, and // comments to end of line.


#################
# KV data store #
#################

# KVDict maps keys to a list of values, allowing the same key to be assigned multiple times.
#
# Access by subscript yields the last value, for compatibility with dict.
# The method get_all() is provided for accessing the entire list.
#
# N.B. the text format has no native list type, so a list value means "repeat this key".

class KVSyntaxError (ValueError):
  """Malformed key/value text."""
  pass


class KVDict (dict):
  r"""Ordered dict allowing multiple values per key.

>>> d = KVDict()
>>> d['entry'] = 'a'
>>> d['entry'] = 'b'
>>> d['entry']                  # 'b'
>>> d.get_all('entry')          # ['a', 'b']
>>> d['entry',0]                # 'a'
>>> d['entry',]                 # ['a', 'b']
>>> d.get_all('none', [])       # []

Keys keep their first-assignment order for iteration and writing.
"""
  def __init__ (self, src=None, **kwargs):
    dict.__init__(self)
    self._multiset = set()
    self._keyorder = []
    self.update(src, **kwargs)

  def update (self, src=None, **kwargs):
    if src is not None:
      if _dictlike(src):
        for k,v in src.items():
          self[k] = v
      else:
        for k,v in src:
          self[k] = v
    for k,v in kwargs.items():
      self[k] = v

  def __getitem__ (self, k):
    """Tuple keys select by position: (key,) for all values, (key, n) for the n-th."""
    if isinstance(k, tuple):
      vl = self.get_all(k[0])
      if len(k) == 1:
        return vl
      elif len(k) == 2:
        return vl[k[1]]
      raise KeyError(repr(k))
    vl = dict.__getitem__(self, k)
    if k in self._multiset:
      return vl[-1]
    return vl

  @staticmethod
  def _convert (x):
    if isinstance(x, (str, KVDict)):
      return x
    if isinstance(x, list):
      return [ KVDict._convert(y) for y in x ]
    if _dictlike(x):
      return KVDict(x)
    return x

  def __setitem__ (self, k, v):
    v = self._convert(v)
    if k in self:
      temp = dict.__getitem__(self, k)
      if not k in self._multiset:
        temp = [ temp ]
        self._multiset.add(k)
      if isinstance(v, list):
        temp.extend(v)
      else:
        temp.append(v)
    else:
      self._keyorder.append(k)
      temp = v
      if isinstance(v, list):
        self._multiset.add(k)
    dict.__setitem__(self, k, temp)

  def __delitem__ (self, k):
    self._multiset.discard(k)
    if k in self._keyorder:
      self._keyorder.remove(k)
    dict.__delitem__(self, k)

  def __iter__ (self):
    return iter(list(self._keyorder))

  def keys (self):
    return list(self._keyorder)

  def values (self):
    for k in self._keyorder:
      yield self[k]

  def items (self):
    # Every (key,value) pair, repeated keys included.
    for k in self._keyorder:
      vl = dict.__getitem__(self, k)
      if k in self._multiset:
        for v in vl:
          yield (k,v)
      else:
        yield (k,vl)

  def get (self, k, *args):
    try:
      return self[k]
    except KeyError:
      if args:
        return args[0]
      raise

  def get_all (self, k, *args):
    """Values of key as a list."""
    try:
      vl = dict.__getitem__(self, k)
    except KeyError:
      if args:
        return args[0]
      raise
    if k in self._multiset:
      return list(vl)
    return [ vl ]

  def __repr__ (self):
    return "{}({!r})".format(self.__class__.__name__, list(self.items()))


def _dictlike (x):
  if isinstance(x, dict): return True
  try: return callable(x.items)
  except AttributeError: return False




#########
# Lexer #
#########

def is_whitespace (ch): return ch in (" ", "\r", "\n", "\t")
def is_eos (ch): return (ch == '')


class Lexer (object):
  """Turns text into (toktype, value) tokens.

Token types:
  QUOTED : between double-quotes; backslash takes the next character literally
  UNQUOTED : run of characters up to whitespace, '"', '{', '}', or "//"
  NEST : '{'
  DENEST : '}'
  COMMENT : "//" until end of line
"""
  TOK_QUOTED = 'QUOTED'
  TOK_UNQUOTED = 'UNQUOTED'
  TOK_NEST = 'NEST'
  TOK_DENEST = 'DENEST'
  TOK_COMMENT = 'COMMENT'

  def __init__ (self, text):
    self.text = text
    self.ofs = 0
    self.build = []
    self.pending = []
    self.state = ScanBegin(self)

  def readch (self):
    if self.ofs < len(self.text):
      ch = self.text[self.ofs]
      self.ofs += 1
      return ch
    self.ofs += 1
    return ''

  # Operations used by states; each returns self for chaining.

  def UNGET (self):
    self.ofs -= 1
    return self

  def LIT (self, ch):
    self.build.append(ch)
    return self

  def RTRIM (self):
    self.build.pop()
    return self

  def COMMIT (self, toktype, keep_empty=False):
    if self.build or keep_empty:
      self.pending.append((toktype, ''.join(self.build)))
    self.build = []
    return self

  def next_token (self):
    """Next token, or None at end of text."""
    while not self.pending and self.state:
      self.state = self.state.feed(self.readch())
    if self.pending:
      return self.pending.pop(0)
    return None

  def __iter__ (self):
    tok = self.next_token()
    while tok is not None:
      yield tok
      tok = self.next_token()


# Lexer states; feed() returns the next state, None when finished.

class ScanState (object):
  def __init__ (self, lexer):
    self.lexer = lexer
  def feed (self, ch):
    raise NotImplementedError("Executing feed() on base class")

class ScanBegin (ScanState):
  def feed (self, ch):
    lx = self.lexer
    if is_eos(ch): return None
    if is_whitespace(ch): return self
    if ch == '"': return ScanQuoted(lx)
    if ch == '{':
      lx.LIT(ch).COMMIT(Lexer.TOK_NEST)
      return self
    if ch == '}':
      lx.LIT(ch).COMMIT(Lexer.TOK_DENEST)
      return self
    if ch == '/': return ScanSlash(lx.LIT(ch))
    return ScanUnquoted(lx.LIT(ch))

class ScanQuoted (ScanState):
  def feed (self, ch):
    lx = self.lexer
    if is_eos(ch): raise KVSyntaxError("Unterminated quoted string")
    if ch == '"': return ScanBegin(lx.COMMIT(Lexer.TOK_QUOTED, True))
    if ch == '\\': return ScanEscaped(lx)
    lx.LIT(ch)
    return self

class ScanEscaped (ScanState):
  def feed (self, ch):
    if is_eos(ch): raise KVSyntaxError("Unterminated quoted string")
    return ScanQuoted(self.lexer.LIT(ch))

class ScanUnquoted (ScanState):
  def feed (self, ch):
    lx = self.lexer
    if is_eos(ch):
      lx.COMMIT(Lexer.TOK_UNQUOTED)
      return None
    if is_whitespace(ch) or ch in ('"', '{', '}'):
      # Re-examine the delimiter from the beginning state.
      return ScanBegin(lx.UNGET().COMMIT(Lexer.TOK_UNQUOTED))
    if ch == '/': return ScanSlash(lx.LIT(ch))
    lx.LIT(ch)
    return self

class ScanSlash (ScanState):
  """One '/' seen; a second one starts a comment, anything else continues the token."""
  def feed (self, ch):
    if ch == '/':
      return ScanComment(self.lexer.RTRIM().COMMIT(Lexer.TOK_UNQUOTED))
    return ScanUnquoted(self.lexer).feed(ch)

class ScanComment (ScanState):
  def feed (self, ch):
    lx = self.lexer
    if is_eos(ch):
      lx.COMMIT(Lexer.TOK_COMMENT)
      return None
    if ch in ('\n', '\r'): return ScanBegin(lx.COMMIT(Lexer.TOK_COMMENT))
    lx.LIT(ch)
    return self




##########
# Parser #
##########

_SCALARS = (Lexer.TOK_QUOTED, Lexer.TOK_UNQUOTED)

def _parse (lexer, depth=0, storetype=KVDict):
  interim = storetype()
  while True:
    # Key, or end of block.
    token = lexer.next_token()
    while token and token[0] == Lexer.TOK_COMMENT:
      token = lexer.next_token()
    if token is None:
      if depth > 0:
        raise KVSyntaxError("Unterminated block")
      return interim
    toktype, k = token
    if toktype == Lexer.TOK_DENEST:
      if depth > 0:
        return interim
      raise KVSyntaxError("Unbalanced '}'")
    if toktype not in _SCALARS:
      raise KVSyntaxError("Expected key, got {!r}".format(k))

    # Value: scalar or nested block.
    token = lexer.next_token()
    while token and token[0] == Lexer.TOK_COMMENT:
      token = lexer.next_token()
    if token is None or token[0] == Lexer.TOK_DENEST:
      raise KVSyntaxError("Unpaired key {!r}".format(k))
    toktype, v = token
    if toktype == Lexer.TOK_NEST:
      v = _parse(lexer, depth+1, storetype)
    interim[k] = v


def loads (text, storetype=KVDict):
  return _parse(Lexer(text), storetype=storetype)

def load (srcstream, storetype=KVDict):
  return loads(srcstream.read(), storetype)




##########
# Writer #
##########

def quote (s):
  return '"{}"'.format(s.replace('\\', '\\\\').replace('"', '\\"'))

# Convert iterable of (key,value) pairs to list of strings for ''.join().
def _toLOS (iterlop, accumulator, indent=""):
  for (k, v) in iterlop:
    if not isinstance(k, str):
      raise TypeError("Only strings may be key (rejected {!r})".format(k))
    if isinstance(v, bool):
      v = '1' if v else '0'
    elif isinstance(v, int):
      v = str(v)
    accumulator.append(indent)
    accumulator.append(quote(k))
    if isinstance(v, str):
      accumulator.append("\t\t")
      accumulator.append(quote(v))
    else:
      accumulator.extend(["\n", indent, "{", "\n"])
      try:
        iv = v.items()
      except AttributeError:
        iv = iter(v)
      _toLOS(iv, accumulator, indent + "\t")
      accumulator.extend([indent, "}"])
    accumulator.append("\n")
  return accumulator


def dumps (store):
  """Dump dict-like or list of 2-tuples as text."""
  try:
    iterlop = store.items()
  except AttributeError:
    iterlop = iter(store)
  return ''.join(_toLOS(iterlop, []))

def dump (store, f):
  f.write(dumps(store))
