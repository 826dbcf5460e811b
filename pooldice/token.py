import re
from dataclasses import dataclass
from enum import Enum
from typing import Final, overload

type Token = Simple | Number | Percent | Unknown


@dataclass(frozen=True)
class Simple:
  class Kind(Enum):
    PLUS = "+"
    MINUS = "-"
    D = "d"
    BIG_D = "D"
    EXPLODE = "!"
    EXPLODE_UNTIL = "!!"
    EXPLODE_EACH = "*"
    EXPLODE_EACH_UNTIL = "**"
    ADD_EACH = "++"
    SUB_EACH = "--"
    TAKE_MID = "~"
    TAKE_HIGH = "^"
    TAKE_LOW = "`"
    ADVANTAGE = "ADV"
    DISADVANTAGE = "DIS"
    BEST_GROUP = "Y"
    EQ = "="
    GT = ">"
    GE = ">="
    LT = "<"
    LE = "<="
    CMP = "<=>"
    COMMA = ","
    LPAR = "("
    RPAR = ")"
    LBRACKET = "["
    RBRACKET = "]"
    LBRACE = "{"
    RBRACE = "}"

  kind: Kind
  span: slice


@dataclass(frozen=True)
class Number:
  value: int
  span: slice


@dataclass(frozen=True)
class Percent:
  """A run of `%` signs standing in for a die range."""

  count: int
  span: slice


@dataclass(frozen=True)
class Unknown:
  span: slice


@dataclass(frozen=True)
class NumberOverflow(Exception):
  span: slice


number_limit: Final = (1 << 31) - 1

possible_lengths: Final = sorted(
  {len(kind.value) for kind in Simple.Kind}, reverse=True
)
space_regex: Final = re.compile(r"\s*")
number_regex: Final = re.compile(r"\d+")
percent_regex: Final = re.compile(r"%+")


class Lexer:
  source: str
  cursor: int

  def __init__(self, source: str):
    self.source = source
    self.cursor = 0

  def __iter__(self):
    return self

  def __next__(self) -> Token:
    if self.cursor >= len(self.source):
      raise StopIteration
    if (spaces := space_regex.match(self.source, self.cursor)) is not None:
      self.cursor = spaces.end()
      if self.cursor >= len(self.source):
        raise StopIteration
    if (number := number_regex.match(self.source, self.cursor)) is not None:
      self.cursor = number.end()
      span = slice(*number.span())
      value = int(number.group())
      if value > number_limit:
        raise NumberOverflow(span)
      return Number(value, span)
    if (percent := percent_regex.match(self.source, self.cursor)) is not None:
      self.cursor = percent.end()
      return Percent(len(percent.group()), slice(*percent.span()))
    remaining_length = len(self.source) - self.cursor
    for length in possible_lengths:
      if length > remaining_length:
        continue
      try:
        kind = Simple.Kind(self.source[self.cursor : self.cursor + length])
        break
      except ValueError:
        pass
    else:
      pos = self.cursor
      self.cursor += 1
      return Unknown(slice(pos, self.cursor))
    span = slice(self.cursor, self.cursor + length)
    self.cursor = span.stop
    return Simple(kind, span)


class TokenStream:
  """
  A `Lexer` with one token of lookahead.

  Besides peeking, it can hand back whatever part of the source has not been
  consumed yet, which is how a prefix parse reports its leftover input.
  """

  lexer: Lexer
  has_next: bool
  next: Token | None

  def __init__(self, source: str):
    self.lexer = Lexer(source)
    self.has_next = False
    self.next = None

  def __iter__(self):
    return self

  def __next__(self) -> Token:
    if self.has_next:
      result = self.next
      self.has_next = False
      self.next = None
      if result is None:
        raise StopIteration
      return result
    else:
      return next(self.lexer)

  def put_back(self, this: Token):
    """
    Unchecked: a token already peeked is silently dropped. Only call this
    right after `next`, before any `peek`.
    """
    self.has_next = True
    self.next = this

  @overload
  def peek(self) -> Token: ...
  @overload
  def peek[U](self, default: U, /) -> Token | U: ...
  def peek(self, *args):
    if not self.has_next:
      self.next = next(self.lexer, None)
      self.has_next = True
    if self.next is None:
      if args == ():
        raise StopIteration
      return args[0]
    return self.next

  type Mark = tuple[int, bool, Token | None]

  def mark(self) -> Mark:
    return (self.lexer.cursor, self.has_next, self.next)

  def reset(self, mark: Mark):
    self.lexer.cursor, self.has_next, self.next = mark

  def rest(self) -> str:
    match self.peek(None):
      case None:
        return ""
      case tok:
        return self.lexer.source[tok.span.start :]
