from dataclasses import dataclass, field
from typing import override

import numpy as np
from numpy import int64
from numpy.typing import NDArray

from .formattable import Formattable, Fragments


@dataclass
class Value(Formattable):
  """One rolled die face, or a constant."""

  face: int
  range: int
  modifier: int = 0
  sign: int = 1
  """-1 for a penalty value"""
  constant: bool = False
  bonus: bool = False
  """generated by an explode or a reroll"""
  kept: bool = True
  hit: bool | None = None
  """`None` until a target is tested, after which the value counts as a hit"""

  @classmethod
  def const(cls, value: int) -> "Value":
    return cls(value, value, constant=True)

  def total(self) -> int:
    return self.face + self.modifier

  def contribution(self) -> int:
    if not self.kept:
      return 0
    elif self.hit is not None:
      return self.sign if self.hit else 0
    else:
      return self.sign * self.total()

  def is_hit(self) -> bool:
    return self.kept and self.hit is True

  def is_discarded(self) -> bool:
    return not self.kept

  def set_modifier(self, modifier: int):
    self.modifier = modifier

  def mark_penalty(self):
    self.sign = -1

  def mark_bonus(self):
    self.bonus = True

  def mark_discarded(self):
    # constants always take part in the sum
    if not self.constant:
      self.kept = False

  def set_hit(self, hit: bool):
    self.hit = hit

  @override
  def format(self) -> Fragments:
    if self.kept:
      yield f"{self.contribution()}*" if self.bonus else str(self.contribution())
    else:
      yield f"{self.total()}*-" if self.bonus else f"{self.total()}-"


@dataclass
class Pool(Formattable):
  values: list[Value] = field(default_factory=list)
  value: int | None = None
  """overrides the sum as the outcome, set by success counting"""

  def range(self) -> int:
    return max((v.range for v in self.values if not v.constant), default=0)

  def count(self) -> int:
    return len(self.values)

  def sum(self) -> int:
    return sum(v.contribution() for v in self.values)

  def kept(self) -> int:
    return sum(1 for v in self.values if not v.is_discarded())

  def hits(self) -> int:
    return sum(1 for v in self.values if v.is_hit())

  def bonus(self) -> int:
    return sum(1 for v in self.values if v.bonus)

  def outcome(self) -> int:
    return self.sum() if self.value is None else self.value

  def set_outcome(self, value: int):
    self.value = value

  def faces(self) -> NDArray[int64]:
    return np.array([v.face for v in self.values], dtype=int64)

  def mark_penalty(self):
    for v in self.values:
      v.mark_penalty()

  @override
  def format(self) -> Fragments:
    if len(self.values) == 0:
      yield "[]"
    else:
      it = iter(self.values)
      yield from next(it).format()
      for v in it:
        too_long = yield ", "
        if too_long:
          yield "…"
          break
        yield from v.format()
    yield f" = {self.sum()}"
    if self.value is not None:
      yield f" {{{self.value}}}"


@dataclass
class Results(Formattable):
  lhs: Pool
  rhs: Pool | None
  value: int

  def outcome(self) -> int:
    return self.value if self.rhs is not None else self.lhs.outcome()

  @override
  def format(self) -> Fragments:
    yield from self.lhs.format()
    if self.rhs is not None:
      yield " <> "
      yield from self.rhs.format()
      yield f" = {self.value}"
