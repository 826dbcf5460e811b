from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import override

from .formattable import Formattable, Fragments
from .ops import PoolOp
from .pool import Pool, Results, Value
from .source import RollContext

# Terms


class Term(Formattable, ABC):
  @abstractmethod
  def generate(self, ctx: RollContext) -> Pool: ...


@dataclass(frozen=True)
class ConstTerm(Term):
  value: int

  @override
  def generate(self, ctx: RollContext) -> Pool:
    return Pool([Value.const(self.value)])

  @override
  def format(self) -> Fragments:
    yield str(self.value)


@dataclass(frozen=True)
class PoolTerm(Term):
  count: int
  range: int
  op: PoolOp | None = None

  @override
  def generate(self, ctx: RollContext) -> Pool:
    pool = Pool()
    for _ in range(self.count):
      pool.values.append(ctx.roll(self.range))
      if self.op is not None:
        self.op.apply_to_last(pool, ctx)
    if self.op is not None:
      self.op.apply_to_all(pool, ctx)
    return pool

  @override
  def format(self) -> Fragments:
    yield f"{self.count}d{self.range}"
    if self.op is not None:
      yield from self.op.format()


# Expressions


@dataclass(frozen=True)
class ArithTerm(Formattable):
  class Operator(Enum):
    PLUS = "+"
    MINUS = "-"

  op: Operator | None
  """`None` when the term was simply written next to the previous one"""
  term: Term

  def generate(self, ctx: RollContext) -> Pool:
    pool = self.term.generate(ctx)
    if self.op == ArithTerm.Operator.MINUS:
      pool.mark_penalty()
    return pool

  @override
  def format(self) -> Fragments:
    if self.op == ArithTerm.Operator.MINUS:
      yield "-"
    yield from self.term.format()


@dataclass(frozen=True)
class ExprGenerator(Formattable):
  terms: list[ArithTerm]

  def generate(self, ctx: RollContext) -> Pool:
    pool = Pool()
    for term in self.terms:
      pool.values.extend(term.generate(ctx).values)
    return pool

  @override
  def format(self) -> Fragments:
    it = iter(self.terms)
    yield from next(it).format()
    for term in it:
      # an implicit sum is written out, otherwise "1d6! 3" would read back
      # as an explosion on 3
      if term.op == ArithTerm.Operator.MINUS:
        yield " - "
      else:
        yield " + "
      yield from term.term.format()


@dataclass(frozen=True)
class Target(Formattable):
  class Kind(Enum):
    HIGH = "["
    LOW = "("

  kind: Kind
  n: int

  def test(self, value: Value) -> bool:
    match self.kind:
      case Target.Kind.HIGH:
        return value.total() >= self.n
      case Target.Kind.LOW:
        return value.total() <= self.n

  @override
  def format(self) -> Fragments:
    match self.kind:
      case Target.Kind.HIGH:
        yield f"[{self.n}]"
      case Target.Kind.LOW:
        yield f"({self.n})"


@dataclass(frozen=True)
class HitsGenerator(Formattable):
  expr: ExprGenerator
  target: Target | None = None

  def generate(self, ctx: RollContext) -> Pool:
    pool = self.expr.generate(ctx)
    if self.target is not None:
      for value in pool.values:
        value.set_hit(self.target.test(value))
    return pool

  @override
  def format(self) -> Fragments:
    if self.target is None:
      yield from self.expr.format()
    else:
      yield "("
      yield from self.expr.format()
      yield ")"
      yield from self.target.format()


@dataclass(frozen=True)
class SuccessOp(Formattable):
  n: int
  step: int | None = None

  def score(self, total: int) -> int:
    """
    Degrees of success: 0 below `n`, then 1, 2, 3, … counting up from `n`,
    one level per point or one level per `step` points.
    """
    if total < self.n:
      return 0
    elif self.step is None:
      return total - self.n + 1
    elif self.step <= 0:
      return 1
    else:
      return (total - self.n) // self.step + 1

  @override
  def format(self) -> Fragments:
    if self.step is None:
      yield f"{{{self.n}}}"
    else:
      yield f"{{{self.n},{self.step}}}"


@dataclass(frozen=True)
class SuccGenerator(Formattable):
  hits: HitsGenerator
  op: SuccessOp | None = None

  def generate(self, ctx: RollContext) -> Pool:
    pool = self.hits.generate(ctx)
    if self.op is not None:
      pool.set_outcome(self.op.score(pool.sum()))
    return pool

  @override
  def format(self) -> Fragments:
    yield from self.hits.format()
    if self.op is not None:
      yield from self.op.format()


# Comparison


@dataclass(frozen=True)
class Comparison(Formattable):
  class Comparator(Enum):
    EQ = "="
    GT = ">"
    GE = ">="
    LT = "<"
    LE = "<="
    CMP = "<=>"

    def compare(self, lhs: int, rhs: int) -> int:
      match self:
        case Comparison.Comparator.EQ:
          return int(lhs == rhs)
        case Comparison.Comparator.GT:
          return int(lhs > rhs)
        case Comparison.Comparator.GE:
          return int(lhs >= rhs)
        case Comparison.Comparator.LT:
          return int(lhs < rhs)
        case Comparison.Comparator.LE:
          return int(lhs <= rhs)
        case Comparison.Comparator.CMP:
          return (lhs > rhs) - (lhs < rhs)

  comp: Comparator
  rhs: SuccGenerator

  @override
  def format(self) -> Fragments:
    yield f" {self.comp.value} "
    yield from self.rhs.format()


@dataclass(frozen=True)
class Generator(Formattable):
  """The root of a parsed roll. Built once, generated any number of times."""

  succ: SuccGenerator
  op: Comparison | None = None

  def generate(self, ctx: RollContext) -> Results:
    lhs = self.succ.generate(ctx)
    if self.op is None:
      return Results(lhs, None, lhs.outcome())
    rhs = self.op.rhs.generate(ctx)
    return Results(lhs, rhs, self.op.comp.compare(lhs.outcome(), rhs.outcome()))

  @override
  def format(self) -> Fragments:
    yield from self.succ.format()
    if self.op is not None:
      yield from self.op.format()
