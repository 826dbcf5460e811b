from dataclasses import dataclass
from enum import Enum
from typing import override

import numpy as np
from loguru import logger

from .formattable import Formattable, Fragments
from .pool import Pool, Value
from .source import RollContext


@dataclass(frozen=True)
class TooManyExplosions(Exception):
  op: "PoolOp"
  limit: int


@dataclass(frozen=True)
class PoolOp(Formattable):
  """
  An operator attached to a single pool of dice.

  Each kind acts in exactly one of two slots: `apply_to_last` runs right
  after every draw and only sees the newest value, `apply_to_all` runs once
  after the pool is complete. In the other slot, or on an empty pool, it
  does nothing.
  """

  class Kind(Enum):
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

  kind: Kind
  n: int | None = None

  def apply_to_last(self, pool: Pool, ctx: RollContext):
    if len(pool.values) == 0:
      return
    match self.kind:
      case PoolOp.Kind.EXPLODE_EACH | PoolOp.Kind.EXPLODE_EACH_UNTIL:
        last = pool.values[-1]
        if last.constant:
          return
        threshold = last.range if self.n is None else self.n
        i = 0
        while last.face >= threshold:
          self.check_limit(ctx, i)
          last = ctx.roll(last.range, bonus=True)
          pool.values.append(last)
          if self.kind == PoolOp.Kind.EXPLODE_EACH:
            break
          i += 1
      case PoolOp.Kind.ADD_EACH:
        pool.values[-1].set_modifier(1 if self.n is None else self.n)
      case PoolOp.Kind.SUB_EACH:
        pool.values[-1].set_modifier(-(1 if self.n is None else self.n))
      case _:
        pass

  def apply_to_all(self, pool: Pool, ctx: RollContext):
    if len(pool.values) == 0:
      return
    match self.kind:
      case PoolOp.Kind.EXPLODE | PoolOp.Kind.EXPLODE_UNTIL:
        self.explode(pool, ctx)
      case PoolOp.Kind.TAKE_LOW | PoolOp.Kind.TAKE_HIGH | PoolOp.Kind.TAKE_MID:
        self.take(pool)
      case PoolOp.Kind.ADVANTAGE | PoolOp.Kind.DISADVANTAGE:
        self.reroll_pool(pool, ctx)
      case PoolOp.Kind.BEST_GROUP:
        self.best_group(pool)
      case _:
        pass

  def check_limit(self, ctx: RollContext, rounds: int):
    if ctx.explode_limit is not None and rounds >= ctx.explode_limit:
      raise TooManyExplosions(self, ctx.explode_limit)

  def explode(self, pool: Pool, ctx: RollContext):
    threshold = pool.range() if self.n is None else self.n
    batch = [v for v in pool.values if not v.constant]
    i = 0
    while len(batch) > 0 and all(v.face >= threshold for v in batch):
      self.check_limit(ctx, i)
      if i == 0:
        batch = [ctx.roll(v.range, bonus=True) for v in pool.values if v.kept]
      else:
        batch = [ctx.roll(v.range, bonus=True) for v in batch]
      pool.values.extend(batch)
      logger.debug(f"{self} exploded {len(batch)} more dice")
      if self.kind == PoolOp.Kind.EXPLODE:
        break
      i += 1

  def take(self, pool: Pool):
    assert self.n is not None, f"{self.kind.name} needs a count"
    k = self.n
    if pool.count() <= k:
      return
    faces = pool.faces()
    if self.kind == PoolOp.Kind.TAKE_LOW:
      order = np.argsort(faces, kind="stable")
    else:
      order = np.argsort(-faces, kind="stable")
    start = (len(order) - k) // 2 if self.kind == PoolOp.Kind.TAKE_MID else 0
    keep = np.zeros(len(order), dtype=np.bool)
    keep[order[start : start + k]] = True
    for value, kept in zip(pool.values, keep):
      if not kept:
        value.mark_discarded()

  def reroll_pool(self, pool: Pool, ctx: RollContext):
    """Roll the whole pool a second time and keep the better (or worse) one."""
    old_values = list(pool.values)
    old_sum = pool.sum()
    new_values = [ctx.roll(v.range, bonus=True) for v in old_values]
    pool.values.extend(new_values)
    # the pool now sums to old + new, so comparing against twice the old sum
    # compares the two batches
    total = pool.sum()
    if self.kind == PoolOp.Kind.ADVANTAGE:
      new_loses = total <= old_sum * 2
    else:
      new_loses = total >= old_sum * 2
    losers: list[Value] = new_values if new_loses else old_values
    logger.debug(
      f"{self} kept the {"first" if new_loses else "second"} roll"
      f" ({old_sum} vs {total - old_sum})"
    )
    for value in losers:
      value.mark_discarded()

  def best_group(self, pool: Pool):
    kept = np.array([v.kept for v in pool.values], dtype=np.bool)
    if not np.any(kept):
      return
    faces, counts = np.unique(pool.faces()[kept], return_counts=True)
    # ties go to the highest face, the first run met in descending order
    best = int(faces[::-1][np.argmax(counts[::-1])])
    for value in pool.values:
      if value.face != best:
        value.mark_discarded()

  @override
  def format(self) -> Fragments:
    yield self.kind.value
    if self.n is not None:
      yield str(self.n)
