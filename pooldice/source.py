from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import override

import numpy as np

from .pool import Value


class RandomSource(ABC):
  @abstractmethod
  def draw(self, range: int) -> int:
    """A uniformly distributed integer in `[1, range]`."""


@dataclass
class GeneratorSource(RandomSource):
  gen: np.random.Generator = field(
    default_factory=lambda: np.random.Generator(np.random.SFC64())
  )

  @override
  def draw(self, range: int) -> int:
    return int(self.gen.choice(range)) + 1


@dataclass
class RollContext:
  source: RandomSource
  explode_limit: int | None = None
  """
  How many rounds an "until" explosion may run before giving up. `None`
  lets it run for as long as the dice keep qualifying.
  """

  def roll(self, range: int, bonus: bool = False) -> Value:
    return Value(self.source.draw(range), range, bonus=bonus)
