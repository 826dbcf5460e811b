from abc import ABC, abstractmethod
from typing import Generator

type Fragments = Generator[str, bool, None]
"""
Pieces of a rendering. After each piece the consumer sends back whether the
text so far is already too long, so long pools can cut themselves short.
"""


class Formattable(ABC):
  @abstractmethod
  def format(self) -> Fragments: ...

  def render(self, limit: int | None = None) -> str:
    out = ""
    fmt = self.format()
    try:
      out += next(fmt)
      while True:
        out += fmt.send(limit is not None and len(out) > limit)
    except StopIteration:
      return out

  def __str__(self) -> str:
    return self.render()
