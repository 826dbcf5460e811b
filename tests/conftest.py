from typing import override

import pytest

from pooldice.source import RandomSource, RollContext


class ScriptedSource(RandomSource):
  """Hands out faces from a fixed script, remembering every range asked for."""

  faces: list[int]
  ranges: list[int]

  def __init__(self, faces):
    self.faces = list(faces)
    self.ranges = []

  @override
  def draw(self, range: int) -> int:
    self.ranges.append(range)
    assert len(self.faces) > 0, f"script ran out at a d{range}"
    face = self.faces.pop(0)
    assert 1 <= face <= range, f"scripted {face} on a d{range}"
    return face


@pytest.fixture
def scripted():
  def make(*faces: int, explode_limit: int | None = None) -> RollContext:
    return RollContext(ScriptedSource(faces), explode_limit)

  return make
