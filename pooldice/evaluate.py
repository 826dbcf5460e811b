from .expr import Generator
from .parse import parse
from .pool import Results
from .source import GeneratorSource, RollContext


def generate(gen: Generator, ctx: RollContext | None = None) -> Results:
  """Roll `gen` once. Without a context, dice come from a fresh numpy generator."""
  if ctx is None:
    ctx = RollContext(GeneratorSource())
  return gen.generate(ctx)


def roll(source: str, ctx: RollContext | None = None) -> tuple[Generator, Results]:
  """
  :raises: ParseFailure
  """
  gen = parse(source)
  return gen, generate(gen, ctx)
