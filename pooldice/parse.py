from collections.abc import Callable
from dataclasses import dataclass
from typing import Final

from loguru import logger

from .expr import (
  ArithTerm,
  Comparison,
  ConstTerm,
  ExprGenerator,
  Generator,
  HitsGenerator,
  PoolTerm,
  SuccessOp,
  SuccGenerator,
  Target,
  Term,
)
from .ops import PoolOp
from .token import (
  Number,
  NumberOverflow,
  Percent,
  Simple,
  Token,
  TokenStream,
  number_limit,
)


@dataclass(frozen=True)
class ExpectError(Exception):
  type Expectation = type | Simple.Kind
  expected: Expectation | tuple[Expectation, ...]
  got: Token | None


@dataclass(frozen=True)
class ZeroFacedDie(Exception):
  span: slice


@dataclass
class ParseFailure(Exception):
  """The whole input is rejected; the reason, if any, is the `__cause__`."""

  source: str
  span: slice

  def __str__(self) -> str:
    return f"could not parse `{self.source}`"


# every optional part of the grammar is tried with `attempt`, which rewinds
# the stream when it fails; required parts raise ExpectError straight up to
# `parse_prefix`


def attempt[T](lex: TokenStream, parser: Callable[[TokenStream], T]) -> T | None:
  mark = lex.mark()
  try:
    return parser(lex)
  except ExpectError:
    lex.reset(mark)
    return None


def parse(source: str) -> Generator:
  """
  Parse the whole of `source`.

  :raises: ParseFailure
  """
  rest, gen = parse_prefix(source)
  if len(rest) != 0:
    raise ParseFailure(source, slice(len(source) - len(rest), len(source)))
  return gen


def parse_prefix(source: str) -> tuple[str, Generator]:
  """
  Parse the longest prefix of `source` that forms a generator, and return
  the text that follows it along with the generator.

  :raises: ParseFailure
  """
  lex = TokenStream(source)
  try:
    gen = parse_generator(lex)
    rest = lex.rest()
  except ExpectError as ex:
    match ex.got:
      case None:
        span = slice(len(source), len(source))
      case tok:
        span = tok.span
    raise ParseFailure(source, span) from ex
  except (ZeroFacedDie, NumberOverflow) as ex:
    raise ParseFailure(source, ex.span) from ex
  logger.debug(f"parsed {source!r} as {gen}")
  return rest, gen


def parse_generator(lex: TokenStream) -> Generator:
  """
  Generator -> SuccGen Comparison?
  """
  succ = parse_succ_gen(lex)
  return Generator(succ, attempt(lex, parse_comparison))


def parse_comparison(lex: TokenStream) -> Comparison:
  """
  Comparison ->
    | <=> SuccGen
    | >= SuccGen
    | <= SuccGen
    | > SuccGen
    | < SuccGen
    | = SuccGen
  """
  match next(lex, None):
    case Simple(kind, _) as tok:
      try:
        comp = Comparison.Comparator[kind.name]
      except KeyError:
        raise ExpectError(Comparison, tok)
    case tok:
      raise ExpectError(Comparison, tok)
  return Comparison(comp, parse_succ_gen(lex))


def parse_succ_gen(lex: TokenStream) -> SuccGenerator:
  """
  SuccGen -> Hits SuccessOp?
  """
  hits = parse_hits(lex)
  return SuccGenerator(hits, attempt(lex, parse_success_op))


def parse_success_op(lex: TokenStream) -> SuccessOp:
  """
  SuccessOp ->
    | { Number }
    | { Number , Number }
  """
  expect(lex, Simple.Kind.LBRACE)
  n = parse_number(lex)
  match next(lex, None):
    case Simple(Simple.Kind.RBRACE, _):
      return SuccessOp(n)
    case Simple(Simple.Kind.COMMA, _):
      step = parse_number(lex)
      expect(lex, Simple.Kind.RBRACE)
      return SuccessOp(n, step)
    case tok:
      if tok is not None:
        lex.put_back(tok)
      raise ExpectError((Simple.Kind.COMMA, Simple.Kind.RBRACE), tok)


def parse_hits(lex: TokenStream) -> HitsGenerator:
  """
  Hits -> ParenExpr Target?
  """
  expr = parse_paren_expr(lex)
  return HitsGenerator(expr, attempt(lex, parse_target))


def parse_target(lex: TokenStream) -> Target:
  """
  Target ->
    | [ Number ]
    | ( Number )
  """
  match next(lex, None):
    case Simple(Simple.Kind.LBRACKET, _):
      n = parse_number(lex)
      expect(lex, Simple.Kind.RBRACKET)
      return Target(Target.Kind.HIGH, n)
    case Simple(Simple.Kind.LPAR, _):
      n = parse_number(lex)
      expect(lex, Simple.Kind.RPAR)
      return Target(Target.Kind.LOW, n)
    case tok:
      raise ExpectError(Target, tok)


def parse_paren_expr(lex: TokenStream) -> ExprGenerator:
  """
  ParenExpr ->
    | ( Expr )
    | Expr
  """
  match lex.peek(None):
    case Simple(Simple.Kind.LPAR, _):
      next(lex)
      expr = parse_expr(lex)
      expect(lex, Simple.Kind.RPAR)
      return expr
    case _:
      return parse_expr(lex)


def parse_expr(lex: TokenStream) -> ExprGenerator:
  """
  Expr -> ArithTerm ArithTerm*
  """
  try:
    terms = [parse_arith_term(lex)]
  except ExpectError as ex:
    if ex.expected == ArithTerm:
      raise ExpectError(ExprGenerator, ex.got)
    else:
      raise
  while (term := attempt(lex, parse_arith_term)) is not None:
    terms.append(term)
  return ExprGenerator(terms)


def parse_arith_term(lex: TokenStream) -> ArithTerm:
  """
  ArithTerm ->
    | + Term
    | - Term
    | Term
  """
  match lex.peek(None):
    case Simple(Simple.Kind.PLUS, _):
      next(lex)
      return ArithTerm(ArithTerm.Operator.PLUS, parse_term(lex))
    case Simple(Simple.Kind.MINUS, _):
      next(lex)
      return ArithTerm(ArithTerm.Operator.MINUS, parse_term(lex))
    case tok:
      try:
        return ArithTerm(None, parse_term(lex))
      except ExpectError as ex:
        if ex.expected == Term:
          raise ExpectError(ArithTerm, tok)
        else:
          raise


def parse_term(lex: TokenStream) -> Term:
  """
  Term ->
    | Pool
    | Number
  """
  if (pool := attempt(lex, parse_pool)) is not None:
    return pool
  match lex.peek(None):
    case Number(value, _):
      next(lex)
      return ConstTerm(value)
    case tok:
      raise ExpectError(Term, tok)


def parse_pool(lex: TokenStream) -> PoolTerm:
  """
  Pool ->
    | Number? d Range PoolOp?
    | Number? D Range PoolOp?
  Range ->
    | Number
    | %+

  The count, the die letter and the range are written without spaces.
  """
  match next(lex, None):
    case Number(count, left):
      match next(lex, None):
        case Simple(Simple.Kind.D | Simple.Kind.BIG_D, d) if d.start == left.stop:
          left = slice(left.start, d.stop)
        case tok:
          raise ExpectError((Simple.Kind.D, Simple.Kind.BIG_D), tok)
    case Simple(Simple.Kind.D | Simple.Kind.BIG_D, left):
      count = 1
    case tok:
      raise ExpectError(PoolTerm, tok)
  match next(lex, None):
    case Number(value, right) if right.start == left.stop:
      if value == 0:
        raise ZeroFacedDie(slice(left.start, right.stop))
      faces = value
    case Percent(signs, right) if right.start == left.stop:
      faces = percent_range(signs)
    case tok:
      raise ExpectError((Number, Percent), tok)
  return PoolTerm(count, faces, attempt(lex, parse_pool_op))


percent_base: Final = 100


def percent_range(signs: int) -> int:
  """`%` is a d100, `%%` a d1000 and so on, falling back to 100 on overflow."""
  faces = 10 ** (signs + 1)
  return percent_base if faces > number_limit else faces


def parse_pool_op(lex: TokenStream) -> PoolOp:
  """
  PoolOp ->
    | !! Number?
    | ! Number?
    | ** Number?
    | * Number?
    | ++ Number?
    | -- Number?
    | ~ Number
    | ^ Number
    | ` Number
    | ADV
    | DIS
    | Y

  The lexer always takes the longest token, so `!!` is never read as `!`.
  """
  match next(lex, None):
    case Simple(kind, _) as tok:
      try:
        op = PoolOp.Kind[kind.name]
      except KeyError:
        raise ExpectError(PoolOp, tok)
    case tok:
      raise ExpectError(PoolOp, tok)
  match op:
    case PoolOp.Kind.ADVANTAGE | PoolOp.Kind.DISADVANTAGE | PoolOp.Kind.BEST_GROUP:
      return PoolOp(op)
    case PoolOp.Kind.TAKE_MID | PoolOp.Kind.TAKE_HIGH | PoolOp.Kind.TAKE_LOW:
      return PoolOp(op, parse_number(lex))
    case _:
      match lex.peek(None):
        case Number(value, _):
          next(lex)
          return PoolOp(op, value)
        case _:
          return PoolOp(op)


def parse_number(lex: TokenStream) -> int:
  match next(lex, None):
    case Number(value, _):
      return value
    case tok:
      if tok is not None:
        lex.put_back(tok)
      raise ExpectError(Number, tok)


def expect(lex: TokenStream, kind: Simple.Kind):
  match next(lex, None):
    case Simple(k, _) if k == kind:
      pass
    case tok:
      if tok is not None:
        lex.put_back(tok)
      raise ExpectError(kind, tok)
