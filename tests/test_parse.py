import pytest

from pooldice.expr import (
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
)
from pooldice.ops import PoolOp
from pooldice.parse import (
  ExpectError,
  ParseFailure,
  ZeroFacedDie,
  parse,
  parse_prefix,
  percent_range,
)
from pooldice.token import NumberOverflow

PLUS = ArithTerm.Operator.PLUS
MINUS = ArithTerm.Operator.MINUS


def simple(*terms: ArithTerm) -> SuccGenerator:
  return SuccGenerator(HitsGenerator(ExprGenerator(list(terms))))


def terms_of(source: str) -> list[ArithTerm]:
  return parse(source).succ.hits.expr.terms


def pool_of(source: str) -> PoolTerm:
  term = terms_of(source)[0].term
  assert isinstance(term, PoolTerm)
  return term


def test_plain_pool():
  assert parse("3d6") == Generator(simple(ArithTerm(None, PoolTerm(3, 6))))


@pytest.mark.parametrize(
  "source, expected",
  [
    ("d20", PoolTerm(1, 20)),
    ("2D8", PoolTerm(2, 8)),
    ("d%", PoolTerm(1, 100)),
    ("2d%%", PoolTerm(2, 1000)),
    ("d%%%", PoolTerm(1, 10000)),
    ("0d6", PoolTerm(0, 6)),
  ],
)
def test_pool_shapes(source: str, expected: PoolTerm):
  assert pool_of(source) == expected


def test_percent_range_saturates():
  assert percent_range(8) == 10**9
  assert percent_range(9) == 100
  assert percent_range(20) == 100


K = PoolOp.Kind


@pytest.mark.parametrize(
  "source, op",
  [
    ("1d6!", PoolOp(K.EXPLODE)),
    ("1d6!5", PoolOp(K.EXPLODE, 5)),
    ("1d6!!", PoolOp(K.EXPLODE_UNTIL)),
    ("1d6!!5", PoolOp(K.EXPLODE_UNTIL, 5)),
    ("3d6*", PoolOp(K.EXPLODE_EACH)),
    ("3d6**4", PoolOp(K.EXPLODE_EACH_UNTIL, 4)),
    ("3d6++", PoolOp(K.ADD_EACH)),
    ("3d6++2", PoolOp(K.ADD_EACH, 2)),
    ("3d6--", PoolOp(K.SUB_EACH)),
    ("4d6~2", PoolOp(K.TAKE_MID, 2)),
    ("4d6^3", PoolOp(K.TAKE_HIGH, 3)),
    ("4d6`1", PoolOp(K.TAKE_LOW, 1)),
    ("1d20ADV", PoolOp(K.ADVANTAGE)),
    ("1d20 DIS", PoolOp(K.DISADVANTAGE)),
    ("5d6Y", PoolOp(K.BEST_GROUP)),
  ],
)
def test_pool_ops(source: str, op: PoolOp):
  assert pool_of(source).op == op


def test_take_needs_a_count():
  with pytest.raises(ParseFailure):
    parse("4d6^")


def test_arith_terms():
  assert terms_of("3d4 + 2d6 - d8 2") == [
    ArithTerm(None, PoolTerm(3, 4)),
    ArithTerm(PLUS, PoolTerm(2, 6)),
    ArithTerm(MINUS, PoolTerm(1, 8)),
    ArithTerm(None, ConstTerm(2)),
  ]


def test_leading_sign():
  assert terms_of("-2 + d6") == [
    ArithTerm(MINUS, ConstTerm(2)),
    ArithTerm(PLUS, PoolTerm(1, 6)),
  ]


def test_pool_must_be_written_together():
  assert terms_of("3 d6") == [
    ArithTerm(None, ConstTerm(3)),
    ArithTerm(None, PoolTerm(1, 6)),
  ]


class TestHits:
  def test_high_target(self):
    assert parse("(6d10)[8]").succ.hits == HitsGenerator(
      ExprGenerator([ArithTerm(None, PoolTerm(6, 10))]), Target(Target.Kind.HIGH, 8)
    )

  def test_low_target_without_parens(self):
    assert parse("6d10 (3)").succ.hits.target == Target(Target.Kind.LOW, 3)

  def test_spaces_inside_brackets(self):
    assert parse("6d10[ 8 ]").succ.hits.target == Target(Target.Kind.HIGH, 8)

  def test_parens_without_target(self):
    assert parse("(2d6 + 1)") == Generator(
      simple(ArithTerm(None, PoolTerm(2, 6)), ArithTerm(PLUS, ConstTerm(1)))
    )


class TestSuccess:
  def test_single(self):
    assert parse("3d6{10}").succ.op == SuccessOp(10)

  def test_with_step(self):
    assert parse("3d6{ 10 , 3 }").succ.op == SuccessOp(10, 3)

  def test_after_target(self):
    succ = parse("(5d10)[7]{2}").succ
    assert succ.hits.target == Target(Target.Kind.HIGH, 7)
    assert succ.op == SuccessOp(2)


C = Comparison.Comparator


@pytest.mark.parametrize(
  "symbol, comp",
  [
    ("=", C.EQ),
    (">", C.GT),
    (">=", C.GE),
    ("<", C.LT),
    ("<=", C.LE),
    ("<=>", C.CMP),
  ],
)
def test_comparison(symbol: str, comp: Comparison.Comparator):
  gen = parse(f"3d8 {symbol} 4d6")
  assert gen.op == Comparison(comp, simple(ArithTerm(None, PoolTerm(4, 6))))


def test_everything_at_once():
  assert parse("4d6^3 + 2d8!! > (3d10)[6]{2,2}") == Generator(
    simple(
      ArithTerm(None, PoolTerm(4, 6, PoolOp(K.TAKE_HIGH, 3))),
      ArithTerm(PLUS, PoolTerm(2, 8, PoolOp(K.EXPLODE_UNTIL))),
    ),
    Comparison(
      C.GT,
      SuccGenerator(
        HitsGenerator(
          ExprGenerator([ArithTerm(None, PoolTerm(3, 10))]),
          Target(Target.Kind.HIGH, 6),
        ),
        SuccessOp(2, 2),
      ),
    ),
  )


@pytest.mark.parametrize(
  "source",
  ["", "   ", "x", "3d6 +", "(3d6", "3d6{5", "3d6{5,}", "3d6 >", "3d6 [x]", "d"],
)
def test_rejected(source: str):
  with pytest.raises(ParseFailure) as ex:
    parse(source)
  assert str(ex.value) == f"could not parse `{source}`"


def test_unclosed_paren_points_at_the_end():
  with pytest.raises(ParseFailure) as ex:
    parse("(3d6")
  assert ex.value.span == slice(4, 4)
  assert isinstance(ex.value.__cause__, ExpectError)
  assert ex.value.__cause__.got is None


def test_zero_faced_die():
  with pytest.raises(ParseFailure) as ex:
    parse("2 + 1d0")
  assert isinstance(ex.value.__cause__, ZeroFacedDie)
  assert ex.value.span == slice(4, 7)


def test_number_overflow():
  with pytest.raises(ParseFailure) as ex:
    parse("1d99999999999")
  assert isinstance(ex.value.__cause__, NumberOverflow)


def test_leftover_is_reported():
  with pytest.raises(ParseFailure) as ex:
    parse("3d6 x")
  assert ex.value.span == slice(4, 5)


class TestPrefix:
  def test_note_after_expression(self):
    rest, gen = parse_prefix("3d6   for damage")
    assert rest == "for damage"
    assert gen == parse("3d6")

  def test_note_starting_with_a_die_letter(self):
    rest, gen = parse_prefix("3d6 Damage")
    assert rest == "Damage"
    assert gen == parse("3d6")

  def test_broken_pool_becomes_the_note(self):
    rest, gen = parse_prefix("3dx")
    assert rest == "dx"
    assert gen == Generator(simple(ArithTerm(None, ConstTerm(3))))

  def test_dangling_operator_becomes_the_note(self):
    rest, gen = parse_prefix("1d20 + ")
    assert rest == "+ "
    assert gen == parse("1d20")

  def test_nothing_left(self):
    assert parse_prefix("1d20") == ("", parse("1d20"))
