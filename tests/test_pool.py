import numpy as np

from pooldice.pool import Pool, Results, Value


class TestValue:
  def test_constant(self):
    v = Value.const(4)
    assert (v.face, v.range, v.constant) == (4, 4, True)
    v.mark_discarded()
    assert v.kept
    assert v.contribution() == 4

  def test_contribution(self):
    v = Value(3, 6, modifier=2)
    assert v.total() == 5
    assert v.contribution() == 5
    v.mark_penalty()
    assert v.contribution() == -5

  def test_hit_mode(self):
    v = Value(3, 6)
    v.set_hit(True)
    assert v.is_hit()
    assert v.contribution() == 1
    v.mark_penalty()
    assert v.contribution() == -1
    v.set_hit(False)
    assert not v.is_hit()
    assert v.contribution() == 0

  def test_discarded_contributes_nothing(self):
    v = Value(6, 6)
    v.set_hit(True)
    v.mark_discarded()
    assert v.is_discarded()
    assert not v.is_hit()
    assert v.contribution() == 0

  def test_render(self):
    assert Value(3, 6).render() == "3"
    assert Value(6, 6, bonus=True).render() == "6*"
    assert Value(2, 6, kept=False).render() == "2-"
    assert Value(5, 6, bonus=True, kept=False).render() == "5*-"
    assert Value(4, 6, sign=-1).render() == "-4"
    assert Value(4, 6, modifier=2).render() == "6"
    assert Value(4, 6, modifier=2, kept=False).render() == "6-"
    assert Value(4, 6, hit=True).render() == "1"


class TestPool:
  def test_range_ignores_constants(self):
    assert Pool([Value(3, 6), Value.const(20), Value(7, 8)]).range() == 8
    assert Pool([Value.const(20)]).range() == 0
    assert Pool().range() == 0

  def test_tallies(self):
    pool = Pool(
      [
        Value(6, 6, hit=True),
        Value(2, 6, hit=False),
        Value(6, 6, bonus=True, hit=True, kept=False),
        Value(5, 6, bonus=True, hit=True),
      ]
    )
    assert pool.count() == 4
    assert pool.kept() == 3
    assert pool.hits() == 2
    assert pool.bonus() == 2
    assert pool.sum() == 2

  def test_outcome_override(self):
    pool = Pool([Value(4, 6), Value(5, 6)])
    assert pool.outcome() == 9
    pool.set_outcome(0)
    assert pool.outcome() == 0
    assert pool.sum() == 9

  def test_faces(self):
    faces = Pool([Value(1, 4), Value(3, 4)]).faces()
    assert faces.dtype == np.int64
    assert faces.tolist() == [1, 3]

  def test_mark_penalty(self):
    pool = Pool([Value(1, 4), Value.const(2)])
    pool.mark_penalty()
    assert pool.sum() == -3

  def test_render(self):
    assert Pool([Value(6, 6), Value(2, 6, kept=False)]).render() == "6, 2- = 6"
    assert Pool([Value(6, 6)], 1).render() == "6 = 6 {1}"
    assert Pool().render() == "[] = 0"

  def test_render_cuts_long_pools(self):
    pool = Pool([Value(6, 6) for _ in range(30)])
    assert pool.render(10) == "6, 6, 6, 6, … = 180"
    assert pool.render().count("6") == 30


class TestResults:
  def test_without_rhs(self):
    results = Results(Pool([Value(5, 8)], 2), None, 2)
    assert results.outcome() == 2
    assert results.render() == "5 = 5 {2}"

  def test_with_rhs(self):
    results = Results(Pool([Value(5, 8)]), Pool([Value(3, 6)]), 1)
    assert results.outcome() == 1
    assert results.render() == "5 = 5 <> 3 = 3 = 1"
