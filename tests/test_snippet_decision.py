"""
Tests for the equivalence decision over a pair of snippets.

Mappings are built by hand here; the search and the controller that
normally produce them are covered in test_smt_controller.py.
"""

import itertools
import math

import pytest
import z3

from smtblocks.errors import OutOfTime, UnsupportedOperation
from smtblocks.ir import Argument, BlockBuilder, CmpPredicate, Constant, DOUBLE, I8, I32
from smtblocks.smt import decision
from smtblocks.smt.budget import TimeBudget
from smtblocks.smt.decision import EQUAL, NOT_EQUAL, Snippet, compare_snippets, output_pairs


def whole(builder: BlockBuilder) -> Snippet:
    return Snippet(builder.block, 0, len(builder.block))


def fake_clock(step: float):
    ticks = itertools.count()
    return lambda: next(ticks) * step


class TestScenarios:
    def test_same_addition_is_equal(self):
        """resL = a + b vs resR = x + y with a~x, b~y."""
        a, b, x, y = (Argument(I32, n) for n in "abxy")
        left, right = BlockBuilder("L"), BlockBuilder("R")
        res_l = left.add(a, b)
        res_r = right.add(x, y)
        mapped = {0: (a, x), 1: (b, y), 2: (res_l, res_r)}
        verdict = compare_snippets(whole(left), whole(right), {a: 0, b: 1}, mapped, TimeBudget(0))
        assert verdict == EQUAL

    def test_commuted_addition_is_equal(self):
        """a + b vs y + x with a~x, b~y."""
        a, b, x, y = (Argument(I32, n) for n in "abxy")
        left, right = BlockBuilder("L"), BlockBuilder("R")
        res_l = left.add(a, b)
        res_r = right.add(y, x)
        mapped = {0: (a, x), 1: (b, y), 2: (res_l, res_r)}
        assert compare_snippets(whole(left), whole(right), {a: 0, b: 1}, mapped, TimeBudget(0)) == EQUAL

    def test_different_operation_is_not_equal(self):
        """a + b vs x - y."""
        a, b, x, y = (Argument(I32, n) for n in "abxy")
        left, right = BlockBuilder("L"), BlockBuilder("R")
        res_l = left.add(a, b)
        res_r = right.sub(x, y)
        mapped = {0: (a, x), 1: (b, y), 2: (res_l, res_r)}
        assert compare_snippets(whole(left), whole(right), {a: 0, b: 1}, mapped, TimeBudget(0)) == NOT_EQUAL

    def test_multi_instruction_snippets(self):
        """(a - b) * 2 computed in two vs three instructions."""
        a, b, x, y = (Argument(I32, n) for n in "abxy")
        left, right = BlockBuilder("L"), BlockBuilder("R")
        c = left.sub(a, b)
        d = left.mul(c, 2)
        e = right.mul(x, 2)
        f = right.mul(y, 2)
        g = right.sub(e, f)
        mapped = {0: (a, x), 1: (b, y), 2: (d, g)}
        assert compare_snippets(whole(left), whole(right), {a: 0, b: 1}, mapped, TimeBudget(0)) == EQUAL


class TestOverflowSoundness:
    def test_overflowing_nsw_add_is_not_proven(self):
        """100 +nsw 100 on i8 is not the wrapped -56."""
        left, right = BlockBuilder("L"), BlockBuilder("R")
        r = left.add(Constant(I8, 100), Constant(I8, 100), nsw=True)
        s = right.add(Constant(I8, -57), Constant(I8, 1))
        mapped = {0: (r, s)}
        assert compare_snippets(whole(left), whole(right), {}, mapped, TimeBudget(0)) == NOT_EQUAL

    def test_non_overflowing_nsw_add_is_proven(self):
        """20 +nsw 30 equals 49 + 1."""
        left, right = BlockBuilder("L"), BlockBuilder("R")
        r = left.add(Constant(I8, 20), Constant(I8, 30), nsw=True)
        s = right.add(Constant(I8, 49), Constant(I8, 1))
        mapped = {0: (r, s)}
        assert compare_snippets(whole(left), whole(right), {}, mapped, TimeBudget(0)) == EQUAL


class TestNanComparisons:
    def _compare(self, predicate):
        x, y = Argument(DOUBLE, "x"), Argument(DOUBLE, "y")
        left, right = BlockBuilder("L"), BlockBuilder("R")
        r = left.fcmp(predicate, x, math.nan)
        s = right.fcmp(CmpPredicate.FCMP_TRUE, y, y)
        mapped = {0: (x, y), 1: (r, s)}
        return compare_snippets(whole(left), whole(right), {x: 0}, mapped, TimeBudget(0))

    def test_unordered_equal_against_nan_is_true(self):
        """fcmp ueq x, NaN is always true."""
        assert self._compare(CmpPredicate.FCMP_UEQ) == EQUAL

    def test_ordered_equal_against_nan_is_false(self):
        """fcmp oeq x, NaN is never true."""
        assert self._compare(CmpPredicate.FCMP_OEQ) == NOT_EQUAL


class TestShortCircuits:
    def test_empty_snippet_skips_solver(self, monkeypatch):
        """An empty side gives verdict 1 without creating a solver."""
        def no_solver(*args, **kwargs):
            raise AssertionError("solver must not be created")

        monkeypatch.setattr(decision.z3, "Solver", no_solver)
        a, x = Argument(I32, "a"), Argument(I32, "x")
        left, right = BlockBuilder("L"), BlockBuilder("R")
        r = left.add(a, 1)
        s = right.add(x, 1)
        mapped = {0: (a, x), 1: (r, s)}
        empty_left = Snippet(left.block, 0, 0)
        empty_right = Snippet(right.block, 1, 1)
        assert compare_snippets(empty_left, whole(right), {a: 0}, mapped, TimeBudget(0)) == NOT_EQUAL
        assert compare_snippets(whole(left), empty_right, {a: 0}, mapped, TimeBudget(0)) == NOT_EQUAL

    def test_no_mapped_outputs_is_not_equal(self):
        """Nothing to compare means nothing proven."""
        a, x = Argument(I32, "a"), Argument(I32, "x")
        left, right = BlockBuilder("L"), BlockBuilder("R")
        left.add(a, 1)
        right.add(x, 1)
        assert compare_snippets(whole(left), whole(right), {a: 0}, {0: (a, x)}, TimeBudget(0)) == NOT_EQUAL


class TestInputSeedingBaseline:
    """Left inputs are seeded from the mapping before the search."""

    def _blocks(self):
        a, x = Argument(I32, "a"), Argument(I32, "x")
        left, right = BlockBuilder("L"), BlockBuilder("R")
        c = left.add(a, 1)
        d = left.mul(c, 2)
        e = right.add(x, 2)
        f = right.mul(e, 2)
        # c~e is a speculative pairing, d~f the output pair.
        mapped = {0: (a, x), 1: (c, e), 2: (d, f)}
        return left, right, a, c, mapped

    def test_speculative_pairs_are_not_seeded(self):
        """Pairs unknown before the search are not assumed equal."""
        left, right, a, c, mapped = self._blocks()
        assert compare_snippets(whole(left), whole(right), {a: 0}, mapped, TimeBudget(0)) == NOT_EQUAL

    def test_seeding_map_decides_which_pairs_are_assumed(self):
        """Assuming c~e makes the encodings contradictory, hence "equal"."""
        left, right, a, c, mapped = self._blocks()
        # Assuming c~e makes the encodings contradictory, hence "equal".
        assert compare_snippets(whole(left), whole(right), {a: 0, c: 1}, mapped, TimeBudget(0)) == EQUAL

    def test_output_pairs_only_include_snippet_values(self):
        """Input pairs are not outputs."""
        left, right, a, c, mapped = self._blocks()
        pairs = output_pairs(whole(left), whole(right), mapped)
        assert [p[0] for p in pairs] == [c, left.block[1]]


class TestBudget:
    def test_not_equal_verdict_charges_budget(self):
        """SAT time is deducted from the budget."""
        a, x = Argument(I32, "a"), Argument(I32, "x")
        left, right = BlockBuilder("L"), BlockBuilder("R")
        r = left.add(a, 1)
        s = right.add(x, 2)
        budget = TimeBudget(5, clock=fake_clock(1.0))
        verdict = compare_snippets(whole(left), whole(right), {a: 0}, {0: (a, x), 1: (r, s)}, budget)
        assert verdict == NOT_EQUAL
        assert budget.remaining == pytest.approx(4.0)

    def test_equal_verdict_is_not_charged(self):
        """UNSAT ends the comparison, so its time is not charged."""
        a, x = Argument(I32, "a"), Argument(I32, "x")
        left, right = BlockBuilder("L"), BlockBuilder("R")
        r = left.add(a, 1)
        s = right.add(x, 1)
        budget = TimeBudget(5, clock=fake_clock(1.0))
        verdict = compare_snippets(whole(left), whole(right), {a: 0}, {0: (a, x), 1: (r, s)}, budget)
        assert verdict == EQUAL
        assert budget.remaining == pytest.approx(5.0)

    def test_unknown_verdict_is_not_equal_and_charged(self, monkeypatch):
        """UNKNOWN counts as not proven and is charged like SAT."""
        monkeypatch.setattr(decision.z3.Solver, "check", lambda self, *assumptions: z3.unknown)
        a, x = Argument(I32, "a"), Argument(I32, "x")
        left, right = BlockBuilder("L"), BlockBuilder("R")
        r = left.add(a, 1)
        s = right.add(x, 1)
        budget = TimeBudget(5, clock=fake_clock(1.0))
        verdict = compare_snippets(whole(left), whole(right), {a: 0}, {0: (a, x), 1: (r, s)}, budget)
        assert verdict == NOT_EQUAL
        assert budget.remaining == pytest.approx(4.0)

    def test_exhausted_budget_raises(self):
        """A call longer than the remaining budget raises OutOfTime."""
        a, x = Argument(I32, "a"), Argument(I32, "x")
        left, right = BlockBuilder("L"), BlockBuilder("R")
        r = left.add(a, 1)
        s = right.add(x, 2)
        budget = TimeBudget(1, clock=fake_clock(3.0))
        with pytest.raises(OutOfTime):
            compare_snippets(whole(left), whole(right), {a: 0}, {0: (a, x), 1: (r, s)}, budget)


class TestErrors:
    def test_z3_errors_become_unsupported_operation(self):
        """Comparing an i32 with an i8 output is a Z3 sort error."""
        a, x = Argument(I32, "a"), Argument(I8, "x")
        left, right = BlockBuilder("L"), BlockBuilder("R")
        r = left.add(a, 1)
        s = right.add(x, 1)
        with pytest.raises(UnsupportedOperation):
            compare_snippets(whole(left), whole(right), {}, {0: (r, s)}, TimeBudget(0))

    def test_unknown_call_is_unsupported(self):
        """Unknown calls abort the decision."""
        a, x = Argument(I32, "a"), Argument(I32, "x")
        left, right = BlockBuilder("L"), BlockBuilder("R")
        r = left.call("rand_r", I32, (a,))
        s = right.add(x, 1)
        with pytest.raises(UnsupportedOperation, match="rand_r"):
            compare_snippets(whole(left), whole(right), {a: 0}, {0: (a, x), 1: (r, s)}, TimeBudget(0))
