"""
Tests for the synchronization point search.
"""

import pytest

from smtblocks.comparison.mapping import MappingAttempt, MappingSnapshot
from smtblocks.comparison.search import find_snippet_end
from smtblocks.comparison.structural import DifferentialBlockComparator
from smtblocks.ir import Argument, BlockBuilder, I32, Opcode


def diverging_blocks():
    """
    L: c = sub a, b        R: e = mul x, 2
       d = mul c, 2           f = mul y, 2
       ret d                  g = sub e, f
                              ret g
    """
    a, b, x, y = (Argument(I32, n) for n in "abxy")
    left, right = BlockBuilder("L"), BlockBuilder("R")
    c = left.sub(a, b, "c")
    d = left.mul(c, 2, "d")
    left.ret(d)
    e = right.mul(x, 2, "e")
    f = right.mul(y, 2, "f")
    g = right.sub(e, f, "g")
    right.ret(g)
    return (a, b, x, y), left.block, right.block, d, g


def mapped_outer(args_l, args_r):
    outer = DifferentialBlockComparator()
    outer.map_arguments(args_l, args_r)
    return outer


class RecordingComparator(DifferentialBlockComparator):
    """Records the no_smt flag of every block comparison."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.no_smt_flags = []

    def cmp_basic_blocks_from(self, block_l, block_r, index_l, index_r, no_smt=False):
        self.no_smt_flags.append(no_smt)
        return super().cmp_basic_blocks_from(block_l, block_r, index_l, index_r, no_smt)


class TestFindSnippetEnd:
    def test_finds_first_structural_match(self):
        """The search stops at the first agreeing pair of positions."""
        (a, b, x, y), left, right, d, g = diverging_blocks()
        outer = mapped_outer([a, b], [x, y])
        sync = find_snippet_end(outer, left, right, 0, 0)
        assert sync is not None
        assert (sync.index_l, sync.index_r) == (2, 3)

    def test_success_keeps_mapping_of_matched_comparison(self):
        """The committed attempt keeps its pairs, the baseline does not."""
        (a, b, x, y), left, right, d, g = diverging_blocks()
        outer = mapped_outer([a, b], [x, y])
        sync = find_snippet_end(outer, left, right, 0, 0)
        assert outer.mapped_values_by_sn[outer.sn_map_l[d]] == (d, g)
        # The baseline is the state before that comparison.
        assert d not in sync.baseline.sn_map_l
        assert a in sync.baseline.sn_map_l

    def test_failure_restores_mapping(self):
        """A failed search leaves the mapping untouched."""
        (a, b, x, y), left, right, d, g = diverging_blocks()
        outer = mapped_outer([a, b], [x, y])
        # Right ends without a return: nothing ever matches.
        right.instructions.pop()
        before = MappingSnapshot.take(outer)
        assert find_snippet_end(outer, left, right, 0, 0) is None
        assert before.matches(outer)

    def test_search_never_uses_smt(self):
        """Every structural comparison runs with no_smt."""
        (a, b, x, y), left, right, d, g = diverging_blocks()
        outer = RecordingComparator()
        outer.map_arguments([a, b], [x, y])
        find_snippet_end(outer, left, right, 0, 0)
        assert outer.no_smt_flags
        assert all(outer.no_smt_flags)

    def test_right_scan_restarts_at_original_offset(self):
        """The right scan starts over at the original offset for each left position."""
        (a, b, x, y), left, right, d, g = diverging_blocks()
        outer = RecordingComparator()
        outer.map_arguments([a, b], [x, y])
        find_snippet_end(outer, left, right, 0, 1)
        # Three left candidates times right candidates 1..3, the last one matching.
        assert len(outer.no_smt_flags) == 9

    def test_debug_instructions_are_not_candidates(self):
        """Debug positions are never tried."""
        a, x = Argument(I32, "a"), Argument(I32, "x")
        left, right = BlockBuilder("L"), BlockBuilder("R")
        p = left.mul(a, 2)
        left.debug_value(p)
        left.ret(p)
        s = right.shl(x, 1)
        right.debug_value(s)
        right.ret(s)
        outer = RecordingComparator()
        outer.map_arguments([a], [x])
        sync = find_snippet_end(outer, left.block, right.block, 0, 0)
        assert (sync.index_l, sync.index_r) == (2, 2)
        # Candidates (0,0), (0,2), (2,0), (2,2); debug positions never tried.
        assert len(outer.no_smt_flags) == 4

    def test_skippable_instructions_are_not_candidates(self):
        """Positions the outer comparator skips are never tried."""
        a, x = Argument(I32, "a"), Argument(I32, "x")
        left, right = BlockBuilder("L"), BlockBuilder("R")
        p = left.mul(a, 2)
        left.ret(p)
        s = right.shl(x, 1)
        right.add(x, 0, "scratch")
        right.ret(s)
        outer = DifferentialBlockComparator(skip_predicate=lambda inst: inst.name == "scratch")
        outer.map_arguments([a], [x])
        sync = find_snippet_end(outer, left.block, right.block, 0, 0)
        assert (sync.index_l, sync.index_r) == (1, 2)

    def test_inlining_decision_is_rolled_back(self):
        """Inlining requests from rejected candidates are undone."""
        a, x = Argument(I32, "a"), Argument(I32, "x")
        left, right = BlockBuilder("L"), BlockBuilder("R")
        p = left.mul(a, 3)
        left.call("foo", I32, (a,))
        left.ret(p)
        s = right.shl(x, 1)
        right.call("bar", I32, (x,))
        right.ret(s)
        outer = mapped_outer([a], [x])
        sync = find_snippet_end(outer, left.block, right.block, 0, 0)
        assert (sync.index_l, sync.index_r) == (2, 2)
        assert outer.try_inline is None

    def test_ret_without_value_never_matches_ret_with_value(self):
        """ret and ret <value> never agree."""
        a, x = Argument(I32, "a"), Argument(I32, "x")
        left, right = BlockBuilder("L"), BlockBuilder("R")
        left.ret(left.add(a, 1))
        right.add(x, 1)
        right.ret()
        outer = mapped_outer([a], [x])
        assert find_snippet_end(outer, left.block, right.block, 0, 0) is None
        assert right.block[1].opcode == Opcode.RET


class TestMappingAttempt:
    def test_rollback_restores_by_value(self):
        """Mutations made during a rolled-back attempt disappear."""
        a, x = Argument(I32, "a"), Argument(I32, "x")
        outer = mapped_outer([a], [x])
        attempt = MappingAttempt(outer)
        outer.cmp_values(Argument(I32, "b"), Argument(I32, "y"))
        outer.try_inline = "pending"
        attempt.rollback()
        assert attempt.snapshot.matches(outer)
        assert outer.try_inline is None

    def test_attempt_closes_once(self):
        """An attempt is either committed or rolled back, once."""
        outer = mapped_outer([], [])
        attempt = MappingAttempt(outer)
        attempt.commit()
        with pytest.raises(RuntimeError, match="committed"):
            attempt.rollback()
