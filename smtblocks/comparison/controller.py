"""
Backtracking controller: entry point of the SMT-based snippet comparison.

States over the cursor pair (L, R):

    searching  -> find_snippet_end from (L, R)
    proving    -> compare_snippets([start_l, L), [start_r, R))
    retrying   -> restore the attempt snapshot, R += 1; if R hits the end,
                  R = start_r and L += 1
    done       -> snippets proven equal
    exhausted  -> L hit the end while retrying
    fatal      -> NoSynchronizationPoint / OutOfTime / UnsupportedOperation

The first synchronization point found is not necessarily the right one, so
every candidate is tried until one is proven or the candidates run out.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from ..config import SmtConfig
from ..errors import NoSynchronizationPoint
from ..ir.values import InstCursor
from ..smt.budget import TimeBudget
from ..smt.decision import EQUAL, NOT_EQUAL, Snippet, compare_snippets
from .interface import OuterComparator
from .mapping import MappingSnapshot
from .search import find_snippet_end

logger = logging.getLogger(__name__)


class SmtBlockComparator:
    """
    Compares diverging parts of two basic blocks with an SMT solver.

    Usage by the outer comparator, once cursor_l/cursor_r point at two
    instructions found to differ:

        verdict = smt.compare(cursor_l, cursor_r)
        cursor_l.advance(); cursor_r.advance()   # resume after the snippets
    """

    def __init__(
        self,
        outer: OuterComparator,
        config: Optional[SmtConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.outer = outer
        self.config = config if config is not None else SmtConfig()
        self.clock = clock

    def compare(self, cursor_l: InstCursor, cursor_r: InstCursor) -> int:
        """
        Compare the snippets starting at the two cursors.

        Returns 0 if proven equivalent, 1 otherwise. Both cursors are left one
        instruction before the synchronization point (the caller advances
        them). The outer mapping state is restored to its state at the time of
        the call on every exit, including exceptions.
        """
        entry = MappingSnapshot.take(self.outer)
        budget = TimeBudget(self.config.smt_timeout, clock=self.clock)
        logger.debug(
            f"[COMPARE] Diverged at {cursor_l.block.name}:{cursor_l.index} / "
            f"{cursor_r.block.name}:{cursor_r.index}, {budget}"
        )
        try:
            verdict = self._do_compare(cursor_l, cursor_r, budget)
        finally:
            # Leave a clean mapping; the outer comparator redoes the mapping
            # from the synchronization point on.
            entry.restore(self.outer)

        cursor_l.retreat()
        cursor_r.retreat()
        logger.info(f"[COMPARE] Verdict {verdict} ({'equal' if verdict == EQUAL else 'not proven equal'})")
        return verdict

    def _do_compare(self, cursor_l: InstCursor, cursor_r: InstCursor, budget: TimeBudget) -> int:
        start_l, start_r = cursor_l.index, cursor_r.index
        block_l, block_r = cursor_l.block, cursor_r.block

        # The instructions were found to differ; this comparison supersedes
        # that verdict.
        self.outer.undo_last_inst_compare(cursor_l, cursor_r)

        while not (cursor_l.at_end and cursor_r.at_end):
            sync = find_snippet_end(self.outer, block_l, block_r, cursor_l.index, cursor_r.index)
            if sync is None:
                raise NoSynchronizationPoint(
                    f"No synchronization point after {block_l.name}:{start_l} / {block_r.name}:{start_r}"
                )
            cursor_l.index, cursor_r.index = sync.index_l, sync.index_r

            verdict = compare_snippets(
                Snippet(block_l, start_l, sync.index_l),
                Snippet(block_r, start_r, sync.index_r),
                sync.baseline.sn_map_l,
                self.outer.mapped_values_by_sn,
                budget,
            )
            if verdict == EQUAL:
                return EQUAL

            # Undo the search's mappings and skip this synchronization point.
            sync.baseline.restore(self.outer)
            cursor_r.advance()
            if cursor_r.at_end:
                cursor_r.index = start_r
                cursor_l.advance()
                if cursor_l.at_end:
                    logger.debug("[COMPARE] Synchronization candidates exhausted")
                    return NOT_EQUAL
            logger.debug(f"[COMPARE] Retrying from L{cursor_l.index}/R{cursor_r.index}")

        return NOT_EQUAL
