"""
Search for a synchronization point after two instructions diverged.

A synchronization point is a pair of positions from which the structural
comparator agrees on the rest of both blocks. Candidates are tried in
left-major, right-minor order; each one runs inside a MappingAttempt so that a
rejected candidate leaves no trace in the outer mapping.

Only the structural comparator is used here (no_smt=True): the search runs
between solver calls and must never start one itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..ir.values import BasicBlock, Instruction
from .interface import OuterComparator
from .mapping import MappingAttempt, MappingSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncPoint:
    """
    Positions where both sides agree again.

    `baseline` is the mapping state captured right before the successful
    structural comparison, i.e. without the mappings that comparison made.
    """
    index_l: int
    index_r: int
    baseline: MappingSnapshot


def is_ignorable(outer: OuterComparator, inst: Instruction) -> bool:
    return inst.is_debug_info or outer.may_skip_instruction(inst)


def find_snippet_end(
    outer: OuterComparator,
    block_l: BasicBlock,
    block_r: BasicBlock,
    index_l: int,
    index_r: int,
) -> Optional[SyncPoint]:
    """
    Find the first candidate pair (l, r), l >= index_l, r >= index_r, where
    the structural comparison of the remaining instructions succeeds.

    On success the mappings made by that comparison are kept. Returns None if
    the left block is exhausted without a match.
    """
    l = index_l
    while l < len(block_l):
        if is_ignorable(outer, block_l[l]):
            l += 1
            continue
        r = index_r
        while r < len(block_r):
            if is_ignorable(outer, block_r[r]):
                r += 1
                continue
            attempt = MappingAttempt(outer)
            if outer.cmp_basic_blocks_from(block_l, block_r, l, r, no_smt=True) == 0:
                attempt.commit()
                logger.debug(f"[SYNC] Synchronized at L{l}/R{r}")
                return SyncPoint(l, r, attempt.snapshot)
            attempt.rollback()
            r += 1
        l += 1
    logger.debug(f"[SYNC] No synchronization point after L{index_l}/R{index_r}")
    return None
