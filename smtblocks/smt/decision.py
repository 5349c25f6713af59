"""
Equivalence decision for a pair of snippets.

The query is a conjunction of
  1. equality of the snippets' inputs, taken from the outer value mapping,
  2. the encodings of the left and right instructions,
  3. the negated postcondition: some pair of outputs differs.
If it is UNSAT, no inputs make the outputs differ and the snippets are equal.

Outputs are the pairs of the cross-mapped table that involve a value computed
inside one of the snippets. Those pairs are recorded by the structural
comparison that established the synchronization point, i.e. where the code
after the snippets starts using their results.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Mapping, Tuple

import z3

from ..errors import UnsupportedOperation
from ..ir.values import BasicBlock, Instruction, Value
from .budget import TimeBudget
from .encoder import LEFT_PREFIX, RIGHT_PREFIX, SnippetEncoder

logger = logging.getLogger(__name__)

EQUAL = 0
NOT_EQUAL = 1


@dataclass(frozen=True)
class Snippet:
    """Half-open range [start, end) of instructions of one block."""
    block: BasicBlock
    start: int
    end: int

    @property
    def is_empty(self) -> bool:
        return self.start >= self.end

    @property
    def instructions(self) -> List[Instruction]:
        return self.block.instructions[self.start:self.end]

    def results(self) -> List[Instruction]:
        return [inst for inst in self.instructions if inst.has_result and not inst.is_debug_info]

    def __str__(self):
        return f"{self.block.name}[{self.start}:{self.end})"


def output_pairs(
    left: Snippet,
    right: Snippet,
    mapped_values_by_sn: Mapping[int, Tuple[Value, Value]],
) -> List[Tuple[Value, Value]]:
    """Cross-mapped pairs with a member produced inside one of the snippets."""
    produced_l = set(left.results())
    produced_r = set(right.results())
    return [
        (value_l, value_r)
        for _, (value_l, value_r) in sorted(mapped_values_by_sn.items(), key=lambda item: item[0])
        if value_l in produced_l or value_r in produced_r
    ]


def compare_snippets(
    left: Snippet,
    right: Snippet,
    baseline_sn_map_l: Mapping[Value, int],
    mapped_values_by_sn: Mapping[int, Tuple[Value, Value]],
    budget: TimeBudget,
) -> int:
    """
    Decide whether two snippets compute the same outputs.

    Args:
        left, right: the snippets to compare
        baseline_sn_map_l: left serial-number map from before the structural
            comparison that found the synchronization point; used to seed the
            inputs of left instructions
        mapped_values_by_sn: current cross-mapped table (after the search)
        budget: remaining solver time

    Returns:
        EQUAL (0) if proven equivalent, NOT_EQUAL (1) otherwise.

    Raises:
        OutOfTime: the budget does not cover the time spent on a SAT/UNKNOWN call
        UnsupportedOperation: an instruction cannot be encoded or Z3 failed
    """
    # At least one instruction per side, otherwise there are no operands to
    # map and no outputs to compare.
    if left.is_empty or right.is_empty:
        logger.debug(f"[SMT] Empty snippet {left} / {right}")
        return NOT_EQUAL

    outputs = output_pairs(left, right, mapped_values_by_sn)
    if not outputs:
        logger.debug(f"[SMT] No mapped outputs for {left} / {right}")
        return NOT_EQUAL

    solver = z3.Solver()
    timeout_ms = budget.solver_timeout_ms()
    if timeout_ms is not None:
        solver.set("timeout", timeout_ms)

    encoder = SnippetEncoder(solver)
    try:
        encoder.encode_snippet(
            left.block, left.start, left.end, LEFT_PREFIX,
            sn_map=baseline_sn_map_l,
            mapped_values_by_sn=mapped_values_by_sn,
        )
        encoder.encode_snippet(right.block, right.start, right.end, RIGHT_PREFIX)

        differs = [
            encoder.value_expr(value_l, LEFT_PREFIX) != encoder.value_expr(value_r, RIGHT_PREFIX)
            for value_l, value_r in outputs
        ]
        solver.add(differs[0] if len(differs) == 1 else z3.Or(*differs))

        logger.debug(
            f"[SMT] Checking {left} against {right}: {encoder.encoded} instructions, "
            f"{len(outputs)} outputs"
        )
        started = budget.clock()
        result = solver.check()
    except z3.Z3Exception as e:
        raise UnsupportedOperation(f"Z3 error: {e}") from e

    if result == z3.unsat:
        logger.info(f"[SMT] Snippets {left} and {right} are equal")
        return EQUAL

    # SAT or UNKNOWN: another synchronization point may be tried, so the
    # time spent counts against the budget.
    budget.charge(budget.clock() - started)
    logger.debug(f"[SMT] Snippets {left} and {right} not proven equal ({result})")
    return NOT_EQUAL
