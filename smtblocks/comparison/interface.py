"""
Capabilities the SMT core needs from the outer structural comparator.
"""

from __future__ import annotations

from typing import Any, Dict, Protocol, Tuple

from ..ir.values import BasicBlock, InstCursor, Instruction, Value


class OuterComparator(Protocol):
    """
    Interface of the instruction-by-instruction comparator driving the core.

    The serial-number maps, the cross-mapped table and the inlining token are
    owned by the outer comparator. The core reads and overwrites them, always
    restoring them by value before returning.
    """

    sn_map_l: Dict[Value, int]
    sn_map_r: Dict[Value, int]
    mapped_values_by_sn: Dict[int, Tuple[Value, Value]]
    try_inline: Any

    def may_skip_instruction(self, inst: Instruction) -> bool:
        """True for instructions the comparison ignores (debug info and such)."""

    def cmp_basic_blocks_from(
        self,
        block_l: BasicBlock,
        block_r: BasicBlock,
        index_l: int,
        index_r: int,
        no_smt: bool = False,
    ) -> int:
        """
        Compare the rest of both blocks starting at the given positions.

        Returns 0 when equal. With `no_smt` the comparison must not call back
        into the SMT core.
        """

    def undo_last_inst_compare(self, cursor_l: InstCursor, cursor_r: InstCursor) -> None:
        """Forget the mappings recorded by the last (failed) instruction comparison."""
