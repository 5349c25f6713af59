"""
Reference structural comparator.

Compares two basic blocks instruction by instruction, pairing values through
serial numbers: two non-constant values are equal iff they were assigned the
same serial number. Values seen for the first time on both sides at the same
position get a fresh shared serial number, and the pair is recorded in
`mapped_values_by_sn`.

When two instructions differ and SMT comparison is enabled, the diverging
part is handed to SmtBlockComparator, which either proves the snippets equal
and lets the walk resume after them, or reports the blocks as different.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..config import SmtConfig
from ..ir.values import BasicBlock, Constant, InstCursor, Instruction, Opcode, Value
from .controller import SmtBlockComparator
from .search import is_ignorable

logger = logging.getLogger(__name__)


class DifferentialBlockComparator:
    """
    Outer comparator implementing the OuterComparator protocol.

    skip_predicate: extra instructions to ignore on both sides (debug info is
        always ignored).
    """

    def __init__(
        self,
        config: Optional[SmtConfig] = None,
        skip_predicate: Optional[Callable[[Instruction], bool]] = None,
        smt_enabled: bool = True,
    ):
        self.sn_map_l: Dict[Value, int] = {}
        self.sn_map_r: Dict[Value, int] = {}
        self.mapped_values_by_sn: Dict[int, Tuple[Value, Value]] = {}
        self.try_inline: Any = None
        self.skip_predicate = skip_predicate
        self.smt_enabled = smt_enabled
        self.smt = SmtBlockComparator(self, config)
        self._serials = itertools.count()
        self._last_serials: List[int] = []

    # ------------------------------------------------------------------
    # Value mapping
    # ------------------------------------------------------------------

    def _new_pair(self, left: Value, right: Value) -> int:
        sn = next(self._serials)
        self.sn_map_l[left] = sn
        self.sn_map_r[right] = sn
        self.mapped_values_by_sn[sn] = (left, right)
        self._last_serials.append(sn)
        return sn

    def map_arguments(self, args_l: Sequence[Value], args_r: Sequence[Value]) -> None:
        """Pair function inputs positionally."""
        if len(args_l) != len(args_r):
            raise ValueError(f"argument count differs: {len(args_l)} vs {len(args_r)}")
        for left, right in zip(args_l, args_r):
            self._new_pair(left, right)
        self._last_serials = []

    def cmp_values(self, left: Value, right: Value) -> int:
        """0 if the values correspond, 1 otherwise."""
        if isinstance(left, Constant) or isinstance(right, Constant):
            if isinstance(left, Constant) and isinstance(right, Constant) and left.same_value(right):
                return 0
            return 1
        if left.type != right.type:
            return 1
        sn_l = self.sn_map_l.get(left)
        sn_r = self.sn_map_r.get(right)
        if sn_l is None and sn_r is None:
            self._new_pair(left, right)
            return 0
        return 0 if sn_l == sn_r else 1

    # ------------------------------------------------------------------
    # Instructions
    # ------------------------------------------------------------------

    def cmp_operations(self, left: Instruction, right: Instruction) -> int:
        if left.opcode != right.opcode or left.type != right.type:
            return 1
        if len(left.operands) != len(right.operands):
            return 1
        if (left.predicate, left.nsw, left.nuw, left.exact) != (
            right.predicate, right.nsw, right.nuw, right.exact
        ):
            return 1
        if left.opcode == Opcode.CALL and left.callee != right.callee:
            # Different callees might still match once inlined.
            self.try_inline = (left, right)
            return 1
        return 0

    def cmp_instructions(self, left: Instruction, right: Instruction) -> int:
        """Compare operations and operands, then pair the results."""
        self._last_serials = []
        if self.cmp_operations(left, right):
            return 1
        for op_l, op_r in zip(left.operands, right.operands):
            if self.cmp_values(op_l, op_r):
                return 1
        if left.has_result:
            return self.cmp_values(left, right)
        return 0

    def undo_last_inst_compare(self, cursor_l: InstCursor, cursor_r: InstCursor) -> None:
        """Drop the pairs created by the last cmp_instructions call."""
        for sn in self._last_serials:
            pair = self.mapped_values_by_sn.pop(sn, None)
            if pair is None:
                continue
            left, right = pair
            if self.sn_map_l.get(left) == sn:
                del self.sn_map_l[left]
            if self.sn_map_r.get(right) == sn:
                del self.sn_map_r[right]
        self._last_serials = []

    def may_skip_instruction(self, inst: Instruction) -> bool:
        return bool(self.skip_predicate is not None and self.skip_predicate(inst))

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def cmp_basic_blocks_from(
        self,
        block_l: BasicBlock,
        block_r: BasicBlock,
        index_l: int,
        index_r: int,
        no_smt: bool = False,
    ) -> int:
        """
        Compare the rest of two blocks from the given positions.

        Returns 0 when equal. Errors raised by the SMT comparison propagate.
        """
        cursor_l = InstCursor(block_l, index_l)
        cursor_r = InstCursor(block_r, index_r)
        while True:
            while not cursor_l.at_end and is_ignorable(self, cursor_l.current):
                cursor_l.advance()
            while not cursor_r.at_end and is_ignorable(self, cursor_r.current):
                cursor_r.advance()
            if cursor_l.at_end or cursor_r.at_end:
                return 0 if cursor_l.at_end and cursor_r.at_end else 1

            if self.cmp_instructions(cursor_l.current, cursor_r.current):
                if no_smt or not self.smt_enabled:
                    return 1
                logger.debug(
                    f"[COMPARE] Structural mismatch: {cursor_l.current} <> {cursor_r.current}"
                )
                if self.smt.compare(cursor_l, cursor_r):
                    return 1
            cursor_l.advance()
            cursor_r.advance()

    def cmp_basic_blocks(self, block_l: BasicBlock, block_r: BasicBlock) -> int:
        return self.cmp_basic_blocks_from(block_l, block_r, 0, 0)

    def compare_functions(
        self,
        args_l: Sequence[Value],
        block_l: BasicBlock,
        args_r: Sequence[Value],
        block_r: BasicBlock,
    ) -> int:
        """Compare two single-block functions; 0 when equal."""
        self.map_arguments(args_l, args_r)
        return self.cmp_basic_blocks(block_l, block_r)
