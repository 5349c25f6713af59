"""
Snapshot/restore discipline for the outer comparator's mapping state.

Speculative comparisons mutate the serial-number maps, the cross-mapped
values table and the inlining token. Every speculative step runs inside an
explicit MappingAttempt that the caller must either commit (keep the
mutations) or roll back (restore the snapshot by value).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from ..ir.values import Value
from .interface import OuterComparator


@dataclass(frozen=True, eq=False)
class MappingSnapshot:
    """Value copy of the outer comparator's mapping state."""
    sn_map_l: Dict[Value, int]
    sn_map_r: Dict[Value, int]
    mapped_values_by_sn: Dict[int, Tuple[Value, Value]]
    try_inline: Any

    @classmethod
    def take(cls, outer: OuterComparator) -> "MappingSnapshot":
        return cls(
            sn_map_l=dict(outer.sn_map_l),
            sn_map_r=dict(outer.sn_map_r),
            mapped_values_by_sn=dict(outer.mapped_values_by_sn),
            try_inline=outer.try_inline,
        )

    def restore(self, outer: OuterComparator) -> None:
        """Overwrite the outer state with fresh copies of this snapshot."""
        outer.sn_map_l = dict(self.sn_map_l)
        outer.sn_map_r = dict(self.sn_map_r)
        outer.mapped_values_by_sn = dict(self.mapped_values_by_sn)
        outer.try_inline = self.try_inline

    def matches(self, outer: OuterComparator) -> bool:
        """True if the outer state equals this snapshot by value."""
        return (
            outer.sn_map_l == self.sn_map_l
            and outer.sn_map_r == self.sn_map_r
            and outer.mapped_values_by_sn == self.mapped_values_by_sn
            and outer.try_inline == self.try_inline
        )


class MappingAttempt:
    """
    One speculative step over the outer mapping state.

    Created open; exactly one of commit() or rollback() must follow.
    """

    def __init__(self, outer: OuterComparator):
        self.outer = outer
        self.snapshot = MappingSnapshot.take(outer)
        self._outcome = None

    def commit(self) -> None:
        """Keep the mutations made during the attempt."""
        self._close("committed")

    def rollback(self) -> None:
        """Restore the state captured when the attempt began."""
        self._close("rolled back")
        self.snapshot.restore(self.outer)

    def _close(self, outcome: str) -> None:
        if self._outcome is not None:
            raise RuntimeError(f"Mapping attempt already {self._outcome}")
        self._outcome = outcome
