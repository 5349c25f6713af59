"""
Synchronization search, backtracking controller and the structural
comparator they cooperate with.
"""

from .interface import OuterComparator
from .mapping import MappingSnapshot, MappingAttempt
from .search import SyncPoint, find_snippet_end
from .controller import SmtBlockComparator
from .structural import DifferentialBlockComparator

__all__ = [
    "OuterComparator",
    "MappingSnapshot",
    "MappingAttempt",
    "SyncPoint",
    "find_snippet_end",
    "SmtBlockComparator",
    "DifferentialBlockComparator",
]
