"""
smtblocks: SMT-based equivalence of diverging code snippets.

Sub-step of a whole-program equivalence checker. When a structural,
instruction-by-instruction comparison of two function versions fails, this
package:
1. searches for a later synchronization point where the two sides agree again,
2. encodes the snippets before that point into Z3 formulas,
3. proves them equal by unsatisfiability of "some output differs".

Verdicts: 0 = proven equivalent, 1 = not proven equivalent.
"""

__version__ = "0.1.0"

from .config import SmtConfig
from .errors import (
    SnippetComparisonError,
    NoSynchronizationPoint,
    UnsupportedOperation,
    OutOfTime,
)
from .comparison.controller import SmtBlockComparator
from .comparison.structural import DifferentialBlockComparator

__all__ = [
    "SmtConfig",
    "SnippetComparisonError",
    "NoSynchronizationPoint",
    "UnsupportedOperation",
    "OutOfTime",
    "SmtBlockComparator",
    "DifferentialBlockComparator",
]
