"""
Failure conditions of a snippet comparison.

All three abort the current comparison without retries. They are kept
distinct so that the caller can report a structural mismatch, an
unsupported construct and a solver timeout as different diagnostics.
"""

from typing import Optional


class SnippetComparisonError(Exception):
    """Base class of conditions that end a snippet comparison."""


class NoSynchronizationPoint(SnippetComparisonError):
    """No pair of positions where the structural comparison agrees again."""

    def __init__(self, message: str = "No synchronization point found"):
        super().__init__(message)


class UnsupportedOperation(SnippetComparisonError):
    """An instruction, operand type or call target has no SMT model."""


class OutOfTime(SnippetComparisonError):
    """The solver time budget of the top-level comparison is exhausted."""

    def __init__(self, budget_seconds: Optional[float] = None):
        self.budget_seconds = budget_seconds
        if budget_seconds is None:
            super().__init__("SMT solver ran out of time")
        else:
            super().__init__(f"SMT solver ran out of time (budget {budget_seconds}s)")
