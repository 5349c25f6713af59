"""
Z3 encoding of snippets and the equivalence decision.
"""

from .budget import TimeBudget
from .encoder import SnippetEncoder, LEFT_PREFIX, RIGHT_PREFIX, UNINTERPRETED_MATH
from .decision import Snippet, compare_snippets, output_pairs, EQUAL, NOT_EQUAL

__all__ = [
    "TimeBudget",
    "SnippetEncoder",
    "LEFT_PREFIX",
    "RIGHT_PREFIX",
    "UNINTERPRETED_MATH",
    "Snippet",
    "compare_snippets",
    "output_pairs",
    "EQUAL",
    "NOT_EQUAL",
]
