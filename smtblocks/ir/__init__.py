"""
Program representation read by the comparators.
"""

from .types import IRType, TypeKind, int_type, VOID, I1, I8, I16, I32, I64, FLOAT, DOUBLE, PTR, LABEL
from .values import (
    Value,
    Argument,
    Constant,
    Instruction,
    BasicBlock,
    InstCursor,
    Opcode,
    CmpPredicate,
)
from .builder import BlockBuilder, const

__all__ = [
    "IRType",
    "TypeKind",
    "int_type",
    "VOID",
    "I1",
    "I8",
    "I16",
    "I32",
    "I64",
    "FLOAT",
    "DOUBLE",
    "PTR",
    "LABEL",
    "Value",
    "Argument",
    "Constant",
    "Instruction",
    "BasicBlock",
    "InstCursor",
    "Opcode",
    "CmpPredicate",
    "BlockBuilder",
    "const",
]
