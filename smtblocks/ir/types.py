"""
Static types of IR values.

Only a handful of types have an SMT counterpart: i1 (Bool), iN (BitVec N),
float (IEEE binary32) and double (IEEE binary64). The remaining kinds exist so
that blocks can carry terminators, pointers and labels; encoding an operand of
such a type is an unsupported operation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class TypeKind(IntEnum):
    """Type discriminator."""
    VOID = 0
    INTEGER = 1
    FLOAT = 2
    DOUBLE = 3
    POINTER = 4
    LABEL = 5


@dataclass(frozen=True)
class IRType:
    kind: TypeKind
    width: int = 0  # bit width, integers only

    def __post_init__(self):
        if self.kind == TypeKind.INTEGER and self.width <= 0:
            raise ValueError(f"integer type needs a positive width, got {self.width}")

    @property
    def is_integer(self) -> bool:
        return self.kind == TypeKind.INTEGER

    @property
    def is_bool(self) -> bool:
        return self.kind == TypeKind.INTEGER and self.width == 1

    @property
    def is_floating(self) -> bool:
        return self.kind in (TypeKind.FLOAT, TypeKind.DOUBLE)

    @property
    def is_void(self) -> bool:
        return self.kind == TypeKind.VOID

    @property
    def bit_width(self) -> int:
        """Width in bits of integer and floating types."""
        if self.kind == TypeKind.FLOAT:
            return 32
        if self.kind == TypeKind.DOUBLE:
            return 64
        return self.width

    def __str__(self) -> str:
        if self.kind == TypeKind.INTEGER:
            return f"i{self.width}"
        return {
            TypeKind.VOID: "void",
            TypeKind.FLOAT: "float",
            TypeKind.DOUBLE: "double",
            TypeKind.POINTER: "ptr",
            TypeKind.LABEL: "label",
        }[self.kind]


def int_type(width: int) -> IRType:
    return IRType(TypeKind.INTEGER, width)


VOID = IRType(TypeKind.VOID)
I1 = int_type(1)
I8 = int_type(8)
I16 = int_type(16)
I32 = int_type(32)
I64 = int_type(64)
FLOAT = IRType(TypeKind.FLOAT)
DOUBLE = IRType(TypeKind.DOUBLE)
PTR = IRType(TypeKind.POINTER)
LABEL = IRType(TypeKind.LABEL)
