"""
Values, instructions and basic blocks of the compared program representation.

The representation is produced upstream (by whatever loads the two program
versions) and only read here. Values compare and hash by identity: two
distinct instructions computing the same thing are still different values,
which is what the serial-number maps of the outer comparator rely on.
"""

from __future__ import annotations

import itertools
import math
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator, List, Optional, Sequence, Union

from .types import IRType, VOID

_uids = itertools.count(1)


class Opcode(IntEnum):
    """Instruction opcodes."""
    # Terminators
    RET = 1
    BR = 2
    SWITCH = 3
    UNREACHABLE = 4
    # Unary
    FNEG = 10
    # Binary
    ADD = 20
    FADD = 21
    SUB = 22
    FSUB = 23
    MUL = 24
    FMUL = 25
    UDIV = 26
    SDIV = 27
    FDIV = 28
    UREM = 29
    SREM = 30
    FREM = 31
    SHL = 32
    LSHR = 33
    ASHR = 34
    AND = 35
    OR = 36
    XOR = 37
    # Memory
    ALLOCA = 50
    LOAD = 51
    STORE = 52
    GETELEMENTPTR = 53
    # Casts
    TRUNC = 60
    ZEXT = 61
    SEXT = 62
    FPTOUI = 63
    FPTOSI = 64
    UITOFP = 65
    SITOFP = 66
    FPTRUNC = 67
    FPEXT = 68
    PTRTOINT = 69
    INTTOPTR = 70
    BITCAST = 71
    # Other
    ICMP = 80
    FCMP = 81
    PHI = 82
    CALL = 83
    SELECT = 84


TERMINATOR_OPCODES = frozenset({Opcode.RET, Opcode.BR, Opcode.SWITCH, Opcode.UNREACHABLE})

CAST_OPCODES = frozenset({
    Opcode.TRUNC, Opcode.ZEXT, Opcode.SEXT, Opcode.FPTOUI, Opcode.FPTOSI,
    Opcode.UITOFP, Opcode.SITOFP, Opcode.FPTRUNC, Opcode.FPEXT,
    Opcode.PTRTOINT, Opcode.INTTOPTR, Opcode.BITCAST,
})

# Opcodes that may carry nsw/nuw.
OVERFLOWING_OPCODES = frozenset({Opcode.ADD, Opcode.SUB, Opcode.MUL, Opcode.SHL})

# Opcodes that may carry exact.
EXACT_OPCODES = frozenset({Opcode.UDIV, Opcode.SDIV, Opcode.LSHR, Opcode.ASHR})


class CmpPredicate(IntEnum):
    """Comparison predicates (numbering follows the usual fcmp/icmp codes)."""
    FCMP_FALSE = 0
    FCMP_OEQ = 1
    FCMP_OGT = 2
    FCMP_OGE = 3
    FCMP_OLT = 4
    FCMP_OLE = 5
    FCMP_ONE = 6
    FCMP_ORD = 7
    FCMP_UNO = 8
    FCMP_UEQ = 9
    FCMP_UGT = 10
    FCMP_UGE = 11
    FCMP_ULT = 12
    FCMP_ULE = 13
    FCMP_UNE = 14
    FCMP_TRUE = 15
    ICMP_EQ = 32
    ICMP_NE = 33
    ICMP_UGT = 34
    ICMP_UGE = 35
    ICMP_ULT = 36
    ICMP_ULE = 37
    ICMP_SGT = 38
    ICMP_SGE = 39
    ICMP_SLT = 40
    ICMP_SLE = 41

    @property
    def is_fp(self) -> bool:
        return self.value <= CmpPredicate.FCMP_TRUE.value

    @property
    def is_int(self) -> bool:
        return self.value >= CmpPredicate.ICMP_EQ.value


class Value:
    """
    Base class of everything that can be an operand.

    `uid` is unique within the process and is what symbolic variable names
    are derived from.
    """

    def __init__(self, type: IRType, name: Optional[str] = None):
        self.type = type
        self.name = name
        self.uid = next(_uids)

    @property
    def is_constant(self) -> bool:
        return False

    def ref(self) -> str:
        """Operand spelling used in dumps."""
        return f"%{self.name}" if self.name else f"%v{self.uid}"

    def __repr__(self):
        return f"{type(self).__name__}({self.type} {self.ref()})"


class Argument(Value):
    """Function argument (a free input of the compared code)."""


class Constant(Value):
    """Literal operand of integer or floating type."""

    def __init__(self, type: IRType, value: Union[bool, int, float]):
        super().__init__(type)
        if type.is_floating:
            value = float(value)
        elif type.is_integer:
            value = int(value)
        self.value = value

    @property
    def is_constant(self) -> bool:
        return True

    def signed_value(self) -> int:
        """Integer payload interpreted as a signed number of the type's width."""
        width = self.type.width
        v = int(self.value) & ((1 << width) - 1)
        if width > 1 and v >> (width - 1):
            v -= 1 << width
        return v

    def same_value(self, other: "Constant") -> bool:
        """Bit-level equality (NaN equals NaN, 0.0 differs from -0.0)."""
        if self.type != other.type:
            return False
        if self.type.is_floating:
            a, b = self.value, other.value
            if math.isnan(a) or math.isnan(b):
                return math.isnan(a) and math.isnan(b)
            return a.hex() == b.hex()
        if self.type.is_integer:
            mask = (1 << self.type.width) - 1
            return (int(self.value) & mask) == (int(other.value) & mask)
        return self.value == other.value

    def ref(self) -> str:
        if self.type.is_bool:
            return "true" if self.value & 1 else "false"
        return repr(self.value)


class Instruction(Value):
    """
    One operation of a basic block.

    The instruction is its own result value. `callee` is set for calls,
    `predicate` for comparisons; `nsw`, `nuw` and `exact` are the
    no-signed-wrap, no-unsigned-wrap and exact flags.
    """

    def __init__(
        self,
        opcode: Opcode,
        type: IRType,
        operands: Sequence[Value] = (),
        name: Optional[str] = None,
        *,
        predicate: Optional[CmpPredicate] = None,
        callee: Optional[str] = None,
        nsw: bool = False,
        nuw: bool = False,
        exact: bool = False,
    ):
        if (nsw or nuw) and opcode not in OVERFLOWING_OPCODES:
            raise ValueError(f"{opcode.name.lower()} cannot carry nsw/nuw")
        if exact and opcode not in EXACT_OPCODES:
            raise ValueError(f"{opcode.name.lower()} cannot carry exact")
        if opcode == Opcode.ICMP and not (predicate is not None and predicate.is_int):
            raise ValueError(f"icmp needs an integer predicate, got {predicate!r}")
        if opcode == Opcode.FCMP and not (predicate is not None and predicate.is_fp):
            raise ValueError(f"fcmp needs a floating predicate, got {predicate!r}")
        super().__init__(type, name)
        self.opcode = opcode
        self.operands: tuple = tuple(operands)
        self.predicate = predicate
        self.callee = callee
        self.nsw = nsw
        self.nuw = nuw
        self.exact = exact
        self.parent: Optional["BasicBlock"] = None

    @property
    def is_terminator(self) -> bool:
        return self.opcode in TERMINATOR_OPCODES

    @property
    def is_debug_info(self) -> bool:
        return self.opcode == Opcode.CALL and bool(self.callee) and self.callee.startswith("llvm.dbg.")

    @property
    def has_result(self) -> bool:
        return not self.type.is_void

    def operand(self, i: int) -> Value:
        return self.operands[i]

    def __str__(self):
        parts = []
        if self.has_result:
            parts.append(f"{self.ref()} =")
        parts.append(self.opcode.name.lower())
        if self.nuw:
            parts.append("nuw")
        if self.nsw:
            parts.append("nsw")
        if self.exact:
            parts.append("exact")
        if self.predicate is not None:
            parts.append(self.predicate.name.split("_", 1)[1].lower())
        parts.append(str(self.type))
        if self.callee:
            parts.append(f"@{self.callee}")
        parts.append(", ".join(op.ref() for op in self.operands))
        return " ".join(parts)


class BasicBlock:
    """Ordered sequence of instructions ending in a terminator."""

    def __init__(self, name: str = "", instructions: Sequence[Instruction] = ()):
        self.name = name
        self.instructions: List[Instruction] = []
        for inst in instructions:
            self.append(inst)

    def append(self, inst: Instruction) -> Instruction:
        inst.parent = self
        self.instructions.append(inst)
        return inst

    def __len__(self) -> int:
        return len(self.instructions)

    def __getitem__(self, index: int) -> Instruction:
        return self.instructions[index]

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self.instructions)

    def index_of(self, inst: Instruction) -> int:
        for i, candidate in enumerate(self.instructions):
            if candidate is inst:
                return i
        raise ValueError(f"{inst!r} is not in block {self.name!r}")

    def __repr__(self):
        return f"BasicBlock({self.name!r}, {len(self.instructions)} instructions)"


@dataclass(eq=False)
class InstCursor:
    """
    Mutable position inside a basic block.

    `index == len(block)` is the end position. The comparators move cursors
    in place, mirroring how the structural driver walks both blocks.
    """
    block: BasicBlock
    index: int = 0

    @property
    def at_end(self) -> bool:
        return self.index >= len(self.block)

    @property
    def current(self) -> Instruction:
        if self.index < 0 or self.at_end:
            raise IndexError(f"cursor at {self.index} is outside block {self.block.name!r}")
        return self.block[self.index]

    def advance(self, steps: int = 1) -> None:
        self.index += steps

    def retreat(self, steps: int = 1) -> None:
        self.index -= steps

    def copy(self) -> "InstCursor":
        return InstCursor(self.block, self.index)


def void_instruction(opcode: Opcode, operands: Sequence[Value] = (), **kwargs) -> Instruction:
    """Instruction without a result value (terminators, stores, void calls)."""
    return Instruction(opcode, VOID, operands, **kwargs)
