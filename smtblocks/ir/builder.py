"""
Convenience construction of straight-line basic blocks.

    b = BlockBuilder("entry")
    s = b.add(x, y, name="s")
    b.ret(s)
    block = b.block
"""

from __future__ import annotations

from typing import Optional, Union

from .types import IRType, I1
from .values import (
    BasicBlock, CmpPredicate, Constant, Instruction, Opcode, Value, void_instruction,
)

Number = Union[bool, int, float]


def const(type: IRType, value: Number) -> Constant:
    return Constant(type, value)


def _operand_type(*operands: Union[Value, Number]) -> IRType:
    """Type of the first IR value among `operands`; numbers take that type."""
    for operand in operands:
        if isinstance(operand, Value):
            return operand.type
    raise TypeError("at least one operand must be an IR value; wrap numbers with const()")


class BlockBuilder:
    """
    Appends instructions to a block.

    Operands may be values or Python numbers, as long as each operation has at
    least one value operand to take the type from.
    """

    def __init__(self, name: str = "entry"):
        self.block = BasicBlock(name)

    def _value(self, operand: Union[Value, Number], type: IRType) -> Value:
        if isinstance(operand, Value):
            return operand
        return Constant(type, operand)

    def emit(self, inst: Instruction) -> Instruction:
        return self.block.append(inst)

    def binary(
        self,
        opcode: Opcode,
        lhs: Union[Value, Number],
        rhs: Union[Value, Number],
        name: Optional[str] = None,
        **flags,
    ) -> Instruction:
        type = _operand_type(lhs, rhs)
        return self.emit(Instruction(
            opcode, type, (self._value(lhs, type), self._value(rhs, type)), name, **flags
        ))

    def add(self, lhs, rhs, name=None, **flags) -> Instruction:
        return self.binary(Opcode.ADD, lhs, rhs, name, **flags)

    def sub(self, lhs, rhs, name=None, **flags) -> Instruction:
        return self.binary(Opcode.SUB, lhs, rhs, name, **flags)

    def mul(self, lhs, rhs, name=None, **flags) -> Instruction:
        return self.binary(Opcode.MUL, lhs, rhs, name, **flags)

    def shl(self, lhs, rhs, name=None, **flags) -> Instruction:
        return self.binary(Opcode.SHL, lhs, rhs, name, **flags)

    def fadd(self, lhs, rhs, name=None) -> Instruction:
        return self.binary(Opcode.FADD, lhs, rhs, name)

    def fmul(self, lhs, rhs, name=None) -> Instruction:
        return self.binary(Opcode.FMUL, lhs, rhs, name)

    def fneg(self, operand: Value, name: Optional[str] = None) -> Instruction:
        return self.emit(Instruction(Opcode.FNEG, operand.type, (operand,), name))

    def icmp(self, predicate: CmpPredicate, lhs, rhs, name=None) -> Instruction:
        type = _operand_type(lhs, rhs)
        return self.emit(Instruction(
            Opcode.ICMP, I1, (self._value(lhs, type), self._value(rhs, type)), name,
            predicate=predicate,
        ))

    def fcmp(self, predicate: CmpPredicate, lhs, rhs, name=None) -> Instruction:
        type = _operand_type(lhs, rhs)
        return self.emit(Instruction(
            Opcode.FCMP, I1, (self._value(lhs, type), self._value(rhs, type)), name,
            predicate=predicate,
        ))

    def cast(self, opcode: Opcode, operand: Value, dest: IRType, name=None) -> Instruction:
        return self.emit(Instruction(opcode, dest, (operand,), name))

    def select(self, cond, true_value, false_value, name=None) -> Instruction:
        type = _operand_type(true_value, false_value)
        return self.emit(Instruction(
            Opcode.SELECT, type,
            (self._value(cond, I1), self._value(true_value, type), self._value(false_value, type)),
            name,
        ))

    def call(self, callee: str, type: IRType, args=(), name=None) -> Instruction:
        return self.emit(Instruction(Opcode.CALL, type, tuple(args), name, callee=callee))

    def debug_value(self, value: Value) -> Instruction:
        """llvm.dbg.value-style marker, skipped by every comparison."""
        return self.emit(void_instruction(Opcode.CALL, (value,), callee="llvm.dbg.value"))

    def ret(self, value: Optional[Value] = None) -> Instruction:
        return self.emit(void_instruction(Opcode.RET, () if value is None else (value,)))
