"""
Z3 encoding of straight-line instruction snippets.

Every instruction becomes exactly one assertion relating its result variable
to its operands. Thanks to SSA form, each value gets one variable named after
its identity, prefixed by the side it belongs to:

    L_<uid>   value of the left (old) version
    R_<uid>   value of the right (new) version

Sorts:
    i1       -> Bool
    iN       -> BitVec(N)
    float    -> FP(8, 24)
    double   -> FP(11, 53)

Undefined results (poison) are modelled by leaving the result variable free:
an instruction whose result is only defined under a precondition encodes to
`precondition => res == value`.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Dict, Mapping, Optional, Tuple

import z3

from ..errors import UnsupportedOperation
from ..ir.types import IRType, TypeKind
from ..ir.values import CAST_OPCODES, BasicBlock, CmpPredicate, Constant, Instruction, Opcode, Value

logger = logging.getLogger(__name__)

LEFT_PREFIX = "L_"
RIGHT_PREFIX = "R_"

# Pure math functions modelled as uninterpreted double -> double functions.
UNINTERPRETED_MATH = frozenset({
    "acos", "asin", "atan", "cos", "cosh", "sin", "sinh", "tanh",
    "exp", "log", "log10", "sqrt",
})

FMULADD_PREFIX = "llvm.fmuladd"
FMA_PREFIX = "llvm.fma"


def fp_sort(type: IRType) -> z3.FPSortRef:
    if type.kind == TypeKind.FLOAT:
        return z3.Float32()
    if type.kind == TypeKind.DOUBLE:
        return z3.Float64()
    raise UnsupportedOperation(f"Unsupported floating type {type}")


def make_variable(name: str, type: IRType) -> z3.ExprRef:
    """Free variable of the sort matching `type`."""
    if type.is_floating:
        return z3.FP(name, fp_sort(type))
    if type.is_integer:
        if type.width == 1:
            return z3.Bool(name)
        return z3.BitVec(name, type.width)
    raise UnsupportedOperation(f"Unsupported operand type {type}")


def make_constant(constant: Constant) -> z3.ExprRef:
    """Literal of the sort matching the constant's type."""
    type = constant.type
    if type.is_integer:
        if type.width == 1:
            return z3.BoolVal(bool(constant.value & 1))
        return z3.BitVecVal(constant.signed_value(), type.width)
    if type.is_floating:
        sort = fp_sort(type)
        value = constant.value
        if math.isnan(value):
            return z3.fpNaN(sort)
        if math.isinf(value):
            return z3.fpPlusInfinity(sort) if value > 0 else z3.fpMinusInfinity(sort)
        if value == 0.0:
            return z3.fpZero(sort, math.copysign(1.0, value) < 0)
        return z3.FPVal(value, sort)
    raise UnsupportedOperation(f"Unsupported constant type {type}")


def _as_bv(e: z3.ExprRef) -> z3.ExprRef:
    """Booleans become 1-bit vectors; bit-vectors pass through."""
    if z3.is_bool(e):
        return z3.If(e, z3.BitVecVal(1, 1), z3.BitVecVal(0, 1))
    return e


def _from_bv(e: z3.ExprRef, type: IRType) -> z3.ExprRef:
    """Inverse of _as_bv for i1 results."""
    if type.is_bool:
        return e == z3.BitVecVal(1, 1)
    return e


_RNE = z3.RNE
_RTZ = z3.RTZ

_FP_RELATIONS: Dict[CmpPredicate, Callable] = {
    CmpPredicate.FCMP_OEQ: z3.fpEQ,
    CmpPredicate.FCMP_UEQ: z3.fpEQ,
    CmpPredicate.FCMP_ONE: z3.fpNEQ,
    CmpPredicate.FCMP_UNE: z3.fpNEQ,
    CmpPredicate.FCMP_OGT: z3.fpGT,
    CmpPredicate.FCMP_UGT: z3.fpGT,
    CmpPredicate.FCMP_OGE: z3.fpGEQ,
    CmpPredicate.FCMP_UGE: z3.fpGEQ,
    CmpPredicate.FCMP_OLT: z3.fpLT,
    CmpPredicate.FCMP_ULT: z3.fpLT,
    CmpPredicate.FCMP_OLE: z3.fpLEQ,
    CmpPredicate.FCMP_ULE: z3.fpLEQ,
}

_FP_ORDERED = frozenset({
    CmpPredicate.FCMP_OEQ, CmpPredicate.FCMP_ONE, CmpPredicate.FCMP_OGT,
    CmpPredicate.FCMP_OGE, CmpPredicate.FCMP_OLT, CmpPredicate.FCMP_OLE,
})

# Z3 operator overloads are signed; unsigned predicates need explicit functions.
_INT_RELATIONS: Dict[CmpPredicate, Callable] = {
    CmpPredicate.ICMP_EQ: lambda a, b: a == b,
    CmpPredicate.ICMP_NE: lambda a, b: a != b,
    CmpPredicate.ICMP_SGT: lambda a, b: a > b,
    CmpPredicate.ICMP_SGE: lambda a, b: a >= b,
    CmpPredicate.ICMP_SLT: lambda a, b: a < b,
    CmpPredicate.ICMP_SLE: lambda a, b: a <= b,
    CmpPredicate.ICMP_UGT: z3.UGT,
    CmpPredicate.ICMP_UGE: z3.UGE,
    CmpPredicate.ICMP_ULT: z3.ULT,
    CmpPredicate.ICMP_ULE: z3.ULE,
}

_FP_ARITHMETIC: Dict[Opcode, Callable] = {
    Opcode.FADD: lambda a, b: z3.fpAdd(_RNE(), a, b),
    Opcode.FSUB: lambda a, b: z3.fpSub(_RNE(), a, b),
    Opcode.FMUL: lambda a, b: z3.fpMul(_RNE(), a, b),
    Opcode.FDIV: lambda a, b: z3.fpDiv(_RNE(), a, b),
}

_INT_ARITHMETIC: Dict[Opcode, Callable] = {
    Opcode.ADD: lambda a, b: a + b,
    Opcode.SUB: lambda a, b: a - b,
    Opcode.MUL: lambda a, b: a * b,
    Opcode.SDIV: lambda a, b: a / b,  # signed division is the overload default
    Opcode.UDIV: z3.UDiv,
    Opcode.SREM: z3.SRem,
    Opcode.UREM: z3.URem,
    Opcode.SHL: lambda a, b: a << b,
    Opcode.ASHR: lambda a, b: a >> b,
    Opcode.LSHR: z3.LShR,
    Opcode.AND: lambda a, b: a & b,
    Opcode.OR: lambda a, b: a | b,
    Opcode.XOR: lambda a, b: a ^ b,
}

_BOOL_LOGIC: Dict[Opcode, Callable] = {
    Opcode.AND: z3.And,
    Opcode.OR: z3.Or,
    Opcode.XOR: z3.Xor,
}


def no_wrap_condition(inst: Instruction, a: z3.ExprRef, b: z3.ExprRef) -> Optional[z3.BoolRef]:
    """
    Condition under which an nsw/nuw operation is defined.

    None when the instruction carries neither flag.
    """
    conditions = []
    op = inst.opcode
    if inst.nsw:
        if op == Opcode.ADD:
            conditions += [z3.BVAddNoOverflow(a, b, True), z3.BVAddNoUnderflow(a, b)]
        elif op == Opcode.SUB:
            conditions += [z3.BVSubNoOverflow(a, b), z3.BVSubNoUnderflow(a, b, True)]
        elif op == Opcode.MUL:
            conditions += [z3.BVMulNoOverflow(a, b, True), z3.BVMulNoUnderflow(a, b)]
        elif op == Opcode.SHL:
            # Shifted-out bits must all agree with the resulting sign bit.
            conditions.append((a << b) >> b == a)
    if inst.nuw:
        if op == Opcode.ADD:
            conditions.append(z3.BVAddNoOverflow(a, b, False))
        elif op == Opcode.SUB:
            conditions.append(z3.BVSubNoUnderflow(a, b, False))
        elif op == Opcode.MUL:
            conditions.append(z3.BVMulNoOverflow(a, b, False))
        elif op == Opcode.SHL:
            # No non-zero bit may be shifted out.
            conditions.append(z3.LShR(a << b, b) == a)
    if not conditions:
        return None
    return z3.And(*conditions) if len(conditions) > 1 else conditions[0]


def exact_condition(inst: Instruction, a: z3.ExprRef, b: z3.ExprRef) -> Optional[z3.BoolRef]:
    """Condition under which an `exact` division or shift is defined."""
    if not inst.exact:
        return None
    op = inst.opcode
    if op == Opcode.SDIV:
        return z3.SRem(a, b) == 0
    if op == Opcode.UDIV:
        return z3.URem(a, b) == 0
    if op == Opcode.LSHR:
        return z3.LShR(a, b) << b == a
    if op == Opcode.ASHR:
        return (a >> b) << b == a
    return None


class SnippetEncoder:
    """
    Adds the encodings of instructions to a solver.

    One encoder per solver session; the same encoder is used for both sides,
    the side being selected by the prefix passed with each call.
    """

    def __init__(self, solver: z3.Solver):
        self.solver = solver
        self.encoded = 0
        self._dispatch: Dict[Opcode, Callable[[Instruction, z3.ExprRef, str], z3.BoolRef]] = {}
        for opcode in _INT_ARITHMETIC:
            self._dispatch[opcode] = self._encode_int_binary
        for opcode in _FP_ARITHMETIC:
            self._dispatch[opcode] = self._encode_fp_binary
        for opcode in CAST_OPCODES:
            self._dispatch[opcode] = self._encode_cast
        self._dispatch[Opcode.FNEG] = self._encode_fneg
        self._dispatch[Opcode.ICMP] = self._encode_icmp
        self._dispatch[Opcode.FCMP] = self._encode_fcmp
        self._dispatch[Opcode.SELECT] = self._encode_select
        self._dispatch[Opcode.CALL] = self._encode_call

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def value_expr(self, value: Value, prefix: str) -> z3.ExprRef:
        """Literal for constants, side-prefixed free variable otherwise."""
        if isinstance(value, Constant):
            return make_constant(value)
        return make_variable(f"{prefix}{value.uid}", value.type)

    def _operands(self, inst: Instruction, prefix: str) -> list:
        return [self.value_expr(op, prefix) for op in inst.operands]

    # ------------------------------------------------------------------
    # Input seeding
    # ------------------------------------------------------------------

    def seed_operands(
        self,
        inst: Instruction,
        sn_map: Mapping[Value, int],
        mapped_values_by_sn: Mapping[int, Tuple[Value, Value]],
    ) -> int:
        """
        Assert equality of previously matched inputs of a left instruction.

        For each operand with a serial number whose cross-mapped pair is known,
        adds `L_left == R_right`. Returns the number of equalities added.
        """
        added = 0
        for op in inst.operands:
            sn = sn_map.get(op)
            if sn is None:
                continue
            pair = mapped_values_by_sn.get(sn)
            if pair is None:
                continue
            left, right = pair
            self.solver.add(self.value_expr(left, LEFT_PREFIX) == self.value_expr(right, RIGHT_PREFIX))
            added += 1
        return added

    # ------------------------------------------------------------------
    # Instructions
    # ------------------------------------------------------------------

    def encode_snippet(
        self,
        block: BasicBlock,
        start: int,
        end: int,
        prefix: str,
        sn_map: Optional[Mapping[Value, int]] = None,
        mapped_values_by_sn: Optional[Mapping[int, Tuple[Value, Value]]] = None,
    ) -> None:
        """
        Encode instructions `block[start:end]`.

        With `sn_map` given, operands of each instruction are seeded first.
        """
        for inst in block.instructions[start:end]:
            if sn_map is not None and mapped_values_by_sn is not None:
                self.seed_operands(inst, sn_map, mapped_values_by_sn)
            self.encode_instruction(inst, prefix)

    def encode_instruction(self, inst: Instruction, prefix: str) -> None:
        """Add one assertion for `inst`; debug-info instructions are ignored."""
        if inst.is_debug_info:
            return
        encode = self._dispatch.get(inst.opcode)
        if encode is None:
            raise UnsupportedOperation(
                f"Unsupported instruction with opcode {inst.opcode.name.lower()}"
            )
        if not inst.has_result:
            raise UnsupportedOperation(f"Instruction without result: {inst}")
        res = self.value_expr(inst, prefix)
        assertion = encode(inst, res, prefix)
        logger.debug(f"[SMT] {prefix}{inst.uid}: {inst}")
        self.solver.add(assertion)
        self.encoded += 1

    def _encode_int_binary(self, inst: Instruction, res: z3.ExprRef, prefix: str) -> z3.BoolRef:
        a, b = self._operands(inst, prefix)
        if inst.type.is_bool and inst.opcode in _BOOL_LOGIC:
            return res == _BOOL_LOGIC[inst.opcode](a, b)
        if not inst.type.is_integer:
            raise UnsupportedOperation(f"Integer operation on {inst.type}: {inst}")
        a, b = _as_bv(a), _as_bv(b)
        definition = res == _from_bv(_INT_ARITHMETIC[inst.opcode](a, b), inst.type)

        preconditions = [
            c for c in (no_wrap_condition(inst, a, b), exact_condition(inst, a, b))
            if c is not None
        ]
        if not preconditions:
            return definition
        return z3.Implies(z3.And(*preconditions), definition)

    def _encode_fp_binary(self, inst: Instruction, res: z3.ExprRef, prefix: str) -> z3.BoolRef:
        a, b = self._operands(inst, prefix)
        return res == _FP_ARITHMETIC[inst.opcode](a, b)

    def _encode_fneg(self, inst: Instruction, res: z3.ExprRef, prefix: str) -> z3.BoolRef:
        (a,) = self._operands(inst, prefix)
        return res == z3.fpNeg(a)

    def _encode_icmp(self, inst: Instruction, res: z3.ExprRef, prefix: str) -> z3.BoolRef:
        a, b = self._operands(inst, prefix)
        relation = _INT_RELATIONS.get(inst.predicate)
        if relation is None:
            raise UnsupportedOperation(f"Unsupported icmp predicate {inst.predicate!r}")
        if inst.predicate not in (CmpPredicate.ICMP_EQ, CmpPredicate.ICMP_NE):
            a, b = _as_bv(a), _as_bv(b)
        return res == relation(a, b)

    def _encode_fcmp(self, inst: Instruction, res: z3.ExprRef, prefix: str) -> z3.BoolRef:
        pred = inst.predicate
        if pred == CmpPredicate.FCMP_TRUE:
            return res == z3.BoolVal(True)
        if pred == CmpPredicate.FCMP_FALSE:
            return res == z3.BoolVal(False)
        a, b = self._operands(inst, prefix)
        nan_a, nan_b = z3.fpIsNaN(a), z3.fpIsNaN(b)
        if pred == CmpPredicate.FCMP_ORD:
            return res == z3.And(z3.Not(nan_a), z3.Not(nan_b))
        if pred == CmpPredicate.FCMP_UNO:
            return res == z3.Or(nan_a, nan_b)
        relation = _FP_RELATIONS.get(pred)
        if relation is None:
            raise UnsupportedOperation(f"Unsupported fcmp predicate {pred!r}")
        # Ordered: true only if neither operand is NaN and the relation holds.
        # Unordered: true if either operand is NaN or the relation holds.
        if pred in _FP_ORDERED:
            return res == z3.And(z3.Not(nan_a), z3.Not(nan_b), relation(a, b))
        return res == z3.Or(nan_a, nan_b, relation(a, b))

    def _encode_cast(self, inst: Instruction, res: z3.ExprRef, prefix: str) -> z3.BoolRef:
        source = inst.operand(0)
        src, dst = source.type, inst.type
        op = self.value_expr(source, prefix)
        opcode = inst.opcode

        if opcode == Opcode.ZEXT:
            return res == _from_bv(z3.ZeroExt(dst.width - src.width, _as_bv(op)), dst)
        if opcode == Opcode.SEXT:
            return res == _from_bv(z3.SignExt(dst.width - src.width, _as_bv(op)), dst)
        if opcode == Opcode.TRUNC:
            return res == _from_bv(z3.Extract(dst.width - 1, 0, _as_bv(op)), dst)
        if opcode in (Opcode.FPTRUNC, Opcode.FPEXT):
            return res == z3.fpFPToFP(_RNE(), op, fp_sort(dst))
        if opcode == Opcode.FPTOUI:
            return res == _from_bv(z3.fpToUBV(_RTZ(), op, z3.BitVecSort(dst.width)), dst)
        if opcode == Opcode.FPTOSI:
            return res == _from_bv(z3.fpToSBV(_RTZ(), op, z3.BitVecSort(dst.width)), dst)
        if opcode == Opcode.UITOFP:
            return res == z3.fpUnsignedToFP(_RNE(), _as_bv(op), fp_sort(dst))
        if opcode == Opcode.SITOFP:
            return res == z3.fpSignedToFP(_RNE(), _as_bv(op), fp_sort(dst))
        raise UnsupportedOperation(f"Unsupported cast {opcode.name.lower()}")

    def _encode_select(self, inst: Instruction, res: z3.ExprRef, prefix: str) -> z3.BoolRef:
        cond, true_value, false_value = self._operands(inst, prefix)
        return res == z3.If(cond, true_value, false_value)

    def _encode_call(self, inst: Instruction, res: z3.ExprRef, prefix: str) -> z3.BoolRef:
        name = inst.callee or ""
        arity = len(inst.operands)
        if name.startswith(FMULADD_PREFIX) and arity == 3:
            a, b, c = self._operands(inst, prefix)
            return res == z3.fpAdd(_RNE(), z3.fpMul(_RNE(), a, b), c)
        if name.startswith(FMA_PREFIX) and arity == 3:
            a, b, c = self._operands(inst, prefix)
            return res == z3.fpFMA(_RNE(), a, b, c)
        if name in UNINTERPRETED_MATH and arity == 1:
            # Only congruence is known: equal inputs give equal outputs.
            func = z3.Function(name, z3.Float64(), z3.Float64())
            return res == func(self.value_expr(inst.operand(0), prefix))
        raise UnsupportedOperation(f"Unsupported function call @{name}")
