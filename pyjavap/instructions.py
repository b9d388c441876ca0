"""
JVM instructions and the decoder for Code attribute bytes.

Each instruction is an Opcode-tagged frozen dataclass; the subclass fixes the
operand shape. Wide forms (``wide iload 300``) are separate values with
``wide=True`` and a ``_w`` mnemonic suffix.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from .classfile import ArrayType, Opcode, WIDENABLE_OPCODES
from .cursor import ByteCursor
from .errors import BytecodeDecodeError, TruncatedInputError
from .model import Node

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Instruction(Node):
    """An instruction without operands."""
    opcode: Opcode

    @property
    def mnemonic(self) -> str:
        return self.opcode.name.lower()

    def operands(self) -> tuple:
        """Operand values in encoding order."""
        return ()


@dataclass(frozen=True)
class LocalVariableInstruction(Instruction):
    """Load, store and ret with an explicit local variable index."""
    index: int
    wide: bool = False

    @property
    def mnemonic(self) -> str:
        name = self.opcode.name.lower()
        return f"{name}_w" if self.wide else name

    def operands(self) -> tuple:
        return (self.index,)


@dataclass(frozen=True)
class IncrementInstruction(Instruction):
    """iinc: add a signed constant to a local variable."""
    index: int
    const: int
    wide: bool = False

    @property
    def mnemonic(self) -> str:
        return "iinc_w" if self.wide else "iinc"

    def operands(self) -> tuple:
        return (self.index, self.const)


@dataclass(frozen=True)
class ConstantPoolInstruction(Instruction):
    """Instructions whose single operand is a constant pool index."""
    index: int

    def operands(self) -> tuple:
        return (self.index,)


@dataclass(frozen=True)
class InvokeInterfaceInstruction(Instruction):
    index: int
    count: int

    def operands(self) -> tuple:
        return (self.index, self.count)


@dataclass(frozen=True)
class MultiANewArrayInstruction(Instruction):
    index: int
    dimensions: int

    def operands(self) -> tuple:
        return (self.index, self.dimensions)


@dataclass(frozen=True)
class PushInstruction(Instruction):
    """bipush and sipush with their sign-extended immediate."""
    value: int

    def operands(self) -> tuple:
        return (self.value,)


@dataclass(frozen=True)
class BranchInstruction(Instruction):
    """Conditional and unconditional jumps; offset is relative to the opcode."""
    offset: int

    def target(self, position: int) -> int:
        return position + self.offset

    def operands(self) -> tuple:
        return (self.offset,)


@dataclass(frozen=True)
class NewArrayInstruction(Instruction):
    atype: ArrayType

    def operands(self) -> tuple:
        return (self.atype,)


@dataclass(frozen=True)
class TableSwitchInstruction(Instruction):
    default: int
    low: int
    high: int
    offsets: tuple[int, ...]

    def targets(self, position: int) -> dict[int, int]:
        """Map each case value to its absolute target."""
        return {self.low + i: position + off for i, off in enumerate(self.offsets)}

    def operands(self) -> tuple:
        return (self.default, self.low, self.high, self.offsets)


@dataclass(frozen=True)
class LookupSwitchInstruction(Instruction):
    default: int
    pairs: tuple[tuple[int, int], ...]

    def targets(self, position: int) -> dict[int, int]:
        return {match: position + off for match, off in self.pairs}

    def operands(self) -> tuple:
        return (self.default, self.pairs)


# ==================== OPERAND FORMATS ====================

_LOCAL_INDEX = frozenset({
    Opcode.ILOAD, Opcode.LLOAD, Opcode.FLOAD, Opcode.DLOAD, Opcode.ALOAD,
    Opcode.ISTORE, Opcode.LSTORE, Opcode.FSTORE, Opcode.DSTORE, Opcode.ASTORE,
    Opcode.RET,
})

_CP_INDEX_U2 = frozenset({
    Opcode.LDC_W, Opcode.LDC2_W,
    Opcode.GETSTATIC, Opcode.PUTSTATIC, Opcode.GETFIELD, Opcode.PUTFIELD,
    Opcode.INVOKEVIRTUAL, Opcode.INVOKESPECIAL, Opcode.INVOKESTATIC,
    Opcode.NEW, Opcode.ANEWARRAY, Opcode.CHECKCAST, Opcode.INSTANCEOF,
})

_BRANCH_S2 = frozenset({
    Opcode.IFEQ, Opcode.IFNE, Opcode.IFLT, Opcode.IFGE, Opcode.IFGT, Opcode.IFLE,
    Opcode.IF_ICMPEQ, Opcode.IF_ICMPNE, Opcode.IF_ICMPLT, Opcode.IF_ICMPGE,
    Opcode.IF_ICMPGT, Opcode.IF_ICMPLE, Opcode.IF_ACMPEQ, Opcode.IF_ACMPNE,
    Opcode.GOTO, Opcode.JSR, Opcode.IFNULL, Opcode.IFNONNULL,
})

_BRANCH_S4 = frozenset({Opcode.GOTO_W, Opcode.JSR_W})


def switch_padding(position: int) -> int:
    """Bytes of padding after a switch opcode at the given code offset."""
    return (4 - ((position + 1) % 4)) % 4


def _read_local(op: Opcode, r: ByteCursor, pos: int) -> Instruction:
    return LocalVariableInstruction(op, r.read_u1())


def _read_iinc(op: Opcode, r: ByteCursor, pos: int) -> Instruction:
    index = r.read_u1()
    return IncrementInstruction(op, index, r.read_i1())


def _read_ldc(op: Opcode, r: ByteCursor, pos: int) -> Instruction:
    return ConstantPoolInstruction(op, r.read_u1())


def _read_cp_u2(op: Opcode, r: ByteCursor, pos: int) -> Instruction:
    return ConstantPoolInstruction(op, r.read_u2())


def _read_invokeinterface(op: Opcode, r: ByteCursor, pos: int) -> Instruction:
    index = r.read_u2()
    count = r.read_u1()
    r.read_u1()  # always zero
    return InvokeInterfaceInstruction(op, index, count)


def _read_invokedynamic(op: Opcode, r: ByteCursor, pos: int) -> Instruction:
    index = r.read_u2()
    r.read_u2()  # always zero
    return ConstantPoolInstruction(op, index)


def _read_multianewarray(op: Opcode, r: ByteCursor, pos: int) -> Instruction:
    index = r.read_u2()
    return MultiANewArrayInstruction(op, index, r.read_u1())


def _read_bipush(op: Opcode, r: ByteCursor, pos: int) -> Instruction:
    return PushInstruction(op, r.read_i1())


def _read_sipush(op: Opcode, r: ByteCursor, pos: int) -> Instruction:
    return PushInstruction(op, r.read_i2())


def _read_branch(op: Opcode, r: ByteCursor, pos: int) -> Instruction:
    return BranchInstruction(op, r.read_i2())


def _read_branch_w(op: Opcode, r: ByteCursor, pos: int) -> Instruction:
    return BranchInstruction(op, r.read_i4())


def _read_newarray(op: Opcode, r: ByteCursor, pos: int) -> Instruction:
    atype = r.read_u1()
    try:
        return NewArrayInstruction(op, ArrayType(atype))
    except ValueError:
        raise BytecodeDecodeError(f"unknown array type {atype}", pos + 1) from None


def _read_tableswitch(op: Opcode, r: ByteCursor, pos: int) -> Instruction:
    r.read_bytes(switch_padding(pos))
    default = r.read_i4()
    low = r.read_i4()
    high = r.read_i4()
    if high < low:
        raise BytecodeDecodeError(f"tableswitch low {low} exceeds high {high}", pos)
    offsets = tuple(r.read_i4() for _ in range(high - low + 1))
    return TableSwitchInstruction(op, default, low, high, offsets)


def _read_lookupswitch(op: Opcode, r: ByteCursor, pos: int) -> Instruction:
    r.read_bytes(switch_padding(pos))
    default = r.read_i4()
    npairs = r.read_i4()
    if npairs < 0:
        raise BytecodeDecodeError(f"lookupswitch with negative pair count {npairs}", pos)
    pairs = []
    for _ in range(npairs):
        match = r.read_i4()
        pairs.append((match, r.read_i4()))
    return LookupSwitchInstruction(op, default, tuple(pairs))


def _read_wide(op: Opcode, r: ByteCursor, pos: int) -> Instruction:
    sub = r.read_u1()
    if sub not in WIDENABLE_OPCODES:
        raise BytecodeDecodeError(f"unknown opcode {sub:#04x} in wide instruction", pos + 1)
    sub = Opcode(sub)
    index = r.read_u2()
    if sub == Opcode.IINC:
        return IncrementInstruction(sub, index, r.read_i2(), wide=True)
    return LocalVariableInstruction(sub, index, wide=True)


def _read_none(op: Opcode, r: ByteCursor, pos: int) -> Instruction:
    return Instruction(op)


def _build_readers() -> dict[int, Callable[[Opcode, ByteCursor, int], Instruction]]:
    readers = {}
    for op in Opcode:
        if op in _LOCAL_INDEX:
            readers[op] = _read_local
        elif op in _CP_INDEX_U2:
            readers[op] = _read_cp_u2
        elif op in _BRANCH_S2:
            readers[op] = _read_branch
        elif op in _BRANCH_S4:
            readers[op] = _read_branch_w
        else:
            readers[op] = _read_none
    readers.update({
        Opcode.IINC: _read_iinc,
        Opcode.LDC: _read_ldc,
        Opcode.INVOKEINTERFACE: _read_invokeinterface,
        Opcode.INVOKEDYNAMIC: _read_invokedynamic,
        Opcode.MULTIANEWARRAY: _read_multianewarray,
        Opcode.BIPUSH: _read_bipush,
        Opcode.SIPUSH: _read_sipush,
        Opcode.NEWARRAY: _read_newarray,
        Opcode.TABLESWITCH: _read_tableswitch,
        Opcode.LOOKUPSWITCH: _read_lookupswitch,
        Opcode.WIDE: _read_wide,
    })
    return readers


_READERS = _build_readers()


def decode_instruction(r: ByteCursor, pos: int) -> Instruction:
    """Decode the instruction whose opcode is the next byte of r.

    pos is the opcode's offset within the code array and is used for the
    switch alignment.
    """
    opcode = r.read_u1()
    reader = _READERS.get(opcode)
    if reader is None:
        raise BytecodeDecodeError(f"unknown opcode {opcode:#04x}", pos)
    return reader(Opcode(opcode), r, pos)


def decode_code(code: bytes, base_offset: int = 0) -> tuple[tuple[int, Instruction], ...]:
    """Decode a code array into (offset, instruction) pairs.

    base_offset is the offset of code[0] within the enclosing code array; the
    emitted offsets and the tableswitch/lookupswitch padding are computed
    relative to it. Any malformed instruction aborts decoding.
    """
    r = ByteCursor(code)
    result = []
    while r.position < len(code):
        pos = base_offset + r.position
        try:
            insn = decode_instruction(r, pos)
        except TruncatedInputError as e:
            raise BytecodeDecodeError(
                f"truncated instruction: {e}", pos) from e
        result.append((pos, insn))
    logger.debug("decoded %d instructions from %d code bytes", len(result), len(code))
    return tuple(result)
