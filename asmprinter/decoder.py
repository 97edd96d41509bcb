"""Instruction decoding on top of capstone.

The printing engine never talks to capstone directly.  Instructions are
converted into :class:`DecodedInstruction` records here so that the rest of
the package (and the tests) only deal with plain dataclasses.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from capstone import CS_ARCH_X86, CS_MODE_64, CS_OPT_SYNTAX_ATT, Cs, CsError
from capstone.x86 import X86_OP_IMM, X86_OP_MEM, X86_OP_REG, X86_REG_INVALID

logger = logging.getLogger(__name__)


class DecodeError(ValueError):
    """Raised when a block cannot be decoded completely."""


class OperandKind(enum.Enum):
    REGISTER = "reg"
    IMMEDIATE = "imm"
    MEMORY = "mem"
    INVALID = "invalid"


@dataclass(frozen=True)
class MemoryOperand:
    """Addressing components of a memory operand (register names are upper-case)."""

    base: Optional[str] = None
    index: Optional[str] = None
    scale: int = 1
    disp: int = 0
    segment: Optional[str] = None


@dataclass(frozen=True)
class Operand:
    kind: OperandKind
    size: int = 0
    register: Optional[str] = None
    immediate: int = 0
    memory: Optional[MemoryOperand] = None


@dataclass(frozen=True)
class DecodedInstruction:
    """One decoded instruction.

    ``name`` is the canonical instruction name (``movsd``, ``nop``) which can
    differ from the printed ``mnemonic`` once prefixes are involved.
    ``imm_offset`` and ``disp_offset`` are byte offsets of the immediate and
    displacement fields inside the encoding, zero when absent.
    """

    address: int
    size: int
    mnemonic: str
    name: str
    operands: Tuple[Operand, ...] = ()
    groups: Tuple[str, ...] = ()
    imm_offset: int = 0
    disp_offset: int = 0

    def in_group(self, group: str) -> bool:
        return group in self.groups


class InstructionDecoder:
    """Base class for decoders used by the printer."""

    def decode(self, data: bytes, address: int) -> List[DecodedInstruction]:
        raise NotImplementedError

    def __enter__(self) -> "InstructionDecoder":
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None


class CapstoneDecoder(InstructionDecoder):
    """x86-64 decoder backed by a capstone handle.

    The handle is opened on ``__enter__`` and dropped on ``__exit__`` so a
    printing session owns it for exactly the duration of one pass.
    """

    def __init__(
        self, arch: int = CS_ARCH_X86, mode: int = CS_MODE_64, *, syntax: str = "intel"
    ) -> None:
        if syntax not in ("intel", "att"):
            raise ValueError(f"unsupported decoder syntax: {syntax!r}")
        self.arch = arch
        self.mode = mode
        self.syntax = syntax
        self._cs: Optional[Cs] = None

    def __enter__(self) -> "CapstoneDecoder":
        self._cs = Cs(self.arch, self.mode)
        self._cs.detail = True
        if self.syntax == "att":
            self._cs.syntax = CS_OPT_SYNTAX_ATT
        logger.debug("opened capstone handle arch=%d mode=%d", self.arch, self.mode)
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._cs = None
        logger.debug("released capstone handle")

    def decode(self, data: bytes, address: int) -> List[DecodedInstruction]:
        if self._cs is None:
            raise RuntimeError("decoder used outside of its session")
        try:
            raw = list(self._cs.disasm(data, address))
        except CsError as exc:
            raise DecodeError(f"capstone failed at 0x{address:x}: {exc}") from exc

        consumed = sum(insn.size for insn in raw)
        if consumed != len(data):
            raise DecodeError(
                f"could not decode block at 0x{address:x}: "
                f"{len(data) - consumed} trailing byte(s) at 0x{address + consumed:x}"
            )
        return [self._convert(insn) for insn in raw]

    def _convert(self, insn) -> DecodedInstruction:
        operands = tuple(self._convert_operand(insn, op) for op in insn.operands)
        encoding = insn.encoding
        return DecodedInstruction(
            address=insn.address,
            size=insn.size,
            mnemonic=insn.mnemonic,
            name=(insn.insn_name() or insn.mnemonic).lower(),
            operands=operands,
            groups=tuple((insn.group_name(group) or "").lower() for group in insn.groups),
            imm_offset=encoding.imm_offset,
            disp_offset=encoding.disp_offset,
        )

    @staticmethod
    def _convert_operand(insn, op) -> Operand:
        def reg_name(reg: int) -> Optional[str]:
            if reg == X86_REG_INVALID:
                return None
            return (insn.reg_name(reg) or "").upper() or None

        if op.type == X86_OP_REG:
            return Operand(OperandKind.REGISTER, op.size, register=reg_name(op.reg))
        if op.type == X86_OP_IMM:
            return Operand(OperandKind.IMMEDIATE, op.size, immediate=op.imm)
        if op.type == X86_OP_MEM:
            memory = MemoryOperand(
                base=reg_name(op.mem.base),
                index=reg_name(op.mem.index),
                scale=op.mem.scale,
                disp=op.mem.disp,
                segment=reg_name(op.mem.segment),
            )
            return Operand(OperandKind.MEMORY, op.size, memory=memory)
        return Operand(OperandKind.INVALID, op.size)


__all__ = [
    "DecodeError",
    "OperandKind",
    "MemoryOperand",
    "Operand",
    "DecodedInstruction",
    "InstructionDecoder",
    "CapstoneDecoder",
]
