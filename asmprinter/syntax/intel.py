"""GNU as Intel dialect (``.intel_syntax noprefix``) for ELF targets."""

from __future__ import annotations

from typing import Dict, List, Optional

from ..decoder import DecodedInstruction, Operand
from ..model import SymAddrConst
from ..symbols import SymbolResolver, format_addend
from .elf import ElfSyntax

# Operand width in bits -> size keyword of a memory operand.
SIZE_NAMES: Dict[int, str] = {
    0: "",
    8: "BYTE PTR",
    16: "WORD PTR",
    32: "DWORD PTR",
    64: "QWORD PTR",
    80: "TBYTE PTR",
    128: "",
}


def size_name(bits: int) -> str:
    return SIZE_NAMES.get(bits, "")


class ElfIntelSyntax(ElfSyntax):
    syntax_name = "intel"
    decoder_syntax = "intel"
    offset_keyword = "OFFSET"

    def header_lines(self) -> List[str]:
        lines = [self.bar(), ".intel_syntax noprefix", self.bar(), ""]
        lines.extend([self.directives.nop] * 8)
        return lines

    def render_register(self, instruction: DecodedInstruction, operand: Operand) -> str:
        return operand.register or ""

    def render_immediate(
        self,
        instruction: DecodedInstruction,
        operand: Operand,
        symbolic: Optional[SymAddrConst],
        resolver: SymbolResolver,
    ) -> str:
        if symbolic is None:
            return str(operand.immediate)
        if self.is_branch(instruction):
            return resolver.render_expression(symbolic, is_absolute=False)
        return f"{self.offset_keyword} " + resolver.render_expression(symbolic, is_absolute=True)

    def render_memory(
        self,
        instruction: DecodedInstruction,
        operand: Operand,
        symbolic: Optional[SymAddrConst],
        resolver: SymbolResolver,
    ) -> str:
        memory = operand.memory
        if memory is None:
            raise ValueError(f"memory operand without addressing at 0x{instruction.address:x}")
        parts: List[str] = []
        keyword = size_name(operand.size * 8)
        if keyword:
            parts.append(keyword + " ")
        if memory.segment:
            parts.append(f"{memory.segment}:")
        parts.append("[")
        if memory.base:
            parts.append(memory.base)
        if memory.index:
            if memory.base:
                parts.append("+")
            parts.append(f"{memory.index}*{memory.scale}")
        if symbolic is not None:
            if memory.base or memory.index:
                parts.append("+")
            parts.append(resolver.render_expression(symbolic, is_absolute=False))
        else:
            parts.append(format_addend(memory.disp, first=not memory.base and not memory.index))
        parts.append("]")
        return "".join(parts)


__all__ = ["ElfIntelSyntax", "SIZE_NAMES", "size_name"]
