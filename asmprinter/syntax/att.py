"""GNU as AT&T dialect for ELF targets.

The decoder runs in AT&T mode for this backend, so mnemonics already carry
their size suffix and operands arrive in source-first order.
"""

from __future__ import annotations

from typing import List, Optional

from ..decoder import DecodedInstruction, Operand
from ..model import SymAddrConst
from ..symbols import SymbolResolver
from .elf import ElfSyntax


class ElfAttSyntax(ElfSyntax):
    syntax_name = "att"
    decoder_syntax = "att"

    def header_lines(self) -> List[str]:
        lines = [self.bar(), ".att_syntax", self.bar(), ""]
        lines.extend([self.directives.nop] * 8)
        return lines

    @staticmethod
    def register(name: Optional[str]) -> str:
        return f"%{name.lower()}" if name else ""

    def render_register(self, instruction: DecodedInstruction, operand: Operand) -> str:
        text = self.register(operand.register)
        if self.is_branch(instruction):
            return "*" + text
        return text

    def render_immediate(
        self,
        instruction: DecodedInstruction,
        operand: Operand,
        symbolic: Optional[SymAddrConst],
        resolver: SymbolResolver,
    ) -> str:
        branch = self.is_branch(instruction)
        if symbolic is None:
            return str(operand.immediate) if branch else f"${operand.immediate}"
        if branch:
            return resolver.render_expression(symbolic, is_absolute=False)
        return "$" + resolver.render_expression(symbolic, is_absolute=True)

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
        if self.is_branch(instruction):
            parts.append("*")
        if memory.segment:
            parts.append(self.register(memory.segment) + ":")
        if symbolic is not None:
            parts.append(resolver.render_expression(symbolic, is_absolute=False))
        elif memory.disp != 0 or not (memory.base or memory.index):
            parts.append(str(memory.disp))
        if memory.base or memory.index:
            parts.append("(")
            parts.append(self.register(memory.base))
            if memory.index:
                parts.append(f",{self.register(memory.index)},{memory.scale}")
            parts.append(")")
        return "".join(parts)


__all__ = ["ElfAttSyntax"]
