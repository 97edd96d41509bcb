"""Capability interface implemented by every assembler dialect."""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, List, Optional, TYPE_CHECKING

from ..decoder import DecodedInstruction, Operand
from ..model import Section, SymAddrConst

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from ..symbols import SymbolResolver


@dataclass(frozen=True)
class DirectiveTable:
    """Keywords a dialect uses for the fixed parts of the output."""

    comment: str = "#"
    tab: str = " " * 10
    text_section: str = ".text"
    data_section: str = ".data"
    bss_section: str = ".bss"
    text_directive: str = ".text"
    data_directive: str = ".data"
    bss_directive: str = ".bss"
    align: str = ".align"
    nop: str = "nop"
    section: str = ".section"
    global_: str = ".globl"
    type_: str = ".type"
    byte: str = ".byte"
    zero: str = ".zero"
    string: str = ".string"


class SyntaxBackend:
    """Dialect specific rendering used by the printing engine.

    Subclasses provide the three operand renderers and the format hooks for
    headers and footers.  The traits below tell the engine which sections and
    functions the target normally leaves out of the listing.
    """

    format_name = ""
    syntax_name = ""
    directives = DirectiveTable()
    decoder_syntax = "intel"

    skip_sections: AbstractSet[str] = frozenset()
    skip_data_sections: AbstractSet[str] = frozenset()
    default_skip_functions: AbstractSet[str] = frozenset()
    plt_sections: AbstractSet[str] = frozenset()
    got_sections: AbstractSet[str] = frozenset()

    # ------------------------------------------------------------------
    # operands
    # ------------------------------------------------------------------
    def render_register(self, instruction: DecodedInstruction, operand: Operand) -> str:
        raise NotImplementedError

    def render_immediate(
        self,
        instruction: DecodedInstruction,
        operand: Operand,
        symbolic: Optional[SymAddrConst],
        resolver: "SymbolResolver",
    ) -> str:
        raise NotImplementedError

    def render_memory(
        self,
        instruction: DecodedInstruction,
        operand: Operand,
        symbolic: Optional[SymAddrConst],
        resolver: "SymbolResolver",
    ) -> str:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # layout hooks
    # ------------------------------------------------------------------
    def bar(self) -> str:
        return f"{self.directives.comment}==================================="

    def comment(self, text: str) -> str:
        return f"{self.directives.comment} {text}"

    def header_lines(self) -> List[str]:
        return []

    def footer_lines(self) -> List[str]:
        return []

    def section_header_lines(self, section: Section) -> List[str]:
        return [f"{self.directives.section} {section.name}"]

    def section_footer_lines(self, section: Section) -> List[str]:
        return [self.comment(f"end section {section.name}")]

    def function_header_lines(
        self, name: str, address: int, labels: List[str]
    ) -> List[str]:
        return [f"{name}:"] if name not in labels else []

    @staticmethod
    def is_branch(instruction: DecodedInstruction) -> bool:
        return instruction.in_group("call") or instruction.in_group("jump")


__all__ = ["DirectiveTable", "SyntaxBackend"]
