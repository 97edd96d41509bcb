"""Symbol name resolution for the printer.

All label text emitted by the printer flows through :class:`SymbolResolver`:
function names, label definitions and references inside operands, data
directives and CFI directives.  The resolver is a pure query layer over the
:class:`~asmprinter.model.ProgramModel`.
"""

from __future__ import annotations

import bisect
import logging
from typing import AbstractSet, List, Optional

from .model import ProgramModel, Symbol, SymAddrAddr, SymbolicExpression

logger = logging.getLogger(__name__)

# Names that the assembler would read as operators or register names.
RESERVED_NAMES = frozenset({"FS", "MOD", "DIV", "NOT", "mod", "div", "not", "and", "or", "shr", "Si"})

DEFAULT_PLT_SECTIONS = frozenset({".plt", ".plt.got", ".plt.sec"})
DEFAULT_GOT_SECTIONS = frozenset({".got", ".got.plt"})


class AmbiguousSymbolError(ValueError):
    """An ambiguous symbol without an address cannot be given a local label."""


def avoid_reserved_name(name: str) -> str:
    if name in RESERVED_NAMES:
        return name + "_renamed"
    return name


def local_label(address: int) -> str:
    return f".L_{address:x}"


def format_addend(value: int, first: bool = False) -> str:
    """Render an addend with an explicit sign, or nothing when it is zero."""

    if value < 0 or first:
        return str(value)
    if value == 0:
        return ""
    return f"+{value}"


class SymbolResolver:
    """Name and address lookups used while printing one module."""

    def __init__(
        self,
        model: ProgramModel,
        *,
        skip_sections: AbstractSet[str] = frozenset(),
        skip_functions: AbstractSet[str] = frozenset(),
        plt_sections: AbstractSet[str] = DEFAULT_PLT_SECTIONS,
        got_sections: AbstractSet[str] = DEFAULT_GOT_SECTIONS,
        debug: bool = False,
    ) -> None:
        self.model = model
        self.skip_sections = frozenset(skip_sections)
        self.skip_functions = frozenset(skip_functions)
        self.plt_sections = frozenset(plt_sections)
        self.got_sections = frozenset(got_sections)
        self.debug = debug
        self._entries: List[int] = list(model.function_entries or ())

    # ------------------------------------------------------------------
    # functions
    # ------------------------------------------------------------------
    def is_function_entry(self, address: int) -> bool:
        index = bisect.bisect_left(self._entries, address)
        return index < len(self._entries) and self._entries[index] == address

    def function_name(self, address: int) -> str:
        """Return the printable name of the function starting at ``address``.

        An empty string means ``address`` is not a recorded function entry.
        """

        if not self.is_function_entry(address):
            return ""
        for symbol in self.model.symbols_at(address):
            if self.is_ambiguous(symbol.name):
                return f"{symbol.name}_{address:x}"
            return symbol.name
        return f"unknown_function_{address:x}"

    def containing_function(self, address: int) -> Optional[str]:
        """Name of the function whose body covers ``address``.

        Functions are assumed to be laid out back to back: everything from one
        entry up to the next belongs to the first, and the last function runs
        to the end of the module.
        """

        index = bisect.bisect_right(self._entries, address)
        if index == 0:
            return None
        return self.function_name(self._entries[index - 1])

    # ------------------------------------------------------------------
    # skipping
    # ------------------------------------------------------------------
    def in_skipped_section(self, address: int) -> bool:
        if self.debug:
            return False
        section = self.model.section_at(address)
        return section is not None and section.name in self.skip_sections

    def in_skipped_function(self, address: int) -> bool:
        name = self.containing_function(address)
        return name is not None and name in self.skip_functions

    def is_skipped(self, address: int) -> bool:
        return not self.debug and (
            self.in_skipped_section(address) or self.in_skipped_function(address)
        )

    # ------------------------------------------------------------------
    # names
    # ------------------------------------------------------------------
    def is_ambiguous(self, name: str) -> bool:
        return len(self.model.symbols_named(name)) > 1

    def label_text(self, symbol: Symbol) -> str:
        if self.is_ambiguous(symbol.name):
            if symbol.address is None:
                raise AmbiguousSymbolError(
                    f"ambiguous symbol {symbol.name!r} ({symbol.id}) has no address"
                )
            return local_label(symbol.address)
        return avoid_reserved_name(symbol.name)

    def label_definitions(self, address: int) -> List[str]:
        labels: List[str] = []
        for symbol in self.model.symbols_at(address):
            text = self.label_text(symbol)
            if text not in labels:
                labels.append(text)
        return labels

    def resolve_reference(self, symbol: Symbol, is_absolute: bool) -> str:
        """Text used to refer to ``symbol`` from an operand or directive."""

        forwarded = self._forwarded_name(symbol, is_absolute)
        if forwarded is not None:
            return forwarded
        if symbol.address is not None and self.is_skipped(symbol.address):
            return str(symbol.address)
        return self.label_text(symbol)

    def render_expression(self, expression: SymbolicExpression, is_absolute: bool) -> str:
        if isinstance(expression, SymAddrAddr):
            return (
                self.resolve_reference(expression.symbol1, is_absolute)
                + "-"
                + self.resolve_reference(expression.symbol2, is_absolute)
            )
        return self.resolve_reference(expression.symbol, is_absolute) + format_addend(
            expression.offset
        )

    # ------------------------------------------------------------------
    # forwarding
    # ------------------------------------------------------------------
    def _forwarded_name(self, symbol: Symbol, is_absolute: bool) -> Optional[str]:
        forwarding = self.model.symbol_forwarding
        if not forwarding or symbol.id not in forwarding:
            return None
        destination = self._forward_destination(symbol)
        anchor = destination.address if destination.address is not None else symbol.address
        return avoid_reserved_name(destination.name) + self._forwarded_ending(anchor, is_absolute)

    def _forward_destination(self, symbol: Symbol) -> Symbol:
        forwarding = self.model.symbol_forwarding or {}
        seen = {symbol.id}
        current = symbol
        while current.id in forwarding:
            target_id = forwarding[current.id]
            if target_id in seen:
                raise ValueError(f"symbol forwarding cycle through {target_id!r}")
            target = self.model.symbol_by_id(target_id)
            if target is None:
                raise ValueError(
                    f"symbol {current.id!r} forwards to unknown symbol {target_id!r}"
                )
            seen.add(target_id)
            current = target
        return current

    def _forwarded_ending(self, address: Optional[int], is_absolute: bool) -> str:
        if address is None:
            return ""
        section = self.model.section_at(address)
        if section is None:
            logger.debug("forwarded reference at 0x%x is outside every section", address)
            return ""
        if not is_absolute and section.name in self.plt_sections:
            return "@PLT"
        if section.name in self.got_sections:
            return "@GOTPCREL"
        return ""


__all__ = [
    "RESERVED_NAMES",
    "AmbiguousSymbolError",
    "SymbolResolver",
    "avoid_reserved_name",
    "format_addend",
    "local_label",
]
