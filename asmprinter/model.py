"""In-memory program model consumed by the pretty printer.

The printer never builds or edits this structure; it is assembled once by the
recovery pipeline (or loaded from a JSON export with :meth:`ProgramModel.load`)
and then only queried.  The query helpers mirror what the printing engine
needs: lookups by address and by name, section containment and access to the
optional auxiliary tables.
"""

from __future__ import annotations

import bisect
import json
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Union


class Offset(NamedTuple):
    """Position of a byte inside a block or data object."""

    element_id: str
    displacement: int

    def __str__(self) -> str:
        return f"{self.element_id}+{self.displacement}"


@dataclass(frozen=True)
class Symbol:
    name: str
    address: Optional[int]
    id: str


@dataclass(frozen=True)
class Section:
    """Address range of a named section.

    ``flags`` and ``kind`` are optional ELF properties; when present the
    generic ``.section`` header renders them (``"ax"``, ``@progbits``).
    """

    name: str
    address: int
    size: int
    flags: str = ""
    kind: Optional[str] = None

    @property
    def end(self) -> int:
        return self.address + self.size

    def contains(self, address: int) -> bool:
        return self.address <= address < self.end


@dataclass(frozen=True)
class Block:
    id: str
    address: int
    size: int
    data: bytes = b""


@dataclass(frozen=True)
class DataObject:
    id: str
    address: int
    size: int
    data: bytes = b""


@dataclass(frozen=True)
class SymAddrConst:
    """``symbol + offset`` reference."""

    symbol: Symbol
    offset: int = 0


@dataclass(frozen=True)
class SymAddrAddr:
    """``symbol1 - symbol2`` difference."""

    symbol1: Symbol
    symbol2: Symbol


SymbolicExpression = Union[SymAddrConst, SymAddrAddr]


@dataclass(frozen=True)
class CfiDirective:
    name: str
    operands: Tuple[int, ...] = ()
    symbol_id: Optional[str] = None


class ProgramModel:
    """Read-only view over one module of a recovered program."""

    def __init__(
        self,
        *,
        symbols: Iterable[Symbol] = (),
        sections: Iterable[Section] = (),
        blocks: Iterable[Block] = (),
        data: Iterable[DataObject] = (),
        symbolic_expressions: Optional[Mapping[int, SymbolicExpression]] = None,
        function_entries: Optional[Iterable[int]] = None,
        symbol_forwarding: Optional[Mapping[str, str]] = None,
        encodings: Optional[Mapping[str, str]] = None,
        comments: Optional[Mapping[Offset, str]] = None,
        cfi_directives: Optional[Mapping[Offset, Sequence[CfiDirective]]] = None,
    ) -> None:
        self.symbols: Tuple[Symbol, ...] = tuple(symbols)
        self.sections: Tuple[Section, ...] = tuple(sorted(sections, key=lambda s: s.address))
        self.blocks: Tuple[Block, ...] = tuple(blocks)
        self.data: Tuple[DataObject, ...] = tuple(data)
        self.symbolic_expressions: Dict[int, SymbolicExpression] = dict(symbolic_expressions or {})

        self.function_entries: Optional[List[int]] = (
            sorted(set(function_entries)) if function_entries is not None else None
        )
        self.symbol_forwarding: Optional[Dict[str, str]] = (
            dict(symbol_forwarding) if symbol_forwarding is not None else None
        )
        self.encodings: Optional[Dict[str, str]] = dict(encodings) if encodings is not None else None
        self.comments: Optional[Dict[Offset, str]] = dict(comments) if comments is not None else None
        self.cfi_directives: Optional[Dict[Offset, Tuple[CfiDirective, ...]]] = (
            {offset: tuple(entries) for offset, entries in cfi_directives.items()}
            if cfi_directives is not None
            else None
        )

        self._by_address: Dict[int, List[Symbol]] = defaultdict(list)
        self._by_name: Dict[str, List[Symbol]] = defaultdict(list)
        self._by_id: Dict[str, Symbol] = {}
        for symbol in self.symbols:
            if symbol.address is not None:
                self._by_address[symbol.address].append(symbol)
            self._by_name[symbol.name].append(symbol)
            self._by_id[symbol.id] = symbol
        self._section_starts = [section.address for section in self.sections]
        self._comment_keys: List[Offset] = sorted(self.comments) if self.comments else []

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------
    def symbols_at(self, address: int) -> Sequence[Symbol]:
        return self._by_address.get(address, ())

    def symbols_named(self, name: str) -> Sequence[Symbol]:
        return self._by_name.get(name, ())

    def symbol_by_id(self, symbol_id: Optional[str]) -> Optional[Symbol]:
        if symbol_id is None:
            return None
        return self._by_id.get(symbol_id)

    def section_at(self, address: int) -> Optional[Section]:
        index = bisect.bisect_right(self._section_starts, address) - 1
        if index < 0:
            return None
        section = self.sections[index]
        return section if section.contains(address) else None

    def symbolic_expression_at(self, address: int) -> Optional[SymbolicExpression]:
        return self.symbolic_expressions.get(address)

    def sorted_blocks(self) -> List[Block]:
        return sorted(self.blocks, key=lambda block: block.address)

    def sorted_data(self) -> List[DataObject]:
        return sorted(self.data, key=lambda obj: obj.address)

    def encoding_of(self, element_id: str) -> Optional[str]:
        if self.encodings is None:
            return None
        return self.encodings.get(element_id)

    def comments_in_range(self, start: Offset, length: int) -> List[Tuple[Offset, str]]:
        """Return comments keyed inside ``[start, start + length)``."""

        if not self.comments:
            return []
        end = Offset(start.element_id, start.displacement + length)
        lo = bisect.bisect_left(self._comment_keys, start)
        hi = bisect.bisect_left(self._comment_keys, end)
        return [(key, self.comments[key]) for key in self._comment_keys[lo:hi]]

    def cfi_at(self, offset: Offset) -> Tuple[CfiDirective, ...]:
        if not self.cfi_directives:
            return ()
        return self.cfi_directives.get(offset, ())

    # ------------------------------------------------------------------
    # loading
    # ------------------------------------------------------------------
    @classmethod
    def load(cls, path: Path) -> "ProgramModel":
        """Load a model from a JSON export."""

        payload = json.loads(path.read_text("utf-8"))
        if not isinstance(payload, Mapping):
            raise ValueError(f"program model {path} must contain a JSON object")
        return cls.from_json(payload)

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "ProgramModel":
        symbols = [
            Symbol(
                name=str(entry["name"]),
                address=_parse_optional_address(entry.get("address")),
                id=str(entry["id"]),
            )
            for entry in payload.get("symbols", ())
        ]
        by_id = {symbol.id: symbol for symbol in symbols}

        sections = [
            Section(
                name=str(entry["name"]),
                address=_parse_address(entry["address"]),
                size=_parse_address(entry["size"]),
                flags=str(entry.get("flags", "")),
                kind=entry.get("kind"),
            )
            for entry in payload.get("sections", ())
        ]
        blocks = [
            Block(
                id=str(entry["id"]),
                address=_parse_address(entry["address"]),
                size=_parse_address(entry["size"]),
                data=bytes.fromhex(entry.get("bytes", "")),
            )
            for entry in payload.get("blocks", ())
        ]
        data = [
            DataObject(
                id=str(entry["id"]),
                address=_parse_address(entry["address"]),
                size=_parse_address(entry["size"]),
                data=bytes.fromhex(entry.get("bytes", "")),
            )
            for entry in payload.get("data", ())
        ]

        symbolic: Dict[int, SymbolicExpression] = {}
        for key, entry in payload.get("symbolic_expressions", {}).items():
            symbolic[_parse_address(key)] = _parse_symbolic(entry, by_id)

        function_entries = payload.get("function_entries")
        if function_entries is not None:
            function_entries = [_parse_address(value) for value in function_entries]

        comments = payload.get("comments")
        if comments is not None:
            comments = {_parse_offset(key): str(text) for key, text in comments.items()}

        cfi = payload.get("cfi_directives")
        if cfi is not None:
            cfi = {
                _parse_offset(key): [
                    CfiDirective(
                        name=str(item["name"]),
                        operands=tuple(int(value) for value in item.get("operands", ())),
                        symbol_id=item.get("symbol"),
                    )
                    for item in items
                ]
                for key, items in cfi.items()
            }

        return cls(
            symbols=symbols,
            sections=sections,
            blocks=blocks,
            data=data,
            symbolic_expressions=symbolic,
            function_entries=function_entries,
            symbol_forwarding=payload.get("symbol_forwarding"),
            encodings=payload.get("encodings"),
            comments=comments,
            cfi_directives=cfi,
        )


def _parse_address(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"invalid address value: {value!r}")
    if isinstance(value, int):
        return value
    try:
        return int(str(value), 0)
    except ValueError:
        raise ValueError(f"invalid address value: {value!r}") from None


def _parse_optional_address(value: Any) -> Optional[int]:
    if value is None:
        return None
    return _parse_address(value)


def _parse_offset(key: str) -> Offset:
    element_id, sep, displacement = key.rpartition("+")
    if not sep or not element_id:
        raise ValueError(f"offset key must look like '<element>+<displacement>': {key!r}")
    return Offset(element_id, _parse_address(displacement))


def _parse_symbolic(entry: Mapping[str, Any], by_id: Mapping[str, Symbol]) -> SymbolicExpression:
    def lookup(key: str) -> Symbol:
        symbol_id = entry.get(key)
        symbol = by_id.get(str(symbol_id))
        if symbol is None:
            raise ValueError(f"symbolic expression references unknown symbol {symbol_id!r}")
        return symbol

    kind = entry.get("kind", "addr_const")
    if kind == "addr_const":
        return SymAddrConst(lookup("symbol"), int(entry.get("offset", 0)))
    if kind == "addr_addr":
        return SymAddrAddr(lookup("symbol1"), lookup("symbol2"))
    raise ValueError(f"unsupported symbolic expression kind: {kind!r}")


__all__ = [
    "Offset",
    "Symbol",
    "Section",
    "Block",
    "DataObject",
    "SymAddrConst",
    "SymAddrAddr",
    "SymbolicExpression",
    "CfiDirective",
    "ProgramModel",
]
