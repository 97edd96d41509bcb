"""Address-ordered traversal of one module."""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Union

from .elements import ElementPrinter
from .model import Block, DataObject, ProgramModel
from .sections import SectionTracker
from .symbols import SymbolResolver
from .syntax.base import SyntaxBackend

logger = logging.getLogger(__name__)

Element = Union[Block, DataObject]


@dataclass
class LayoutReport:
    """Outcome of a traversal: the emitted lines and what had to be dropped."""

    lines: List[str] = field(default_factory=list)
    cursor: int = 0
    overlaps: List[int] = field(default_factory=list)
    printed: int = 0


class LayoutTraversal:
    """Merge blocks and data objects into a single address-ordered listing.

    ``cursor`` is the first address not yet covered by a printed element.  An
    element starting before it overlaps something already printed; it is
    reported with a warning comment and dropped.
    """

    def __init__(
        self,
        model: ProgramModel,
        backend: SyntaxBackend,
        resolver: SymbolResolver,
        sections: SectionTracker,
        elements: ElementPrinter,
    ) -> None:
        self.model = model
        self.backend = backend
        self.resolver = resolver
        self.sections = sections
        self.elements = elements
        self.cursor = 0

    def iter_elements(self) -> Iterator[Element]:
        # heapq.merge is stable, so blocks win ties against data objects
        return heapq.merge(
            self.model.sorted_blocks(),
            self.model.sorted_data(),
            key=lambda element: element.address,
        )

    def run(self) -> LayoutReport:
        report = LayoutReport()
        lines = report.lines
        lines.extend(self.backend.header_lines())

        for element in self.iter_elements():
            lines.extend(self._visit(element, report))

        lines.extend(self._label_lines(self.cursor))
        lines.extend(self.sections.close(None))
        lines.extend(self.backend.footer_lines())
        report.cursor = self.cursor
        return report

    def _visit(self, element: Element, report: LayoutReport) -> List[str]:
        address = element.address
        if address < self.cursor:
            logger.warning(
                "dropping %s %s at 0x%x: overlaps element ending at 0x%x",
                _kind(element),
                element.id,
                address,
                self.cursor,
            )
            report.overlaps.append(address)
            return [self.backend.comment(f"WARNING: found overlapping element at address 0x{address:x}")]

        lines: List[str] = []
        if address > self.cursor:
            lines.extend(self._label_lines(self.cursor))
        lines.extend(self.sections.close(address))
        lines.extend(self.sections.open(address))
        if isinstance(element, Block):
            lines.extend(self.elements.print_block(element))
        else:
            lines.extend(self.elements.print_data_object(element))
        report.printed += 1
        self.cursor = address + element.size
        return lines

    def _label_lines(self, address: int) -> List[str]:
        return [f"{label}:" for label in self.resolver.label_definitions(address)]


def _kind(element: Element) -> str:
    return "block" if isinstance(element, Block) else "data object"


__all__ = ["LayoutTraversal", "LayoutReport"]
