"""Section bookkeeping during the layout traversal."""

from __future__ import annotations

from typing import AbstractSet, List, Optional, TYPE_CHECKING

from .model import ProgramModel, Section

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from .syntax.base import SyntaxBackend

ALIGNMENTS = (16, 8, 4, 2)
SKIP_DATA_ALIGNMENT = 8


def select_alignment(address: int) -> Optional[int]:
    """Largest supported alignment that evenly divides ``address``."""

    for alignment in ALIGNMENTS:
        if address % alignment == 0:
            return alignment
    return None


class SectionTracker:
    """Open and close sections as the traversal moves through the module.

    The tracker remembers the section of the last printed element.  When the
    next element lives elsewhere the open section is closed (footer) and the
    new one opened (header).  Header and footer text comes from the syntax
    backend; canonical ``.text``/``.data``/``.bss`` sections never get a
    footer and skipped sections produce no text at all.
    """

    def __init__(
        self,
        model: ProgramModel,
        backend: "SyntaxBackend",
        *,
        skip_sections: AbstractSet[str] = frozenset(),
        skip_data_sections: AbstractSet[str] = frozenset(),
    ) -> None:
        self.model = model
        self.backend = backend
        self.skip_sections = frozenset(skip_sections)
        self.skip_data_sections = frozenset(skip_data_sections)
        self.open_section: Optional[Section] = None

    def section_of(self, address: Optional[int]) -> Optional[Section]:
        if address is None:
            return None
        return self.model.section_at(address)

    def close(self, next_address: Optional[int]) -> List[str]:
        """Close the open section unless ``next_address`` lies inside it."""

        current = self.open_section
        if current is None:
            return []
        if self.section_of(next_address) == current:
            return []
        self.open_section = None
        if current.name in self.skip_sections or self._is_canonical(current.name):
            return []
        lines = [self.backend.bar()]
        lines.extend(self.backend.section_footer_lines(current))
        lines.append(self.backend.bar())
        return lines

    def open(self, address: int) -> List[str]:
        """Enter the section containing ``address``.

        The header is only printed when ``address`` is the section's start;
        a section first reached past its start is still tracked so that it
        gets its footer.
        """

        section = self.section_of(address)
        if section is None or section == self.open_section:
            return []
        self.open_section = section
        if section.name in self.skip_sections or address != section.address:
            return []
        return self.header_lines(section, address)

    def header_lines(self, section: Section, address: int) -> List[str]:
        directives = self.backend.directives
        lines = ["", self.backend.bar()]
        if section.name == directives.text_section:
            lines.append(directives.text_directive)
        elif section.name == directives.data_section:
            lines.append(directives.data_directive)
        elif section.name == directives.bss_section:
            lines.append(directives.bss_directive)
        else:
            lines.extend(self.backend.section_header_lines(section))
        if section.name in self.skip_data_sections:
            lines.append(f"{directives.align} {SKIP_DATA_ALIGNMENT}")
        else:
            lines.extend(self.alignment_lines(address))
        lines.append(self.backend.bar())
        lines.append("")
        return lines

    def alignment_lines(self, address: int) -> List[str]:
        alignment = select_alignment(address)
        if alignment is None:
            return []
        return [f"{self.backend.directives.align} {alignment}"]

    def is_skip_data(self, section: Optional[Section]) -> bool:
        return section is not None and section.name in self.skip_data_sections

    def _is_canonical(self, name: str) -> bool:
        directives = self.backend.directives
        return name in (directives.text_section, directives.data_section, directives.bss_section)


__all__ = ["ALIGNMENTS", "SectionTracker", "select_alignment"]
