"""Shared behaviour of the ELF dialects."""

from __future__ import annotations

from typing import List

from ..model import Section
from ..sections import select_alignment
from .base import SyntaxBackend

# Functions the C runtime contributes on its own; reassembling them would
# produce duplicate definitions once the object is linked again.
ELF_RUNTIME_FUNCTIONS = frozenset(
    {
        "_start",
        "deregister_tm_clones",
        "register_tm_clones",
        "__do_global_dtors_aux",
        "frame_dummy",
        "__libc_csu_fini",
        "__libc_csu_init",
        "_dl_relocate_static_pie",
    }
)

ELF_SKIP_SECTIONS = frozenset(
    {".comment", ".plt", ".init", ".fini", ".got", ".plt.got", ".got.plt", ".plt.sec"}
)

ELF_SKIP_DATA_SECTIONS = frozenset({".init_array", ".fini_array"})


class ElfSyntax(SyntaxBackend):
    format_name = "elf"

    skip_sections = ELF_SKIP_SECTIONS
    skip_data_sections = ELF_SKIP_DATA_SECTIONS
    default_skip_functions = ELF_RUNTIME_FUNCTIONS
    plt_sections = frozenset({".plt", ".plt.got", ".plt.sec"})
    got_sections = frozenset({".got", ".got.plt"})

    def section_header_lines(self, section: Section) -> List[str]:
        header = f"{self.directives.section} {section.name}"
        if section.flags or section.kind:
            header += f' ,"{_normalise_flags(section.flags)}"'
            if section.kind in ("progbits", "nobits"):
                header += f",@{section.kind}"
        return [header]

    def function_header_lines(
        self, name: str, address: int, labels: List[str]
    ) -> List[str]:
        directives = self.directives
        lines = [self.comment("BEGIN - Function Header")]
        alignment = select_alignment(address)
        if alignment is not None:
            lines.append(f"{directives.align} {alignment}")
        lines.append(f"{directives.global_} {name}")
        lines.append(f"{directives.type_} {name}, @function")
        if name not in labels:
            lines.append(f"{name}:")
        lines.append(self.comment("END   - Function Header"))
        return lines


def _normalise_flags(flags: str) -> str:
    return "".join(flag for flag in "wax" if flag in flags)


__all__ = ["ElfSyntax", "ELF_RUNTIME_FUNCTIONS", "ELF_SKIP_SECTIONS", "ELF_SKIP_DATA_SECTIONS"]
