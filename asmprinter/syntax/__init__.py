"""Assembler dialects and the registry used to select them."""

from .att import ElfAttSyntax
from .base import DirectiveTable, SyntaxBackend
from .elf import ElfSyntax
from .intel import ElfIntelSyntax
from .registry import BackendRegistry, default_registry

__all__ = [
    "DirectiveTable",
    "SyntaxBackend",
    "ElfSyntax",
    "ElfIntelSyntax",
    "ElfAttSyntax",
    "BackendRegistry",
    "default_registry",
]
