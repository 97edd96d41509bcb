"""Public package exports for the assembly pretty printer."""

from .decoder import CapstoneDecoder, DecodedInstruction, InstructionDecoder, Operand, OperandKind
from .elements import ElementPrinter
from .layout import LayoutReport, LayoutTraversal
from .model import (
    Block,
    CfiDirective,
    DataObject,
    Offset,
    ProgramModel,
    Section,
    SymAddrAddr,
    SymAddrConst,
    Symbol,
)
from .sections import SectionTracker
from .session import PrettyPrinter, PrinterConfig
from .symbols import SymbolResolver
from .syntax import BackendRegistry, SyntaxBackend, default_registry

__all__ = [
    "Block",
    "CfiDirective",
    "DataObject",
    "Offset",
    "ProgramModel",
    "Section",
    "SymAddrAddr",
    "SymAddrConst",
    "Symbol",
    "CapstoneDecoder",
    "DecodedInstruction",
    "InstructionDecoder",
    "Operand",
    "OperandKind",
    "SymbolResolver",
    "SectionTracker",
    "ElementPrinter",
    "LayoutTraversal",
    "LayoutReport",
    "PrettyPrinter",
    "PrinterConfig",
    "BackendRegistry",
    "SyntaxBackend",
    "default_registry",
]
