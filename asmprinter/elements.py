"""Rendering of individual blocks and data objects."""

from __future__ import annotations

from typing import Dict, List, Optional

from .decoder import DecodedInstruction, InstructionDecoder, Operand, OperandKind
from .model import Block, DataObject, Offset, ProgramModel, Section, SymAddrConst
from .sections import SectionTracker
from .symbols import SymbolResolver
from .syntax.base import SyntaxBackend

# String instructions whose operands are implicit.  ``movsd`` is also the name
# of an SSE2 move which does take explicit operands.
IMPLICIT_OPERAND_NAMES = frozenset({"movsb", "movsw", "movsd", "movsq"})

POINTER_DIRECTIVES: Dict[int, str] = {1: ".byte", 2: ".word", 4: ".long", 8: ".quad"}

STRING_ESCAPES: Dict[int, str] = {
    ord("\\"): "\\\\",
    ord('"'): '\\"',
    ord("\n"): "\\n",
    ord("\t"): "\\t",
    ord("\v"): "\\v",
    ord("\b"): "\\b",
    ord("\r"): "\\r",
    ord("\a"): "\\a",
    ord("'"): "\\'",
}


class InvalidOperandError(ValueError):
    """The decoder produced an operand of no known kind."""


class SymbolicOperandError(ValueError):
    """A symbolic operand is not of the ``symbol[+offset]`` form."""


class DataObjectSizeError(ValueError):
    """A symbolic data object has no type tag and no standard pointer size."""


def escape_string_bytes(data: bytes) -> str:
    """Escape ``data`` for a ``.string`` directive.

    Every zero byte is dropped, not only a trailing terminator.  Bytes outside
    printable ASCII without a dedicated escape are written as octal escapes so
    the assembled bytes stay identical.
    """

    pieces: List[str] = []
    for value in data:
        if value == 0:
            continue
        escape = STRING_ESCAPES.get(value)
        if escape is not None:
            pieces.append(escape)
        elif 0x20 <= value < 0x7F:
            pieces.append(chr(value))
        else:
            pieces.append(f"\\{value:03o}")
    return "".join(pieces)


class ElementPrinter:
    """Turn blocks and data objects into assembly lines."""

    def __init__(
        self,
        model: ProgramModel,
        backend: SyntaxBackend,
        resolver: SymbolResolver,
        sections: SectionTracker,
        decoder: InstructionDecoder,
        *,
        debug: bool = False,
    ) -> None:
        self.model = model
        self.backend = backend
        self.resolver = resolver
        self.sections = sections
        self.decoder = decoder
        self.debug = debug
        self.directives = backend.directives

    # ------------------------------------------------------------------
    # shared helpers
    # ------------------------------------------------------------------
    def _address_prefix(self, address: int) -> str:
        if self.debug:
            return f"{self.directives.tab}{address:x}: "
        return self.directives.tab

    def _label_lines(self, address: int) -> List[str]:
        return [f"{label}:" for label in self.resolver.label_definitions(address)]

    def _comment_lines(self, offset: Offset, length: int) -> List[str]:
        if not self.debug:
            return []
        lines: List[str] = []
        for key, text in self.model.comments_in_range(offset, length):
            marker = self.directives.comment
            if key.displacement > offset.displacement:
                marker += f"+{key.displacement - offset.displacement}:"
            lines.append(f"{marker} {text}")
        return lines

    def _cfi_lines(self, offset: Offset) -> List[str]:
        lines: List[str] = []
        for directive in self.model.cfi_at(offset):
            arguments = [str(value) for value in directive.operands]
            symbol = self.model.symbol_by_id(directive.symbol_id)
            if symbol is not None:
                arguments.append(self.resolver.resolve_reference(symbol, is_absolute=True))
            lines.append(f"{directive.name} {', '.join(arguments)}".rstrip())
        return lines

    # ------------------------------------------------------------------
    # blocks
    # ------------------------------------------------------------------
    def print_block(self, block: Block) -> List[str]:
        if self.resolver.is_skipped(block.address):
            return []
        lines = self._function_header(block.address)
        lines.append("")

        offset = Offset(block.id, 0)
        for instruction in self.decoder.decode(block.data, block.address):
            lines.extend(self._instruction_lines(instruction, offset))
            offset = Offset(block.id, offset.displacement + instruction.size)
        # end-of-procedure markers are attached one past the last byte
        lines.extend(self._cfi_lines(offset))
        return lines

    def _function_header(self, address: int) -> List[str]:
        name = self.resolver.function_name(address)
        if not name:
            return []
        labels = self.resolver.label_definitions(address)
        return self.backend.function_header_lines(name, address, labels)

    def _instruction_lines(self, instruction: DecodedInstruction, offset: Offset) -> List[str]:
        lines = self._label_lines(instruction.address)
        lines.extend(self._comment_lines(offset, instruction.size))
        lines.extend(self._cfi_lines(offset))

        if instruction.name == "nop":
            for index in range(instruction.size):
                lines.append(
                    f"{self._address_prefix(instruction.address + index)}  {self.directives.nop}"
                )
            return lines

        operands = self._operand_list(instruction)
        text = f"{self._address_prefix(instruction.address)}  {instruction.mnemonic.lower()} {operands}"
        lines.append(text.rstrip())
        return lines

    def _operand_list(self, instruction: DecodedInstruction) -> str:
        operands = instruction.operands
        if instruction.name in IMPLICIT_OPERAND_NAMES and not instruction.in_group("sse2"):
            operands = ()
        return ",".join(self._operand(instruction, operand) for operand in operands)

    def _operand(self, instruction: DecodedInstruction, operand: Operand) -> str:
        if operand.kind is OperandKind.REGISTER:
            return self.backend.render_register(instruction, operand)
        if operand.kind is OperandKind.IMMEDIATE:
            symbolic = self._symbolic_operand(instruction.address + instruction.imm_offset)
            return self.backend.render_immediate(instruction, operand, symbolic, self.resolver)
        if operand.kind is OperandKind.MEMORY:
            symbolic = None
            if instruction.disp_offset > 0:
                symbolic = self._symbolic_operand(instruction.address + instruction.disp_offset)
            return self.backend.render_memory(instruction, operand, symbolic, self.resolver)
        raise InvalidOperandError(
            f"invalid operand in {instruction.mnemonic!r} at 0x{instruction.address:x}"
        )

    def _symbolic_operand(self, address: int) -> Optional[SymAddrConst]:
        expression = self.model.symbolic_expression_at(address)
        if expression is None:
            return None
        if not isinstance(expression, SymAddrConst):
            raise SymbolicOperandError(
                f"symbolic operand at 0x{address:x} must be 'address[+offset]'"
            )
        return expression

    # ------------------------------------------------------------------
    # data objects
    # ------------------------------------------------------------------
    def print_data_object(self, obj: DataObject) -> List[str]:
        if self.resolver.is_skipped(obj.address):
            return []
        lines = self._comment_lines(Offset(obj.id, 0), obj.size)
        lines.extend(self._label_lines(obj.address))

        section = self.model.section_at(obj.address)
        if section is None:
            raise ValueError(f"data object {obj.id} at 0x{obj.address:x} lies outside all sections")
        if self._points_to_excluded_code(section, obj):
            return lines

        body = self._data_body(obj)
        lines.append(self._address_prefix(obj.address) + body[0])
        lines.extend(self.directives.tab + line for line in body[1:])
        return lines

    def _points_to_excluded_code(self, section: Section, obj: DataObject) -> bool:
        if not self.sections.is_skip_data(section):
            return False
        expression = self.model.symbolic_expression_at(obj.address)
        if isinstance(expression, SymAddrConst) and expression.symbol.address is not None:
            return self.resolver.is_skipped(expression.symbol.address)
        return False

    def _data_body(self, obj: DataObject) -> List[str]:
        if not obj.data:
            return [f"{self.directives.zero} {obj.size}"]

        expression = self.model.symbolic_expression_at(obj.address)
        if expression is not None:
            rendered = self.resolver.render_expression(expression, is_absolute=True)
            return [f"{self._data_type(obj)} {rendered}"]

        if self.model.encoding_of(obj.id) == "string":
            return [f'{self.directives.string} "{escape_string_bytes(obj.data)}"']

        return [f"{self.directives.byte} 0x{value:02x}" for value in obj.data]

    def _data_type(self, obj: DataObject) -> str:
        tag = self.model.encoding_of(obj.id)
        if tag:
            return f".{tag}"
        directive = POINTER_DIRECTIVES.get(obj.size)
        if directive is None:
            raise DataObjectSizeError(
                f"data object {obj.id} at 0x{obj.address:x} has no type and size {obj.size}"
            )
        return directive


__all__ = [
    "ElementPrinter",
    "InvalidOperandError",
    "SymbolicOperandError",
    "DataObjectSizeError",
    "escape_string_bytes",
]
