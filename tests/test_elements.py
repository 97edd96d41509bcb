from typing import Dict, List

import pytest

from asmprinter import (
    Block,
    CfiDirective,
    DataObject,
    ElementPrinter,
    Offset,
    ProgramModel,
    Section,
    SectionTracker,
    SymAddrAddr,
    SymAddrConst,
    Symbol,
    SymbolResolver,
)
from asmprinter.decoder import (
    DecodedInstruction,
    InstructionDecoder,
    MemoryOperand,
    Operand,
    OperandKind,
)
from asmprinter.elements import (
    DataObjectSizeError,
    InvalidOperandError,
    SymbolicOperandError,
    escape_string_bytes,
)
from asmprinter.syntax import ElfAttSyntax, ElfIntelSyntax

TAB = " " * 10
SECTIONS = [
    Section(".plt", 0x500, 0x40),
    Section(".text", 0x1000, 0x1000),
    Section(".init_array", 0x3000, 0x10, flags="wa"),
    Section(".data", 0x4000, 0x100),
    Section(".bss", 0x5000, 0x100),
]


class _ScriptedDecoder(InstructionDecoder):
    def __init__(self, programs: Dict[int, List[DecodedInstruction]]) -> None:
        self.programs = programs

    def decode(self, data: bytes, address: int) -> List[DecodedInstruction]:
        return list(self.programs.get(address, []))


def _printer(
    programs=None,
    *,
    backend=None,
    debug: bool = False,
    skip_functions=frozenset(),
    **model_options,
) -> ElementPrinter:
    backend = backend or ElfIntelSyntax()
    model_options.setdefault("sections", SECTIONS)
    model = ProgramModel(**model_options)
    resolver = SymbolResolver(
        model,
        skip_sections=backend.skip_sections,
        skip_functions=skip_functions,
        plt_sections=backend.plt_sections,
        got_sections=backend.got_sections,
        debug=debug,
    )
    sections = SectionTracker(
        model,
        backend,
        skip_sections=backend.skip_sections,
        skip_data_sections=backend.skip_data_sections,
    )
    return ElementPrinter(
        model, backend, resolver, sections, _ScriptedDecoder(programs or {}), debug=debug
    )


def _register(name: str, size: int = 8) -> Operand:
    return Operand(OperandKind.REGISTER, size, register=name)


def _immediate(value: int, size: int = 8) -> Operand:
    return Operand(OperandKind.IMMEDIATE, size, immediate=value)


def _memory(size: int = 8, **addressing) -> Operand:
    return Operand(OperandKind.MEMORY, size, memory=MemoryOperand(**addressing))


# ----------------------------------------------------------------------
# data objects
# ----------------------------------------------------------------------


def test_data_without_bytes_prints_zero_fill() -> None:
    obj = DataObject("d1", 0x5000, 12)
    printer = _printer(data=[obj])

    assert printer.print_data_object(obj) == [TAB + ".zero 12"]


def test_string_data_drops_zero_bytes() -> None:
    obj = DataObject("d1", 0x4000, 3, b"A\x00B")
    printer = _printer(data=[obj], encodings={"d1": "string"})

    assert printer.print_data_object(obj) == [TAB + '.string "AB"']


def test_escape_string_bytes() -> None:
    assert escape_string_bytes(b'say "hi"\n\x00') == 'say \\"hi\\"\\n'
    assert escape_string_bytes(b"\x01\xff") == "\\001\\377"


def test_symbolic_data_uses_pointer_directives() -> None:
    target = Symbol("target", 0x1000, "s1")
    other = Symbol("other", 0x1010, "s2")
    quad = DataObject("q", 0x4000, 8, bytes(8))
    long_ = DataObject("l", 0x4008, 4, bytes(4))
    printer = _printer(
        symbols=[target, other],
        data=[quad, long_],
        symbolic_expressions={
            0x4000: SymAddrConst(target, 8),
            0x4008: SymAddrAddr(other, target),
        },
    )

    assert printer.print_data_object(quad) == [TAB + ".quad target+8"]
    assert printer.print_data_object(long_) == [TAB + ".long other-target"]


def test_symbolic_data_prefers_type_tag() -> None:
    target = Symbol("target", 0x1000, "s1")
    obj = DataObject("d1", 0x4000, 3, bytes(3))
    printer = _printer(
        symbols=[target],
        data=[obj],
        symbolic_expressions={0x4000: SymAddrConst(target)},
        encodings={"d1": "uleb128"},
    )

    assert printer.print_data_object(obj) == [TAB + ".uleb128 target"]


def test_symbolic_data_of_odd_size_is_rejected() -> None:
    target = Symbol("target", 0x1000, "s1")
    obj = DataObject("d1", 0x4000, 3, bytes(3))
    printer = _printer(
        symbols=[target], data=[obj], symbolic_expressions={0x4000: SymAddrConst(target)}
    )

    with pytest.raises(DataObjectSizeError, match="size 3"):
        printer.print_data_object(obj)


def test_plain_data_prints_one_byte_per_line() -> None:
    label = Symbol("table", 0x4000, "s1")
    obj = DataObject("d1", 0x4000, 2, b"\x01\xff")
    printer = _printer(symbols=[label], data=[obj])

    assert printer.print_data_object(obj) == ["table:", TAB + ".byte 0x01", TAB + ".byte 0xff"]


def test_data_outside_sections_is_rejected() -> None:
    obj = DataObject("d1", 0x9000, 1, b"\x00")
    printer = _printer(data=[obj])

    with pytest.raises(ValueError, match="outside all sections"):
        printer.print_data_object(obj)


def test_init_array_entry_for_skipped_function_is_left_out() -> None:
    dummy = Symbol("frame_dummy", 0x1100, "s1")
    main = Symbol("main", 0x1200, "s3")
    entry = Symbol("init_entry", 0x3000, "s2")
    obj = DataObject("d1", 0x3000, 8, bytes(8))
    printer = _printer(
        symbols=[dummy, main, entry],
        data=[obj],
        symbolic_expressions={0x3000: SymAddrConst(dummy)},
        function_entries=[0x1100, 0x1200],
        skip_functions={"frame_dummy"},
    )

    assert printer.print_data_object(obj) == ["init_entry:"]


def test_data_in_skipped_function_range_is_not_printed() -> None:
    obj = DataObject("d1", 0x1104, 4, b"\x00\x00\x00\x00")
    printer = _printer(
        symbols=[Symbol("_start", 0x1100, "s1")],
        data=[obj],
        function_entries=[0x1100],
        skip_functions={"_start"},
    )

    assert printer.print_data_object(obj) == []


def test_debug_data_shows_address_and_comments() -> None:
    obj = DataObject("d1", 0x4000, 2, b"\x01\x02")
    printer = _printer(
        data=[obj],
        debug=True,
        comments={Offset("d1", 0): "first", Offset("d1", 1): "second", Offset("d1", 2): "past"},
    )

    assert printer.print_data_object(obj) == [
        "# first",
        "#+1: second",
        TAB + "4000: .byte 0x01",
        TAB + ".byte 0x02",
    ]


# ----------------------------------------------------------------------
# blocks
# ----------------------------------------------------------------------


def test_function_entry_block_gets_header() -> None:
    ret = DecodedInstruction(0x1000, 1, "ret", "ret", groups=("ret",))
    block = Block("b1", 0x1000, 1, b"\xc3")
    printer = _printer(
        {0x1000: [ret]},
        symbols=[Symbol("main", 0x1000, "s1")],
        blocks=[block],
        function_entries=[0x1000],
    )

    assert printer.print_block(block) == [
        "# BEGIN - Function Header",
        ".align 16",
        ".globl main",
        ".type main, @function",
        "# END   - Function Header",
        "",
        "main:",
        TAB + "  ret",
    ]


def test_unnamed_function_header_defines_its_label() -> None:
    ret = DecodedInstruction(0x1004, 1, "ret", "ret")
    block = Block("b1", 0x1004, 1, b"\xc3")
    printer = _printer({0x1004: [ret]}, blocks=[block], function_entries=[0x1004])

    lines = printer.print_block(block)

    assert ".globl unknown_function_1004" in lines
    assert "unknown_function_1004:" in lines
    assert ".align 4" in lines


def test_skipped_function_block_prints_nothing() -> None:
    ret = DecodedInstruction(0x1000, 1, "ret", "ret")
    block = Block("b1", 0x1000, 1, b"\xc3")
    options = dict(
        symbols=[Symbol("_start", 0x1000, "s1")],
        blocks=[block],
        function_entries=[0x1000],
        skip_functions={"_start"},
    )

    assert _printer({0x1000: [ret]}, **options).print_block(block) == []
    assert TAB + "1000:   ret" in _printer({0x1000: [ret]}, debug=True, **options).print_block(block)


def test_nop_is_expanded_per_byte() -> None:
    nop = DecodedInstruction(
        0x1000, 3, "nop", "nop", operands=(_memory(4, base="RAX"),)
    )
    block = Block("b1", 0x1000, 3, b"\x0f\x1f\x00")
    printer = _printer({0x1000: [nop]}, blocks=[block])

    assert printer.print_block(block) == ["", TAB + "  nop", TAB + "  nop", TAB + "  nop"]


def test_debug_nop_expansion_numbers_each_byte() -> None:
    nop = DecodedInstruction(0x1000, 3, "nop", "nop")
    block = Block("b1", 0x1000, 3, b"\x0f\x1f\x00")
    printer = _printer({0x1000: [nop]}, blocks=[block], debug=True)

    assert printer.print_block(block) == [
        "",
        TAB + "1000:   nop",
        TAB + "1001:   nop",
        TAB + "1002:   nop",
    ]


def test_string_move_operands_are_implicit() -> None:
    movs = DecodedInstruction(
        0x1000,
        1,
        "movsd",
        "movsd",
        operands=(_memory(4, base="RDI", segment="ES"), _memory(4, base="RSI")),
    )
    sse = DecodedInstruction(
        0x1001,
        4,
        "movsd",
        "movsd",
        operands=(_register("XMM0", 16), _register("XMM1", 16)),
        groups=("sse2",),
    )
    block = Block("b1", 0x1000, 5, bytes(5))
    printer = _printer({0x1000: [movs, sse]}, blocks=[block])

    assert printer.print_block(block) == ["", TAB + "  movsd", TAB + "  movsd XMM0,XMM1"]


def test_invalid_operand_is_rejected() -> None:
    broken = DecodedInstruction(
        0x1000, 2, "bad", "bad", operands=(Operand(OperandKind.INVALID),)
    )
    block = Block("b1", 0x1000, 2, bytes(2))
    printer = _printer({0x1000: [broken]}, blocks=[block])

    with pytest.raises(InvalidOperandError, match="0x1000"):
        printer.print_block(block)


def test_symbolic_operands_in_intel_syntax() -> None:
    counter = Symbol("counter", 0x4010, "s1")
    helper = Symbol("helper", 0x1100, "s2")
    load = DecodedInstruction(
        0x1000,
        7,
        "mov",
        "mov",
        operands=(_register("RAX"), _memory(8, base="RIP", disp=0x3009)),
        disp_offset=3,
    )
    take = DecodedInstruction(
        0x1007,
        10,
        "movabs",
        "movabs",
        operands=(_register("RBX"), _immediate(0x4010)),
        imm_offset=2,
    )
    call = DecodedInstruction(
        0x1011,
        5,
        "call",
        "call",
        operands=(_immediate(0x1100),),
        groups=("call", "branch_relative"),
        imm_offset=1,
    )
    block = Block("b1", 0x1000, 0x16, bytes(0x16))
    printer = _printer(
        {0x1000: [load, take, call]},
        symbols=[counter, helper],
        blocks=[block],
        symbolic_expressions={
            0x1003: SymAddrConst(counter),
            0x1009: SymAddrConst(counter, 8),
            0x1012: SymAddrConst(helper),
        },
    )

    assert printer.print_block(block) == [
        "",
        TAB + "  mov RAX,QWORD PTR [RIP+counter]",
        TAB + "  movabs RBX,OFFSET counter+8",
        TAB + "  call helper",
    ]


def test_literal_memory_operands_in_intel_syntax() -> None:
    load = DecodedInstruction(
        0x1000,
        8,
        "mov",
        "mov",
        operands=(
            _register("EAX", 4),
            _memory(4, base="RBX", index="RCX", scale=4, disp=-8, segment="FS"),
        ),
    )
    absolute = DecodedInstruction(
        0x1008, 7, "mov", "mov", operands=(_register("AL", 1), _memory(1, disp=16))
    )
    block = Block("b1", 0x1000, 15, bytes(15))
    printer = _printer({0x1000: [load, absolute]}, blocks=[block])

    assert printer.print_block(block) == [
        "",
        TAB + "  mov EAX,DWORD PTR FS:[RBX+RCX*4-8]",
        TAB + "  mov AL,BYTE PTR [16]",
    ]


def test_call_through_plt_stub_uses_plt_ending() -> None:
    stub = Symbol("puts_stub", 0x510, "s1")
    puts = Symbol("puts", None, "s2")
    call = DecodedInstruction(
        0x1000,
        5,
        "call",
        "call",
        operands=(_immediate(0x510),),
        groups=("call",),
        imm_offset=1,
    )
    block = Block("b1", 0x1000, 5, bytes(5))
    printer = _printer(
        {0x1000: [call]},
        symbols=[stub, puts],
        blocks=[block],
        symbolic_expressions={0x1001: SymAddrConst(stub)},
        symbol_forwarding={"s1": "s2"},
    )

    assert printer.print_block(block) == ["", TAB + "  call puts@PLT"]


def test_difference_expression_in_operand_is_rejected() -> None:
    a = Symbol("a", 0x1000, "s1")
    b = Symbol("b", 0x1010, "s2")
    push = DecodedInstruction(
        0x1000, 5, "push", "push", operands=(_immediate(0x10),), imm_offset=1
    )
    block = Block("b1", 0x1000, 5, bytes(5))
    printer = _printer(
        {0x1000: [push]},
        symbols=[a, b],
        blocks=[block],
        symbolic_expressions={0x1001: SymAddrAddr(b, a)},
    )

    with pytest.raises(SymbolicOperandError):
        printer.print_block(block)


def test_att_operands() -> None:
    target = Symbol("target", 0x4000, "s1")
    move = DecodedInstruction(
        0x1000,
        7,
        "movq",
        "mov",
        operands=(_memory(8, base="RIP", disp=0x2ff9), _register("RAX")),
        disp_offset=3,
    )
    jump = DecodedInstruction(
        0x1007, 2, "jmpq", "jmp", operands=(_register("RAX"),), groups=("jump",)
    )
    add = DecodedInstruction(
        0x1009,
        4,
        "addq",
        "add",
        operands=(_immediate(8, 1), _memory(8, base="RSP", index="RBX", scale=2, disp=-16)),
    )
    block = Block("b1", 0x1000, 13, bytes(13))
    printer = _printer(
        {0x1000: [move, jump, add]},
        backend=ElfAttSyntax(),
        symbols=[target],
        blocks=[block],
        symbolic_expressions={0x1003: SymAddrConst(target)},
    )

    assert printer.print_block(block) == [
        "",
        TAB + "  movq target(%rip),%rax",
        TAB + "  jmpq *%rax",
        TAB + "  addq $8,-16(%rsp,%rbx,2)",
    ]


def test_cfi_directives_surround_instructions() -> None:
    personality = Symbol("__gxx_personality_v0", 0x1200, "s1")
    push = DecodedInstruction(0x1000, 1, "push", "push", operands=(_register("RBP"),))
    ret = DecodedInstruction(0x1001, 1, "ret", "ret")
    block = Block("b1", 0x1000, 2, b"\x55\xc3")
    printer = _printer(
        {0x1000: [push, ret]},
        symbols=[personality],
        blocks=[block],
        cfi_directives={
            Offset("b1", 0): [
                CfiDirective(".cfi_startproc"),
                CfiDirective(".cfi_personality", (155,), "s1"),
            ],
            Offset("b1", 1): [CfiDirective(".cfi_def_cfa_offset", (16,))],
            Offset("b1", 2): [CfiDirective(".cfi_endproc")],
        },
    )

    assert printer.print_block(block) == [
        "",
        ".cfi_startproc",
        ".cfi_personality 155, __gxx_personality_v0",
        TAB + "  push RBP",
        ".cfi_def_cfa_offset 16",
        TAB + "  ret",
        ".cfi_endproc",
    ]


def test_debug_block_shows_addresses_and_comments() -> None:
    ret = DecodedInstruction(0x1000, 3, "ret", "ret")
    block = Block("b1", 0x1000, 3, bytes(3))
    printer = _printer(
        {0x1000: [ret]},
        blocks=[block],
        debug=True,
        comments={Offset("b1", 0): "entry", Offset("b1", 2): "tail"},
    )

    assert printer.print_block(block) == ["", "# entry", "#+2: tail", TAB + "1000:   ret"]
