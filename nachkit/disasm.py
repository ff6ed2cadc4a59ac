"""Disassembler for MIPS little-endian COFF programs."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

from .coff import MIPSELMAGIC, CoffError, CoffFile, read_coff
from .isa import (
    NOP,
    NORMAL_OPS,
    SPECIAL_OPS,
    BcondOp,
    Opcode,
    SpecialOp,
    immed,
    off16,
    off26,
    rd,
    rs,
    rt,
    shamt,
    top4,
)

REGISTER_NAMES = (
    "0", "r1", "r2", "r3", "r4", "r5", "r6", "r7", "r8", "r9",
    "r10", "r11", "r12", "r13", "r14", "r15", "r16", "r17", "r18", "r19",
    "r20", "r21", "r22", "r23", "r24", "r25", "r26", "r27", "gp", "sp",
    "r30", "r31",
)

MEMORY_OFFSET = 0x10000000
MEMORY_SIZE = 1 << 24
LOAD_ORDER = (".text", ".rdata", ".data", ".sdata", ".sbss", ".bss")

_PROG = "disasm"

_BCOND_NAMES = {
    BcondOp.BLTZ: "bltz",
    BcondOp.BGEZ: "bgez",
    BcondOp.BLTZAL: "bltzal",
    BcondOp.BGEZAL: "bgezal",
}

_SHIFTS = {SpecialOp.SLL, SpecialOp.SRL, SpecialOp.SRA}
_VAR_SHIFTS = {SpecialOp.SLLV, SpecialOp.SRLV, SpecialOp.SRAV}
_RS_ONLY = {SpecialOp.JR, SpecialOp.JALR, SpecialOp.MFLO, SpecialOp.MTLO}
_RD_ONLY = {SpecialOp.MFHI, SpecialOp.MTHI}
_MULDIV = {SpecialOp.MULT, SpecialOp.MULTU, SpecialOp.DIV, SpecialOp.DIVU}
_THREE_REG = {
    SpecialOp.ADD, SpecialOp.ADDU, SpecialOp.SUB, SpecialOp.SUBU,
    SpecialOp.AND, SpecialOp.OR, SpecialOp.XOR, SpecialOp.NOR,
    SpecialOp.SLT, SpecialOp.SLTU,
}

_BRANCHES = {Opcode.BEQ, Opcode.BNE}
_IMMEDIATES = {
    Opcode.ADDI, Opcode.ADDIU, Opcode.SLTI, Opcode.SLTIU,
    Opcode.ANDI, Opcode.ORI, Opcode.XORI,
}
_MEMORY_OPS = {
    Opcode.LB, Opcode.LH, Opcode.LWL, Opcode.LW, Opcode.LBU, Opcode.LHU,
    Opcode.LWR, Opcode.SB, Opcode.SH, Opcode.SWL, Opcode.SW, Opcode.SWR,
    Opcode.LWC0, Opcode.LWC1, Opcode.LWC2, Opcode.LWC3,
    Opcode.SWC0, Opcode.SWC1, Opcode.SWC2, Opcode.SWC3,
}


def _reg(index: int) -> str:
    return REGISTER_NAMES[index]


def _hex32(value: int) -> str:
    return f"{value & 0xFFFFFFFF:08x}"


def _imm(value: int) -> str:
    return f"0x{value & 0xFFFFFFFF:x}"


def _special_operands(word: int, funct: int) -> str:
    if funct in _SHIFTS:
        return f"{_reg(rd(word))},{_reg(rt(word))},{_imm(shamt(word))}"
    if funct in _VAR_SHIFTS:
        return f"{_reg(rd(word))},{_reg(rt(word))},{_reg(rs(word))}"
    if funct in _RS_ONLY:
        return _reg(rs(word))
    if funct in _RD_ONLY:
        return _reg(rd(word))
    if funct in _MULDIV:
        return f"{_reg(rs(word))},{_reg(rt(word))}"
    if funct in _THREE_REG:
        return f"{_reg(rd(word))},{_reg(rs(word))},{_reg(rt(word))}"
    return ""


def _normal_operands(word: int, op: int, pc: int) -> str:
    if op in (Opcode.J, Opcode.JAL):
        return _hex32(top4(pc) | off26(word))
    if op in _BRANCHES:
        return f"{_reg(rt(word))},{_reg(rs(word))},{_hex32(off16(word) + pc + 4)}"
    if op in _IMMEDIATES:
        return f"{_reg(rt(word))},{_reg(rs(word))},{_imm(immed(word))}"
    if op == Opcode.LUI:
        return f"{_reg(rt(word))},{_imm(immed(word))}"
    if op in _MEMORY_OPS:
        return f"{_reg(rt(word))},{_imm(immed(word))}({_reg(rs(word))})"
    return ""


def disassemble(word: int, pc: int, show_address: bool = True) -> str:
    """Render one instruction word located at ``pc`` as assembly text."""
    word &= 0xFFFFFFFF
    prefix = f"{_hex32(pc)}: {word:08x}  " if show_address else ""
    op = word >> 26
    if word == NOP:
        body = "nop"
    elif op == Opcode.SPECIAL:
        funct = word & 0x3F
        body = f"{SPECIAL_OPS[funct]}\t{_special_operands(word, funct)}"
    elif op == Opcode.BCOND:
        name = _BCOND_NAMES.get(rt(word), "BCOND")
        body = f"{name}\t{_reg(rs(word))},{_hex32(off16(word) + pc + 4)}"
    else:
        body = f"{NORMAL_OPS[op]}\t{_normal_operands(word, op, pc)}"
    return f"{prefix}\t{body}"


def _load_image(coff: CoffFile) -> Tuple[bytearray, List[str]]:
    """Place the program's sections in memory; return the image and missing names."""
    image = bytearray()
    missing = []
    for name in LOAD_ORDER:
        section = coff.section(name)
        if section is None:
            missing.append(name)
            continue
        if section.scnptr == 0:
            continue
        start = section.vaddr - MEMORY_OFFSET
        end = start + section.size
        if start < 0 or end > MEMORY_SIZE:
            raise CoffError("MEMSIZE too small. Fix and recompile.")
        if len(image) < end:
            image.extend(bytes(end - len(image)))
        image[start:end] = coff.section_data(section)
    return image, missing


def _disassemble_image(image: bytes, text_size: int) -> Iterator[str]:
    for offset in range(0, text_size, 4):
        chunk = bytes(image[offset:offset + 4]).ljust(4, b"\0")
        yield disassemble(int.from_bytes(chunk, "little"), MEMORY_OFFSET + offset)


def disassemble_text(coff: CoffFile) -> Iterator[str]:
    """Yield one line per word of the text segment, starting at the load address."""
    image, _ = _load_image(coff)
    text = coff.section(".text")
    yield from _disassemble_image(image, text.size if text else 0)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Disassemble the program named on the command line (default a.out)."""
    args = list(sys.argv[1:] if argv is None else argv)
    while args and args[0].startswith("-"):
        args.pop(0)
    filename = args[0] if args else "a.out"

    try:
        data = Path(filename).read_bytes()
    except OSError:
        print(f"{_PROG}: Could not open '{filename}'", file=sys.stderr)
        return 0

    if len(data) >= 2 and int.from_bytes(data[:2], "little") != MIPSELMAGIC:
        print("big-endian object file (little-endian interp)", file=sys.stderr)
        return 0
    try:
        coff = read_coff(data)
    except CoffError:
        print(f"{_PROG}: Load read error on {filename}", file=sys.stderr)
        return 0

    try:
        image, missing = _load_image(coff)
    except CoffError as err:
        print(err)
        return 1
    for name in missing:
        print(f"{name[1:]} section header missing")

    text = coff.section(".text")
    for line in _disassemble_image(image, text.size if text else 0):
        print(line)
    return 0