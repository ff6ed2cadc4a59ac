import struct

import pytest

from nachkit.coff import MIPSELMAGIC, OMAGIC, read_coff
from nachkit.disasm import (
    MEMORY_OFFSET,
    MEMORY_SIZE,
    disassemble,
    disassemble_text,
    main,
)
from nachkit.isa import Opcode, SpecialOp, off26, top4


def r_type(funct, s=0, t=0, d=0, sh=0):
    return (s << 21) | (t << 16) | (d << 11) | (sh << 6) | funct


def i_type(op, s=0, t=0, imm=0):
    return (op << 26) | (s << 21) | (t << 16) | (imm & 0xFFFF)


def build_coff(sections, magic=MIPSELMAGIC):
    n = len(sections)
    offset = 20 + 56 + 40 * n
    headers = b""
    body = b""
    for name, vaddr, payload in sections:
        headers += struct.pack(
            "<8s6iHHi", name.encode(), vaddr, vaddr, len(payload),
            offset + len(body), 0, 0, 0, 0, 0,
        )
        body += payload
    file_header = struct.pack("<HHiiiHH", magic, n, 0, 0, 0, 56, 0)
    aout = struct.pack("<hh8i4ii", OMAGIC, 0, *([0] * 8), 0, 0, 0, 0, 0)
    return file_header + aout + headers + body


def words_to_bytes(words):
    return b"".join(w.to_bytes(4, "little") for w in words)


def fields(line):
    return line.split("\t")


def test_nop():
    assert disassemble(0, MEMORY_OFFSET, False) == "\tnop"


@pytest.mark.parametrize("word, pc", [(0, 0x10000000), (0x27BDFFF8, 0x10000010)])
def test_address_prefix(word, pc):
    line = disassemble(word, pc, True)
    assert line == f"{pc:08x}: {word:08x}  " + disassemble(word, pc, False)


def test_addu():
    word = r_type(SpecialOp.ADDU, s=4, t=5, d=2)
    assert fields(disassemble(word, 0, False)) == ["", "addu", "r2,r4,r5"]


def test_jr():
    word = r_type(SpecialOp.JR, s=31)
    assert fields(disassemble(word, 0, False)) == ["", "jr", "r31"]


def test_syscall_has_no_operands():
    word = r_type(SpecialOp.SYSCALL)
    assert fields(disassemble(word, 0, False)) == ["", "syscall", ""]


def test_negative_immediate():
    word = i_type(Opcode.ADDIU, s=29, t=29, imm=-8)
    assert fields(disassemble(word, 0, False)) == ["", "addiu", "sp,sp,0xfffffff8"]


def test_load_word():
    word = i_type(Opcode.LW, s=29, t=2, imm=0x10)
    _, name, operands = fields(disassemble(word, 0, False))
    assert name == "lw"
    assert operands.startswith("r2,")
    assert operands.endswith("(sp)")


def test_lui():
    word = i_type(Opcode.LUI, t=3, imm=0x1234)
    _, name, operands = fields(disassemble(word, 0, False))
    reg, value = operands.split(",")
    assert (name, reg) == ("lui", "r3")
    assert int(value, 16) == 0x1234


def test_beq_target():
    pc = 0x400
    word = i_type(Opcode.BEQ, s=4, t=5, imm=3)
    _, name, operands = fields(disassemble(word, pc, False))
    parts = operands.split(",")
    assert name == "beq"
    assert parts[:2] == ["r5", "r4"]
    assert int(parts[2], 16) == pc + 4 + 3 * 4


def test_jal_target():
    pc = 0x10000040
    word = (Opcode.JAL << 26) | 0x123
    _, name, target = fields(disassemble(word, pc, False))
    assert name == "jal"
    assert int(target, 16) == top4(pc) | off26(word)


def test_bltz():
    word = i_type(Opcode.BCOND, s=4, t=0, imm=1)
    _, name, operands = fields(disassemble(word, 0, False))
    assert name == "bltz"
    assert operands.split(",")[0] == "r4"


def test_unknown_bcond():
    word = i_type(Opcode.BCOND, s=1, t=5, imm=0)
    assert fields(disassemble(word, 0, False))[1] == "BCOND"


def test_unassigned_opcode():
    word = (0o24 << 26) | 0x1234
    assert fields(disassemble(word, 0, False)) == ["", "024", ""]


def test_disassemble_text():
    words = [i_type(Opcode.ADDIU, s=29, t=29, imm=-8), r_type(SpecialOp.JR, s=31)]
    coff = read_coff(build_coff([(".text", MEMORY_OFFSET, words_to_bytes(words))]))
    lines = list(disassemble_text(coff))
    assert lines == [
        disassemble(words[0], MEMORY_OFFSET),
        disassemble(words[1], MEMORY_OFFSET + 4),
    ]


def test_disassemble_text_without_text():
    coff = read_coff(build_coff([(".data", MEMORY_OFFSET, b"\1\2\3\4")]))
    assert list(disassemble_text(coff)) == []


def test_main_prints_listing(tmp_path, capsys):
    words = [r_type(SpecialOp.JR, s=31), 0]
    path = tmp_path / "prog.coff"
    path.write_bytes(build_coff([(".text", MEMORY_OFFSET, words_to_bytes(words))]))
    assert main([str(path)]) == 0
    out = capsys.readouterr().out.splitlines()
    assert "data section header missing" in out
    assert out[-2:] == [
        disassemble(words[0], MEMORY_OFFSET),
        disassemble(words[1], MEMORY_OFFSET + 4),
    ]


def test_main_skips_options(tmp_path, capsys):
    path = tmp_path / "prog.coff"
    path.write_bytes(build_coff([(".text", MEMORY_OFFSET, words_to_bytes([0]))]))
    assert main(["-x", str(path)]) == 0
    assert capsys.readouterr().out.splitlines()[-1] == disassemble(0, MEMORY_OFFSET)


def test_main_missing_file(tmp_path, capsys):
    missing = tmp_path / "nothing"
    assert main([str(missing)]) == 0
    assert "Could not open" in capsys.readouterr().err


def test_main_wrong_byte_order(tmp_path, capsys):
    path = tmp_path / "prog.coff"
    path.write_bytes(build_coff([], magic=0x6201))
    assert main([str(path)]) == 0
    assert "big-endian" in capsys.readouterr().err


def test_main_section_beyond_memory(tmp_path, capsys):
    path = tmp_path / "prog.coff"
    path.write_bytes(build_coff([(".text", MEMORY_OFFSET + MEMORY_SIZE - 2, b"\0" * 4)]))
    assert main([str(path)]) == 1
    assert "MEMSIZE too small" in capsys.readouterr().out