import io

import pytest

from nachkit.cpu import Cpu, UnimplementedInstruction, ilog2
from nachkit.disasm import disassemble
from nachkit.isa import Opcode, SpecialOp
from nachkit.memory import Memory
from nachkit.syscalls import SyscallHandler, UnknownSyscall

BASE = 0x10000000
SIZE = 0x10000


def r_type(funct, s=0, t=0, d=0, sh=0):
    return (s << 21) | (t << 16) | (d << 11) | (sh << 6) | funct


def i_type(op, s, t, imm):
    return (op << 26) | (s << 21) | (t << 16) | (imm & 0xFFFF)


EXIT = [i_type(Opcode.ADDIU, 0, 2, 1), r_type(SpecialOp.SYSCALL)]


def make_cpu(words, **kwargs):
    memory = Memory(SIZE, BASE)
    for index, word in enumerate(words):
        memory.store(BASE + 4 * index, word)
    out = io.StringIO()
    cpu = Cpu(memory, SyscallHandler(out=out), out=out, **kwargs)
    return cpu, out


def run_program(words, **kwargs):
    cpu, out = make_cpu(list(words) + EXIT, **kwargs)
    status = cpu.run(BASE, ["prog"])
    return cpu, out, status


@pytest.mark.parametrize("value, expected", [(0, 0), (1, 1), (3, 2), (7, 3)])
def test_ilog2_values_from_source(value, expected):
    assert ilog2(value) == expected


def test_ilog2_powers_of_two():
    for k in range(32):
        assert ilog2(1 << k) == k + 1
    assert ilog2(-1) == ilog2(1 << 31)


def test_run_returns_exit_status():
    cpu, _, status = run_program([])
    assert status == 0
    assert cpu.registers[2] == 1


def test_ori_loads_immediate():
    cpu, _, _ = run_program([i_type(Opcode.ORI, 0, 8, 0x1234)])
    assert cpu.registers[8] == 0x1234


def test_ori_sign_extends_immediate():
    cpu, _, _ = run_program([i_type(Opcode.ORI, 0, 8, 0x8000)])
    assert cpu.registers[8] == -0x8000


def test_addu_wraps_and_subu_undoes_it():
    cpu, _, _ = run_program([
        i_type(Opcode.LUI, 0, 8, 0x7FFF),
        r_type(SpecialOp.ADDU, 8, 8, 9),
        r_type(SpecialOp.SUBU, 9, 8, 10),
    ])
    r8, r9, r10 = cpu.registers[8], cpu.registers[9], cpu.registers[10]
    assert r8 == 0x7FFF << 16
    assert -(1 << 31) <= r9 < (1 << 31)
    assert r9 & 0xFFFFFFFF == (2 * r8) & 0xFFFFFFFF
    assert r10 == r8


def test_register_zero_is_forced_to_zero():
    cpu, _, _ = run_program([
        i_type(Opcode.ADDIU, 0, 0, 5),
        r_type(SpecialOp.ADDU, 0, 0, 8),
    ])
    assert cpu.registers[8] == 0


def test_shifts():
    cpu, _, _ = run_program([
        i_type(Opcode.ADDIU, 0, 8, -16),
        r_type(SpecialOp.SRA, 0, 8, 9, 2),
        r_type(SpecialOp.SRL, 0, 8, 10, 28),
        r_type(SpecialOp.SLL, 0, 8, 11, 1),
    ])
    assert cpu.registers[9] == -16 >> 2
    assert cpu.registers[10] == (-16 & 0xFFFFFFFF) >> 28
    assert cpu.registers[11] == -16 * 2


def test_signed_and_unsigned_compare():
    cpu, _, _ = run_program([
        i_type(Opcode.ADDIU, 0, 8, -1),
        i_type(Opcode.ADDIU, 0, 9, 1),
        r_type(SpecialOp.SLT, 8, 9, 10),
        r_type(SpecialOp.SLTU, 8, 9, 11),
    ])
    assert cpu.registers[10] == 1
    assert cpu.registers[11] == 0


def test_div_truncates_toward_zero():
    cpu, _, _ = run_program([
        i_type(Opcode.ADDIU, 0, 8, -7),
        i_type(Opcode.ADDIU, 0, 9, 3),
        r_type(SpecialOp.DIV, 8, 9),
        r_type(SpecialOp.MFLO, 0, 0, 10),
        r_type(SpecialOp.MFHI, 0, 0, 11),
    ])
    quotient, remainder = cpu.registers[10], cpu.registers[11]
    assert quotient * 3 + remainder == -7
    assert -3 < remainder <= 0
    assert (cpu.lo, cpu.hi) == (quotient, remainder)


def test_div_by_zero_raises():
    cpu, _ = make_cpu([i_type(Opcode.ADDIU, 0, 8, 4), r_type(SpecialOp.DIV, 8, 0)])
    with pytest.raises(ZeroDivisionError):
        cpu.run(BASE, [])


def test_mult_negative_product():
    cpu, _, _ = run_program([
        i_type(Opcode.ADDIU, 0, 8, -7),
        i_type(Opcode.ADDIU, 0, 9, 3),
        r_type(SpecialOp.MULT, 8, 9),
    ])
    assert cpu.lo == -7 * 3
    assert cpu.hi == -1


def test_mthi_mtlo_round_trip():
    cpu, _, _ = run_program([
        i_type(Opcode.ADDIU, 0, 8, 42),
        r_type(SpecialOp.MTLO, 8),
        r_type(SpecialOp.MFLO, 0, 0, 9),
    ])
    assert cpu.registers[9] == 42


def test_branch_executes_delay_slot_and_skips():
    cpu, _, _ = run_program([
        i_type(Opcode.BEQ, 0, 0, 2),
        i_type(Opcode.ADDIU, 0, 9, 5),
        i_type(Opcode.ADDIU, 0, 10, 9),
        i_type(Opcode.ADDIU, 0, 11, 7),
    ])
    assert cpu.registers[9] == 5
    assert cpu.registers[10] == 0
    assert cpu.registers[11] == 7


def test_jal_links_past_delay_slot():
    target = BASE + 8
    cpu, _, _ = run_program([
        (Opcode.JAL << 26) | ((target >> 2) & 0x03FFFFFF),
        0,
    ])
    assert cpu.registers[31] == BASE + 8


def test_jr_jumps_to_register():
    cpu, _, _ = run_program([
        i_type(Opcode.LUI, 0, 8, BASE >> 16),
        i_type(Opcode.ORI, 8, 8, 20),
        r_type(SpecialOp.JR, 8),
        0,
        i_type(Opcode.ADDIU, 0, 9, 1),
    ])
    assert cpu.registers[9] == 0


def test_byte_half_and_word_loads():
    cpu, _, _ = run_program([
        i_type(Opcode.LUI, 0, 8, BASE >> 16),
        i_type(Opcode.ORI, 8, 8, 0x100),
        i_type(Opcode.ADDIU, 0, 9, 0x80),
        i_type(Opcode.SB, 8, 9, 0),
        i_type(Opcode.LB, 8, 10, 0),
        i_type(Opcode.LBU, 8, 11, 0),
        i_type(Opcode.ADDIU, 0, 12, -2),
        i_type(Opcode.SW, 8, 12, 4),
        i_type(Opcode.LW, 8, 13, 4),
        i_type(Opcode.LH, 8, 14, 4),
        i_type(Opcode.LHU, 8, 15, 4),
        i_type(Opcode.LWR, 8, 16, 4),
    ])
    r = cpu.registers
    assert r[10] == 0x80 - 0x100
    assert r[11] == 0x80
    assert r[13] == -2
    assert r[14] == -2
    assert r[15] == -2 & 0xFFFF
    assert r[16] == -2
    assert cpu.memory.fetch(BASE + 0x104) == -2


def test_setup_args_layout():
    cpu, _ = make_cpu([])
    sp = cpu.setup_args(["prog", "x"])
    memory = cpu.memory
    assert sp == BASE + SIZE - 1024
    assert cpu.registers[29] == sp
    assert memory.fetch(sp) == 2
    first = memory.fetch(sp + 4)
    second = memory.fetch(sp + 8)
    assert memory.read_bytes(first, 5) == b"prog\0"
    assert memory.read_bytes(second, 2) == b"x\0"
    assert second == first + 5


@pytest.mark.parametrize(
    "word, message",
    [
        ((0o24 << 26), "Unimplemented Instruction"),
        (i_type(Opcode.COP0, 0, 0, 0) | 1, "Sorry, no coprocessors."),
        (i_type(Opcode.SWL, 0, 0, 0), "sorry, no SWL yet."),
        (r_type(0o01) | (1 << 11), "Unimplemented Instruction"),
    ],
)
def test_unimplemented_instructions(word, message):
    cpu, _ = make_cpu([word])
    with pytest.raises(UnimplementedInstruction) as info:
        cpu.run(BASE, [])
    assert str(info.value) == message
    assert info.value.word == word


def test_unknown_syscall_propagates():
    cpu, _ = make_cpu([i_type(Opcode.ADDIU, 0, 2, 999), r_type(SpecialOp.SYSCALL)])
    with pytest.raises(UnknownSyscall) as info:
        cpu.run(BASE, [])
    assert info.value.number == 999


def test_dump_registers_format():
    cpu, out = make_cpu([])
    cpu.registers[29] = 0x1234
    cpu.registers[8] = -1
    cpu.dump_registers()
    lines = out.getvalue().splitlines()
    assert len(lines) == 4
    assert lines[0].startswith(" 0:")
    assert lines[3].startswith("24:")
    assert lines[1].split()[1] == "ffffffff"
    assert lines[3].split()[6] == "00001234"


def test_trace_prints_disassembly():
    word = i_type(Opcode.ORI, 0, 8, 0x1234)
    cpu, out, _ = run_program([word], trace=True)
    assert disassemble(word, BASE) in out.getvalue().splitlines()
    assert cpu.icount == 3