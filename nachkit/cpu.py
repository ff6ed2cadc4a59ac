"""Interpreter for the MIPS user-mode instruction set."""

from __future__ import annotations

import os
import sys
from typing import Optional, Sequence, TextIO, Union

from .disasm import disassemble
from .isa import BcondOp, Opcode, SpecialOp, immed, rd, rs, rt, shamt
from .memory import Memory
from .syscalls import ProgramExit, SyscallHandler

_MASK = 0xFFFFFFFF
_STACK_RESERVE = 1024
_ARGV_GAP = 32

_COPROCESSOR_OPS = {
    Opcode.LWC0, Opcode.LWC1, Opcode.LWC2, Opcode.LWC3,
    Opcode.SWC0, Opcode.SWC1, Opcode.SWC2, Opcode.SWC3,
    Opcode.COP0, Opcode.COP1, Opcode.COP2, Opcode.COP3,
}


class UnimplementedInstruction(Exception):
    """Raised when the program executes an instruction the CPU cannot run."""

    def __init__(self, word: int, message: str = "Unimplemented Instruction") -> None:
        super().__init__(message)
        self.word = word


def _s32(value: int) -> int:
    value &= _MASK
    return value - (1 << 32) if value & 0x80000000 else value


def _u32(value: int) -> int:
    return value & _MASK


def _truncating_divmod(a: int, b: int) -> tuple:
    if b == 0:
        raise ZeroDivisionError("integer division by zero")
    quotient = abs(a) // abs(b)
    if (a >= 0) != (b >= 0):
        quotient = -quotient
    return quotient, a - b * quotient


def _multiply(a: int, b: int, signed: bool) -> tuple:
    """Return (HI, LO) as the machine computes them."""
    negative = False
    if signed:
        if a < 0:
            a = _s32(-a)
            negative = not negative
        if b < 0:
            b = _s32(-b)
            negative = not negative
    lo = _s32(a * b)
    a_low, a_high = a & 0xFFFF, (a >> 16) & 0xFFFF
    b_low, b_high = b & 0xFFFF, (b >> 16) & 0xFFFF
    hi = _s32(
        _s32(a_high * b_high)
        + (_s32(a_high * b_low) >> 16)
        + (_s32(b_high * a_low) >> 16)
    )
    if negative:
        lo = _s32(~lo + 1)
        hi = ~hi
        if lo == 0:
            hi = _s32(hi + 1)
    return hi, lo


def ilog2(value: int) -> int:
    """Number of significant bits of ``value`` taken as unsigned 32-bit."""
    return _u32(value).bit_length()


class Cpu:
    """Registers, program counters and the fetch-execute cycle."""

    def __init__(
        self,
        memory: Memory,
        syscalls: Optional[SyscallHandler] = None,
        trace: bool = False,
        regtrace: bool = False,
        out: Optional[TextIO] = None,
    ) -> None:
        self.memory = memory
        self.syscalls = syscalls if syscalls is not None else SyscallHandler(out=out)
        self.trace = trace
        self.regtrace = regtrace
        self.out = out
        self.registers = [0] * 32
        self.hi = 0
        self.lo = 0
        self.pc = _u32(memory.offset)
        self.npc = _u32(self.pc + 4)
        self.icount = 0

    @property
    def _out(self) -> TextIO:
        return self.out if self.out is not None else sys.stdout

    def _set(self, index: int, value: int) -> None:
        self.registers[index] = _s32(value)

    def setup_args(self, argv: Sequence[Union[str, bytes]]) -> int:
        """Lay out argc and argv below the top of memory; return the stack pointer."""
        sp = _u32(self.memory.offset + self.memory.size - _STACK_RESERVE)
        self._set(29, sp)
        self.memory.store(sp, len(argv))
        slot = sp + 4
        text = slot + _ARGV_GAP
        for arg in argv:
            raw = os.fsencode(arg) + b"\0"
            self.memory.write_bytes(text, raw)
            self.memory.store(slot, text)
            slot += 4
            text += len(raw)
        return sp

    def step(self) -> None:
        """Fetch and execute one instruction."""
        self.icount += 1
        xpc = self.pc
        self.pc = self.npc
        self.npc = _u32(self.pc + 4)
        word = self.memory.fetch(xpc)
        self.registers[0] = 0
        if word != 0:
            self._execute(_u32(word), xpc)
        if self.trace:
            self._out.write(disassemble(word, xpc) + "\n")
            if self.regtrace:
                self.dump_registers()

    def run(self, start_pc: int, argv: Sequence[Union[str, bytes]] = ()) -> int:
        """Run from ``start_pc`` until the program exits; return its status."""
        self.pc = _u32(start_pc)
        self.npc = _u32(start_pc + 4)
        self.setup_args(argv)
        try:
            while True:
                self.step()
        except ProgramExit as finished:
            return finished.status

    def dump_registers(self) -> None:
        """Write all 32 registers in hex, eight to a line."""
        for base in range(0, 32, 8):
            values = "".join(f" {_u32(v):08x}" for v in self.registers[base:base + 8])
            self._out.write(f"{base:2d}:{values}\n")

    def _branch(self, xpc: int, word: int) -> None:
        self.npc = _u32(xpc + 4 + (immed(word) << 2))

    def _execute(self, word: int, xpc: int) -> None:
        op = word >> 26
        if op == Opcode.SPECIAL:
            self._execute_special(word, xpc)
        elif op == Opcode.BCOND:
            self._execute_bcond(word, xpc)
        else:
            self._execute_normal(op, word, xpc)

    def _execute_special(self, word: int, xpc: int) -> None:
        r = self.registers
        funct = word & 0x3F
        s, t, d = rs(word), rt(word), rd(word)
        if funct == SpecialOp.SLL:
            self._set(d, r[t] << shamt(word))
        elif funct == SpecialOp.SRL:
            self._set(d, _u32(r[t]) >> shamt(word))
        elif funct == SpecialOp.SRA:
            self._set(d, r[t] >> shamt(word))
        elif funct == SpecialOp.SLLV:
            self._set(d, r[t] << (r[s] & 31))
        elif funct == SpecialOp.SRLV:
            self._set(d, _u32(r[t]) >> (r[s] & 31))
        elif funct == SpecialOp.SRAV:
            self._set(d, r[t] >> (r[s] & 31))
        elif funct == SpecialOp.JR:
            self.npc = _u32(r[s])
        elif funct == SpecialOp.JALR:
            self.npc = _u32(r[s])
            self._set(d, xpc + 8)
        elif funct == SpecialOp.SYSCALL:
            self.syscalls.trap(self)
        elif funct == SpecialOp.BREAK:
            self.syscalls.breakpoint(self)
        elif funct == SpecialOp.MFHI:
            self._set(d, self.hi)
        elif funct == SpecialOp.MTHI:
            self.hi = r[s]
        elif funct == SpecialOp.MFLO:
            self._set(d, self.lo)
        elif funct == SpecialOp.MTLO:
            self.lo = r[s]
        elif funct == SpecialOp.MULT:
            self.hi, self.lo = _multiply(r[s], r[t], signed=True)
        elif funct == SpecialOp.MULTU:
            self.hi, self.lo = _multiply(r[s], r[t], signed=False)
        elif funct == SpecialOp.DIV:
            quotient, remainder = _truncating_divmod(r[s], r[t])
            self.lo, self.hi = _s32(quotient), _s32(remainder)
        elif funct == SpecialOp.DIVU:
            quotient, remainder = _truncating_divmod(_u32(r[s]), _u32(r[t]))
            self.lo, self.hi = _s32(quotient), _s32(remainder)
        elif funct in (SpecialOp.ADD, SpecialOp.ADDU):
            self._set(d, r[s] + r[t])
        elif funct in (SpecialOp.SUB, SpecialOp.SUBU):
            self._set(d, r[s] - r[t])
        elif funct == SpecialOp.AND:
            self._set(d, r[s] & r[t])
        elif funct == SpecialOp.OR:
            self._set(d, r[s] | r[t])
        elif funct == SpecialOp.XOR:
            self._set(d, r[s] ^ r[t])
        elif funct == SpecialOp.NOR:
            self._set(d, ~(r[s] | r[t]))
        elif funct == SpecialOp.SLT:
            self._set(d, int(r[s] < r[t]))
        elif funct == SpecialOp.SLTU:
            self._set(d, int(_u32(r[s]) < _u32(r[t])))
        else:
            raise UnimplementedInstruction(word)

    def _execute_bcond(self, word: int, xpc: int) -> None:
        cond = rt(word)
        if cond in (BcondOp.BLTZAL, BcondOp.BGEZAL):
            self._set(31, xpc + 8)
        value = self.registers[rs(word)]
        if cond in (BcondOp.BLTZ, BcondOp.BLTZAL):
            taken = value < 0
        elif cond in (BcondOp.BGEZ, BcondOp.BGEZAL):
            taken = value >= 0
        else:
            raise UnimplementedInstruction(word)
        if taken:
            self._branch(xpc, word)

    def _execute_normal(self, op: int, word: int, xpc: int) -> None:
        r = self.registers
        mem = self.memory
        s, t = rs(word), rt(word)
        imm = immed(word)
        addr = r[s] + imm
        if op in (Opcode.J, Opcode.JAL):
            if op == Opcode.JAL:
                self._set(31, xpc + 8)
            self.npc = (xpc & 0xF0000000) | ((word & 0x03FFFFFF) << 2)
        elif op == Opcode.BEQ:
            if r[s] == r[t]:
                self._branch(xpc, word)
        elif op == Opcode.BNE:
            if r[s] != r[t]:
                self._branch(xpc, word)
        elif op == Opcode.BLEZ:
            if r[s] <= 0:
                self._branch(xpc, word)
        elif op == Opcode.BGTZ:
            if r[s] > 0:
                self._branch(xpc, word)
        elif op in (Opcode.ADDI, Opcode.ADDIU):
            self._set(t, r[s] + imm)
        elif op == Opcode.SLTI:
            self._set(t, int(r[s] < imm))
        elif op == Opcode.SLTIU:
            self._set(t, int(_u32(r[s]) < _u32(imm)))
        elif op == Opcode.ANDI:
            self._set(t, r[s] & imm)
        elif op == Opcode.ORI:
            self._set(t, r[s] | imm)
        elif op == Opcode.XORI:
            self._set(t, r[s] ^ imm)
        elif op == Opcode.LUI:
            self._set(t, word << 16)
        elif op == Opcode.LB:
            self._set(t, mem.fetch_byte(addr))
        elif op == Opcode.LH:
            self._set(t, mem.fetch_half(addr))
        elif op == Opcode.LW:
            self._set(t, mem.fetch(addr))
        elif op == Opcode.LBU:
            self._set(t, mem.fetch_ubyte(addr))
        elif op == Opcode.LHU:
            self._set(t, mem.fetch_uhalf(addr))
        elif op == Opcode.LWL:
            i = _s32(addr)
            self._set(t, r[t] | (mem.fetch(i & 0xFFFFFFFC) << (8 * (i & 3))))
        elif op == Opcode.LWR:
            i = _s32(addr)
            value = r[t] & (-1 << (8 * (i & 3)))
            if i & 3 == 0:
                value = 0
            value |= mem.fetch(i & 0xFFFFFFFC) >> (8 * ((-i) & 3))
            self._set(t, value)
        elif op == Opcode.SB:
            mem.store_byte(addr, r[t])
        elif op == Opcode.SH:
            mem.store_half(addr, r[t])
        elif op == Opcode.SW:
            mem.store(addr, r[t])
        elif op == Opcode.SWL:
            raise UnimplementedInstruction(word, "sorry, no SWL yet.")
        elif op == Opcode.SWR:
            raise UnimplementedInstruction(word, "sorry, no SWR yet.")
        elif op in _COPROCESSOR_OPS:
            raise UnimplementedInstruction(word, "Sorry, no coprocessors.")
        else:
            raise UnimplementedInstruction(word)