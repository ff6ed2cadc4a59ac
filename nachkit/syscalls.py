"""System calls made by programs running in the interpreter."""

from __future__ import annotations

import mmap
import os
import sys
from typing import Optional, TextIO

SYS_EXIT = 1
SYS_READ = 3
SYS_WRITE = 4
SYS_OPEN = 5
SYS_CLOSE = 6
SYS_SBREAK = 17
SYS_LSEEK = 19
SYS_IOCTL = 54
SYS_FSTAT = 62
SYS_GETPAGESIZE = 64

_PAGE = 8192


class ProgramExit(Exception):
    """Raised when the simulated program calls exit."""

    def __init__(self, status: int = 0) -> None:
        super().__init__(f"program exited with status {status}")
        self.status = status


class UnknownSyscall(Exception):
    """Raised for a system call number the interpreter does not know."""

    def __init__(self, number: int) -> None:
        super().__init__(f"Unknown System call {number}")
        self.number = number


def _to_signed(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def _truncating_div(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return quotient if (a >= 0) == (b >= 0) else -quotient


def _read_cstring(memory, addr: int) -> bytes:
    chars = bytearray()
    while (byte := memory.fetch_ubyte(addr + len(chars))) != 0:
        chars.append(byte)
    return bytes(chars)


class SyscallHandler:
    """Carries out traps on behalf of a CPU.

    The CPU passed to :meth:`trap` must have ``registers`` (32 ints),
    ``memory`` (a :class:`~nachkit.memory.Memory`) and ``dump_registers()``,
    which writes a register dump to the CPU's output.  The call number is
    taken from r2, arguments from r4..r6, and the result goes to r1.
    """

    def __init__(self, trace: bool = False, out: Optional[TextIO] = None) -> None:
        self.trace = trace
        self.out = out

    @property
    def _out(self) -> TextIO:
        return self.out if self.out is not None else sys.stdout

    def breakpoint(self, cpu) -> None:
        """Handle a BREAK instruction: treated as a system call."""
        if self.trace:
            self._out.write("**breakpoint ")
        self.trap(cpu)

    def trap(self, cpu) -> None:
        """Handle a SYSCALL instruction."""
        regs = cpu.registers
        if self.trace:
            self._out.write(f"**System call {regs[2]}\n")
            cpu.dump_registers()

        number = regs[2]
        o0, o1, o2 = regs[4], regs[5], regs[6]
        if number == SYS_EXIT:
            self._out.flush()
            raise ProgramExit(0)
        if number == SYS_READ:
            result = self._read(cpu.memory, o0, o1, o2)
        elif number == SYS_WRITE:
            result = self._write(cpu.memory, o0, o1, o2)
        elif number == SYS_OPEN:
            result = self._open(cpu.memory, o0, o1, o2)
        elif number == SYS_CLOSE:
            result = 0
        elif number == SYS_SBREAK:
            result = (_truncating_div(o0, _PAGE) + 1) * _PAGE
        elif number == SYS_LSEEK:
            result = self._lseek(o0, o1, o2)
        elif number == SYS_IOCTL:
            result = 0
        elif number == SYS_FSTAT:
            result = self._fstat(o1)
        elif number == SYS_GETPAGESIZE:
            result = mmap.PAGESIZE
        else:
            self._out.write(f"Unknown System call {number}\n")
            if not self.trace:
                cpu.dump_registers()
            raise UnknownSyscall(number)
        regs[1] = _to_signed(result)

        if self.trace:
            self._out.write("**Afterwards:\n")
            cpu.dump_registers()

    @staticmethod
    def _read(memory, fd: int, addr: int, count: int) -> int:
        try:
            data = os.read(fd, count)
        except (OSError, ValueError):
            return -1
        memory.write_bytes(addr, data)
        return len(data)

    @staticmethod
    def _write(memory, fd: int, addr: int, count: int) -> int:
        try:
            data = memory.read_bytes(addr, count)
        except ValueError:
            return -1
        try:
            return os.write(fd, data)
        except OSError:
            return -1

    @staticmethod
    def _open(memory, addr: int, flags: int, mode: int) -> int:
        path = _read_cstring(memory, addr)
        try:
            return os.open(path, flags, mode)
        except (OSError, ValueError):
            return -1

    @staticmethod
    def _lseek(fd: int, offset: int, whence: int) -> int:
        try:
            return os.lseek(fd, offset, whence)
        except (OSError, ValueError):
            return -1

    @staticmethod
    def _fstat(fd: int) -> int:
        try:
            os.fstat(fd)
        except OSError:
            return -1
        return 0