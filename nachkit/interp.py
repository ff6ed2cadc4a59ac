"""Command-line interpreter that loads a MIPS COFF program and runs it."""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, TextIO

from .coff import MIPSELMAGIC, CoffError, CoffFile, read_coff
from .cpu import Cpu, UnimplementedInstruction
from .memory import AddressError, Memory
from .syscalls import SyscallHandler, UnknownSyscall

LOAD_ORDER = (".text", ".rdata", ".data", ".sdata", ".sbss", ".bss")

_PROG = "interp"
_DEFAULT_PROGRAM = "a.out"
_UNIMPLEMENTED = "Unimplemented Instruction"
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


@dataclass
class Options:
    """Settings taken from the command line."""

    trace: bool = False
    traptrace: bool = False
    regtrace: bool = False
    nrows: int = 64
    assoc: int = 1
    linesize: int = 4
    rand: bool = False
    lrd: bool = False
    filename: str = _DEFAULT_PROGRAM
    program_args: List[str] = field(default_factory=lambda: [_DEFAULT_PROGRAM])


def _atoi(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def parse_args(argv: Sequence[str]) -> Options:
    """Parse the flags, program name and program arguments."""
    args = list(argv)
    opts = Options()
    while args and args[0].startswith("-"):
        flag = args.pop(0)
        for char in flag[1:]:
            if char == "t":
                opts.trace = True
            elif char == "T":
                opts.traptrace = True
            elif char == "r":
                opts.regtrace = True
            elif char == "m":
                if len(args) < 4:
                    raise ValueError("-m needs NROWS ASSOC LINESIZE POLICY")
                rows, assoc, linesize, policy = args[:4]
                del args[:4]
                opts.nrows = _atoi(rows)
                opts.assoc = _atoi(assoc)
                opts.linesize = _atoi(linesize)
                opts.rand = policy.startswith("r")
                opts.lrd = policy.startswith("lrd")
    if args:
        opts.filename = args[0]
        opts.program_args = args
    else:
        opts.program_args = [_DEFAULT_PROGRAM]
    return opts


def load_program(memory: Memory, coff: CoffFile, out: Optional[TextIO] = None) -> List[str]:
    """Copy the program's sections into ``memory``.

    Returns the names of the expected sections that the file lacks; a line
    is written to ``out`` for each of them.
    """
    stream = out if out is not None else sys.stdout
    missing = []
    for name in LOAD_ORDER:
        section = coff.section(name)
        if section is None:
            stream.write(f"{name[1:]} section header missing\n")
            missing.append(name)
            continue
        if section.scnptr == 0:
            continue
        start = (section.vaddr & 0xFFFFFFFF) - memory.offset
        end = start + section.size
        if start < 0 or end >= len(memory):
            raise CoffError("MEMSIZE too small. Fix and recompile.")
        memory.write_bytes(section.vaddr, coff.section_data(section))
    return missing


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Load the program named on the command line and run it."""
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        opts = parse_args(args)
    except ValueError as err:
        print(f"{_PROG}: {err}", file=sys.stderr)
        return 1

    try:
        data = Path(opts.filename).read_bytes()
    except OSError:
        print(f"{_PROG}: Could not open '{opts.filename}'", file=sys.stderr)
        return 0

    if len(data) >= 2 and int.from_bytes(data[:2], "little") != MIPSELMAGIC:
        print("big-endian object file (little-endian interp)", file=sys.stderr)
        return 0
    try:
        coff = read_coff(data)
    except CoffError:
        print(f"{_PROG}: Load read error on {opts.filename}", file=sys.stderr)
        return 0

    memory = Memory()
    try:
        load_program(memory, coff)
    except CoffError as err:
        print(err)
        return 1

    cpu = Cpu(
        memory,
        SyscallHandler(trace=opts.traptrace),
        trace=opts.trace,
        regtrace=opts.regtrace,
    )
    try:
        return cpu.run(memory.offset, opts.program_args)
    except UnimplementedInstruction as err:
        message = str(err)
        if message == _UNIMPLEMENTED:
            print(message)
        else:
            print(message, file=sys.stderr)
            if not message.startswith("Sorry"):
                print(_UNIMPLEMENTED)
        return 2
    except UnknownSyscall:
        return 2
    except (AddressError, ZeroDivisionError) as err:
        print(f"{_PROG}: {err}", file=sys.stderr)
        return 1