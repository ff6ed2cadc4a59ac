# nachkit

Tools for the user programs and the simulated disk of a small teaching
operating system:

- reading little-endian MIPS COFF object files and writing them out as
  NOFF executables or as flat memory images;
- a MIPS R2000 disassembler;
- a MIPS interpreter that runs a COFF program and services a handful of
  Unix-style system calls;
- a file system with a single flat directory, fixed-size files and a
  bitmap of free sectors, stored on a simulated disk.

Pure Python, no dependencies, Python 3.10 or later.

## Installing

    pip install nachkit

For running the tests:

    pip install "nachkit[test]"
    pytest

## Commands

Convert a COFF object file (linked with no shared text) to a NOFF
executable. `.text`, `.data` or `.rdata` (not both), and `.bss`/`.sbss`
(which must be contiguous) are kept; empty sections, `.drop` and
`.debug*` sections are skipped; any other section is an error and the
output file is removed:

    nachkit-coff2noff program.coff program.noff

Convert a COFF object file to a flat image that can be copied straight
into memory, followed by a 1024-byte stack whose last word marks the end:

    nachkit-coff2flat program.coff program.flat

Disassemble the text section of a COFF file (defaults to `a.out`); a line
is printed for each expected section the file lacks:

    nachkit-disasm program.coff

Run a COFF program in the interpreter (defaults to `a.out`). The program
is loaded into 16 MiB of memory at `0x10000000` and started there, with
argc and argv laid out on its stack. `-t` traces every instruction, `-r`
adds a register dump to each traced instruction, and `-T` traces system
calls:

    nachkit-run -t program.coff arg1 arg2

The interpreter handles the system calls exit, read, write, open, close,
sbreak, lseek, ioctl (always returns 0), fstat and getpagesize. It stops
with status 2 on an unknown system call or an instruction it cannot run
(SWL, SWR and coprocessor instructions among them).

## Library use

### Object files

```python
from nachkit.coff import read_coff
from nachkit.coff2noff import coff_to_noff

with open("program.coff", "rb") as f:
    data = f.read()

coff = read_coff(data)
text = coff.section(".text")
code = coff.section_data(text)

with open("program.noff", "wb") as out:
    coff_to_noff(data, out)
```

`read_coff` raises `nachkit.coff.CoffError` on a short or non-MIPSEL
file; `coff_to_noff` raises `nachkit.coff2noff.ConversionError` for
sections it cannot express and writes nothing in that case.
`nachkit.coff2flat.coff_to_flat` writes a flat image and returns the top
address of the sections. `nachkit.coff.NoffHeader` packs to the on-disk
header with `pack()`, and `nachkit.coff.unpack_noff` reads one back.

### Disassembly and instruction fields

```python
from nachkit.disasm import disassemble
from nachkit.isa import rs, rt, immed

word = 0x24020005          # addiu r2,0,0x5
print(disassemble(word, 0, False))
print(rs(word), rt(word), immed(word))
```

`nachkit.disasm.disassemble_text(coff)` yields one line per word of a
program's text section.

### Running code

```python
from nachkit.memory import Memory
from nachkit.cpu import Cpu

memory = Memory()
memory.store(memory.offset, 0x24020005)    # addiu r2,0,5
cpu = Cpu(memory)
cpu.step()
print(cpu.registers[2])
```

`Cpu.run(start_pc, argv)` runs until the program makes the exit system
call and returns its status. `nachkit.interp.load_program` copies a
parsed COFF file into a `Memory`.

### The file system

```python
from nachkit.disk import SynchDisk
from nachkit.filesys import FileSystem

with SynchDisk("DISK", 128, 1024) as disk:
    fs = FileSystem(disk, True)        # format a fresh disk
    fs.create("hello", 64)
    f = fs.open("hello")
    f.write(b"hello, world")
    f.seek(0)
    print(f.read(12))
    print(fs.list())
    fs.remove("hello")
```

`SynchDisk(None)` keeps the disk in memory only. File names are at most
9 characters, files are given their size when they are created and
cannot grow (writes past the end are cut short), a file header holds
only direct sector numbers, and the directory holds 10 entries.
`FileSystem.describe()` returns a dump of the bitmap, the directory and
every file.

`nachkit.fstest` has `copy` (copy a host file in), `print_file` (write a
stored file to a text stream) and `performance_test`. The performance
test creates a zero-length file and writes 50,000 bytes to it in small
chunks; since files cannot grow, on this file system it reports the
failure and returns False.

## What it does not do

There is no command for the file system: formatting a disk, copying
files in, listing and printing are available only from Python. There is
no kernel, no threads and no loader for NOFF or flat images; the
interpreter runs COFF files only. The `-m` option of `nachkit-run` is
accepted and parsed but no cache is simulated.