"""Convert a MIPS COFF executable into the NOFF executable format."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Sequence, Tuple

from .coff import OMAGIC, CoffError, NoffHeader, SectionHeader, Segment, read_coff

_PROG = "coff2noff"
_MASK = 0xFFFFFFFF


class ConversionError(CoffError):
    """Raised when a COFF file cannot be expressed as a NOFF file."""


def _describe(name: str, section: SectionHeader) -> str:
    return (
        f'\t"{name}", filepos 0x{section.scnptr & _MASK:x}, '
        f"mempos 0x{section.paddr & _MASK:x}, size 0x{section.size & _MASK:x}"
    )


def _convert(data: bytes, log: Callable[[str], None]) -> Tuple[NoffHeader, bytes]:
    """Build the NOFF image for ``data``; report progress through ``log``."""
    coff = read_coff(data)
    if coff.aout.magic != OMAGIC:
        raise ConversionError("File is not a OMAGIC file")

    sections = coff.sections
    log(f"numsections {len(sections)} ")

    header = NoffHeader()
    body = bytearray()
    in_file = NoffHeader.SIZE
    log(f"Loading {len(sections)} sections:")
    for section in sections:
        name = section.name[:7]
        log(_describe(name, section))
        if section.size == 0:
            continue
        if name == ".text":
            header.code = Segment(section.paddr, in_file, section.size)
            body += coff.section_data(section)
            in_file += section.size
        elif name in (".data", ".rdata"):
            if header.init_data.size != 0:
                raise ConversionError("Can't handle both data and rdata")
            header.init_data = Segment(section.paddr, in_file, section.size)
            body += coff.section_data(section)
            in_file += section.size
        elif name in (".bss", ".sbss"):
            uninit = header.uninit_data
            if uninit.size != 0:
                if section.paddr > uninit.virtual_addr + uninit.size:
                    raise ConversionError("Can't handle both bss and sbss")
                uninit.size += section.size
            else:
                header.uninit_data = Segment(section.paddr, -1, section.size)
        elif name == ".drop" or name.startswith(".debug"):
            continue
        else:
            raise ConversionError(f"Unknown segment type: {name}")
    return header, header.pack() + bytes(body)


def coff_to_noff(data: bytes, out: BinaryIO) -> NoffHeader:
    """Convert COFF ``data`` and write the NOFF file to ``out``.

    Nothing is written when the conversion fails.
    """
    header, image = _convert(data, lambda line: None)
    out.write(image)
    return header


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Convert the COFF file named first into the NOFF file named second."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) < 2:
        print(f"Usage: {_PROG} <coffFileName> <noffFileName>", file=sys.stderr)
        return 1
    source, target = args[0], args[1]

    try:
        data = Path(source).read_bytes()
    except OSError as err:
        print(f"{source}: {err.strerror}", file=sys.stderr)
        return 1

    try:
        _, image = _convert(data, print)
    except CoffError as err:
        print(err, file=sys.stderr)
        Path(target).unlink(missing_ok=True)
        return 1

    try:
        Path(target).write_bytes(image)
    except OSError as err:
        print(f"{target}: {err.strerror}", file=sys.stderr)
        return 1
    return 0