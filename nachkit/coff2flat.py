"""Convert a MIPS COFF executable into a flat memory image."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Sequence, Tuple

from .coff import OMAGIC, CoffError, read_coff

STACK_SIZE = 1024
_PROG = "coff2flat"
_MASK = 0xFFFFFFFF
_UNINITIALISED = (".bss", ".sbss")


def _convert(data: bytes, log: Callable[[str], None]) -> Tuple[int, bytes]:
    """Build the flat image; return the top of the sections and the image."""
    coff = read_coff(data)
    if coff.aout.magic != OMAGIC:
        raise CoffError("File is not a OMAGIC file")

    image = bytearray()
    top = 0
    log(f"Loading {len(coff.sections)} sections:")
    for section in coff.sections:
        log(
            f'\t"{section.name}", filepos 0x{section.scnptr & _MASK:x}, '
            f"mempos 0x{section.paddr & _MASK:x}, size 0x{section.size & _MASK:x}"
        )
        top = max(top, section.paddr + section.size)
        if section.name not in _UNINITIALISED:
            image += coff.section_data(section)

    # A blank word at the end of the stack marks where the image ends.
    log(f"Adding stack of size: {STACK_SIZE}")
    end = top + STACK_SIZE
    if len(image) < end:
        image.extend(bytes(end - len(image)))
    image[end - 4:end] = bytes(4)
    return top, bytes(image)


def coff_to_flat(data: bytes, out: BinaryIO) -> int:
    """Write the flat image of COFF ``data`` to ``out``.

    Returns the highest address used by the program's sections.
    """
    top, image = _convert(data, lambda line: None)
    out.write(image)
    return top


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Convert the COFF file named first into the flat file named second."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) < 2:
        print(f"Usage: {_PROG} <coffFileName> <flatFileName>", file=sys.stderr)
        return 1
    source, target = args[0], args[1]

    try:
        data = Path(source).read_bytes()
    except OSError as err:
        print(f"{source}: {err.strerror}", file=sys.stderr)
        return 1

    try:
        with open(target, "wb") as out:
            try:
                _, image = _convert(data, print)
            except CoffError as err:
                print(err, file=sys.stderr)
                return 1
            out.write(image)
    except OSError as err:
        print(f"{target}: {err.strerror}", file=sys.stderr)
        return 1
    return 0