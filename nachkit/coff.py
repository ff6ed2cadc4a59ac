"""MIPS little-endian COFF object files and the NOFF executable header."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import ClassVar, Optional, Tuple

MIPSELMAGIC = 0x0162
OMAGIC = 0o407
SOMAGIC = 0x0701
NOFFMAGIC = 0xBADFAD

_FILE_HEADER = struct.Struct("<HHiiiHH")
_AOUT_HEADER = struct.Struct("<hh8i4ii")
_SECTION_HEADER = struct.Struct("<8s6iHHi")
_NOFF_HEADER = struct.Struct("<10i")


class CoffError(Exception):
    """Raised when an object file cannot be read."""


def _signed32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


@dataclass(frozen=True)
class CoffFileHeader:
    """The COFF file header."""

    magic: int
    nscns: int
    timdat: int
    symptr: int
    nsyms: int
    opthdr: int
    flags: int

    SIZE: ClassVar[int] = _FILE_HEADER.size


@dataclass(frozen=True)
class AoutHeader:
    """The a.out (system) header that follows the file header."""

    magic: int
    vstamp: int
    tsize: int
    dsize: int
    bsize: int
    entry: int
    text_start: int
    data_start: int
    bss_start: int
    gprmask: int
    cprmask: Tuple[int, int, int, int]
    gp_value: int

    SIZE: ClassVar[int] = _AOUT_HEADER.size


@dataclass(frozen=True)
class SectionHeader:
    """One COFF section header."""

    name: str
    paddr: int
    vaddr: int
    size: int
    scnptr: int
    relptr: int
    lnnoptr: int
    nreloc: int
    nlnno: int
    flags: int

    SIZE: ClassVar[int] = _SECTION_HEADER.size


@dataclass(frozen=True)
class CoffFile:
    """A parsed COFF object file together with its raw bytes."""

    header: CoffFileHeader
    aout: AoutHeader
    sections: Tuple[SectionHeader, ...]
    data: bytes = field(repr=False)

    def section(self, name: str) -> Optional[SectionHeader]:
        """Return the first section called ``name``, or None."""
        return next((s for s in self.sections if s.name == name), None)

    def section_data(self, section: SectionHeader) -> bytes:
        """Return the raw contents of ``section`` as stored in the file."""
        start = section.scnptr
        end = start + section.size
        if start < 0 or section.size < 0 or end > len(self.data):
            raise CoffError("File is too short")
        return self.data[start:end]


def _unpack(fmt: struct.Struct, data: bytes, offset: int) -> tuple:
    if len(data) < offset + fmt.size:
        raise CoffError("File is too short")
    return fmt.unpack_from(data, offset)


def read_coff(data: bytes) -> CoffFile:
    """Parse a MIPS little-endian COFF file from ``data``."""
    data = bytes(data)
    header = CoffFileHeader(*_unpack(_FILE_HEADER, data, 0))
    if header.magic != MIPSELMAGIC:
        raise CoffError("File is not a MIPSEL COFF file")

    values = _unpack(_AOUT_HEADER, data, CoffFileHeader.SIZE)
    aout = AoutHeader(*values[:10], tuple(values[10:14]), values[14])

    offset = CoffFileHeader.SIZE + AoutHeader.SIZE
    sections = []
    for _ in range(header.nscns):
        raw_name, *rest = _unpack(_SECTION_HEADER, data, offset)
        name = raw_name.split(b"\0", 1)[0].decode("latin-1")
        sections.append(SectionHeader(name, *rest))
        offset += SectionHeader.SIZE
    return CoffFile(header, aout, tuple(sections), data)


@dataclass
class Segment:
    """Placement of one segment in the file and in the address space."""

    virtual_addr: int = 0
    in_file_addr: int = 0
    size: int = 0


@dataclass
class NoffHeader:
    """Header of a NOFF executable: code, initialised and uninitialised data."""

    magic: int = NOFFMAGIC
    code: Segment = field(default_factory=Segment)
    init_data: Segment = field(default_factory=Segment)
    uninit_data: Segment = field(default_factory=Segment)

    SIZE: ClassVar[int] = _NOFF_HEADER.size

    def pack(self) -> bytes:
        """Encode the header in its on-disk little-endian form."""
        values = [self.magic]
        for seg in (self.code, self.init_data, self.uninit_data):
            values.extend((seg.virtual_addr, seg.in_file_addr, seg.size))
        return _NOFF_HEADER.pack(*(_signed32(v) for v in values))


def unpack_noff(data: bytes) -> NoffHeader:
    """Decode a NOFF header from the start of ``data``."""
    if len(data) < NoffHeader.SIZE:
        raise CoffError("File is too short")
    values = _NOFF_HEADER.unpack_from(data, 0)
    if values[0] != NOFFMAGIC:
        raise CoffError("File is not a NOFF file")
    return NoffHeader(
        values[0],
        Segment(*values[1:4]),
        Segment(*values[4:7]),
        Segment(*values[7:10]),
    )