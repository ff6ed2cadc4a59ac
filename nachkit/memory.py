"""Byte-addressed little-endian main memory of the simulated machine."""

from __future__ import annotations

import struct

MEMSIZE = 1 << 24
MEMOFFSET = 0x10000000

_WORD = struct.Struct("<i")
_UWORD = struct.Struct("<I")
_HALF = struct.Struct("<h")
_UHALF = struct.Struct("<H")


class AddressError(IndexError):
    """Raised on an access outside the simulated memory."""


class Memory:
    """Main memory mapped at ``offset`` in the simulated address space."""

    def __init__(self, size: int = MEMSIZE, offset: int = MEMOFFSET) -> None:
        if size <= 0:
            raise ValueError("memory size must be positive")
        self.size = size
        self.offset = offset
        self.data = bytearray(size)

    def __len__(self) -> int:
        return self.size

    def _index(self, addr: int, width: int) -> int:
        addr &= 0xFFFFFFFF
        index = addr - self.offset
        if index < 0 or index + width > self.size:
            raise AddressError(f"address 0x{addr:08x} outside memory")
        return index

    def fetch(self, addr: int) -> int:
        """Read a signed 32-bit word."""
        return _WORD.unpack_from(self.data, self._index(addr, 4))[0]

    def fetch_half(self, addr: int) -> int:
        """Read a signed 16-bit half-word."""
        return _HALF.unpack_from(self.data, self._index(addr, 2))[0]

    def fetch_uhalf(self, addr: int) -> int:
        """Read an unsigned 16-bit half-word."""
        return _UHALF.unpack_from(self.data, self._index(addr, 2))[0]

    def fetch_byte(self, addr: int) -> int:
        """Read a signed byte."""
        value = self.data[self._index(addr, 1)]
        return value - 0x100 if value & 0x80 else value

    def fetch_ubyte(self, addr: int) -> int:
        """Read an unsigned byte."""
        return self.data[self._index(addr, 1)]

    def store(self, addr: int, value: int) -> None:
        """Write the low 32 bits of ``value``."""
        _UWORD.pack_into(self.data, self._index(addr, 4), value & 0xFFFFFFFF)

    def store_half(self, addr: int, value: int) -> None:
        """Write the low 16 bits of ``value``."""
        _UHALF.pack_into(self.data, self._index(addr, 2), value & 0xFFFF)

    def store_byte(self, addr: int, value: int) -> None:
        """Write the low 8 bits of ``value``."""
        self.data[self._index(addr, 1)] = value & 0xFF

    def read_bytes(self, addr: int, size: int) -> bytes:
        """Return ``size`` bytes starting at ``addr``."""
        if size < 0:
            raise ValueError("size must not be negative")
        index = self._index(addr, size)
        return bytes(self.data[index:index + size])

    def write_bytes(self, addr: int, data: bytes) -> None:
        """Copy ``data`` into memory starting at ``addr``."""
        index = self._index(addr, len(data))
        self.data[index:index + len(data)] = data