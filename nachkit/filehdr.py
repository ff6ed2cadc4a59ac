"""Free-sector bitmap and the on-disk file header (i-node)."""

from __future__ import annotations

import struct
from typing import List, Optional

from .disk import SECTOR_SIZE

_INT = 4


class FreeMap:
    """A bitmap recording which disk sectors are in use."""

    def __init__(self, num_bits: int) -> None:
        if num_bits < 0:
            raise ValueError("bitmap size must not be negative")
        self.num_bits = num_bits
        self._bits = bytearray(self.byte_size)

    @property
    def byte_size(self) -> int:
        """Number of bytes the bitmap occupies when stored in a file."""
        return (self.num_bits + 7) // 8

    def _check(self, index: int) -> None:
        if not 0 <= index < self.num_bits:
            raise IndexError(f"bit {index} out of range")

    def mark(self, index: int) -> None:
        """Set bit ``index``: the sector is in use."""
        self._check(index)
        self._bits[index // 8] |= 1 << (index % 8)

    def clear(self, index: int) -> None:
        """Clear bit ``index``: the sector is free."""
        self._check(index)
        self._bits[index // 8] &= ~(1 << (index % 8)) & 0xFF

    def test(self, index: int) -> bool:
        """Return True if bit ``index`` is set."""
        self._check(index)
        return bool(self._bits[index // 8] & (1 << (index % 8)))

    def find(self) -> Optional[int]:
        """Mark and return the first clear bit, or None if every bit is set."""
        index = next((i for i in range(self.num_bits) if not self.test(i)), None)
        if index is not None:
            self.mark(index)
        return index

    def num_clear(self) -> int:
        """Number of clear bits."""
        used = sum(bin(byte).count("1") for byte in self._bits)
        return self.num_bits - used

    def set_bits(self) -> List[int]:
        """Indices of all set bits, in order."""
        return [i for i in range(self.num_bits) if self.test(i)]

    def fetch_from(self, file) -> None:
        """Load the bitmap from ``file``, an open file with ``read_at``."""
        data = bytearray(bytes(file.read_at(self.byte_size, 0)).ljust(self.byte_size, b"\0"))
        extra = self.byte_size * 8 - self.num_bits
        if extra and data:
            data[-1] &= 0xFF >> extra
        self._bits = data

    def write_back(self, file) -> None:
        """Store the bitmap into ``file``, an open file with ``write_at``."""
        file.write_at(bytes(self._bits), 0)

    def describe(self) -> str:
        """List the set bits."""
        return "Bitmap set:\n" + "".join(f"{i}, " for i in self.set_bits()) + "\n"


class FileHeader:
    """Where on disk a file's data lives: a table of direct sector numbers.

    The header fits in exactly one sector, which bounds the file size.
    """

    def __init__(self, sector_size: int = SECTOR_SIZE) -> None:
        self.sector_size = sector_size
        self.num_direct = (sector_size - 2 * _INT) // _INT
        if self.num_direct <= 0:
            raise ValueError("sector too small to hold a file header")
        self._layout = struct.Struct(f"<ii{self.num_direct}i")
        self.num_bytes = 0
        self.data_sectors: List[int] = []

    @property
    def max_file_size(self) -> int:
        """Largest file a single header can describe."""
        return self.num_direct * self.sector_size

    @property
    def num_sectors(self) -> int:
        """Number of data sectors of the file."""
        return len(self.data_sectors)

    def allocate(self, free_map: FreeMap, file_size: int) -> bool:
        """Take data sectors for a new file from ``free_map``.

        Returns False, leaving everything unchanged, when there is not
        enough free space or the file is too large for one header.
        """
        if file_size < 0:
            raise ValueError("file size must not be negative")
        needed = -(-file_size // self.sector_size)
        if needed > self.num_direct or free_map.num_clear() < needed:
            return False
        self.num_bytes = file_size
        self.data_sectors = [free_map.find() for _ in range(needed)]
        return True

    def deallocate(self, free_map: FreeMap) -> None:
        """Return all of this file's data sectors to ``free_map``."""
        for sector in self.data_sectors:
            if not free_map.test(sector):
                raise ValueError(f"sector {sector} is not marked as in use")
        for sector in self.data_sectors:
            free_map.clear(sector)

    def fetch_from(self, disk, sector: int) -> None:
        """Read the header stored in ``sector`` of ``disk``."""
        raw = disk.read_sector(sector)[: self._layout.size]
        num_bytes, num_sectors, *table = self._layout.unpack(raw)
        if not 0 <= num_sectors <= self.num_direct:
            raise ValueError(f"corrupt file header in sector {sector}")
        self.num_bytes = num_bytes
        self.data_sectors = table[:num_sectors]

    def write_back(self, disk, sector: int) -> None:
        """Write the header into ``sector`` of ``disk``."""
        table = self.data_sectors + [0] * (self.num_direct - self.num_sectors)
        disk.write_sector(sector, self._layout.pack(self.num_bytes, self.num_sectors, *table))

    def byte_to_sector(self, offset: int) -> int:
        """Disk sector holding byte ``offset`` of the file."""
        index = offset // self.sector_size
        if offset < 0 or index >= self.num_sectors:
            raise IndexError(f"offset {offset} beyond the file's sectors")
        return self.data_sectors[index]

    def file_length(self) -> int:
        """Number of bytes in the file."""
        return self.num_bytes

    def describe(self, disk) -> str:
        """The header and the file's contents, non-printing bytes in hex."""
        lines = [
            f"FileHeader contents.  File size: {self.num_bytes}.  File blocks:",
            "".join(f"{s} " for s in self.data_sectors),
            "File contents:",
        ]
        remaining = self.num_bytes
        for sector in self.data_sectors:
            chunk = disk.read_sector(sector)[: max(remaining, 0)]
            remaining -= len(chunk)
            lines.append(
                "".join(chr(b) if 0x20 <= b <= 0x7E else f"\\{b:x}" for b in chunk)
            )
        return "\n".join(lines) + "\n"