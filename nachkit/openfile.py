"""An open file: reads and writes turned into whole-sector disk requests."""

from __future__ import annotations

from .filehdr import FileHeader


class OpenFile:
    """A file whose header lives in ``sector`` of ``disk``.

    The header is kept in memory while the file is open.
    """

    def __init__(self, disk, sector: int) -> None:
        self.disk = disk
        self.header = FileHeader(disk.sector_size)
        self.header.fetch_from(disk, sector)
        self.position = 0

    def seek(self, position: int) -> None:
        """Set where the next read or write starts."""
        self.position = position

    def read(self, num_bytes: int) -> bytes:
        """Read from the current position and advance past what was read."""
        data = self.read_at(num_bytes, self.position)
        self.position += len(data)
        return data

    def write(self, data: bytes) -> int:
        """Write at the current position and advance past what was written."""
        written = self.write_at(data, self.position)
        self.position += written
        return written

    def _clip(self, num_bytes: int, position: int) -> int:
        if position < 0:
            raise ValueError("position must not be negative")
        length = self.header.file_length()
        if num_bytes <= 0 or position >= length:
            return 0
        return min(num_bytes, length - position)

    def read_at(self, num_bytes: int, position: int) -> bytes:
        """Read up to ``num_bytes`` at ``position``; stops at end of file."""
        num_bytes = self._clip(num_bytes, position)
        if num_bytes == 0:
            return b""
        size = self.disk.sector_size
        first = position // size
        last = (position + num_bytes - 1) // size
        buf = b"".join(
            self.disk.read_sector(self.header.byte_to_sector(i * size))
            for i in range(first, last + 1)
        )
        start = position - first * size
        return buf[start:start + num_bytes]

    def write_at(self, data: bytes, position: int) -> int:
        """Write ``data`` at ``position``; return how many bytes fit in the file."""
        data = bytes(data)
        num_bytes = self._clip(len(data), position)
        if num_bytes == 0:
            return 0
        size = self.disk.sector_size
        end = position + num_bytes
        first = position // size
        last = (end - 1) // size
        for i in range(first, last + 1):
            sector_start = i * size
            lo = max(position, sector_start)
            hi = min(end, sector_start + size)
            target = self.header.byte_to_sector(sector_start)
            piece = data[lo - position:hi - position]
            if lo == sector_start and hi == sector_start + size:
                block = piece
            else:
                current = bytearray(self.disk.read_sector(target))
                current[lo - sector_start:hi - sector_start] = piece
                block = bytes(current)
            self.disk.write_sector(target, block)
        return num_bytes

    def length(self) -> int:
        """Number of bytes in the file."""
        return self.header.file_length()