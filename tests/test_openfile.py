import pytest

from nachkit.disk import SynchDisk
from nachkit.filehdr import FileHeader, FreeMap
from nachkit.openfile import OpenFile

SECTOR = 128


@pytest.fixture
def disk():
    with SynchDisk(sector_size=SECTOR, num_sectors=64) as d:
        yield d


def _create(disk, size):
    fm = FreeMap(disk.num_sectors)
    header_sector = fm.find()
    hdr = FileHeader(disk.sector_size)
    assert hdr.allocate(fm, size)
    hdr.write_back(disk, header_sector)
    return header_sector


def test_length_is_allocated_size(disk):
    f = OpenFile(disk, _create(disk, 300))
    assert f.length() == 300


def test_write_then_read_round_trip(disk):
    f = OpenFile(disk, _create(disk, 300))
    payload = bytes(range(256)) + b"x" * 44
    assert f.write(payload) == 300
    f.seek(0)
    assert f.read(300) == payload


def test_read_is_clipped_at_end(disk):
    f = OpenFile(disk, _create(disk, 10))
    f.write(b"0123456789")
    assert f.read_at(100, 5) == b"56789"
    assert f.read_at(5, 10) == b""
    assert f.read_at(0, 0) == b""


def test_write_is_clipped_at_end(disk):
    f = OpenFile(disk, _create(disk, 10))
    assert f.write_at(b"abcdefgh", 6) == 4
    assert f.read_at(4, 6) == b"abcd"
    assert f.write_at(b"z", 10) == 0


def test_unaligned_write_preserves_neighbours(disk):
    f = OpenFile(disk, _create(disk, 3 * SECTOR))
    original = bytes((i * 7) & 0xFF for i in range(3 * SECTOR))
    f.write_at(original, 0)
    patch = b"Q" * (SECTOR + 10)
    start = SECTOR - 5
    assert f.write_at(patch, start) == len(patch)
    expected = original[:start] + patch + original[start + len(patch):]
    assert f.read_at(3 * SECTOR, 0) == expected


def test_read_advances_position(disk):
    f = OpenFile(disk, _create(disk, 20))
    f.write(b"abcdefghijklmnopqrst")
    f.seek(2)
    assert f.read(3) == b"cde"
    assert f.read(3) == b"fgh"
    assert f.position == 8


def test_data_visible_to_second_open(disk):
    sector = _create(disk, 50)
    OpenFile(disk, sector).write(b"persist")
    assert OpenFile(disk, sector).read(7) == b"persist"


def test_negative_position_raises(disk):
    f = OpenFile(disk, _create(disk, 10))
    with pytest.raises(ValueError):
        f.read_at(1, -1)