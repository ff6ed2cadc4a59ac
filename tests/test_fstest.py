import io

import pytest

from nachkit.disk import SynchDisk
from nachkit.filesys import FileSystem, FileSystemFull
from nachkit.fstest import copy, performance_test, print_file


@pytest.fixture
def fs():
    with SynchDisk() as disk:
        yield FileSystem(disk, format=True)


def test_copy_round_trip(fs, tmp_path):
    source = tmp_path / "input.txt"
    payload = b"The quick brown fox jumps over the lazy dog"
    source.write_bytes(payload)
    assert copy(fs, source, "fox") == len(payload)
    handle = fs.open("fox")
    assert handle.length() == len(payload)
    assert handle.read(len(payload)) == payload


def test_copy_empty_file(fs, tmp_path):
    source = tmp_path / "empty"
    source.write_bytes(b"")
    assert copy(fs, source, "empty") == 0
    assert fs.list() == ["empty"]


def test_copy_missing_source(fs, tmp_path):
    with pytest.raises(FileNotFoundError):
        copy(fs, tmp_path / "absent", "x")
    assert fs.list() == []


def test_copy_existing_name(fs, tmp_path):
    source = tmp_path / "a"
    source.write_bytes(b"abc")
    copy(fs, source, "a")
    with pytest.raises(FileExistsError):
        copy(fs, source, "a")


def test_copy_too_large(fs, tmp_path):
    source = tmp_path / "big"
    source.write_bytes(b"z" * 5000)
    with pytest.raises(FileSystemFull):
        copy(fs, source, "big")
    assert fs.list() == []


def test_print_file_writes_contents(fs, tmp_path):
    source = tmp_path / "poem"
    payload = b"line one\nline two\n"
    source.write_bytes(payload)
    copy(fs, source, "poem")
    out = io.StringIO()
    assert print_file(fs, "poem", out) == len(payload)
    assert out.getvalue() == payload.decode()


def test_print_missing_file(fs):
    with pytest.raises(FileNotFoundError):
        print_file(fs, "ghost", io.StringIO())


def test_performance_test_on_fixed_size_files(fs):
    out = io.StringIO()
    assert performance_test(fs, out) is False
    text = out.getvalue()
    assert text.startswith("Starting file system performance test:\n")
    assert "Sequential write of 50000 byte file, in 10 byte chunks\n" in text
    assert "Perf test: unable to write TestFile\n" in text
    assert "Perf test: unable to read TestFile\n" in text
    assert fs.list() == []


def test_performance_test_name_taken(fs):
    fs.create("TestFile", 0)
    out = io.StringIO()
    assert performance_test(fs, out) is False
    assert "Perf test: can't create TestFile\n" in out.getvalue()
    assert fs.list() == []