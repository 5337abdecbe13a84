import io
import zipfile

import pytest

from archive import BatchArchiver


def _collect(archiver, entries):
    chunks = []
    for name, data in entries:
        archiver.append(name, data)
        chunks.append(archiver.drain())
    archiver.finalize()
    chunks.append(archiver.drain())
    return chunks


@pytest.mark.unit
class TestBatchArchiver:
    def test_entries_in_append_order(self):
        archiver = BatchArchiver()
        chunks = _collect(archiver, [("Carol.png", b"c"), ("Alice.png", b"a"), ("Bob.png", b"b")])

        with zipfile.ZipFile(io.BytesIO(b"".join(chunks))) as zf:
            assert zf.namelist() == ["Carol.png", "Alice.png", "Bob.png"]
            assert zf.read("Alice.png") == b"a"
            assert zf.testzip() is None

    def test_bytes_available_before_finalize(self):
        archiver = BatchArchiver()
        archiver.append("Alice.png", b"x" * 4096)
        assert archiver.drain()
        assert archiver.drain() == b""

    def test_duplicate_names_disambiguated(self):
        archiver = BatchArchiver()
        stored = [archiver.append(name, b"png") for name in ["Alice.png", "Alice.png", "Alice_2.png", "Alice.png"]]
        assert stored == ["Alice.png", "Alice_2.png", "Alice_2_2.png", "Alice_3.png"]

        archiver.finalize()
        with zipfile.ZipFile(io.BytesIO(archiver.drain())) as zf:
            assert zf.namelist() == stored

    def test_append_after_finalize_rejected(self):
        archiver = BatchArchiver()
        archiver.finalize()
        with pytest.raises(RuntimeError):
            archiver.append("late.png", b"png")

    def test_empty_archive_is_valid(self):
        archiver = BatchArchiver()
        archiver.finalize()
        with zipfile.ZipFile(io.BytesIO(archiver.drain())) as zf:
            assert zf.namelist() == []

    def test_entries_are_deflated(self):
        archiver = BatchArchiver(compresslevel=9)
        chunks = _collect(archiver, [("big.png", b"0" * 100_000)])
        with zipfile.ZipFile(io.BytesIO(b"".join(chunks))) as zf:
            info = zf.getinfo("big.png")
            assert info.compress_type == zipfile.ZIP_DEFLATED
            assert info.compress_size < info.file_size

    def test_close_abandons_archive(self):
        archiver = BatchArchiver()
        archiver.append("Alice.png", b"png")
        archiver.close()
        assert archiver.drain() == b""
        with pytest.raises(RuntimeError):
            archiver.append("Bob.png", b"png")
