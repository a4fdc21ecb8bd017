"""
Memo File Unit Tests
====================

Tests for the dBASE III .dbt memo companion file.
"""

import struct

import pytest

from dbfkit.dbf import DBFTable, DBTMemoFile, FieldDescriptor, Record, resolve_memos, store_memos
from dbfkit.dbf.memo import BLOCK_SIZE
from dbfkit.errors import MemoError


@pytest.fixture
def memo_fields() -> list[FieldDescriptor]:
    return [
        FieldDescriptor.create("NAME", "C", 10),
        FieldDescriptor.create("NOTES", "M"),
    ]


class TestDBTMemoFile:
    """Tests for block allocation and memo text access."""

    def test_new_file_header(self):
        memos = DBTMemoFile.new()
        data = memos.to_bytes()
        assert len(data) == BLOCK_SIZE
        assert struct.unpack_from("<I", data, 0)[0] == 1
        assert data[16] == 0x03

    def test_append_and_read(self):
        memos = DBTMemoFile.new()
        block = memos.append_memo("First note")
        assert block == 1
        assert memos.read_memo(block) == "First note"
        assert memos.next_block == 2

    def test_terminator_and_padding(self):
        memos = DBTMemoFile.new()
        memos.append_memo("abc")
        data = memos.to_bytes()
        assert data[BLOCK_SIZE:BLOCK_SIZE + 5] == b"abc\x1a\x1a"
        assert len(data) == 2 * BLOCK_SIZE

    def test_long_memo_spans_blocks(self):
        memos = DBTMemoFile.new()
        first = memos.append_memo("x" * 600)
        second = memos.append_memo("short")
        assert first == 1
        assert second == 3
        assert memos.read_memo(first) == "x" * 600
        assert memos.read_memo(second) == "short"

    def test_iter_memos(self):
        memos = DBTMemoFile.new()
        memos.append_memo("x" * 600)
        memos.append_memo("short")
        assert [block for block, _ in memos.iter_memos()] == [1, 3]

    def test_round_trip_through_bytes(self):
        memos = DBTMemoFile.new()
        block = memos.append_memo("persisted")
        reloaded = DBTMemoFile.from_bytes(memos.to_bytes())
        assert reloaded.read_memo(block) == "persisted"
        assert reloaded.next_block == memos.next_block

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "notes.dbt"
        memos = DBTMemoFile.new()
        memos.append_memo("on disk")
        memos.save(path)
        assert DBTMemoFile.from_file(path).read_memo(1) == "on disk"

    def test_block_out_of_range(self):
        memos = DBTMemoFile.new()
        with pytest.raises(MemoError):
            memos.read_memo(1)
        with pytest.raises(MemoError):
            memos.read_memo(0)

    def test_unterminated_memo(self):
        data = bytearray(DBTMemoFile.new().to_bytes()) + b"y" * BLOCK_SIZE
        with pytest.raises(MemoError):
            DBTMemoFile.from_bytes(bytes(data)).read_memo(1)

    def test_too_small(self):
        with pytest.raises(MemoError):
            DBTMemoFile.from_bytes(b"\x01\x00")

    def test_text_with_terminator_rejected(self):
        with pytest.raises(MemoError):
            DBTMemoFile.new().append_memo("bad\x1atext")

    def test_encoding(self):
        memos = DBTMemoFile.new(encoding="cp1252")
        block = memos.append_memo("café")
        assert memos.read_memo(block) == "café"


class TestMemoRecords:
    """Tests for moving memo text in and out of records."""

    def test_store_and_resolve(self, memo_fields):
        memos = DBTMemoFile.new()
        values = store_memos({"NAME": "Ada", "NOTES": "Analytical engine"}, memo_fields, memos)
        assert values["NOTES"] == 1

        table = DBFTable.create(memo_fields)
        table.add_record(values)
        reloaded = DBFTable.from_bytes(table.to_bytes())
        record = resolve_memos(reloaded.get_record(0), memo_fields, memos)
        assert record["NOTES"] == "Analytical engine"
        assert reloaded.get_record(0)["NOTES"] == 1

    def test_resolve_empty_pointer(self, memo_fields):
        record = resolve_memos(Record({"NAME": "Ada", "NOTES": None}), memo_fields, DBTMemoFile.new())
        assert record["NOTES"] is None

    def test_resolve_bad_pointer(self, memo_fields):
        with pytest.raises(MemoError) as exc_info:
            resolve_memos(Record({"NAME": "Ada", "NOTES": 9}), memo_fields, DBTMemoFile.new())
        assert exc_info.value.field_name == "NOTES"
