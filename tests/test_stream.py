"""
Streaming Reader/Writer Unit Tests
==================================

Tests for open_for_read() and open_for_write().
"""

import io
import struct
from datetime import date

import pytest

from dbfkit.config import DBFConfig, set_config
from dbfkit.dbf import (
    END_OF_TABLE,
    DBFTable,
    Record,
    TableHeader,
    open_for_read,
    open_for_write,
)
from dbfkit.errors import (
    IOFailure,
    MalformedHeader,
    MalformedRecord,
    NumericParseError,
    TableClosed,
    UnsupportedVersion,
    ValueTooLong,
)


class NonSeekableStream(io.RawIOBase):
    """Write-only stream that cannot seek, like a pipe."""

    def __init__(self):
        self.buffer = bytearray()

    def writable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def write(self, data) -> int:
        self.buffer.extend(data)
        return len(data)


# =============================================================================
# Reader Tests
# =============================================================================

class TestRecordReader:
    """Tests for the forward-only record cursor."""

    def test_reads_all_records(self, people_table):
        reader = open_for_read(io.BytesIO(people_table.to_bytes()))
        names = []
        while (record := reader.next()) is not END_OF_TABLE:
            names.append(record["NAME"])
        assert names == ["Ada", "Bob", "Cy"]

    def test_exhausted_reader_keeps_returning_end(self, people_table):
        reader = open_for_read(io.BytesIO(people_table.to_bytes()))
        list(reader)
        assert reader.next() is END_OF_TABLE
        assert reader.next() is END_OF_TABLE

    def test_empty_table_ends_immediately(self, people_fields):
        """A table with zero records yields END_OF_TABLE on the first call."""
        data = DBFTable.create(people_fields).to_bytes()
        reader = open_for_read(io.BytesIO(data))
        assert reader.next() is END_OF_TABLE

    def test_deleted_records_are_returned(self, people_table):
        records = list(open_for_read(io.BytesIO(people_table.to_bytes())))
        assert [r.deleted for r in records] == [False, True, False]

    def test_end_marker_stops_early(self, people_table):
        data = bytearray(people_table.to_bytes())
        struct.pack_into("<I", data, 4, 50)
        assert len(list(open_for_read(io.BytesIO(bytes(data))))) == 3

    def test_eof_without_marker(self, people_table):
        data = people_table.to_bytes()[:-1]
        assert len(list(open_for_read(io.BytesIO(data)))) == 3

    def test_strict_eof_requires_marker(self, people_table):
        data = people_table.to_bytes()[:-1]
        reader = open_for_read(io.BytesIO(data), strict_eof=True)
        for _ in range(3):
            reader.next()
        with pytest.raises(MalformedRecord):
            reader.next()

    def test_strict_eof_from_config(self, people_table):
        set_config(DBFConfig(strict_eof=True))
        reader = open_for_read(io.BytesIO(people_table.to_bytes()[:-1]))
        with pytest.raises(MalformedRecord):
            list(reader)

    def test_truncated_record(self, people_table):
        data = people_table.to_bytes()[:161 + 23 + 10]
        reader = open_for_read(io.BytesIO(data))
        reader.next()
        with pytest.raises(MalformedRecord):
            reader.next()

    def test_bad_value_does_not_stop_scan(self, people_table):
        data = bytearray(people_table.to_bytes())
        # AGE of the second record
        data[161 + 23 + 11:161 + 23 + 14] = b"x9x"
        reader = open_for_read(io.BytesIO(bytes(data)))
        assert reader.next()["NAME"] == "Ada"
        with pytest.raises(NumericParseError) as exc_info:
            reader.next()
        assert exc_info.value.record_index == 1
        assert exc_info.value.offset == 161 + 23 + 11
        assert reader.next()["NAME"] == "Cy"
        assert reader.next() is END_OF_TABLE

    def test_header_error_raised_on_open(self):
        with pytest.raises(UnsupportedVersion):
            open_for_read(io.BytesIO(b"\x42" + bytes(31)))

    def test_reader_leaves_caller_stream_open(self, people_table):
        stream = io.BytesIO(people_table.to_bytes())
        with open_for_read(stream) as reader:
            list(reader)
        assert not stream.closed

    def test_path_reader_closes_file_on_exhaustion(self, people_file):
        reader = open_for_read(people_file)
        list(reader)
        assert reader.closed

    def test_closed_reader(self, people_file):
        reader = open_for_read(people_file)
        reader.close()
        with pytest.raises(TableClosed):
            reader.next()

    def test_missing_file(self, tmp_path):
        with pytest.raises(IOFailure):
            open_for_read(tmp_path / "missing.dbf")

    def test_explicit_encoding(self, people_fields):
        table = DBFTable.create(people_fields)
        table.add_record({"NAME": "Zoë"})
        reader = open_for_read(io.BytesIO(table.to_bytes()), encoding="latin-1")
        assert reader.encoding == "latin-1"
        assert reader.next()["NAME"] == "Zoë"


# =============================================================================
# Writer Tests
# =============================================================================

class TestRecordWriter:
    """Tests for the append-only record writer."""

    def test_write_and_read_back(self, people_fields):
        stream = io.BytesIO()
        writer = open_for_write(stream, TableHeader(), people_fields)
        writer.write_record({"NAME": "Ada", "AGE": 36})
        writer.write_record(Record({"NAME": "Bob"}, deleted=True))
        header = writer.finalize()
        assert header.record_count == 2

        table = DBFTable.from_bytes(stream.getvalue())
        assert table.record_count == 2
        assert table.get_record(1).deleted
        assert stream.getvalue()[-1] == 0x1A

    def test_record_count_patched(self, people_fields):
        stream = io.BytesIO()
        with open_for_write(stream, TableHeader(record_count=99), people_fields) as writer:
            writer.write_record(["Ada", 36, None, None])
        assert struct.unpack_from("<I", stream.getvalue(), 4)[0] == 1

    def test_date_stamped(self, people_fields):
        stream = io.BytesIO()
        with open_for_write(stream, TableHeader(), people_fields):
            pass
        today = date.today()
        assert stream.getvalue()[1:4] == bytes((today.year - 1900, today.month, today.day))

    def test_non_seekable_matching_count(self, people_fields):
        stream = NonSeekableStream()
        writer = open_for_write(stream, TableHeader(record_count=2), people_fields)
        writer.write_record(["Ada", 36, None, None])
        writer.write_record(["Bob", 41, None, None])
        writer.finalize()
        table = DBFTable.from_bytes(bytes(stream.buffer))
        assert table.record_count == 2

    def test_non_seekable_count_mismatch(self, people_fields):
        stream = NonSeekableStream()
        writer = open_for_write(stream, TableHeader(record_count=5), people_fields)
        writer.write_record(["Ada", 36, None, None])
        with pytest.raises(MalformedHeader):
            writer.finalize()

    def test_bad_value_writes_nothing(self, people_fields):
        stream = io.BytesIO()
        writer = open_for_write(stream, TableHeader(), people_fields)
        size = len(stream.getvalue())
        with pytest.raises(ValueTooLong):
            writer.write_record({"AGE": 12345})
        assert len(stream.getvalue()) == size
        assert writer.records_written == 0

    def test_write_after_finalize(self, people_fields):
        writer = open_for_write(io.BytesIO(), TableHeader(), people_fields)
        writer.finalize()
        with pytest.raises(TableClosed):
            writer.write_record(["Ada", 36, None, None])

    def test_finalize_twice(self, people_fields):
        writer = open_for_write(io.BytesIO(), TableHeader(), people_fields)
        assert writer.finalize() == writer.finalize()

    def test_path_writer_owns_file(self, tmp_path, people_fields):
        path = tmp_path / "out.dbf"
        with open_for_write(path, TableHeader(), people_fields) as writer:
            writer.write_record(["Ada", 36, None, None])
        assert writer.closed
        assert DBFTable.from_file(path).get_record(0)["NAME"] == "Ada"

    def test_caller_stream_left_open(self, people_fields):
        stream = io.BytesIO()
        with open_for_write(stream, TableHeader(), people_fields):
            pass
        assert not stream.closed

    def test_error_in_block_skips_finalize(self, people_fields):
        stream = io.BytesIO()
        with pytest.raises(RuntimeError):
            with open_for_write(stream, TableHeader(), people_fields) as writer:
                writer.write_record(["Ada", 36, None, None])
                raise RuntimeError("boom")
        assert writer.closed
        assert stream.getvalue()[-1] != 0x1A
