"""
Streaming DBF Writer
====================

RecordWriter appends records to a DBF stream one at a time without
holding the table in memory.

The header is written up front. finalize() appends the 0x1A
end-of-data marker and then:
- on a seekable stream, patches the record count at offset 4 with the
  number of records actually written;
- on a non-seekable stream, checks that the count declared in the
  header matches, raising MalformedHeader if it does not.

Usage
-----
    >>> header = TableHeader(record_count=0)
    >>> with open_for_write("people.dbf", header, fields) as writer:
    ...     writer.write_record({"NAME": "Ada", "AGE": 36})
    ...     writer.write_record(["Bob", 41])
"""

from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import BinaryIO, Optional, Sequence, Union
import logging
import struct

from dbfkit.errors import IOFailure, MalformedHeader, TableClosed
from dbfkit.dbf.codepage import resolve_encoding
from dbfkit.dbf.fields import FieldDescriptor, validate_fields
from dbfkit.dbf.header import TableHeader, encode_header
from dbfkit.dbf.reader import EOF_MARKER
from dbfkit.dbf.records import RecordValues, encode_record

# Logger for this module
logger = logging.getLogger(__name__)

# Offset of the little-endian uint32 record count in the header
RECORD_COUNT_OFFSET = 4

Target = Union[str, Path, BinaryIO]


class RecordWriter:
    """
    Append-only record writer over a binary stream.

    Attributes:
        header: The header as written (record_count updated by finalize)
        fields: The table's field descriptors
        encoding: Codec used for Character fields
    """

    def __init__(
        self,
        stream: BinaryIO,
        header: TableHeader,
        fields: Sequence[FieldDescriptor],
        encoding: Optional[str] = None,
        owns_stream: bool = False,
    ):
        self._stream = stream
        self._owns_stream = owns_stream
        self._closed = False
        self._finalized = False
        self._records_written = 0

        try:
            fields = list(fields)
            validate_fields(fields)
            self.fields = fields
            if header.last_update is None:
                header = replace(header, last_update=date.today())
            self.header = header.with_layout(fields)
            self.encoding = resolve_encoding(self.header.language_driver, encoding)
            self._seekable = self._is_seekable()
            self._start = stream.tell() if self._seekable else None
            self._write(encode_header(self.header, self.fields))
        except BaseException:
            self.close()
            raise

        logger.debug(
            f"Opened writer: {len(fields)} fields, seekable={self._seekable}, "
            f"encoding {self.encoding}"
        )

    def _is_seekable(self) -> bool:
        try:
            return bool(self._stream.seekable())
        except (AttributeError, OSError):
            return False

    def _write(self, data: bytes) -> None:
        try:
            self._stream.write(data)
        except OSError as e:
            self.close()
            raise IOFailure(f"cannot write: {e}", record_index=self._records_written) from e

    @property
    def records_written(self) -> int:
        return self._records_written

    @property
    def closed(self) -> bool:
        return self._closed

    def write_record(self, record: RecordValues) -> None:
        """
        Append one record.

        Args:
            record: A Record (its deletion flag is kept), a mapping keyed by
                field name, or one value per field

        Raises:
            FieldValueError: If a value does not fit; nothing is written
            TableClosed: If the writer was finalized or closed
        """
        if self._finalized or self._closed:
            raise TableClosed("writer is closed")
        data = encode_record(record, self.fields, self.encoding, index=self._records_written)
        self._write(data)
        self._records_written += 1

    def finalize(self) -> TableHeader:
        """
        Terminate the table and release the stream.

        Calling finalize() again returns the same header.

        Returns:
            The final header

        Raises:
            MalformedHeader: If the stream is not seekable and the header's
                declared record count differs from the records written
            IOFailure: If the stream cannot be written
        """
        if self._finalized:
            return self.header
        if self._closed:
            raise TableClosed("writer is closed")

        try:
            self._write(bytes((EOF_MARKER,)))
            count = self._records_written
            if self._seekable:
                try:
                    end = self._stream.tell()
                    self._stream.seek(self._start + RECORD_COUNT_OFFSET)
                    self._stream.write(struct.pack("<I", count))
                    self._stream.seek(end)
                except OSError as e:
                    raise IOFailure(f"cannot update record count: {e}") from e
                self.header = replace(self.header, record_count=count)
            elif self.header.record_count != count:
                raise MalformedHeader(
                    f"header declares {self.header.record_count} records but "
                    f"{count} were written to a non-seekable stream",
                    offset=RECORD_COUNT_OFFSET,
                )
            try:
                self._stream.flush()
            except OSError as e:
                raise IOFailure(f"cannot flush: {e}") from e
        finally:
            self._finalized = True
            self.close()

        logger.debug(f"Finalized writer: {self._records_written} records")
        return self.header

    # =========================================================================
    # Resource Handling
    # =========================================================================

    def close(self) -> None:
        """Release the stream if this writer owns it, without finalizing."""
        if self._closed:
            return
        self._closed = True
        if self._owns_stream:
            self._stream.close()

    def __enter__(self) -> "RecordWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.finalize()
        else:
            if not self._finalized:
                logger.warning(
                    f"Writer abandoned after {self._records_written} records; "
                    f"table is not terminated"
                )
            self.close()


def open_for_write(
    target: Target,
    header: TableHeader,
    fields: Sequence[FieldDescriptor],
    encoding: Optional[str] = None,
) -> RecordWriter:
    """
    Open a DBF file or stream for streaming writes.

    Args:
        target: A path (created or replaced; the writer owns the file) or
            a writable binary stream (the caller keeps ownership)
        header: Version, language driver and, for non-seekable targets,
            the record count that will be written
        fields: Column definitions
        encoding: Codec for Character fields

    Returns:
        A RecordWriter with the header already written

    Raises:
        InvalidFieldDescriptor: If the field list is not valid
        IOFailure: If the file cannot be opened or written
    """
    if isinstance(target, (str, Path)):
        try:
            stream = open(target, "wb")
        except OSError as e:
            raise IOFailure(f"cannot open {target}: {e}") from e
        return RecordWriter(stream, header, fields, encoding=encoding, owns_stream=True)
    return RecordWriter(target, header, fields, encoding=encoding)
