"""
Streaming DBF Reader
====================

RecordReader is a forward-only cursor over the records of a DBF stream.
It buffers one record at a time, so tables of any size can be scanned
in bounded memory.

Each call to next() returns a Record, or END_OF_TABLE once the declared
record count, the 0x1A end-of-data marker, or the end of the stream is
reached. The cursor cannot be rewound.

Errors
------
- Header problems (MalformedHeader, UnsupportedVersion) are raised by
  open_for_read() and no reader is returned.
- A bad deletion flag or a truncated row (MalformedRecord) ends the scan.
- A bad value (NumericParseError, InvalidDate, ...) is raised after the
  cursor has moved past the record, so the caller may skip it and call
  next() again.

Usage
-----
    >>> with open_for_read("people.dbf") as reader:
    ...     while (record := reader.next()) is not END_OF_TABLE:
    ...         print(record["NAME"])
"""

from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union
import logging

from dbfkit.config import get_config
from dbfkit.errors import FormatError, IOFailure, MalformedRecord, TableClosed
from dbfkit.dbf.codepage import resolve_encoding
from dbfkit.dbf.header import read_header
from dbfkit.dbf.records import Record, decode_record

# Logger for this module
logger = logging.getLogger(__name__)

EOF_MARKER = 0x1A

Source = Union[str, Path, BinaryIO]


class EndOfTable:
    """Type of the END_OF_TABLE sentinel returned when a reader is exhausted."""

    _instance: Optional["EndOfTable"] = None

    def __new__(cls) -> "EndOfTable":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "END_OF_TABLE"


END_OF_TABLE = EndOfTable()


class RecordReader:
    """
    Forward-only record cursor over a binary stream.

    The header is decoded on construction. If the reader owns its
    stream (it was opened from a path) the stream is closed on close(),
    on exhaustion, and when the scan is aborted by a structural error.

    Attributes:
        header: The decoded TableHeader
        fields: The decoded field descriptors
        encoding: Codec used for Character fields
    """

    def __init__(
        self,
        stream: BinaryIO,
        encoding: Optional[str] = None,
        owns_stream: bool = False,
        strict_eof: Optional[bool] = None,
    ):
        self._stream = stream
        self._owns_stream = owns_stream
        self._closed = False
        self._exhausted = False
        self._index = 0
        self._strict_eof = get_config().strict_eof if strict_eof is None else strict_eof

        try:
            self.header, self.fields = read_header(stream)
        except BaseException:
            self.close()
            raise

        self.encoding = resolve_encoding(self.header.language_driver, encoding)
        self._position = self.header.header_length
        logger.debug(
            f"Opened reader: {self.header.record_count} records of "
            f"{self.header.record_length} bytes, encoding {self.encoding}"
        )

    # =========================================================================
    # Cursor
    # =========================================================================

    @property
    def records_read(self) -> int:
        """Number of records consumed so far, including ones that failed to decode."""
        return self._index

    @property
    def closed(self) -> bool:
        return self._closed

    def next(self) -> Union[Record, EndOfTable]:
        """
        Read the next record.

        Returns:
            The next Record, or END_OF_TABLE when there are no more

        Raises:
            MalformedRecord: If the row is truncated or has a bad flag
            FieldValueError: If a value cannot be decoded (the cursor
                has already advanced past the record)
            IOFailure: If the stream cannot be read
            TableClosed: If the reader was closed before exhaustion
        """
        if self._exhausted:
            return END_OF_TABLE
        if self._closed:
            raise TableClosed("reader is closed")

        if self._index >= self.header.record_count:
            self._finish()
            return END_OF_TABLE

        offset = self._position
        data = self._read(self.header.record_length, offset)

        if not data or data[0] == EOF_MARKER:
            logger.warning(
                f"Header declares {self.header.record_count} records but data ends "
                f"after {self._index}"
            )
            self._finish(check_marker=False)
            return END_OF_TABLE

        if len(data) < self.header.record_length:
            self.close()
            raise MalformedRecord(
                f"truncated record: {len(data)} of {self.header.record_length} bytes",
                offset=offset,
                record_index=self._index,
            )

        index = self._index
        self._index += 1
        self._position += len(data)

        try:
            return decode_record(data, self.fields, self.encoding, offset=offset, index=index)
        except FormatError:
            self.close()
            raise

    def __iter__(self) -> Iterator[Record]:
        """Iterate over the remaining records."""
        while True:
            record = self.next()
            if record is END_OF_TABLE:
                return
            yield record

    def _read(self, size: int, offset: int) -> bytes:
        try:
            return self._stream.read(size)
        except OSError as e:
            self.close()
            raise IOFailure(f"cannot read record: {e}", offset=offset, record_index=self._index) from e

    def _finish(self, check_marker: bool = True) -> None:
        """Mark the cursor exhausted and release the stream."""
        try:
            if check_marker:
                marker = self._read(1, self._position)
                if marker[:1] != bytes((EOF_MARKER,)):
                    if self._strict_eof:
                        raise MalformedRecord(
                            "missing end-of-data marker 0x1A", offset=self._position
                        )
                    logger.debug(f"No end-of-data marker at offset 0x{self._position:04X}")
        finally:
            self._exhausted = True
            self.close()

    # =========================================================================
    # Resource Handling
    # =========================================================================

    def close(self) -> None:
        """Release the stream if this reader owns it."""
        if self._closed:
            return
        self._closed = True
        if self._owns_stream:
            self._stream.close()

    def __enter__(self) -> "RecordReader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def open_for_read(
    source: Source,
    encoding: Optional[str] = None,
    strict_eof: Optional[bool] = None,
) -> RecordReader:
    """
    Open a DBF file or stream for streaming reads.

    Args:
        source: A path (the reader owns the file) or a readable binary
            stream positioned at the start of the table (the caller
            keeps ownership)
        encoding: Codec for Character fields; defaults to the header's
            language driver, then the configured default
        strict_eof: Require the 0x1A end-of-data marker

    Returns:
        A RecordReader positioned at the first record

    Raises:
        MalformedHeader, UnsupportedVersion: If the header is invalid
        IOFailure: If the file cannot be opened or read
    """
    if isinstance(source, (str, Path)):
        try:
            stream = open(source, "rb")
        except OSError as e:
            raise IOFailure(f"cannot open {source}: {e}") from e
        return RecordReader(stream, encoding=encoding, owns_stream=True, strict_eof=strict_eof)
    return RecordReader(source, encoding=encoding, strict_eof=strict_eof)
