"""
DBF Table Engine
================

DBFTable holds a whole table in memory: one header, one field list and
an ordered list of records. Records are edited in place and written
back with flush().

State Machine
-------------
    UNOPENED --open()--> LOADED --add/update/delete--> DIRTY --flush()--> LOADED
    any state --close()--> CLOSED

A table built with create() starts DIRTY, since nothing has been
written yet. Operations on an UNOPENED table raise TableNotOpen and
operations on a CLOSED table raise TableClosed.

Deletion
--------
mark_deleted() only sets the flag; the row keeps its values and still
counts towards record_count. compact() drops flagged rows and is the
only operation that renumbers records.

Usage
-----
    >>> fields = [
    ...     FieldDescriptor.create("NAME", "C", 10),
    ...     FieldDescriptor.create("AGE", "N", 3),
    ... ]
    >>> table = DBFTable.create(fields)
    >>> table.add_record({"NAME": "Ada", "AGE": 36})
    0
    >>> table.save("people.dbf")
"""

from dataclasses import replace
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Iterator, Mapping, Optional, Sequence, Union
import io
import logging

from dbfkit.config import get_config
from dbfkit.errors import (
    IndexOutOfRange,
    IOFailure,
    TableClosed,
    TableError,
    TableNotOpen,
    UnsupportedVersion,
)
from dbfkit.dbf.codepage import language_driver_for_codec, resolve_encoding
from dbfkit.dbf.fields import FieldDescriptor, validate_fields
from dbfkit.dbf.header import DBFVersion, TableHeader, encode_header
from dbfkit.dbf.reader import END_OF_TABLE, EOF_MARKER, RecordReader
from dbfkit.dbf.records import (
    Record,
    RecordValues,
    decode_record,
    encode_record,
    merge_values,
    normalize_values,
)

# Logger for this module
logger = logging.getLogger(__name__)


class TableState(Enum):
    """Lifecycle states of a DBFTable."""
    UNOPENED = "unopened"
    LOADED = "loaded"
    DIRTY = "dirty"
    CLOSED = "closed"


class DBFTable:
    """
    In-memory DBF table.

    Attributes:
        header: Current TableHeader (None until opened)
        encoding: Codec used for Character fields (None until opened)
    """

    def __init__(self, encoding: Optional[str] = None):
        """
        Create an unopened table.

        Args:
            encoding: Codec override for Character fields; by default the
                header's language driver and then the configured codec
        """
        self._state = TableState.UNOPENED
        self._encoding_override = encoding
        self._fields: list[FieldDescriptor] = []
        self._records: list[Record] = []
        self.header: Optional[TableHeader] = None
        self.encoding: Optional[str] = None

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def create(
        cls,
        fields: Sequence[FieldDescriptor],
        version: Optional[int] = None,
        language_driver: Optional[int] = None,
        encoding: Optional[str] = None,
        encrypted: bool = False,
    ) -> "DBFTable":
        """
        Create a new empty table.

        If any field is a memo type and the dialect has a memo-bearing
        counterpart, the version byte is switched to it (0x03 -> 0x83).

        Args:
            fields: Column definitions
            version: Version byte (default: configured default_version)
            language_driver: Code page byte (default: derived from encoding,
                then the configured default)
            encoding: Codec for Character fields
            encrypted: Set the dBASE IV encryption flag (byte 15). Only the
                flag is written; record data is stored as given.

        Raises:
            InvalidFieldDescriptor: If the field list is not valid
            UnsupportedVersion: If the version byte is not recognized
        """
        config = get_config()
        fields = list(fields)
        validate_fields(fields)

        version = config.default_version if version is None else version
        dialect = DBFVersion(version) if DBFVersion.is_supported(version) else None
        if dialect is None:
            raise UnsupportedVersion(version)
        if any(f.field_type.is_memo() for f in fields):
            dialect = dialect.with_memo()

        if language_driver is None:
            if encoding is not None:
                language_driver = language_driver_for_codec(encoding)
            else:
                language_driver = config.default_language_driver

        table = cls(encoding=encoding)
        table._fields = fields
        table.header = TableHeader(
            version=int(dialect),
            language_driver=language_driver,
        ).with_layout(fields)
        table.header.encrypted = encrypted
        table.encoding = resolve_encoding(language_driver, encoding)
        table._state = TableState.DIRTY
        logger.debug(
            f"Created table: {len(fields)} fields, version 0x{table.header.version:02X}"
        )
        return table

    @classmethod
    def from_file(cls, path: Union[str, Path], encoding: Optional[str] = None) -> "DBFTable":
        """
        Load a table from a .dbf file.

        Raises:
            IOFailure: If the file cannot be read
            FormatError: If the file is not a valid DBF table
            FieldValueError: If a stored value cannot be decoded
        """
        try:
            stream = open(path, "rb")
        except OSError as e:
            raise IOFailure(f"cannot open {path}: {e}") from e
        with stream:
            table = cls(encoding=encoding)
            table.open(stream)
        return table

    @classmethod
    def from_bytes(cls, data: bytes, encoding: Optional[str] = None) -> "DBFTable":
        """Load a table from an in-memory image."""
        table = cls(encoding=encoding)
        table.open(io.BytesIO(data))
        return table

    def open(self, stream: BinaryIO) -> None:
        """
        Read a complete table from a stream.

        The stream is not closed. On any error the table stays UNOPENED
        and holds no partial data.

        Raises:
            TableError: If the table is already open
            TableClosed: If the table was closed
            FormatError, FieldValueError, IOFailure: From decoding
        """
        if self._state == TableState.CLOSED:
            raise TableClosed()
        if self._state != TableState.UNOPENED:
            raise TableError("table is already open")

        reader = RecordReader(stream, encoding=self._encoding_override)
        records: list[Record] = []
        with reader:
            while (record := reader.next()) is not END_OF_TABLE:
                records.append(record)

        header = reader.header
        if len(records) != header.record_count:
            header = replace(header, record_count=len(records))

        self.header = header
        self.encoding = reader.encoding
        self._fields = list(reader.fields)
        self._records = records
        self._state = TableState.LOADED
        logger.debug(f"Loaded table: {len(records)} records, {len(self._fields)} fields")

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> TableState:
        return self._state

    @property
    def is_dirty(self) -> bool:
        """True when there are changes that have not been flushed."""
        return self._state == TableState.DIRTY

    def _require_open(self) -> None:
        if self._state == TableState.CLOSED:
            raise TableClosed()
        if self._state == TableState.UNOPENED:
            raise TableNotOpen()

    def _check_index(self, index: int) -> None:
        if not isinstance(index, int) or not 0 <= index < len(self._records):
            raise IndexOutOfRange(index, len(self._records))

    def _mark_dirty(self) -> None:
        self._state = TableState.DIRTY
        self.header = replace(self.header, record_count=len(self._records))

    @property
    def fields(self) -> tuple[FieldDescriptor, ...]:
        """The table's field descriptors in record order."""
        self._require_open()
        return tuple(self._fields)

    @property
    def record_count(self) -> int:
        """Number of records, soft-deleted ones included."""
        self._require_open()
        return len(self._records)

    @property
    def active_count(self) -> int:
        """Number of records not marked deleted."""
        self._require_open()
        return sum(1 for r in self._records if not r.deleted)

    @property
    def deleted_count(self) -> int:
        """Number of records marked deleted."""
        self._require_open()
        return sum(1 for r in self._records if r.deleted)

    def __len__(self) -> int:
        return self.record_count

    def __bool__(self) -> bool:
        # A table object is truthy in every state, even when empty
        return True

    # =========================================================================
    # Record Access
    # =========================================================================

    def get_record(self, index: int) -> Record:
        """
        Get a copy of one record.

        Raises:
            IndexOutOfRange: If index is outside the table
        """
        self._require_open()
        self._check_index(index)
        return self._records[index].copy()

    def iter_records(self, include_deleted: bool = True) -> Iterator[Record]:
        """Iterate over copies of the records in file order."""
        self._require_open()
        for record in self._records:
            if include_deleted or not record.deleted:
                yield record.copy()

    @property
    def records(self) -> list[Record]:
        """Copies of all records."""
        return list(self.iter_records())

    # =========================================================================
    # Mutation
    # =========================================================================

    def _validated(self, values: RecordValues, deleted: bool, index: int) -> Record:
        """Run values through the record codec and return the stored form."""
        record = Record(values=normalize_values(values, self._fields), deleted=deleted)
        data = encode_record(record, self._fields, self.encoding, index=index)
        return decode_record(data, self._fields, self.encoding, index=index)

    def add_record(self, values: RecordValues, deleted: bool = False) -> int:
        """
        Append a record.

        Args:
            values: Mapping keyed by field name, or one value per field
            deleted: Store the record already marked deleted

        Returns:
            Index of the new record

        Raises:
            FieldValueError: If a value does not fit its field
        """
        self._require_open()
        index = len(self._records)
        self._records.append(self._validated(values, deleted, index))
        self._mark_dirty()
        return index

    def update_record(self, index: int, values: Union[Mapping[str, Any], Sequence[Any]]) -> None:
        """
        Change a record's values.

        A mapping updates only the named fields; a sequence replaces
        every value. The deletion flag is unchanged.

        Raises:
            IndexOutOfRange: If index is outside the table
            FieldValueError: If a value does not fit its field
        """
        self._require_open()
        self._check_index(index)
        existing = self._records[index]
        if isinstance(values, Record):
            values = values.values
        if isinstance(values, Mapping):
            values = merge_values(existing.values, values, self._fields)
        self._records[index] = self._validated(values, existing.deleted, index)
        self._mark_dirty()

    def mark_deleted(self, index: int) -> None:
        """Set the deletion flag of a record."""
        self._set_deleted(index, True)

    def undelete(self, index: int) -> None:
        """Clear the deletion flag of a record."""
        self._set_deleted(index, False)

    def _set_deleted(self, index: int, deleted: bool) -> None:
        self._require_open()
        self._check_index(index)
        if self._records[index].deleted != deleted:
            self._records[index].deleted = deleted
            self._mark_dirty()

    def compact(self) -> int:
        """
        Remove every record marked deleted.

        Returns:
            Number of records removed (0 on a second call)
        """
        self._require_open()
        kept = [r for r in self._records if not r.deleted]
        removed = len(self._records) - len(kept)
        if removed:
            self._records = kept
            self._mark_dirty()
            logger.debug(f"Compacted table: removed {removed} records")
        return removed

    # =========================================================================
    # Serialization
    # =========================================================================

    def _write_to(self, stream: BinaryIO) -> TableHeader:
        """Write the full table and return the header that was written."""
        header = replace(
            self.header.with_layout(self._fields),
            record_count=len(self._records),
            last_update=date.today(),
        )
        try:
            stream.write(encode_header(header, self._fields))
            for index, record in enumerate(self._records):
                stream.write(encode_record(record, self._fields, self.encoding, index=index))
            stream.write(bytes((EOF_MARKER,)))
            stream.flush()
        except OSError as e:
            raise IOFailure(f"cannot write table: {e}") from e
        return header

    def flush(self, stream: BinaryIO) -> None:
        """
        Write the table to a stream.

        The header is rebuilt from the field list and stamped with
        today's date; every record follows in order, deleted ones
        included, then the 0x1A end-of-data marker.

        Raises:
            IOFailure: If the stream cannot be written
        """
        self._require_open()
        self.header = self._write_to(stream)
        self._state = TableState.LOADED
        logger.debug(f"Flushed table: {len(self._records)} records")

    def save(self, path: Union[str, Path]) -> None:
        """Flush the table to a file, replacing it."""
        self._require_open()
        try:
            stream = open(path, "wb")
        except OSError as e:
            raise IOFailure(f"cannot open {path}: {e}") from e
        with stream:
            self.flush(stream)

    def to_bytes(self) -> bytes:
        """Serialize the table without changing its state."""
        self._require_open()
        buffer = io.BytesIO()
        self._write_to(buffer)
        return buffer.getvalue()

    def get_info(self) -> dict:
        """
        Get summary information about the table.

        Returns:
            Dictionary with version, date, counts and layout details
        """
        self._require_open()
        version = self.header.version
        if DBFVersion.is_supported(version):
            description = DBFVersion(version).get_description()
        else:
            description = f"Unknown (0x{version:02X})"
        layout = self.header.with_layout(self._fields)
        return {
            "version": f"0x{version:02X}",
            "version_name": description,
            "last_update": self.header.last_update.isoformat() if self.header.last_update else None,
            "record_count": len(self._records),
            "active_count": self.active_count,
            "deleted_count": self.deleted_count,
            "field_count": len(self._fields),
            "header_length": layout.header_length,
            "record_length": layout.record_length,
            "language_driver": f"0x{self.header.language_driver:02X}",
            "encoding": self.encoding,
            "has_memo": self.header.has_memo,
            "state": self._state.value,
        }

    # =========================================================================
    # Resource Handling
    # =========================================================================

    def close(self) -> None:
        """Close the table. Unflushed changes are discarded."""
        if self._state == TableState.DIRTY:
            logger.warning("Closing table with unflushed changes")
        self._records = []
        self._state = TableState.CLOSED

    def __enter__(self) -> "DBFTable":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        if self._state in (TableState.UNOPENED, TableState.CLOSED):
            return f"DBFTable(state={self._state.value})"
        return (
            f"DBFTable(fields={len(self._fields)}, records={len(self._records)}, "
            f"state={self._state.value})"
        )
