"""
dbfkit Error Hierarchy
======================

This module defines the exception hierarchy for the entire toolkit.
All exceptions inherit from DBFError, allowing callers to catch all
toolkit-related errors with a single except clause if desired.

Exception Hierarchy
-------------------
DBFError (base)
├── InvalidFieldDescriptor - column definition violates DBF rules
├── FormatError (structural, aborts the open/read)
│   ├── MalformedHeader - header bytes inconsistent or truncated
│   ├── UnsupportedVersion - unknown version/dialect byte
│   └── MalformedRecord - bad deletion flag or truncated row
├── FieldValueError (per-value, the scan may continue)
│   ├── NumericParseError - numeric field holds non-numeric text
│   ├── InvalidDate - date field is not YYYYMMDD
│   ├── InvalidLogical - logical field holds an unknown character
│   ├── TextEncodingError - text cannot be encoded/decoded
│   └── ValueTooLong - value does not fit its field width
├── TableError (table engine state)
│   ├── IndexOutOfRange - record index outside the table
│   ├── TableClosed - table used after close()
│   └── TableNotOpen - table used before open()
├── MemoError - DBT memo file problems
└── IOFailure - wraps an underlying stream error

Error Context
-------------
Each exception can carry the byte offset, field name and record index
where the problem was found. These are rendered into the message:

    record 12, field 'AGE', offset 0x01A4: error: non-numeric content 'x1'
"""

from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class DBFError(Exception):
    """
    Base exception for all dbfkit errors.

    All exceptions in the toolkit inherit from this class, allowing callers
    to catch all DBF-related errors with a single except clause:

        try:
            table = DBFTable.from_file("people.dbf")
        except DBFError as e:
            print(f"Error: {e}")

    Attributes:
        message: The error description
        offset: Absolute byte offset in the stream (optional)
        field_name: Name of the field involved (optional)
        record_index: Zero-based record number (optional)
    """

    def __init__(
        self,
        message: str,
        offset: Optional[int] = None,
        field_name: Optional[str] = None,
        record_index: Optional[int] = None,
    ):
        self.message = message
        self.offset = offset
        self.field_name = field_name
        self.record_index = record_index
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the error message with its location prefix.

        Example output:
            record 3, field 'BIRTH', offset 0x0061: error: invalid date '2024AB01'
        """
        location = []
        if self.record_index is not None:
            location.append(f"record {self.record_index}")
        if self.field_name is not None:
            location.append(f"field '{self.field_name}'")
        if self.offset is not None:
            location.append(f"offset 0x{self.offset:04X}")

        if location:
            return f"{', '.join(location)}: error: {self.message}"
        return f"error: {self.message}"

    def with_context(
        self,
        offset: Optional[int] = None,
        field_name: Optional[str] = None,
        record_index: Optional[int] = None,
    ) -> "DBFError":
        """
        Fill in location details that are still unknown.

        Lower layers raise without knowing where they are in the file;
        callers that do know add it on the way up:

            except FieldValueError as e:
                raise e.with_context(record_index=index)

        Returns:
            self, with the formatted message refreshed
        """
        if self.offset is None:
            self.offset = offset
        if self.field_name is None:
            self.field_name = field_name
        if self.record_index is None:
            self.record_index = record_index
        self.args = (self._format_message(),)
        return self


# =============================================================================
# Field Descriptor Exceptions
# =============================================================================

class InvalidFieldDescriptor(DBFError):
    """
    Column definition violates DBF constraints.

    Raised when:
    - Name is empty, longer than 10 bytes, or not ASCII
    - Name is duplicated within a table
    - Length is outside 1-254 or wrong for a fixed-width type
    - Decimal count is set on a non-numeric type or leaves no room
    """
    pass


# =============================================================================
# Structural Format Exceptions
# =============================================================================

class FormatError(DBFError):
    """
    Base exception for structural decode errors.

    These are unrecoverable for the stream being read: the open or
    read operation is aborted and no partial table is returned.
    """
    pass


class MalformedHeader(FormatError):
    """
    Invalid table header.

    Raised when reading a header that:
    - Is shorter than 32 bytes
    - Has no 0x0D field terminator
    - Declares a header length inconsistent with its field count
    - Declares a record length inconsistent with its field widths
    """
    pass


class UnsupportedVersion(FormatError):
    """
    Unknown version/type byte.

    The first header byte identifies the dBASE/FoxPro dialect. Only the
    dialects listed in DBFVersion are accepted.
    """

    def __init__(self, version: int, offset: Optional[int] = 0):
        self.version = version
        super().__init__(
            f"unsupported DBF version byte 0x{version:02X}",
            offset=offset,
        )


class MalformedRecord(FormatError):
    """
    Invalid record row.

    Raised when the deletion flag is neither 0x20 nor 0x2A, or when a
    row is shorter than the declared record length.
    """
    pass


# =============================================================================
# Per-Value Exceptions
# =============================================================================

class FieldValueError(DBFError):
    """
    Base exception for a single bad value.

    Raised while decoding or encoding one field. Sibling records are not
    affected; a streaming reader can skip the record and continue.
    """
    pass


class NumericParseError(FieldValueError):
    """Numeric or Float field holds content other than digits, sign, point or spaces."""
    pass


class InvalidDate(FieldValueError):
    """Date field is neither blank nor a valid YYYYMMDD calendar date."""
    pass


class InvalidLogical(FieldValueError):
    """Logical field holds a character outside T/t/Y/y/F/f/N/n/?/space."""
    pass


class TextEncodingError(FieldValueError):
    """Character data cannot be converted with the table's codec."""
    pass


class ValueTooLong(FieldValueError):
    """
    Value does not fit its field.

    Character values are truncated silently; Numeric, Float, Date,
    Logical and memo pointers are rejected instead of being cut.
    """

    def __init__(
        self,
        value: object,
        width: int,
        field_name: Optional[str] = None,
        record_index: Optional[int] = None,
    ):
        self.value = value
        self.width = width
        super().__init__(
            f"value {value!r} does not fit in {width} bytes",
            field_name=field_name,
            record_index=record_index,
        )


# =============================================================================
# Table Engine Exceptions
# =============================================================================

class TableError(DBFError):
    """Base exception for table engine misuse."""
    pass


class IndexOutOfRange(TableError):
    """Record index is negative or not less than the record count."""

    def __init__(self, index: int, count: int):
        self.index = index
        self.count = count
        super().__init__(
            f"record index {index} out of range (table has {count} records)"
        )


class TableClosed(TableError):
    """The table was closed; no further operations are allowed."""

    def __init__(self, message: str = "table is closed"):
        super().__init__(message)


class TableNotOpen(TableError):
    """The table has not been opened or created yet."""

    def __init__(self, message: str = "table has not been opened"):
        super().__init__(message)


# =============================================================================
# Memo and I/O Exceptions
# =============================================================================

class MemoError(DBFError):
    """
    Invalid DBT memo file or block reference.

    Raised when:
    - The file is too small or not a multiple of 512 bytes
    - A block pointer is outside the file
    - A memo has no 0x1A terminator
    """
    pass


class IOFailure(DBFError):
    """
    Underlying stream error.

    Wraps OSError raised by the file object so callers only need to
    handle DBFError. The original exception is kept as __cause__.
    """
    pass
