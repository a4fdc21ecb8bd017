"""
DBF Record Codec
================

This module converts between fixed-width record rows and Python values.

Every record is exactly record_length bytes: a deletion flag followed by
the fields in declaration order. The flag is 0x20 (space) for an active
record and 0x2A ('*') for a soft-deleted one.

Value Rules
-----------
- Character: space padded on the right; decoding trims trailing spaces
  and NULs. Too-long text is truncated on a character boundary.
- Numeric/Float: ASCII numeral, right-justified and space padded.
- Logical: one of T/t/Y/y, F/f/N/n, or '?'/space for "no value".
- Date: YYYYMMDD in ASCII.
- Memo/OLE/Binary: block number in a companion file, as an ASCII numeral
  (or a little-endian uint32 when the field is 4 bytes wide). Block 0 is
  the memo file header, so a zero pointer decodes to None.
- Integer/Autoincrement, Double, Timestamp: little-endian binary.

Blank storage decodes to None ("no value"), never to zero or "".
Numeric, Float, Date, Logical and memo values that do not fit their
field raise ValueTooLong instead of being cut.

Usage Examples
--------------
    >>> fields = [FieldDescriptor("NAME", FieldType.CHARACTER, 10),
    ...           FieldDescriptor("AGE", FieldType.NUMERIC, 3)]
    >>> record = decode_record(b" NAME      025", fields)
    >>> record.values
    {'NAME': 'NAME', 'AGE': 25}
    >>> encode_record(record, fields)
    b' NAME       25'
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Sequence, Union
import logging
import math
import re
import struct

from dbfkit.config import get_config
from dbfkit.errors import (
    FieldValueError,
    InvalidDate,
    InvalidLogical,
    MalformedRecord,
    NumericParseError,
    TextEncodingError,
    ValueTooLong,
)
from dbfkit.dbf.fields import FieldDescriptor, FieldType, iter_layout, record_length

# Logger for this module
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

ACTIVE_FLAG = 0x20
DELETED_FLAG = 0x2A

# Julian day number of 0001-01-01 minus one (date.toordinal() is 1-based)
JULIAN_DAY_OFFSET = 1721425

_NUMERIC_PATTERN = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")
_BLANK = b" \x00"

_INT32 = struct.Struct("<i")
_UINT32 = struct.Struct("<I")
_DOUBLE = struct.Struct("<d")
_TIMESTAMP = struct.Struct("<ii")

LOGICAL_TRUE = "TtYy"
LOGICAL_FALSE = "FfNn"
LOGICAL_UNSET = "? "


# =============================================================================
# Record
# =============================================================================

@dataclass
class Record:
    """
    One table row.

    The deletion flag is kept apart from the field data so that a
    soft-deleted row keeps its values until the table is compacted.

    Attributes:
        values: Field values keyed by field name, in record order
        deleted: True if the row is marked deleted

    Example:
        >>> record = Record({"NAME": "Ada", "AGE": 36})
        >>> record["AGE"]
        36
    """
    values: dict[str, Any] = field(default_factory=dict)
    deleted: bool = False

    def __getitem__(self, name: str) -> Any:
        return self.values[name]

    def get(self, name: str, default: Any = None) -> Any:
        """Get a field value, or default if the field is absent."""
        return self.values.get(name, default)

    def copy(self) -> "Record":
        """Return an independent copy of this record."""
        return Record(values=dict(self.values), deleted=self.deleted)

    def as_list(self) -> list[Any]:
        """Field values in record order."""
        return list(self.values.values())


RecordValues = Union[Record, Mapping[str, Any], Sequence[Any]]


# =============================================================================
# Value Decoding
# =============================================================================

def _is_blank(raw: bytes) -> bool:
    return not raw.strip(_BLANK)


def _decode_character(raw: bytes, encoding: str) -> str:
    try:
        return raw.rstrip(_BLANK).decode(encoding)
    except UnicodeDecodeError as e:
        raise TextEncodingError(f"cannot decode {raw!r} as {encoding}: {e.reason}") from None


def _decode_numeric(raw: bytes) -> Union[int, float, None]:
    if _is_blank(raw):
        return None
    try:
        text = raw.strip(_BLANK).decode("ascii")
    except UnicodeDecodeError:
        raise NumericParseError(f"non-numeric content {raw!r}") from None
    if not _NUMERIC_PATTERN.fullmatch(text):
        raise NumericParseError(f"non-numeric content {text!r}")
    if "." in text or "e" in text or "E" in text:
        return float(text)
    return int(text)


def _decode_logical(raw: bytes) -> Optional[bool]:
    char = chr(raw[0])
    if char in LOGICAL_TRUE:
        return True
    if char in LOGICAL_FALSE:
        return False
    if char in LOGICAL_UNSET or char == "\x00":
        return None
    raise InvalidLogical(f"unknown logical value {char!r}")


def _decode_date(raw: bytes) -> Optional[date]:
    if _is_blank(raw) or raw == b"00000000":
        return None
    if not raw.isdigit():
        raise InvalidDate(f"invalid date {raw!r}")
    try:
        return date(int(raw[0:4]), int(raw[4:6]), int(raw[6:8]))
    except ValueError:
        raise InvalidDate(f"invalid date {raw.decode('ascii')!r}") from None


def _decode_memo_pointer(raw: bytes) -> Optional[int]:
    if len(raw) == 4:
        block = _UINT32.unpack(raw)[0]
        return block or None
    if _is_blank(raw):
        return None
    text = raw.strip(_BLANK)
    if not text.isdigit():
        raise NumericParseError(f"invalid memo block pointer {raw!r}")
    return int(text) or None


def _decode_timestamp(raw: bytes) -> Optional[datetime]:
    day, millis = _TIMESTAMP.unpack(raw)
    if day == 0 and millis == 0:
        return None
    try:
        return datetime.fromordinal(day - JULIAN_DAY_OFFSET) + timedelta(milliseconds=millis)
    except (ValueError, OverflowError):
        raise InvalidDate(f"invalid timestamp (day {day}, {millis} ms)") from None


def decode_value(raw: bytes, descriptor: FieldDescriptor, encoding: str) -> Any:
    """
    Decode the bytes of one field.

    Args:
        raw: Exactly descriptor.length bytes
        descriptor: The field being decoded
        encoding: Codec for Character data

    Returns:
        The Python value, or None for "no value"

    Raises:
        FieldValueError: Or one of its subclasses for bad content
    """
    ftype = descriptor.field_type

    if ftype == FieldType.CHARACTER:
        return _decode_character(raw, encoding)
    elif ftype.is_numeric():
        return _decode_numeric(raw)
    elif ftype == FieldType.LOGICAL:
        return _decode_logical(raw)
    elif ftype == FieldType.DATE:
        return _decode_date(raw)
    elif ftype.is_memo():
        return _decode_memo_pointer(raw)
    elif ftype in (FieldType.INTEGER, FieldType.AUTOINCREMENT):
        return _INT32.unpack(raw)[0]
    elif ftype == FieldType.DOUBLE:
        return _DOUBLE.unpack(raw)[0]
    elif ftype == FieldType.TIMESTAMP:
        return _decode_timestamp(raw)

    raise FieldValueError(f"no decoder for field type {ftype.value!r}")


# =============================================================================
# Value Encoding
# =============================================================================

def _encode_character(value: Any, descriptor: FieldDescriptor, encoding: str) -> bytes:
    if value is None:
        return b" " * descriptor.length
    if not isinstance(value, str):
        raise FieldValueError(f"expected text, got {type(value).__name__}")
    try:
        encoded = value.encode(encoding)
    except UnicodeEncodeError as e:
        raise TextEncodingError(f"cannot encode {value!r} as {encoding}: {e.reason}") from None

    if len(encoded) > descriptor.length:
        # Truncate, dropping any multi-byte character cut in half
        encoded = encoded[:descriptor.length].decode(encoding, errors="ignore").encode(encoding)
        logger.debug(f"Truncated value for '{descriptor.name}' to {descriptor.length} bytes")
    return encoded.ljust(descriptor.length, b" ")


def _format_number(value: Any, decimal_count: int, width: int) -> str:
    if isinstance(value, bool):
        raise FieldValueError(f"expected a number, got {value!r}")

    if isinstance(value, str):
        text = value.strip()
        if not _NUMERIC_PATTERN.fullmatch(text):
            raise NumericParseError(f"non-numeric content {value!r}")
        try:
            value = Decimal(text)
        except InvalidOperation:
            raise NumericParseError(f"non-numeric content {value!r}") from None

    if isinstance(value, float) and not math.isfinite(value):
        raise NumericParseError(f"cannot store {value!r}")

    if isinstance(value, (int, float, Decimal)):
        number = Decimal(repr(value)) if isinstance(value, float) else Decimal(value)
        if not number.is_finite():
            raise NumericParseError(f"cannot store {value!r}")
        try:
            quantized = number.quantize(Decimal(1).scaleb(-decimal_count))
        except InvalidOperation:
            raise ValueTooLong(value, width) from None
        # Extra fractional digits are rejected, never rounded away
        if quantized != number:
            raise ValueTooLong(value, width)
        if not quantized:
            quantized = quantized.copy_abs()
        return f"{quantized:f}"

    raise FieldValueError(f"expected a number, got {type(value).__name__}")


def _encode_numeric(value: Any, descriptor: FieldDescriptor) -> bytes:
    if value is None or (isinstance(value, str) and not value.strip()):
        return b" " * descriptor.length
    text = _format_number(value, descriptor.decimal_count, descriptor.length)
    if len(text) > descriptor.length:
        raise ValueTooLong(value, descriptor.length)
    return text.rjust(descriptor.length).encode("ascii")


def _encode_logical(value: Any) -> bytes:
    if value is None:
        return b"?"
    if isinstance(value, bool):
        return b"T" if value else b"F"
    if isinstance(value, str) and len(value) == 1:
        if value in LOGICAL_TRUE:
            return b"T"
        if value in LOGICAL_FALSE:
            return b"F"
        if value in LOGICAL_UNSET:
            return b"?"
    if isinstance(value, str) and len(value) > 1:
        raise ValueTooLong(value, 1)
    raise InvalidLogical(f"expected a boolean, got {value!r}")


def _encode_date(value: Any) -> bytes:
    if value is None:
        return b" " * 8
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return f"{value.year:04d}{value.month:02d}{value.day:02d}".encode("ascii")
    if isinstance(value, str):
        if len(value) > 8:
            raise ValueTooLong(value, 8)
        try:
            raw = value.encode("ascii")
        except UnicodeEncodeError:
            raise InvalidDate(f"invalid date {value!r}") from None
        parsed = _decode_date(raw.ljust(8))
        return _encode_date(parsed)
    raise InvalidDate(f"expected a date, got {type(value).__name__}")


def _encode_memo_pointer(value: Any, descriptor: FieldDescriptor) -> bytes:
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value)
    if value is None:
        return bytes(4) if descriptor.length == 4 else b" " * descriptor.length
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise FieldValueError(f"memo block pointer must be a non-negative integer, got {value!r}")
    if value == 0:
        # Block 0 holds the memo file header
        raise FieldValueError("memo block pointer 0 is reserved for the memo file header")

    if descriptor.length == 4:
        if value > 0xFFFFFFFF:
            raise ValueTooLong(value, 4)
        return _UINT32.pack(value)

    text = str(value)
    if len(text) > descriptor.length:
        raise ValueTooLong(value, descriptor.length)
    return text.rjust(descriptor.length).encode("ascii")


def _encode_integer(value: Any) -> bytes:
    if value is None:
        value = 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise FieldValueError(f"expected an integer, got {value!r}")
    if not -0x80000000 <= value <= 0x7FFFFFFF:
        raise ValueTooLong(value, 4)
    return _INT32.pack(value)


def _encode_double(value: Any) -> bytes:
    if value is None:
        value = 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise FieldValueError(f"expected a number, got {value!r}")
    return _DOUBLE.pack(float(value))


def _encode_timestamp(value: Any) -> bytes:
    if value is None:
        return _TIMESTAMP.pack(0, 0)
    if isinstance(value, datetime):
        millis = (
            (value.hour * 3600 + value.minute * 60 + value.second) * 1000
            + value.microsecond // 1000
        )
        return _TIMESTAMP.pack(value.toordinal() + JULIAN_DAY_OFFSET, millis)
    if isinstance(value, date):
        return _TIMESTAMP.pack(value.toordinal() + JULIAN_DAY_OFFSET, 0)
    raise InvalidDate(f"expected a datetime, got {type(value).__name__}")


def encode_value(value: Any, descriptor: FieldDescriptor, encoding: str) -> bytes:
    """
    Encode one field value to exactly descriptor.length bytes.

    Raises:
        ValueTooLong: If a non-Character value does not fit
        FieldValueError: Or a subclass for values of the wrong kind
    """
    ftype = descriptor.field_type

    if ftype == FieldType.CHARACTER:
        return _encode_character(value, descriptor, encoding)
    elif ftype.is_numeric():
        return _encode_numeric(value, descriptor)
    elif ftype == FieldType.LOGICAL:
        return _encode_logical(value)
    elif ftype == FieldType.DATE:
        return _encode_date(value)
    elif ftype.is_memo():
        return _encode_memo_pointer(value, descriptor)
    elif ftype in (FieldType.INTEGER, FieldType.AUTOINCREMENT):
        return _encode_integer(value)
    elif ftype == FieldType.DOUBLE:
        return _encode_double(value)
    elif ftype == FieldType.TIMESTAMP:
        return _encode_timestamp(value)

    raise FieldValueError(f"no encoder for field type {ftype.value!r}")


# =============================================================================
# Records
# =============================================================================

def normalize_values(values: RecordValues, fields: Sequence[FieldDescriptor]) -> dict[str, Any]:
    """
    Map caller-supplied values onto the field list.

    Accepts a Record, a mapping keyed by field name (case-insensitive),
    or a sequence with one value per field. Missing fields become None.

    Raises:
        FieldValueError: On unknown names or a wrong number of values
    """
    if isinstance(values, Record):
        values = values.values

    if isinstance(values, Mapping):
        by_key = {f.key: f.name for f in fields}
        result: dict[str, Any] = {f.name: None for f in fields}
        for name, value in values.items():
            canonical = by_key.get(str(name).upper())
            if canonical is None:
                raise FieldValueError(f"unknown field '{name}'", field_name=str(name))
            result[canonical] = value
        return result

    if isinstance(values, (str, bytes)):
        raise FieldValueError("record values must be a mapping or a sequence")

    values = list(values)
    if len(values) != len(fields):
        raise FieldValueError(
            f"expected {len(fields)} values, got {len(values)}"
        )
    return {f.name: value for f, value in zip(fields, values)}


def merge_values(
    base: Mapping[str, Any],
    updates: Mapping[str, Any],
    fields: Sequence[FieldDescriptor],
) -> dict[str, Any]:
    """
    Apply a partial update to a record's values.

    Raises:
        FieldValueError: If an update names an unknown field
    """
    by_key = {f.key: f.name for f in fields}
    merged = dict(base)
    for name, value in updates.items():
        canonical = by_key.get(str(name).upper())
        if canonical is None:
            raise FieldValueError(f"unknown field '{name}'", field_name=str(name))
        merged[canonical] = value
    return merged


def decode_record(
    data: bytes,
    fields: Sequence[FieldDescriptor],
    encoding: Optional[str] = None,
    offset: int = 0,
    index: Optional[int] = None,
) -> Record:
    """
    Decode one record row.

    Args:
        data: Exactly record_length(fields) bytes
        fields: The table's field descriptors
        encoding: Codec for Character fields (default: configured codec)
        offset: Absolute file offset of the row, for error messages
        index: Record number, for error messages

    Returns:
        The decoded Record

    Raises:
        MalformedRecord: If the length or deletion flag is wrong
        FieldValueError: If a single value cannot be decoded
    """
    expected = record_length(fields)
    if len(data) != expected:
        raise MalformedRecord(
            f"record is {len(data)} bytes, expected {expected}",
            offset=offset,
            record_index=index,
        )

    flag = data[0]
    if flag == ACTIVE_FLAG:
        deleted = False
    elif flag == DELETED_FLAG:
        deleted = True
    else:
        raise MalformedRecord(
            f"invalid deletion flag 0x{flag:02X}", offset=offset, record_index=index
        )

    encoding = encoding or get_config().default_encoding
    values: dict[str, Any] = {}
    for descriptor, displacement in iter_layout(fields):
        raw = bytes(data[displacement:displacement + descriptor.length])
        try:
            values[descriptor.name] = decode_value(raw, descriptor, encoding)
        except FieldValueError as e:
            raise e.with_context(
                offset=offset + displacement,
                field_name=descriptor.name,
                record_index=index,
            )

    return Record(values=values, deleted=deleted)


def encode_record(
    record: RecordValues,
    fields: Sequence[FieldDescriptor],
    encoding: Optional[str] = None,
    index: Optional[int] = None,
) -> bytes:
    """
    Encode one record row.

    Args:
        record: A Record, or plain values (mapping or sequence) for an
            active row
        fields: The table's field descriptors
        encoding: Codec for Character fields (default: configured codec)
        index: Record number, for error messages

    Returns:
        Exactly record_length(fields) bytes

    Raises:
        ValueTooLong: If a Numeric/Float/Date/Logical/memo value does not fit
        FieldValueError: If a value is of the wrong kind
    """
    deleted = record.deleted if isinstance(record, Record) else False
    values = normalize_values(record, fields)
    encoding = encoding or get_config().default_encoding

    result = bytearray()
    result.append(DELETED_FLAG if deleted else ACTIVE_FLAG)
    for descriptor in fields:
        try:
            result.extend(encode_value(values[descriptor.name], descriptor, encoding))
        except FieldValueError as e:
            raise e.with_context(field_name=descriptor.name, record_index=index)

    return bytes(result)
