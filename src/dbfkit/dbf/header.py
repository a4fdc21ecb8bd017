"""
DBF Header Codec
================

This module parses and serializes the table header: the fixed 32-byte
prefix followed by the array of 32-byte field descriptors and the 0x0D
terminator.

Header Layout
-------------
    Offset  Size    Description
    ------  ----    -----------
    0       1       Version/type byte (see DBFVersion)
    1       3       Last update date: year-1900, month, day (binary)
    4       4       Record count (little-endian uint32)
    8       2       Header length in bytes (little-endian uint16)
    10      2       Record length in bytes (little-endian uint16)
    12      20      Reserved; preserved verbatim. Known bytes:
                      14  incomplete transaction flag
                      15  encryption flag
                      28  table flags (production index / memo)
                      29  language driver id

Field Descriptor Layout
-----------------------
    Offset  Size    Description
    ------  ----    -----------
    0       11      Name, NUL padded
    11      1       Type tag (ASCII)
    12      4       Reserved
    16      1       Length
    17      1       Decimal count
    18      14      Reserved

Visual FoxPro tables additionally carry a 263-byte database container
backlink after the terminator, which is counted in the header length.

Reference
---------
- https://www.dbase.com/Knowledgebase/INT/db7_file_fmt.htm
"""

from dataclasses import dataclass, field, replace
from datetime import date
from enum import IntEnum
from typing import BinaryIO, Optional, Sequence
import logging
import struct

from dbfkit.errors import (
    InvalidFieldDescriptor,
    IOFailure,
    MalformedHeader,
    UnsupportedVersion,
)
from dbfkit.dbf.fields import (
    FieldDescriptor,
    FieldType,
    record_length,
    validate_fields,
)

# Logger for this module
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

HEADER_PREFIX_SIZE = 32
DESCRIPTOR_SIZE = 32
FIELD_TERMINATOR = 0x0D
VFP_BACKLINK_SIZE = 263
RESERVED_OFFSET = 12
RESERVED_SIZE = 20

# Offsets of known bytes inside the reserved area
_RESERVED_TRANSACTION = 14 - RESERVED_OFFSET
_RESERVED_ENCRYPTION = 15 - RESERVED_OFFSET
_RESERVED_TABLE_FLAGS = 28 - RESERVED_OFFSET
_RESERVED_LANGUAGE = 29 - RESERVED_OFFSET

_PREFIX_FORMAT = "<B3BIHH"
_DESCRIPTOR_FORMAT = "<11sc4xBB14x"


# =============================================================================
# Version Byte
# =============================================================================

class DBFVersion(IntEnum):
    """
    Recognized version/type bytes (header offset 0).

    Bit layout for the dBASE family:
        Bits 0-2: dBASE version number
        Bit 3:    dBASE IV memo file present
        Bits 4-6: SQL table flags
        Bit 7:    dBASE III memo file present
    """
    FOXBASE = 0x02
    DBASE_III = 0x03
    DBASE_IV = 0x04
    DBASE_V = 0x05
    VISUAL_FOXPRO = 0x30
    VISUAL_FOXPRO_AUTOINC = 0x31
    VISUAL_FOXPRO_VARCHAR = 0x32
    DBASE_IV_SQL_TABLE = 0x43
    DBASE_IV_SQL_SYSTEM = 0x63
    DBASE_III_MEMO = 0x83
    DBASE_IV_MEMO = 0x8B
    DBASE_IV_SQL_MEMO = 0x8E
    DBASE_IV_SQL_SYSTEM_MEMO = 0xCB
    CLIPPER_SMT_MEMO = 0xE5
    FOXPRO_MEMO = 0xF5
    FOXBASE_PLUS = 0xFB

    @classmethod
    def is_supported(cls, version: int) -> bool:
        """Check whether a version byte is a recognized dialect."""
        return version in cls._value2member_map_

    def has_memo(self) -> bool:
        """True when this dialect declares a companion memo file."""
        return self in (
            DBFVersion.DBASE_III_MEMO,
            DBFVersion.DBASE_IV_MEMO,
            DBFVersion.DBASE_IV_SQL_MEMO,
            DBFVersion.DBASE_IV_SQL_SYSTEM_MEMO,
            DBFVersion.CLIPPER_SMT_MEMO,
            DBFVersion.FOXPRO_MEMO,
        )

    def is_visual_foxpro(self) -> bool:
        """True for dialects that append the 263-byte backlink to the header."""
        return self in (
            DBFVersion.VISUAL_FOXPRO,
            DBFVersion.VISUAL_FOXPRO_AUTOINC,
            DBFVersion.VISUAL_FOXPRO_VARCHAR,
        )

    def with_memo(self) -> "DBFVersion":
        """The memo-bearing counterpart of this dialect, if it has one."""
        counterparts = {
            DBFVersion.DBASE_III: DBFVersion.DBASE_III_MEMO,
            DBFVersion.DBASE_IV: DBFVersion.DBASE_IV_MEMO,
            DBFVersion.FOXBASE: DBFVersion.FOXPRO_MEMO,
        }
        return counterparts.get(self, self)

    def get_description(self) -> str:
        """Get a human-readable description of the dialect."""
        descriptions = {
            DBFVersion.FOXBASE: "FoxBASE",
            DBFVersion.DBASE_III: "dBASE III PLUS (no memo)",
            DBFVersion.DBASE_IV: "dBASE IV (no memo)",
            DBFVersion.DBASE_V: "dBASE V (no memo)",
            DBFVersion.VISUAL_FOXPRO: "Visual FoxPro",
            DBFVersion.VISUAL_FOXPRO_AUTOINC: "Visual FoxPro (autoincrement)",
            DBFVersion.VISUAL_FOXPRO_VARCHAR: "Visual FoxPro (varchar)",
            DBFVersion.DBASE_IV_SQL_TABLE: "dBASE IV SQL table (no memo)",
            DBFVersion.DBASE_IV_SQL_SYSTEM: "dBASE IV SQL system (no memo)",
            DBFVersion.DBASE_III_MEMO: "dBASE III PLUS (with memo)",
            DBFVersion.DBASE_IV_MEMO: "dBASE IV (with memo)",
            DBFVersion.DBASE_IV_SQL_MEMO: "dBASE IV SQL table (with memo)",
            DBFVersion.DBASE_IV_SQL_SYSTEM_MEMO: "dBASE IV SQL system (with memo)",
            DBFVersion.CLIPPER_SMT_MEMO: "Clipper SIX (SMT memo)",
            DBFVersion.FOXPRO_MEMO: "FoxPro 2.x (with memo)",
            DBFVersion.FOXBASE_PLUS: "FoxBASE+",
        }
        return descriptions.get(self, f"Unknown (0x{self:02X})")


def expected_header_length(field_count: int, version: int) -> int:
    """Header length implied by the field count: 32 + 32n + 1 (+263 for VFP)."""
    length = HEADER_PREFIX_SIZE + DESCRIPTOR_SIZE * field_count + 1
    if DBFVersion.is_supported(version) and DBFVersion(version).is_visual_foxpro():
        length += VFP_BACKLINK_SIZE
    return length


# =============================================================================
# Table Header
# =============================================================================

@dataclass
class TableHeader:
    """
    The fixed 32-byte table header.

    header_length and record_length are caches of what the field list
    implies; encode_header() recomputes them and never trusts these.

    Attributes:
        version: Version/type byte
        last_update: Date of last update, None when the bytes are not a date
        record_count: Number of records, including soft-deleted ones
        header_length: Bytes before the first record
        record_length: Bytes per record, deletion flag included
        language_driver: Code page id (header byte 29)
        reserved: Raw bytes 12-31, kept so unknown flags round-trip
    """
    version: int = DBFVersion.DBASE_III
    last_update: Optional[date] = None
    record_count: int = 0
    header_length: int = 0
    record_length: int = 0
    language_driver: int = 0
    reserved: bytes = field(default=bytes(RESERVED_SIZE), repr=False)

    def get_version(self) -> DBFVersion:
        """Get the version byte as a DBFVersion enum."""
        return DBFVersion(self.version)

    @property
    def has_memo(self) -> bool:
        """True when the version byte declares a memo companion file."""
        return DBFVersion.is_supported(self.version) and self.get_version().has_memo()

    @property
    def incomplete_transaction(self) -> bool:
        """dBASE IV incomplete transaction flag (byte 14)."""
        return self._reserved_byte(_RESERVED_TRANSACTION) != 0

    @property
    def encrypted(self) -> bool:
        """dBASE IV encryption flag (byte 15)."""
        return self._reserved_byte(_RESERVED_ENCRYPTION) != 0

    @encrypted.setter
    def encrypted(self, value: bool) -> None:
        self._set_reserved_byte(_RESERVED_ENCRYPTION, 0x01 if value else 0x00)

    @property
    def table_flags(self) -> int:
        """Table flags (byte 28): bit 0 production index, bit 1 memo."""
        return self._reserved_byte(_RESERVED_TABLE_FLAGS)

    def _reserved_byte(self, index: int) -> int:
        return self.reserved[index] if index < len(self.reserved) else 0

    def _set_reserved_byte(self, index: int, value: int) -> None:
        reserved = bytearray(self.reserved[:RESERVED_SIZE].ljust(RESERVED_SIZE, b"\x00"))
        reserved[index] = value
        self.reserved = bytes(reserved)

    def with_layout(self, fields: Sequence[FieldDescriptor]) -> "TableHeader":
        """Return a copy with header/record lengths recomputed from fields."""
        return replace(
            self,
            header_length=expected_header_length(len(fields), self.version),
            record_length=record_length(fields),
        )

    def record_offset(self, index: int) -> int:
        """Absolute byte offset of a record in the file."""
        return self.header_length + index * self.record_length


# =============================================================================
# Decoding
# =============================================================================

def _decode_update_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(1900 + year, month, day)
    except ValueError:
        logger.debug(f"Header update date {year}/{month}/{day} is not a valid date")
        return None


def _decode_descriptor(chunk: bytes, offset: int) -> FieldDescriptor:
    """Parse one 32-byte field descriptor."""
    raw_name, raw_type, length, decimal_count = struct.unpack(_DESCRIPTOR_FORMAT, chunk)
    raw_name = raw_name.split(b"\x00", 1)[0]
    try:
        name = raw_name.decode("ascii")
    except UnicodeDecodeError:
        raise MalformedHeader(f"field name {raw_name!r} is not ASCII", offset=offset) from None

    try:
        return FieldDescriptor(
            name=name,
            field_type=FieldType.from_tag(raw_type[0]),
            length=length,
            decimal_count=decimal_count,
        )
    except InvalidFieldDescriptor as e:
        raise MalformedHeader(
            f"invalid field descriptor: {e.message}", offset=offset, field_name=name
        ) from e


def decode_header(data: bytes) -> tuple[TableHeader, list[FieldDescriptor]]:
    """
    Decode a header and its field descriptors.

    Args:
        data: Bytes starting at offset 0 of the file; at least the whole
            header must be present (trailing record data is ignored)

    Returns:
        Tuple of (TableHeader, list of FieldDescriptor)

    Raises:
        UnsupportedVersion: If the version byte is not a known dialect
        MalformedHeader: If the header is truncated or inconsistent

    Example:
        >>> header, fields = decode_header(Path("people.dbf").read_bytes())
        >>> print(header.record_count, [f.name for f in fields])
    """
    if len(data) < HEADER_PREFIX_SIZE:
        raise MalformedHeader(
            f"header too short: need {HEADER_PREFIX_SIZE} bytes, got {len(data)}", offset=0
        )

    version, year, month, day, record_count, header_length, rec_length = struct.unpack_from(
        _PREFIX_FORMAT, data, 0
    )
    if not DBFVersion.is_supported(version):
        raise UnsupportedVersion(version)

    # Descriptors run until the terminator byte
    fields: list[FieldDescriptor] = []
    offset = HEADER_PREFIX_SIZE
    while True:
        if offset >= len(data):
            raise MalformedHeader("field terminator 0x0D not found", offset=offset)
        if data[offset] == FIELD_TERMINATOR:
            break
        if offset + DESCRIPTOR_SIZE > len(data):
            raise MalformedHeader("truncated field descriptor", offset=offset)
        fields.append(_decode_descriptor(data[offset:offset + DESCRIPTOR_SIZE], offset))
        offset += DESCRIPTOR_SIZE

    expected = expected_header_length(len(fields), version)
    if header_length != expected:
        raise MalformedHeader(
            f"header length {header_length} inconsistent with {len(fields)} fields "
            f"(expected {expected})",
            offset=8,
        )

    try:
        validate_fields(fields)
    except InvalidFieldDescriptor as e:
        raise MalformedHeader(f"invalid field list: {e.message}", field_name=e.field_name) from e

    expected_record = record_length(fields)
    if rec_length != expected_record:
        raise MalformedHeader(
            f"record length {rec_length} does not match field widths (expected {expected_record})",
            offset=10,
        )

    header = TableHeader(
        version=version,
        last_update=_decode_update_date(year, month, day),
        record_count=record_count,
        header_length=header_length,
        record_length=rec_length,
        language_driver=data[RESERVED_OFFSET + _RESERVED_LANGUAGE],
        reserved=bytes(data[RESERVED_OFFSET:RESERVED_OFFSET + RESERVED_SIZE]),
    )
    logger.debug(
        f"Decoded header: version 0x{version:02X}, {record_count} records, "
        f"{len(fields)} fields, {rec_length} bytes/record"
    )
    return header, fields


def read_header(stream: BinaryIO) -> tuple[TableHeader, list[FieldDescriptor]]:
    """
    Read and decode a header from a binary stream.

    Leaves the stream positioned at the first record.

    Raises:
        MalformedHeader, UnsupportedVersion: As for decode_header()
        IOFailure: If the stream cannot be read
    """
    try:
        prefix = stream.read(HEADER_PREFIX_SIZE)
    except OSError as e:
        raise IOFailure(f"cannot read header: {e}", offset=0) from e

    if len(prefix) < HEADER_PREFIX_SIZE:
        raise MalformedHeader(
            f"header too short: need {HEADER_PREFIX_SIZE} bytes, got {len(prefix)}", offset=0
        )
    if not DBFVersion.is_supported(prefix[0]):
        raise UnsupportedVersion(prefix[0])

    header_length = struct.unpack_from("<H", prefix, 8)[0]
    if header_length <= HEADER_PREFIX_SIZE:
        raise MalformedHeader(f"header length {header_length} too small", offset=8)

    try:
        rest = stream.read(header_length - HEADER_PREFIX_SIZE)
    except OSError as e:
        raise IOFailure(f"cannot read header: {e}", offset=HEADER_PREFIX_SIZE) from e

    if len(rest) < header_length - HEADER_PREFIX_SIZE:
        raise MalformedHeader(
            f"truncated header: declared {header_length} bytes, got "
            f"{HEADER_PREFIX_SIZE + len(rest)}",
            offset=HEADER_PREFIX_SIZE + len(rest),
        )
    return decode_header(prefix + rest)


# =============================================================================
# Encoding
# =============================================================================

def _encode_update_date(value: Optional[date]) -> bytes:
    if value is None:
        return bytes(3)
    year = value.year - 1900
    if not 0 <= year <= 0xFF:
        raise MalformedHeader(f"last update year {value.year} outside 1900-2155", offset=1)
    return bytes((year, value.month, value.day))


def _encode_descriptor(descriptor: FieldDescriptor) -> bytes:
    return struct.pack(
        _DESCRIPTOR_FORMAT,
        descriptor.name.encode("ascii"),
        bytes((descriptor.field_type.tag_byte,)),
        descriptor.length,
        descriptor.decimal_count,
    )


def encode_header(header: TableHeader, fields: Sequence[FieldDescriptor]) -> bytes:
    """
    Serialize a header and its field descriptors.

    Header and record lengths are recomputed from the field list, so
    the result is consistent even if fields were added after the
    header was decoded.

    Args:
        header: The header to write (record_count and version are used)
        fields: The table's field descriptors, in record order

    Returns:
        Header bytes including the 0x0D terminator (and the VFP backlink)

    Raises:
        InvalidFieldDescriptor: If the field list is invalid
        UnsupportedVersion: If the version byte is not a known dialect
        MalformedHeader: If a numeric header value does not fit its slot
    """
    validate_fields(fields)
    if not DBFVersion.is_supported(header.version):
        raise UnsupportedVersion(header.version)

    header_length = expected_header_length(len(fields), header.version)
    rec_length = record_length(fields)

    if not 0 <= header.record_count <= 0xFFFFFFFF:
        raise MalformedHeader(f"record count {header.record_count} does not fit 32 bits", offset=4)
    if header_length > 0xFFFF:
        raise MalformedHeader(f"header length {header_length} does not fit 16 bits", offset=8)

    reserved = bytearray(header.reserved[:RESERVED_SIZE].ljust(RESERVED_SIZE, b"\x00"))
    reserved[_RESERVED_LANGUAGE] = header.language_driver & 0xFF

    result = bytearray()
    result.append(header.version)
    result.extend(_encode_update_date(header.last_update))
    result.extend(struct.pack("<IHH", header.record_count, header_length, rec_length))
    result.extend(reserved)
    for descriptor in fields:
        result.extend(_encode_descriptor(descriptor))
    result.append(FIELD_TERMINATOR)
    if DBFVersion(header.version).is_visual_foxpro():
        result.extend(bytes(VFP_BACKLINK_SIZE))

    return bytes(result)
