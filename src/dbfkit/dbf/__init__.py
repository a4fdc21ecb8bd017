"""
DBF Table Codec
===============

Reading and writing dBASE-family (.dbf) tables.

A DBF file is a fixed 32-byte header, one 32-byte descriptor per
column, a 0x0D terminator, then fixed-width records. Each record starts
with a deletion flag (0x20 active, 0x2A deleted) and the data ends with
a 0x1A marker.

This module provides:
- **FieldDescriptor / FieldType**: Column definitions and validation
- **TableHeader / DBFVersion**: Header model and dialect bytes
- **Record**: One row of decoded values plus its deletion flag
- **DBFTable**: In-memory table with add, update, delete and compact
- **RecordReader / RecordWriter**: Streaming access in bounded memory
- **DBTMemoFile**: dBASE III memo companion file

Quick Start
-----------
Creating a table:

    >>> from dbfkit.dbf import DBFTable, FieldDescriptor
    >>> table = DBFTable.create([
    ...     FieldDescriptor.create("NAME", "C", 10),
    ...     FieldDescriptor.create("AGE", "N", 3),
    ... ])
    >>> table.add_record({"NAME": "Ada", "AGE": 36})
    >>> table.save("people.dbf")

Streaming an existing table:

    >>> from dbfkit.dbf import open_for_read
    >>> with open_for_read("people.dbf") as reader:
    ...     for record in reader:
    ...         print(record.values)

Reference
---------
- Xbase file format: https://www.clicketyclick.dk/databases/xbase/format/dbf.html
"""

# =============================================================================
# Public API Exports
# =============================================================================

# Field descriptors
from dbfkit.dbf.fields import (
    FieldType,
    FieldDescriptor,
    MAX_NAME_LENGTH,
    MAX_FIELD_LENGTH,
    validate_fields,
    record_length,
    field_offsets,
    find_field,
)

# Header codec
from dbfkit.dbf.header import (
    DBFVersion,
    TableHeader,
    decode_header,
    encode_header,
    read_header,
)

# Record codec
from dbfkit.dbf.records import (
    Record,
    ACTIVE_FLAG,
    DELETED_FLAG,
    decode_record,
    encode_record,
    decode_value,
    encode_value,
)

# Table engine
from dbfkit.dbf.table import DBFTable, TableState

# Streaming facade
from dbfkit.dbf.reader import (
    END_OF_TABLE,
    EndOfTable,
    RecordReader,
    open_for_read,
)
from dbfkit.dbf.writer import RecordWriter, open_for_write

# Memo file and code pages
from dbfkit.dbf.memo import DBTMemoFile, resolve_memos, store_memos
from dbfkit.dbf.codepage import (
    codec_for_language_driver,
    language_driver_for_codec,
    resolve_encoding,
)

__all__ = [
    # Fields
    "FieldType",
    "FieldDescriptor",
    "MAX_NAME_LENGTH",
    "MAX_FIELD_LENGTH",
    "validate_fields",
    "record_length",
    "field_offsets",
    "find_field",
    # Header
    "DBFVersion",
    "TableHeader",
    "decode_header",
    "encode_header",
    "read_header",
    # Records
    "Record",
    "ACTIVE_FLAG",
    "DELETED_FLAG",
    "decode_record",
    "encode_record",
    "decode_value",
    "encode_value",
    # Table
    "DBFTable",
    "TableState",
    # Streaming
    "END_OF_TABLE",
    "EndOfTable",
    "RecordReader",
    "open_for_read",
    "RecordWriter",
    "open_for_write",
    # Memo and code pages
    "DBTMemoFile",
    "resolve_memos",
    "store_memos",
    "codec_for_language_driver",
    "language_driver_for_codec",
    "resolve_encoding",
]
