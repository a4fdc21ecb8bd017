"""
dbfkit - dBASE Table Codec
==========================

This package reads and writes dBASE-family (.dbf) table files and their
dBASE III memo companions (.dbt).

Main Components
---------------
- **dbf**: Field descriptors, header and record codecs, the in-memory
    table engine and the streaming reader/writer

- **config**: Process-wide defaults (codec, version byte, strictness)
    loaded from DBFKIT_* environment variables

- **cli**: The dbfcat command-line tool

Quick Start
-----------
Load a table and list its active rows:
    >>> from dbfkit import DBFTable
    >>> table = DBFTable.from_file("people.dbf")
    >>> for record in table.iter_records(include_deleted=False):
    ...     print(record["NAME"], record["AGE"])

Or use the command-line tool:
    $ dbfcat info people.dbf
    $ dbfcat dump --format csv people.dbf

Version History
---------------
1.0.0 - Initial release with table engine, streaming access and memo files
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from dbfkit.config import DBFConfig, get_config, set_config
from dbfkit.errors import (
    DBFError,
    InvalidFieldDescriptor,
    FormatError,
    MalformedHeader,
    UnsupportedVersion,
    MalformedRecord,
    FieldValueError,
    NumericParseError,
    InvalidDate,
    InvalidLogical,
    TextEncodingError,
    ValueTooLong,
    TableError,
    IndexOutOfRange,
    TableClosed,
    TableNotOpen,
    MemoError,
    IOFailure,
)
from dbfkit.dbf import (
    FieldType,
    FieldDescriptor,
    DBFVersion,
    TableHeader,
    Record,
    DBFTable,
    TableState,
    END_OF_TABLE,
    RecordReader,
    RecordWriter,
    open_for_read,
    open_for_write,
    DBTMemoFile,
    resolve_memos,
)

__all__ = [
    "__version__",
    # Configuration
    "DBFConfig",
    "get_config",
    "set_config",
    # Model and engine
    "FieldType",
    "FieldDescriptor",
    "DBFVersion",
    "TableHeader",
    "Record",
    "DBFTable",
    "TableState",
    "END_OF_TABLE",
    "RecordReader",
    "RecordWriter",
    "open_for_read",
    "open_for_write",
    "DBTMemoFile",
    "resolve_memos",
    # Exception hierarchy
    "DBFError",
    "InvalidFieldDescriptor",
    "FormatError",
    "MalformedHeader",
    "UnsupportedVersion",
    "MalformedRecord",
    "FieldValueError",
    "NumericParseError",
    "InvalidDate",
    "InvalidLogical",
    "TextEncodingError",
    "ValueTooLong",
    "TableError",
    "IndexOutOfRange",
    "TableClosed",
    "TableNotOpen",
    "MemoError",
    "IOFailure",
]
