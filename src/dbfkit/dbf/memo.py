"""
dBASE III Memo File (.dbt)
==========================

Memo fields store a block number; the text lives in a companion .dbt
file made of 512-byte blocks.

File Layout
-----------
    Block 0 (header):
        Offset 0-3:   Next free block number (little-endian uint32)
        Offset 16:    Version byte (0x03)
        Rest:         Zero padding
    Block 1..n:
        Memo text terminated by 0x1A 0x1A, zero-padded to a block
        boundary. A memo may span several consecutive blocks.

Usage
-----
    >>> memos = DBTMemoFile.new()
    >>> block = memos.append_memo("Long notes about Ada")
    >>> memos.read_memo(block)
    'Long notes about Ada'
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional, Sequence, Union
import logging
import struct

from dbfkit.config import get_config
from dbfkit.errors import IOFailure, MemoError
from dbfkit.dbf.fields import FieldDescriptor
from dbfkit.dbf.records import Record

# Logger for this module
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

BLOCK_SIZE = 512
DBT_VERSION = 0x03
VERSION_OFFSET = 16
MEMO_TERMINATOR = b"\x1a\x1a"


def _empty_header() -> bytearray:
    header = bytearray(BLOCK_SIZE)
    struct.pack_into("<I", header, 0, 1)
    header[VERSION_OFFSET] = DBT_VERSION
    return header


@dataclass
class DBTMemoFile:
    """
    In-memory image of a .dbt memo file.

    Attributes:
        data: Raw file contents, always a whole number of blocks
        encoding: Codec for memo text (default: configured codec)
    """
    data: bytearray = field(default_factory=_empty_header)
    encoding: Optional[str] = None

    def __post_init__(self) -> None:
        self.data = bytearray(self.data)
        if self.encoding is None:
            self.encoding = get_config().default_encoding
        if len(self.data) < BLOCK_SIZE:
            raise MemoError(f"memo file is {len(self.data)} bytes, smaller than one block")
        if len(self.data) % BLOCK_SIZE:
            # Some writers omit the padding of the final block
            logger.debug(f"Padding memo file of {len(self.data)} bytes to a block boundary")
            self.data.extend(bytes(BLOCK_SIZE - len(self.data) % BLOCK_SIZE))

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def new(cls, encoding: Optional[str] = None) -> "DBTMemoFile":
        """Create an empty memo file with only the header block."""
        return cls(encoding=encoding)

    @classmethod
    def from_bytes(cls, data: bytes, encoding: Optional[str] = None) -> "DBTMemoFile":
        """
        Load a memo file from bytes.

        Raises:
            MemoError: If the data is smaller than one block
        """
        return cls(data=bytearray(data), encoding=encoding)

    @classmethod
    def from_file(cls, path: Union[str, Path], encoding: Optional[str] = None) -> "DBTMemoFile":
        """Load a memo file from disk."""
        try:
            data = Path(path).read_bytes()
        except OSError as e:
            raise IOFailure(f"cannot read {path}: {e}") from e
        logger.debug(f"Loaded memo file {path}: {len(data)} bytes")
        return cls.from_bytes(data, encoding=encoding)

    # =========================================================================
    # Header
    # =========================================================================

    @property
    def next_block(self) -> int:
        """Number of the first unused block."""
        return struct.unpack_from("<I", self.data, 0)[0]

    @next_block.setter
    def next_block(self, value: int) -> None:
        struct.pack_into("<I", self.data, 0, value)

    @property
    def block_count(self) -> int:
        """Number of blocks in the file, header included."""
        return len(self.data) // BLOCK_SIZE

    # =========================================================================
    # Memo Access
    # =========================================================================

    def _memo_bytes(self, block: int) -> bytes:
        if not isinstance(block, int) or not 1 <= block < self.block_count:
            raise MemoError(f"memo block {block} outside file of {self.block_count} blocks")
        start = block * BLOCK_SIZE
        end = self.data.find(b"\x1a", start)
        if end == -1:
            raise MemoError(f"memo at block {block} has no terminator", offset=start)
        return bytes(self.data[start:end])

    def read_memo(self, block: int) -> str:
        """
        Read the memo stored at a block.

        Raises:
            MemoError: If the block is outside the file, the memo is not
                terminated, or the text cannot be decoded
        """
        raw = self._memo_bytes(block)
        try:
            return raw.decode(self.encoding)
        except UnicodeDecodeError as e:
            raise MemoError(
                f"cannot decode memo at block {block} as {self.encoding}: {e.reason}",
                offset=block * BLOCK_SIZE,
            ) from None

    def append_memo(self, text: str) -> int:
        """
        Store text in new blocks at the end of the file.

        Returns:
            Block number to put in the memo field

        Raises:
            MemoError: If the text cannot be encoded or contains 0x1A
        """
        try:
            payload = text.encode(self.encoding)
        except (UnicodeEncodeError, AttributeError) as e:
            raise MemoError(f"cannot encode memo as {self.encoding}: {e}") from None
        if b"\x1a" in payload:
            raise MemoError("memo text must not contain the 0x1A terminator byte")

        payload += MEMO_TERMINATOR
        blocks = -(-len(payload) // BLOCK_SIZE)
        block = max(self.next_block, 1)

        end = (block + blocks) * BLOCK_SIZE
        if len(self.data) < end:
            self.data.extend(bytes(end - len(self.data)))
        start = block * BLOCK_SIZE
        self.data[start:end] = payload.ljust(blocks * BLOCK_SIZE, b"\x00")
        self.next_block = block + blocks

        logger.debug(f"Stored memo of {len(payload)} bytes at block {block}")
        return block

    def iter_memos(self) -> Iterator[tuple[int, str]]:
        """Yield (block, text) for every memo in file order."""
        block = 1
        limit = min(self.next_block, self.block_count) if self.next_block > 1 else self.block_count
        while block < limit:
            raw = self._memo_bytes(block)
            yield block, self.read_memo(block)
            block += -(-(len(raw) + len(MEMO_TERMINATOR)) // BLOCK_SIZE)

    # =========================================================================
    # Output
    # =========================================================================

    def to_bytes(self) -> bytes:
        return bytes(self.data)

    def save(self, path: Union[str, Path]) -> None:
        """Write the memo file to disk."""
        try:
            Path(path).write_bytes(self.to_bytes())
        except OSError as e:
            raise IOFailure(f"cannot write {path}: {e}") from e


# =============================================================================
# Record Helpers
# =============================================================================

def resolve_memos(
    record: Record,
    fields: Sequence[FieldDescriptor],
    memo_file: DBTMemoFile,
) -> Record:
    """
    Return a copy of a record with memo block pointers replaced by text.

    Empty pointers stay None.

    Raises:
        MemoError: If a pointer does not lead to a valid memo
    """
    resolved = record.copy()
    for descriptor in fields:
        if descriptor.field_type.is_memo():
            block = resolved.values.get(descriptor.name)
            if block is not None:
                try:
                    resolved.values[descriptor.name] = memo_file.read_memo(block)
                except MemoError as e:
                    raise e.with_context(field_name=descriptor.name)
    return resolved


def store_memos(
    values: Mapping[str, Any],
    fields: Sequence[FieldDescriptor],
    memo_file: DBTMemoFile,
) -> dict[str, Any]:
    """
    Move memo text into the memo file, returning values with block pointers.

    Memo values that are already ints or None are left as they are.
    """
    stored = dict(values)
    for descriptor in fields:
        if not descriptor.field_type.is_memo():
            continue
        for key in stored:
            if key.upper() == descriptor.key and isinstance(stored[key], str):
                stored[key] = memo_file.append_memo(stored[key])
    return stored
