"""
DBF Field Descriptor Model
==========================

This module describes the columns of a DBF table. A FieldDescriptor is
pure data plus validation: it performs no I/O. The header codec reads
and writes descriptors, and the record codec uses the byte widths and
displacements computed here to slice fixed-width rows.

Field Types
-----------
    Tag  Name            Width     Python value
    ---  ----            -----     ------------
    C    Character       1-254     str
    N    Numeric         1-20      int or float
    F    Float           1-20      int or float
    L    Logical         1         bool
    D    Date            8         datetime.date
    M    Memo            10 or 4   int (block pointer)
    G    OLE             10 or 4   int (block pointer)
    B    Binary          10 or 4   int (block pointer)
    I    Integer         4         int (little-endian int32)
    +    Autoincrement   4         int (little-endian int32)
    O    Double          8         float (little-endian IEEE-754)
    @    Timestamp       8         datetime.datetime

Record Layout
-------------
Byte 0 of every record is the deletion flag. Fields follow in declaration
order with no separators, so a field's displacement is 1 plus the sum of
the lengths of the fields before it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Optional, Sequence, Union

from dbfkit.errors import InvalidFieldDescriptor


# =============================================================================
# Constants
# =============================================================================

MAX_NAME_LENGTH = 10
MIN_FIELD_LENGTH = 1
MAX_FIELD_LENGTH = 254
MAX_NUMERIC_LENGTH = 20
MAX_DECIMAL_COUNT = 15

# Width of the deletion flag at the start of every record
DELETION_FLAG_SIZE = 1


# =============================================================================
# Field Type
# =============================================================================

class FieldType(str, Enum):
    """
    Field type tags as stored in byte 11 of a field descriptor.

    The enum value is the ASCII tag character, so FieldType("N") and
    FieldType.NUMERIC are the same member.
    """
    CHARACTER = "C"
    NUMERIC = "N"
    FLOAT = "F"
    LOGICAL = "L"
    DATE = "D"
    MEMO = "M"
    OLE = "G"
    BINARY = "B"
    INTEGER = "I"
    AUTOINCREMENT = "+"
    DOUBLE = "O"
    TIMESTAMP = "@"

    @classmethod
    def from_tag(cls, tag: Union[str, int, "FieldType"]) -> "FieldType":
        """
        Convert a tag character or byte value to a FieldType.

        Raises:
            InvalidFieldDescriptor: If the tag is not a known type
        """
        if isinstance(tag, FieldType):
            return tag
        if isinstance(tag, int):
            tag = chr(tag)
        try:
            return cls(tag.upper())
        except ValueError:
            raise InvalidFieldDescriptor(f"unknown field type {tag!r}") from None

    @property
    def tag_byte(self) -> int:
        """The single byte written to the descriptor."""
        return ord(self.value)

    def is_numeric(self) -> bool:
        """True for the ASCII numeral types that accept a decimal count."""
        return self in (FieldType.NUMERIC, FieldType.FLOAT)

    def is_memo(self) -> bool:
        """True for types that hold a block pointer into a companion file."""
        return self in (FieldType.MEMO, FieldType.OLE, FieldType.BINARY)

    def fixed_lengths(self) -> Optional[tuple[int, ...]]:
        """Allowed widths for fixed-size types, or None if any width is allowed."""
        return FIXED_LENGTHS.get(self)

    def get_description(self) -> str:
        """Get a human-readable name for this type."""
        return self.name.capitalize()


# Allowed widths for fixed-size types. The first entry is the default
# used by FieldDescriptor.create() when no length is given.
FIXED_LENGTHS: dict[FieldType, tuple[int, ...]] = {
    FieldType.LOGICAL: (1,),
    FieldType.DATE: (8,),
    FieldType.MEMO: (10, 4),
    FieldType.OLE: (10, 4),
    FieldType.BINARY: (10, 4),
    FieldType.INTEGER: (4,),
    FieldType.AUTOINCREMENT: (4,),
    FieldType.DOUBLE: (8,),
    FieldType.TIMESTAMP: (8,),
}


# =============================================================================
# Field Descriptor
# =============================================================================

@dataclass(frozen=True)
class FieldDescriptor:
    """
    One column of a DBF table.

    Attributes:
        name: Column name, 1-10 ASCII characters
        field_type: One of the FieldType members
        length: Byte width of the column within a record (1-254)
        decimal_count: Digits after the decimal point (Numeric/Float only)

    Example:
        >>> FieldDescriptor("AGE", FieldType.NUMERIC, 3)
        >>> FieldDescriptor.create("BIRTH", "D")   # length filled in as 8
    """
    name: str
    field_type: FieldType
    length: int
    decimal_count: int = 0

    def __post_init__(self) -> None:
        """Validate the descriptor after initialization."""
        if not isinstance(self.field_type, FieldType):
            object.__setattr__(self, "field_type", FieldType.from_tag(self.field_type))
        self._validate_name()
        self._validate_length()
        self._validate_decimals()

    def _validate_name(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidFieldDescriptor("field name must not be empty")
        try:
            encoded = self.name.encode("ascii")
        except UnicodeEncodeError:
            raise InvalidFieldDescriptor(
                f"field name '{self.name}' must be ASCII", field_name=self.name
            ) from None
        if len(encoded) > MAX_NAME_LENGTH:
            raise InvalidFieldDescriptor(
                f"field name '{self.name}' is longer than {MAX_NAME_LENGTH} bytes",
                field_name=self.name,
            )
        if any(byte < 0x20 or byte == 0x7F for byte in encoded):
            raise InvalidFieldDescriptor(
                "field name must not contain control characters", field_name=self.name
            )

    def _validate_length(self) -> None:
        if not isinstance(self.length, int) or isinstance(self.length, bool):
            raise InvalidFieldDescriptor(
                f"length must be an integer, got {self.length!r}", field_name=self.name
            )
        if not MIN_FIELD_LENGTH <= self.length <= MAX_FIELD_LENGTH:
            raise InvalidFieldDescriptor(
                f"length {self.length} outside {MIN_FIELD_LENGTH}-{MAX_FIELD_LENGTH}",
                field_name=self.name,
            )

        allowed = self.field_type.fixed_lengths()
        if allowed is not None and self.length not in allowed:
            widths = " or ".join(str(w) for w in allowed)
            raise InvalidFieldDescriptor(
                f"{self.field_type.get_description()} field must have length {widths}, "
                f"got {self.length}",
                field_name=self.name,
            )

        if self.field_type.is_numeric() and self.length > MAX_NUMERIC_LENGTH:
            raise InvalidFieldDescriptor(
                f"numeric length {self.length} exceeds {MAX_NUMERIC_LENGTH}",
                field_name=self.name,
            )

    def _validate_decimals(self) -> None:
        if not 0 <= self.decimal_count <= MAX_DECIMAL_COUNT:
            raise InvalidFieldDescriptor(
                f"decimal count {self.decimal_count} outside 0-{MAX_DECIMAL_COUNT}",
                field_name=self.name,
            )
        if self.decimal_count == 0:
            return
        if not self.field_type.is_numeric():
            raise InvalidFieldDescriptor(
                f"{self.field_type.get_description()} field cannot have decimals",
                field_name=self.name,
            )
        # Room for at least one integer digit and the decimal point
        if self.decimal_count > self.length - 2:
            raise InvalidFieldDescriptor(
                f"decimal count {self.decimal_count} leaves no room in length {self.length}",
                field_name=self.name,
            )

    @classmethod
    def create(
        cls,
        name: str,
        field_type: Union[str, FieldType],
        length: Optional[int] = None,
        decimal_count: int = 0,
    ) -> "FieldDescriptor":
        """
        Build a descriptor, filling in the width of fixed-size types.

        Args:
            name: Column name
            field_type: FieldType or its tag character ("C", "N", ...)
            length: Byte width; optional for fixed-size types
            decimal_count: Digits after the decimal point

        Raises:
            InvalidFieldDescriptor: If the combination is not legal
        """
        ftype = FieldType.from_tag(field_type)
        if length is None:
            allowed = ftype.fixed_lengths()
            if allowed is None:
                raise InvalidFieldDescriptor(
                    f"{ftype.get_description()} field requires a length", field_name=name
                )
            length = allowed[0]
        return cls(name=name, field_type=ftype, length=length, decimal_count=decimal_count)

    @property
    def key(self) -> str:
        """Name used for uniqueness checks (DBF names are case-insensitive)."""
        return self.name.upper()

    def describe(self) -> str:
        """Short type signature, e.g. 'N(8,2)' or 'C(10)'."""
        if self.decimal_count:
            return f"{self.field_type.value}({self.length},{self.decimal_count})"
        return f"{self.field_type.value}({self.length})"


# =============================================================================
# Layout Helpers
# =============================================================================

def validate_fields(fields: Sequence[FieldDescriptor]) -> None:
    """
    Check a complete field list.

    Raises:
        InvalidFieldDescriptor: If the list is empty, a name repeats,
            or the total record length exceeds 65535 bytes
    """
    if not fields:
        raise InvalidFieldDescriptor("a table needs at least one field")

    seen: set[str] = set()
    for descriptor in fields:
        if descriptor.key in seen:
            raise InvalidFieldDescriptor(
                f"duplicate field name '{descriptor.name}'", field_name=descriptor.name
            )
        seen.add(descriptor.key)

    if record_length(fields) > 0xFFFF:
        raise InvalidFieldDescriptor(
            f"record length {record_length(fields)} exceeds 65535 bytes"
        )


def record_length(fields: Iterable[FieldDescriptor]) -> int:
    """Record width in bytes: deletion flag plus every field length."""
    return DELETION_FLAG_SIZE + sum(f.length for f in fields)


def field_offsets(fields: Iterable[FieldDescriptor]) -> list[int]:
    """Displacement of each field within a record (the first is 1)."""
    offsets = []
    position = DELETION_FLAG_SIZE
    for descriptor in fields:
        offsets.append(position)
        position += descriptor.length
    return offsets


def iter_layout(fields: Sequence[FieldDescriptor]) -> Iterator[tuple[FieldDescriptor, int]]:
    """Yield (descriptor, displacement) pairs in record order."""
    return zip(fields, field_offsets(fields))


def find_field(fields: Sequence[FieldDescriptor], name: str) -> Optional[FieldDescriptor]:
    """Look up a field by name (case-insensitive)."""
    key = name.upper()
    for descriptor in fields:
        if descriptor.key == key:
            return descriptor
    return None
