"""
Field Descriptor Unit Tests
===========================

Tests for column definitions and record layout arithmetic.

Test Categories
---------------
1. FieldType: Tag parsing and classification
2. FieldDescriptor: Name, length and decimal validation
3. Layout: Record length, offsets and field list checks
"""

import pytest

from dbfkit.dbf.fields import (
    FieldDescriptor,
    FieldType,
    field_offsets,
    find_field,
    record_length,
    validate_fields,
)
from dbfkit.errors import InvalidFieldDescriptor


# =============================================================================
# FieldType Tests
# =============================================================================

class TestFieldType:
    """Tests for the FieldType enum."""

    def test_from_tag_character(self):
        assert FieldType.from_tag("N") is FieldType.NUMERIC

    def test_from_tag_lowercase(self):
        assert FieldType.from_tag("c") is FieldType.CHARACTER

    def test_from_tag_byte_value(self):
        assert FieldType.from_tag(ord("@")) is FieldType.TIMESTAMP

    def test_from_tag_unknown(self):
        with pytest.raises(InvalidFieldDescriptor):
            FieldType.from_tag("Z")

    def test_tag_byte(self):
        assert FieldType.DATE.tag_byte == 0x44

    def test_classification(self):
        assert FieldType.FLOAT.is_numeric()
        assert not FieldType.INTEGER.is_numeric()
        assert FieldType.MEMO.is_memo()
        assert FieldType.BINARY.is_memo()
        assert not FieldType.CHARACTER.is_memo()

    def test_fixed_lengths(self):
        assert FieldType.LOGICAL.fixed_lengths() == (1,)
        assert FieldType.CHARACTER.fixed_lengths() is None


# =============================================================================
# FieldDescriptor Tests
# =============================================================================

class TestFieldDescriptor:
    """Tests for descriptor validation."""

    def test_valid_character(self):
        descriptor = FieldDescriptor("NAME", "C", 10)
        assert descriptor.field_type is FieldType.CHARACTER
        assert descriptor.length == 10

    def test_create_fills_fixed_length(self):
        assert FieldDescriptor.create("BIRTH", "D").length == 8
        assert FieldDescriptor.create("NOTES", "M").length == 10

    def test_create_requires_length_for_character(self):
        with pytest.raises(InvalidFieldDescriptor):
            FieldDescriptor.create("NAME", "C")

    def test_name_ten_bytes_allowed(self):
        assert FieldDescriptor("ABCDEFGHIJ", "C", 1).name == "ABCDEFGHIJ"

    def test_name_too_long(self):
        with pytest.raises(InvalidFieldDescriptor):
            FieldDescriptor("ABCDEFGHIJK", "C", 1)

    def test_name_empty(self):
        with pytest.raises(InvalidFieldDescriptor):
            FieldDescriptor("", "C", 1)

    def test_name_not_ascii(self):
        with pytest.raises(InvalidFieldDescriptor):
            FieldDescriptor("NÄME", "C", 1)

    def test_name_control_character(self):
        """A 0x0D byte would be mistaken for the descriptor terminator."""
        with pytest.raises(InvalidFieldDescriptor):
            FieldDescriptor("A\rB", "C", 1)

    @pytest.mark.parametrize("length", [1, 254])
    def test_character_length_bounds(self, length):
        assert FieldDescriptor("NAME", "C", length).length == length

    @pytest.mark.parametrize("length", [0, 255, -1])
    def test_character_length_out_of_range(self, length):
        with pytest.raises(InvalidFieldDescriptor):
            FieldDescriptor("NAME", "C", length)

    def test_fixed_width_mismatch(self):
        with pytest.raises(InvalidFieldDescriptor):
            FieldDescriptor("FLAG", "L", 2)

    def test_memo_widths(self):
        assert FieldDescriptor("NOTES", "M", 4).length == 4
        with pytest.raises(InvalidFieldDescriptor):
            FieldDescriptor("NOTES", "M", 5)

    def test_numeric_max_length(self):
        assert FieldDescriptor("BIG", "N", 20).length == 20
        with pytest.raises(InvalidFieldDescriptor):
            FieldDescriptor("BIG", "N", 21)

    def test_decimals_on_numeric(self):
        descriptor = FieldDescriptor("PRICE", "N", 5, 3)
        assert descriptor.decimal_count == 3
        assert descriptor.describe() == "N(5,3)"

    def test_decimals_leave_no_room(self):
        with pytest.raises(InvalidFieldDescriptor):
            FieldDescriptor("PRICE", "N", 5, 4)

    def test_decimals_on_character(self):
        with pytest.raises(InvalidFieldDescriptor):
            FieldDescriptor("NAME", "C", 10, 2)

    def test_frozen(self):
        descriptor = FieldDescriptor("NAME", "C", 10)
        with pytest.raises(AttributeError):
            descriptor.length = 5


# =============================================================================
# Layout Tests
# =============================================================================

class TestLayout:
    """Tests for record layout helpers."""

    def test_record_length_includes_flag(self, people_fields):
        assert record_length(people_fields) == 1 + 10 + 3 + 8 + 1

    def test_field_offsets(self, people_fields):
        assert field_offsets(people_fields) == [1, 11, 14, 22]

    def test_validate_empty(self):
        with pytest.raises(InvalidFieldDescriptor):
            validate_fields([])

    def test_validate_duplicate_names_case_insensitive(self):
        with pytest.raises(InvalidFieldDescriptor):
            validate_fields([
                FieldDescriptor("name", "C", 5),
                FieldDescriptor("NAME", "C", 5),
            ])

    def test_validate_record_too_long(self):
        fields = [FieldDescriptor(f"F{i}", "C", 254) for i in range(260)]
        with pytest.raises(InvalidFieldDescriptor):
            validate_fields(fields)

    def test_find_field(self, people_fields):
        assert find_field(people_fields, "age").name == "AGE"
        assert find_field(people_fields, "missing") is None
