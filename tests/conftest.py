"""
Shared fixtures for the dbfkit test suite.
"""

from datetime import date

import pytest

from dbfkit.config import DBFConfig, set_config
from dbfkit.dbf import DBFTable, FieldDescriptor


@pytest.fixture(autouse=True)
def default_config():
    """Run every test with default configuration, ignoring DBFKIT_* variables."""
    set_config(DBFConfig())
    yield
    set_config(None)


@pytest.fixture
def people_fields() -> list[FieldDescriptor]:
    """
    A small mixed-type field list.

    Record layout (23 bytes):
        0       deletion flag
        1-10    NAME   C(10)
        11-13   AGE    N(3)
        14-21   BIRTH  D
        22      ACTIVE L
    """
    return [
        FieldDescriptor.create("NAME", "C", 10),
        FieldDescriptor.create("AGE", "N", 3),
        FieldDescriptor.create("BIRTH", "D"),
        FieldDescriptor.create("ACTIVE", "L"),
    ]


@pytest.fixture
def people_table(people_fields) -> DBFTable:
    """A table with three records, the second one marked deleted."""
    table = DBFTable.create(people_fields)
    table.add_record({"NAME": "Ada", "AGE": 36, "BIRTH": date(1815, 12, 10), "ACTIVE": True})
    table.add_record({"NAME": "Bob", "AGE": 41, "BIRTH": None, "ACTIVE": False}, deleted=True)
    table.add_record(["Cy", 7, date(2017, 1, 2), None])
    return table


@pytest.fixture
def people_file(tmp_path, people_table):
    """The people table saved to disk."""
    path = tmp_path / "people.dbf"
    people_table.save(path)
    return path
