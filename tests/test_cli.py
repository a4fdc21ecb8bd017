"""
dbfcat CLI Tests
================

Tests for the dbfcat command-line tool using click's CliRunner.
"""

import pytest
from click.testing import CliRunner

from dbfkit import __version__
from dbfkit.cli.dbfcat import main
from dbfkit.cli.errors import ExitCode
from dbfkit.dbf import DBFTable, DBTMemoFile, FieldDescriptor


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def corrupt_file(tmp_path, people_table):
    """People table whose first AGE value is not a number."""
    data = bytearray(people_table.to_bytes())
    data[161 + 11:161 + 14] = b"abc"
    path = tmp_path / "corrupt.dbf"
    path.write_bytes(bytes(data))
    return path


# =============================================================================
# General Tests
# =============================================================================

class TestGeneral:
    """Tests for the command group itself."""

    def test_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "dump" in result.output

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(main, ["info", str(tmp_path / "missing.dbf")])
        assert result.exit_code == ExitCode.INVALID_ARGS


# =============================================================================
# Info and Fields Tests
# =============================================================================

class TestInfo:
    """Tests for the info and fields commands."""

    def test_info(self, runner, people_file):
        result = runner.invoke(main, ["info", str(people_file)])
        assert result.exit_code == 0
        assert "Active:        2" in result.output
        assert "Deleted:       1" in result.output
        assert "Record:        23 bytes" in result.output

    def test_info_not_a_table(self, runner, tmp_path):
        path = tmp_path / "junk.dbf"
        path.write_bytes(b"\x42" + bytes(64))
        result = runner.invoke(main, ["info", str(path)])
        assert result.exit_code == ExitCode.TABLE_ERROR
        assert "unsupported DBF version byte 0x42" in result.output

    def test_fields(self, runner, people_file):
        result = runner.invoke(main, ["fields", str(people_file)])
        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[2].split() == ["1", "NAME", "Character", "10", "0", "1"]
        assert lines[5].split() == ["4", "ACTIVE", "Logical", "1", "0", "22"]


# =============================================================================
# Dump Tests
# =============================================================================

class TestDump:
    """Tests for the dump command."""

    def test_table_output_hides_deleted(self, runner, people_file):
        result = runner.invoke(main, ["dump", str(people_file)])
        assert result.exit_code == 0
        assert "Ada" in result.output
        assert "Bob" not in result.output

    def test_table_output_with_deleted(self, runner, people_file):
        result = runner.invoke(main, ["dump", "--deleted", str(people_file)])
        assert result.exit_code == 0
        assert "* Bob" in result.output

    def test_csv_output(self, runner, people_file):
        result = runner.invoke(main, ["dump", "--format", "csv", str(people_file)])
        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines == [
            "DELETED,NAME,AGE,BIRTH,ACTIVE",
            ",Ada,36,1815-12-10,T",
            ",Cy,7,2017-01-02,",
        ]

    def test_limit(self, runner, people_file):
        result = runner.invoke(main, ["dump", "-f", "csv", "--limit", "1", str(people_file)])
        assert result.output.splitlines()[1:] == [",Ada,36,1815-12-10,T"]

    def test_bad_value_fails(self, runner, corrupt_file):
        result = runner.invoke(main, ["dump", str(corrupt_file)])
        assert result.exit_code == ExitCode.TABLE_ERROR

    def test_skip_bad(self, runner, corrupt_file):
        result = runner.invoke(main, ["dump", "-f", "csv", "--skip-bad", str(corrupt_file)])
        assert result.exit_code == 0
        assert ",Cy,7,2017-01-02," in result.output
        assert ",Ada," not in result.output

    def test_memo_resolution(self, runner, tmp_path):
        fields = [FieldDescriptor.create("NAME", "C", 10), FieldDescriptor.create("NOTES", "M")]
        memos = DBTMemoFile.new()
        table = DBFTable.create(fields)
        table.add_record({"NAME": "Ada", "NOTES": memos.append_memo("engine notes")})
        table.save(tmp_path / "memo.dbf")
        memos.save(tmp_path / "memo.dbt")

        result = runner.invoke(main, [
            "dump", "-f", "csv", "--memo", str(tmp_path / "memo.dbt"), str(tmp_path / "memo.dbf"),
        ])
        assert result.exit_code == 0
        assert ",Ada,engine notes" in result.output


# =============================================================================
# Validate and Compact Tests
# =============================================================================

class TestValidate:
    """Tests for the validate command."""

    def test_valid_table(self, runner, people_file):
        result = runner.invoke(main, ["validate", str(people_file)])
        assert result.exit_code == 0
        assert "Validation PASSED" in result.output

    def test_bad_value(self, runner, corrupt_file):
        result = runner.invoke(main, ["validate", str(corrupt_file)])
        assert result.exit_code == ExitCode.TABLE_ERROR
        assert "Validation FAILED" in result.output
        assert "field 'AGE'" in result.output

    def test_truncated_table_warns(self, runner, tmp_path, people_table):
        data = people_table.to_bytes()[:161 + 2 * 23]
        path = tmp_path / "short.dbf"
        path.write_bytes(data)
        result = runner.invoke(main, ["validate", str(path)])
        assert result.exit_code == 0
        assert "Header declares 3 records, 2 readable" in result.output

    def test_unsupported_version(self, runner, tmp_path):
        path = tmp_path / "junk.dbf"
        path.write_bytes(b"\x42" + bytes(64))
        result = runner.invoke(main, ["validate", str(path)])
        assert result.exit_code == ExitCode.TABLE_ERROR


class TestCompact:
    """Tests for the compact command."""

    def test_compact(self, runner, people_file, tmp_path):
        output = tmp_path / "clean.dbf"
        result = runner.invoke(main, ["compact", "-o", str(output), str(people_file)])
        assert result.exit_code == 0
        assert "Removed 1 deleted records, 2 remain" in result.output
        table = DBFTable.from_file(output)
        assert [r["NAME"] for r in table.records] == ["Ada", "Cy"]

    def test_compact_in_place(self, runner, people_file):
        result = runner.invoke(main, ["compact", "-o", str(people_file), str(people_file)])
        assert result.exit_code == 0
        assert DBFTable.from_file(people_file).record_count == 2
