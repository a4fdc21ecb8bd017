"""
dbfcat - DBF Table Inspection Command-Line Interface
====================================================

This module implements the command-line interface for inspecting and
maintaining dBASE (.dbf) tables.

Commands
--------
- **info**: Show header information and record counts
- **fields**: List the field descriptors
- **dump**: Print records as an aligned table or CSV
- **validate**: Check every record of a table
- **compact**: Write a copy without soft-deleted records

Usage Examples
--------------
Show table information:
    $ dbfcat info people.dbf

List fields:
    $ dbfcat fields people.dbf

Dump the first 10 active records as CSV:
    $ dbfcat dump --limit 10 --format csv people.dbf

Dump records including deleted ones, resolving memo text:
    $ dbfcat dump --deleted --memo people.dbt people.dbf

Validate a table:
    $ dbfcat validate people.dbf

Remove deleted records:
    $ dbfcat compact -o clean.dbf people.dbf
"""

import csv
import io
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any, Optional

import click

from dbfkit import __version__
from dbfkit.cli.errors import ExitCode, handle_cli_exception
from dbfkit.config import get_config
from dbfkit.errors import DBFError, FieldValueError, FormatError
from dbfkit.dbf import (
    END_OF_TABLE,
    DBFTable,
    DBFVersion,
    DBTMemoFile,
    FieldDescriptor,
    Record,
    open_for_read,
    resolve_memos,
)

logger = logging.getLogger(__name__)

# Widest column printed by "dump --format table"
MAX_COLUMN_WIDTH = 30


# =============================================================================
# CLI Context and Utilities
# =============================================================================

class Context:
    """
    Shared context for CLI commands.

    Stores the global verbosity and codec override.
    """

    def __init__(self) -> None:
        self.verbose: bool = False
        self.encoding: Optional[str] = None

    def setup_logging(self) -> None:
        """Configure logging from --verbose or the configured log level."""
        level = logging.DEBUG if self.verbose else getattr(logging, get_config().log_level)
        logging.basicConfig(
            level=level,
            format="%(levelname)s: %(message)s",
        )


pass_context = click.make_pass_decorator(Context, ensure=True)


def format_value(value: Any) -> str:
    """Render a field value for display; None is shown as an empty string."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "T" if value else "F"
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def csv_line(cells: list[str]) -> str:
    """Format one CSV row without the line terminator."""
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="").writerow(cells)
    return buffer.getvalue()


def column_width(descriptor: FieldDescriptor) -> int:
    return min(max(len(descriptor.name), descriptor.length), MAX_COLUMN_WIDTH)


# =============================================================================
# Main CLI Group
# =============================================================================

@click.group()
@click.version_option(__version__, "--version", "-V", prog_name="dbfcat")
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable debug logging",
)
@click.option(
    "-e", "--encoding",
    default=None,
    help="Codec for Character fields (default: from the table header)",
)
@pass_context
def main(ctx: Context, verbose: bool, encoding: Optional[str]) -> None:
    """
    DBF table inspection tool.

    Inspect, dump, validate and compact dBASE (.dbf) tables.

    \b
    Commands:
      info      Show header information
      fields    List field descriptors
      dump      Print records
      validate  Check every record
      compact   Remove deleted records

    \b
    Examples:
      dbfcat info people.dbf
      dbfcat dump --format csv people.dbf
      dbfcat compact -o clean.dbf people.dbf
    """
    ctx.verbose = verbose
    ctx.encoding = encoding
    ctx.setup_logging()


# =============================================================================
# Info Command
# =============================================================================

@main.command("info")
@click.argument(
    "dbf_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@pass_context
def cmd_info(ctx: Context, dbf_file: Path) -> None:
    """
    Show header information about a DBF table.

    \b
    Example:
      dbfcat info people.dbf
    """
    try:
        table = DBFTable.from_file(dbf_file, encoding=ctx.encoding)
        info = table.get_info()

        click.echo(f"Table Information: {dbf_file}")
        click.echo("=" * 40)
        click.echo(f"Version:       {info['version']} {info['version_name']}")
        click.echo(f"Last Update:   {info['last_update'] or 'unknown'}")
        click.echo(f"Encoding:      {info['encoding']} (driver {info['language_driver']})")
        click.echo(f"Memo File:     {'yes' if info['has_memo'] else 'no'}")
        click.echo()
        click.echo("Layout:")
        click.echo(f"  Fields:        {info['field_count']}")
        click.echo(f"  Header:        {info['header_length']} bytes")
        click.echo(f"  Record:        {info['record_length']} bytes")
        click.echo()
        click.echo("Records:")
        click.echo(f"  Active:        {info['active_count']}")
        click.echo(f"  Deleted:       {info['deleted_count']}")
        click.echo(f"  Total:         {info['record_count']}")
        if table.header.incomplete_transaction:
            click.echo("\nWarning: incomplete transaction flag is set")
        if table.header.encrypted:
            click.echo("\nWarning: table is marked encrypted")

    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose)


# =============================================================================
# Fields Command
# =============================================================================

@main.command("fields")
@click.argument(
    "dbf_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@pass_context
def cmd_fields(ctx: Context, dbf_file: Path) -> None:
    """
    List the fields of a DBF table.

    \b
    Output format:
      #   Name        Type        Len  Dec  Offset
      1   NAME        Character    10    0       1
    """
    try:
        with open_for_read(dbf_file, encoding=ctx.encoding) as reader:
            fields = reader.fields

        click.echo(f"{'#':<3} {'Name':<11} {'Type':<14} {'Len':>4} {'Dec':>4} {'Offset':>7}")
        click.echo("-" * 48)
        offset = 1
        for number, descriptor in enumerate(fields, start=1):
            click.echo(
                f"{number:<3} {descriptor.name:<11} "
                f"{descriptor.field_type.get_description():<14} "
                f"{descriptor.length:>4} {descriptor.decimal_count:>4} {offset:>7}"
            )
            offset += descriptor.length

    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose)


# =============================================================================
# Dump Command
# =============================================================================

@main.command("dump")
@click.argument(
    "dbf_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-d", "--deleted",
    is_flag=True,
    help="Include records marked deleted",
)
@click.option(
    "-n", "--limit",
    type=click.IntRange(min=0),
    default=None,
    help="Stop after this many records",
)
@click.option(
    "-f", "--format", "output_format",
    type=click.Choice(["table", "csv"], case_sensitive=False),
    default="table",
    show_default=True,
    help="Output format",
)
@click.option(
    "-m", "--memo",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Memo file (.dbt) used to resolve memo fields",
)
@click.option(
    "--skip-bad",
    is_flag=True,
    help="Report records with undecodable values and continue",
)
@pass_context
def cmd_dump(
    ctx: Context,
    dbf_file: Path,
    deleted: bool,
    limit: Optional[int],
    output_format: str,
    memo: Optional[Path],
    skip_bad: bool,
) -> None:
    """
    Print the records of a DBF table.

    Records are streamed, so tables of any size can be dumped. Deleted
    records are marked with '*' in the first column of table output and
    a DELETED column in CSV output.

    \b
    Example:
      dbfcat dump --limit 5 people.dbf
    """
    try:
        memo_file = DBTMemoFile.from_file(memo, encoding=ctx.encoding) if memo else None

        with open_for_read(dbf_file, encoding=ctx.encoding) as reader:
            fields = reader.fields
            names = [f.name for f in fields]

            if output_format.lower() == "csv":
                def row_out(record: Record) -> None:
                    click.echo(csv_line(
                        ["*" if record.deleted else ""]
                        + [format_value(v) for v in record.as_list()]
                    ))

                click.echo(csv_line(["DELETED"] + names))
            else:
                widths = [column_width(f) for f in fields]

                def row_out(record: Record) -> None:
                    cells = [
                        format_value(v)[:w].ljust(w)
                        for v, w in zip(record.as_list(), widths)
                    ]
                    marker = "*" if record.deleted else " "
                    click.echo(f"{marker} " + " ".join(cells).rstrip())

                click.echo("  " + " ".join(n[:w].ljust(w) for n, w in zip(names, widths)).rstrip())
                click.echo("  " + " ".join("-" * w for w in widths))

            shown = 0
            while limit is None or shown < limit:
                try:
                    record = reader.next()
                except FieldValueError as e:
                    if not skip_bad:
                        raise
                    logger.warning(f"Skipping record: {e}")
                    continue
                if record is END_OF_TABLE:
                    break
                if record.deleted and not deleted:
                    continue
                if memo_file is not None:
                    record = resolve_memos(record, fields, memo_file)
                row_out(record)
                shown += 1

    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose)


# =============================================================================
# Validate Command
# =============================================================================

@main.command("validate")
@click.argument(
    "dbf_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@pass_context
def cmd_validate(ctx: Context, dbf_file: Path) -> None:
    """
    Validate a DBF table.

    Checks:
    - Version byte and header layout
    - Deletion flag of every record
    - Every field value decodes
    - File size against the declared record count

    \b
    Example:
      dbfcat validate people.dbf
    """
    errors = []
    warnings = []

    try:
        file_size = dbf_file.stat().st_size
        checked = 0
        with open_for_read(dbf_file, encoding=ctx.encoding) as reader:
            header = reader.header
            if not DBFVersion.is_supported(header.version):
                errors.append(f"Unknown version byte 0x{header.version:02X}")

            while True:
                try:
                    record = reader.next()
                except FieldValueError as e:
                    errors.append(str(e))
                    continue
                except FormatError as e:
                    errors.append(str(e))
                    break
                if record is END_OF_TABLE:
                    break
                checked += 1

        if checked < header.record_count:
            warnings.append(
                f"Header declares {header.record_count} records, "
                f"{checked} readable"
            )
        expected_size = header.header_length + header.record_count * header.record_length
        if file_size not in (expected_size, expected_size + 1):
            warnings.append(
                f"File size {file_size} bytes, expected {expected_size + 1} "
                f"for {header.record_count} records"
            )
        if header.incomplete_transaction:
            warnings.append("Incomplete transaction flag is set")

    except DBFError as e:
        errors.append(str(e))
    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose)

    if errors:
        click.echo("Validation FAILED:")
        for error in errors:
            click.echo(f"  ERROR: {error}")
        sys.exit(ExitCode.TABLE_ERROR)
    elif warnings:
        click.echo("Validation passed with warnings:")
        for warning in warnings:
            click.echo(f"  WARNING: {warning}")
    else:
        click.echo(f"Validation PASSED: {dbf_file}")


# =============================================================================
# Compact Command
# =============================================================================

@main.command("compact")
@click.argument(
    "dbf_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="Output file (may be the input file)",
)
@pass_context
def cmd_compact(ctx: Context, dbf_file: Path, output: Path) -> None:
    """
    Write a copy of a table without its deleted records.

    \b
    Example:
      dbfcat compact -o clean.dbf people.dbf
    """
    try:
        with DBFTable.from_file(dbf_file, encoding=ctx.encoding) as table:
            removed = table.compact()
            table.save(output)
            click.echo(f"Removed {removed} deleted records, {table.record_count} remain")
            click.echo(f"Written: {output}")

    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose)


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    main()
