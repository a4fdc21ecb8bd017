"""
Unified CLI Error Handling
==========================

Provides consistent error handling and exit codes for the dbfcat commands.
"""

import sys
import traceback
from enum import IntEnum
from typing import NoReturn, Optional

import click

from dbfkit.errors import DBFError, IOFailure


class ExitCode(IntEnum):
    """Standard exit codes for CLI tools."""
    SUCCESS = 0
    TABLE_ERROR = 1      # Malformed table, bad value, or failed validation
    INVALID_ARGS = 2     # Invalid arguments or missing files
    INTERNAL_ERROR = 3   # Unexpected internal error


def handle_cli_exception(
    error: Exception,
    verbose: bool = False,
    error_type: Optional[str] = None,
) -> NoReturn:
    """
    Unified exception handler for the CLI commands.

    Formats the error message, optionally prints a traceback in verbose
    mode, and exits with the matching exit code.

    Args:
        error: The exception that was raised
        verbose: If True, print full traceback for internal errors
        error_type: Optional prefix for the error message (e.g., "Read")

    Raises:
        SystemExit: Always exits with an appropriate exit code
    """
    if isinstance(error, IOFailure):
        # Missing or unreadable files are an argument problem
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    elif isinstance(error, DBFError):
        # DBFError messages already carry the "error:" prefix
        prefix = f"{error_type} " if error_type else ""
        click.echo(f"{prefix}{error}", err=True)
        sys.exit(ExitCode.TABLE_ERROR)

    elif isinstance(error, click.BadParameter):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    elif isinstance(error, (FileNotFoundError, PermissionError)):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    else:
        click.echo(f"Internal error: {error}", err=True)
        if verbose:
            traceback.print_exc()
        sys.exit(ExitCode.INTERNAL_ERROR)
