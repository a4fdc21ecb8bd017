"""
dbfkit Command-Line Interface
=============================

This package provides the **dbfcat** tool for inspecting, dumping,
validating and compacting DBF tables.

The tool is a Click-based CLI application with help for every command
and unified exit codes (see cli.errors).
"""

__all__ = ["dbfcat"]
