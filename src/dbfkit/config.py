"""
dbfkit - Configuration
======================

Codec defaults used when a caller does not pass an explicit value.
Configuration can come from:
- Default values (defined here)
- Environment variables (DBFConfig.from_env)
- Code (set_config)

Environment variables (all optional):
    DBFKIT_ENCODING: Fallback text codec for Character fields
    DBFKIT_VERSION: Version byte for new tables (e.g. "0x03" or "131")
    DBFKIT_LOG_LEVEL: Logging level name used by the CLI
    DBFKIT_STRICT_EOF: "1" to reject files without the 0x1A end marker
"""

from dataclasses import dataclass
from typing import Optional
import codecs
import logging
import os

logger = logging.getLogger(__name__)


@dataclass
class DBFConfig:
    """
    Process-wide defaults for the DBF codec.

    Attributes:
        default_encoding: Codec used when neither the caller nor the
            header's language driver names one (default: "latin-1")
        default_version: Version byte written for new tables (default: 0x03)
        default_language_driver: Language driver byte for new tables
        strict_eof: Reject files whose record data lacks the 0x1A marker
        log_level: Logging level name for the CLI (default: "WARNING")
    """

    default_encoding: str = "latin-1"
    default_version: int = 0x03
    default_language_driver: int = 0x00
    strict_eof: bool = False
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "DBFConfig":
        """
        Create DBFConfig from environment variables.

        Invalid values are ignored and the default is kept.

        Returns:
            DBFConfig with values from environment variables
        """
        config = cls()

        if encoding := os.environ.get("DBFKIT_ENCODING"):
            try:
                codecs.lookup(encoding)
                config.default_encoding = encoding
            except LookupError:
                logger.warning(f"Ignoring unknown DBFKIT_ENCODING '{encoding}'")

        if version := os.environ.get("DBFKIT_VERSION"):
            try:
                config.default_version = int(version, 0)
            except ValueError:
                logger.warning(f"Ignoring invalid DBFKIT_VERSION '{version}'")

        if level := os.environ.get("DBFKIT_LOG_LEVEL"):
            if level.upper() in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
                config.log_level = level.upper()

        if strict := os.environ.get("DBFKIT_STRICT_EOF"):
            config.strict_eof = strict.lower() in ("1", "true", "yes")

        return config


_config: Optional[DBFConfig] = None


def get_config() -> DBFConfig:
    """Return the active configuration, loading it from the environment once."""
    global _config
    if _config is None:
        _config = DBFConfig.from_env()
    return _config


def set_config(config: Optional[DBFConfig]) -> None:
    """Replace the active configuration; None reloads from the environment on next use."""
    global _config
    _config = config
