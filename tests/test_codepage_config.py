"""
Code Page and Configuration Unit Tests
======================================

Tests for language driver mapping and DBFConfig loading.
"""

import logging

from dbfkit.config import DBFConfig, get_config, set_config
from dbfkit.dbf.codepage import (
    codec_for_language_driver,
    language_driver_for_codec,
    resolve_encoding,
)


class TestCodepage:
    """Tests for language driver lookups."""

    def test_known_driver(self):
        assert codec_for_language_driver(0x03) == "cp1252"
        assert codec_for_language_driver(0xC9) == "cp1251"

    def test_unspecified_driver(self):
        assert codec_for_language_driver(0x00) is None

    def test_driver_for_codec(self):
        assert language_driver_for_codec("cp1252") == 0x03
        assert language_driver_for_codec("CP437") == 0x01
        assert language_driver_for_codec("utf-8") == 0x00

    def test_driver_for_codec_alias(self):
        assert language_driver_for_codec("windows-1252") == 0x03
        assert language_driver_for_codec("IBM437") == 0x01
        assert language_driver_for_codec("mac-roman") == 0x04
        assert language_driver_for_codec("no-such-codec") == 0x00

    def test_resolve_prefers_explicit(self):
        assert resolve_encoding(0x03, "utf-8") == "utf-8"

    def test_resolve_uses_driver(self):
        assert resolve_encoding(0xC9) == "cp1251"

    def test_resolve_falls_back_to_config(self):
        set_config(DBFConfig(default_encoding="cp850"))
        assert resolve_encoding(0x00) == "cp850"


class TestConfig:
    """Tests for DBFConfig and the process-wide instance."""

    def test_defaults(self):
        config = DBFConfig()
        assert config.default_encoding == "latin-1"
        assert config.default_version == 0x03
        assert config.strict_eof is False
        assert config.log_level == "WARNING"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("DBFKIT_ENCODING", "cp1252")
        monkeypatch.setenv("DBFKIT_VERSION", "0x30")
        monkeypatch.setenv("DBFKIT_LOG_LEVEL", "debug")
        monkeypatch.setenv("DBFKIT_STRICT_EOF", "yes")
        config = DBFConfig.from_env()
        assert config.default_encoding == "cp1252"
        assert config.default_version == 0x30
        assert config.log_level == "DEBUG"
        assert config.strict_eof is True

    def test_from_env_ignores_bad_values(self, monkeypatch, caplog):
        monkeypatch.setenv("DBFKIT_ENCODING", "no-such-codec")
        monkeypatch.setenv("DBFKIT_VERSION", "three")
        with caplog.at_level(logging.WARNING, logger="dbfkit.config"):
            config = DBFConfig.from_env()
        assert config.default_encoding == "latin-1"
        assert config.default_version == 0x03
        assert "DBFKIT_ENCODING" in caplog.text

    def test_set_config_none_reloads(self, monkeypatch):
        monkeypatch.setenv("DBFKIT_ENCODING", "cp437")
        set_config(None)
        assert get_config().default_encoding == "cp437"

    def test_set_config(self):
        config = DBFConfig(strict_eof=True)
        set_config(config)
        assert get_config() is config
