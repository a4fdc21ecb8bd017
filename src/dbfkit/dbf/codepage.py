"""
Language Driver to Codec Mapping
================================

Byte 29 of the DBF header is the language driver id. It names the code
page used for Character fields. This module maps the common ids to Python
codec names so records can be decoded without the caller guessing.

Files with an unlisted id need an explicit encoding.
"""

from typing import Optional
import codecs

from dbfkit.config import get_config


# Language driver id -> Python codec name
LANGUAGE_DRIVERS: dict[int, str] = {
    0x01: "cp437",      # US MS-DOS
    0x02: "cp850",      # International MS-DOS
    0x03: "cp1252",     # Windows ANSI
    0x04: "mac_roman",  # Standard Macintosh
    0x08: "cp865",      # Danish OEM
    0x09: "cp437",      # Dutch OEM
    0x0A: "cp850",      # Dutch OEM*
    0x0B: "cp437",      # Finnish OEM
    0x0D: "cp437",      # French OEM
    0x0E: "cp850",      # French OEM*
    0x0F: "cp437",      # German OEM
    0x10: "cp850",      # German OEM*
    0x11: "cp437",      # Italian OEM
    0x12: "cp850",      # Italian OEM*
    0x13: "cp932",      # Japanese Shift-JIS
    0x14: "cp850",      # Spanish OEM*
    0x17: "cp865",      # Norwegian OEM
    0x18: "cp437",      # Spanish OEM
    0x19: "cp437",      # English OEM (Britain)
    0x1A: "cp850",      # English OEM (Britain)*
    0x1B: "cp437",      # English OEM (US)
    0x1D: "cp850",      # French OEM*
    0x1F: "cp852",      # Czech OEM
    0x22: "cp852",      # Hungarian OEM
    0x23: "cp852",      # Polish OEM
    0x24: "cp860",      # Portuguese OEM
    0x25: "cp850",      # Portuguese OEM*
    0x26: "cp866",      # Russian OEM
    0x37: "cp850",      # English OEM (US)*
    0x40: "cp852",      # Romanian OEM
    0x4D: "cp936",      # Chinese GBK (PRC)
    0x4E: "cp949",      # Korean (ANSI/OEM)
    0x4F: "cp950",      # Chinese Big5 (Taiwan)
    0x50: "cp874",      # Thai (ANSI/OEM)
    0x57: "cp1252",     # ANSI
    0x58: "cp1252",     # Western European ANSI
    0x59: "cp1252",     # Spanish ANSI
    0x64: "cp852",      # Eastern European MS-DOS
    0x65: "cp866",      # Russian MS-DOS
    0x66: "cp865",      # Nordic MS-DOS
    0x67: "cp861",      # Icelandic MS-DOS
    0x6A: "cp737",      # Greek MS-DOS
    0x6B: "cp857",      # Turkish MS-DOS
    0x78: "cp950",      # Traditional Chinese Windows
    0x79: "cp949",      # Korean Windows
    0x7A: "cp936",      # Chinese Simplified Windows
    0x7B: "cp932",      # Japanese Windows
    0x7C: "cp874",      # Thai Windows
    0x7D: "cp1255",     # Hebrew Windows
    0x7E: "cp1256",     # Arabic Windows
    0x96: "mac_cyrillic",  # Russian Macintosh
    0x97: "mac_latin2",    # Eastern European Macintosh
    0x98: "mac_greek",     # Greek Macintosh
    0xC8: "cp1250",     # Eastern European Windows
    0xC9: "cp1251",     # Russian Windows
    0xCA: "cp1254",     # Turkish Windows
    0xCB: "cp1253",     # Greek Windows
    0xCC: "cp1257",     # Baltic Windows
}


def codec_for_language_driver(driver: int) -> Optional[str]:
    """
    Get the Python codec for a language driver id.

    Args:
        driver: Header byte 29

    Returns:
        Codec name, or None for 0x00 and unknown ids
    """
    return LANGUAGE_DRIVERS.get(driver)


def language_driver_for_codec(encoding: str) -> int:
    """
    Get a language driver id that declares the given codec.

    Codec aliases are accepted ("windows-1252", "IBM437"). Returns 0x00
    (unspecified) when no driver maps to the codec.
    """
    try:
        normalized = codecs.lookup(encoding).name
    except LookupError:
        return 0x00
    preferred = {"cp1252": 0x03, "cp437": 0x01, "cp850": 0x02}
    if normalized in preferred:
        return preferred[normalized]
    for driver, codec in LANGUAGE_DRIVERS.items():
        if codecs.lookup(codec).name == normalized:
            return driver
    return 0x00


def resolve_encoding(language_driver: int, explicit: Optional[str] = None) -> str:
    """
    Choose the codec for a table.

    Order: explicit argument, then the header's language driver, then
    the configured default.
    """
    if explicit:
        return explicit
    return codec_for_language_driver(language_driver) or get_config().default_encoding
