"""Decoder for ISO 2022 Japanese text stored in DICOM string elements.

Files that declare ``ISO 2022 IR 87`` / ``ISO 2022 IR 13`` in Specific
Character Set interleave ASCII with escape-designated runs of JIS X 0208
(kanji/hiragana) and JIS X 0201 (half-width katakana). The decoder walks the
raw element bytes left to right with an explicit mode and cursor so escape
boundaries are handled byte-exactly.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional

logger = logging.getLogger(__name__)

ESC = 0x1B
SO = 0x0E
SI = 0x0F

KANJI_DESIGNATION = b"\x1b$B"
ASCII_DESIGNATION = b"\x1b(B"
KATAKANA_DESIGNATION = b"\x1b)I"

HALFWIDTH_KATAKANA_BASE = 0xFF61


class DecodeMode(Enum):
    ASCII = "ascii"
    KANJI = "kanji"
    KATAKANA = "katakana"


def uses_iso2022(specific_character_set: Optional[str]) -> bool:
    """Return True when the declared character set needs raw-byte decoding."""

    if not specific_character_set:
        return False
    return "ISO 2022" in specific_character_set or "ISO_IR" in specific_character_set


def _is_printable(byte: int) -> bool:
    return 0x20 <= byte < 0x7F


def _katakana(byte: int, base: int) -> str:
    return chr(HALFWIDTH_KATAKANA_BASE + (byte - base))


def _map_katakana_byte(byte: int) -> Optional[str]:
    # Both the 8-bit (0xA1-0xDF) and G1 7-bit (0x21-0x5F) code ranges are
    # accepted inside a designated katakana run.
    if 0xA1 <= byte <= 0xDF:
        return _katakana(byte, 0xA1)
    if 0x21 <= byte <= 0x5F:
        return _katakana(byte, 0x21)
    return None


def _decode_kanji_run(run: bytes) -> str:
    wrapped = KANJI_DESIGNATION + run + ASCII_DESIGNATION
    try:
        return wrapped.decode("iso2022_jp")
    except UnicodeDecodeError as exc:
        logger.warning("JIS X 0208 run could not be decoded: %s", exc)
        return ""


def _decode_state_machine(data: bytes, debug: bool = False) -> str:
    parts: List[str] = []
    mode = DecodeMode.ASCII
    i = 0
    length = len(data)

    while i < length:
        byte = data[i]

        if byte == ESC and i + 2 < length:
            sequence = data[i:i + 3]

            if sequence == KANJI_DESIGNATION:
                mode = DecodeMode.KANJI
                i += 3
                start = i
                while i < length and data[i] != ESC:
                    i += 1
                parts.append(_decode_kanji_run(data[start:i]))
                if debug:
                    logger.debug("kanji run %s", data[start:i].hex(" "))
                continue

            if sequence == KATAKANA_DESIGNATION:
                mode = DecodeMode.KATAKANA
                i += 3
                while data[i:i + 3] == KATAKANA_DESIGNATION:
                    i += 3

                if i < length and data[i] == SO:
                    i += 1
                    while i < length and data[i] not in (SI, ESC):
                        mapped = _map_katakana_byte(data[i])
                        if mapped is not None:
                            parts.append(mapped)
                        i += 1
                    if i < length and data[i] == SI:
                        i += 1
                else:
                    while i < length and data[i] != ESC:
                        mapped = _map_katakana_byte(data[i])
                        if mapped is not None:
                            parts.append(mapped)
                        i += 1
                continue

            if sequence in (ASCII_DESIGNATION, b"\x1b(J"):
                mode = DecodeMode.ASCII
                i += 3
                while i < length and data[i] != ESC:
                    if _is_printable(data[i]):
                        parts.append(chr(data[i]))
                    i += 1
                continue

            if debug:
                logger.debug("skipping unknown escape sequence %s at %d", sequence.hex(" "), i)
            i += 3
            continue

        if byte in (SO, SI):
            i += 1
            continue

        if _is_printable(byte):
            parts.append(chr(byte))
        i += 1

    if debug:
        logger.debug("decoder finished in %s mode", mode.value)
    return "".join(parts)


def _fallback_decode(data: bytes) -> Optional[str]:
    for encoding in ("cp932", "utf-8"):
        try:
            decoded = data.decode(encoding)
        except UnicodeDecodeError:
            continue
        if decoded.strip():
            return decoded.strip()

    decoded = data.decode("latin-1").strip()
    return decoded or None


def decode_iso2022(data: Optional[bytes], debug: bool = False) -> Optional[str]:
    """Decode raw element bytes that may contain ISO 2022 Japanese runs.

    Args:
        data: Raw value bytes of one element.
        debug: Log the raw bytes and the decoded text at DEBUG level.

    Returns:
        The decoded text, or None for empty input or when nothing decodable
        remains.
    """

    if not data:
        return None
    data = bytes(data)

    if debug:
        logger.debug("raw bytes: %s", data.hex(" "))

    try:
        decoded = _decode_state_machine(data, debug=debug)
    except Exception as exc:
        logger.warning("ISO 2022 decode failed, trying fallback encodings: %s", exc)
        return _fallback_decode(data)

    if debug:
        logger.debug("decoded: %r", decoded)
    return decoded or None


__all__ = ["DecodeMode", "decode_iso2022", "uses_iso2022"]
