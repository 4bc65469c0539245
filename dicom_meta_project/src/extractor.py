"""Extract the clinically relevant metadata of a single DICOM buffer."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from dicom_meta_project.src.charset_decoder import decode_iso2022, uses_iso2022
from dicom_meta_project.src.config import ExtractorConfig, resolve_config
from dicom_meta_project.src.metadata import (
    FALLBACK_MARKER,
    FIELD_TAGS,
    SPECIFIC_CHARACTER_SET_TAG,
    ParsedMetadata,
    parse_date,
)
from dicom_meta_project.src.tag_reader import DatasetTagReader, ElementOffsetReader, parse_int

logger = logging.getLogger(__name__)


class DicomParseError(ValueError):
    """Raised when neither parse strategy can read a buffer."""

    def __init__(self, message: str, primary_error: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.primary_error = primary_error


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, list):
        value = "\\".join(str(v) for v in value)
    text = str(value).strip()
    return text or None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    return parse_int(value)


def _extract_with_dataset(data: bytes, config: ExtractorConfig) -> ParsedMetadata:
    reader = DatasetTagReader.from_bytes(data, stop_before_pixels=config.stop_before_pixels)

    values: Dict[str, Any] = {}
    for attr, keyword, _, kind in FIELD_TAGS:
        raw = reader.get(keyword)
        if kind == "uid":
            values[attr] = _as_text(raw) or ""
        elif kind == "date":
            values[attr] = parse_date(_as_text(raw))
        elif kind == "int":
            values[attr] = _as_int(raw)
        else:
            values[attr] = _as_text(raw)

    full_metadata = dict(reader.naturalized)
    for _, keyword, _, _ in FIELD_TAGS:
        full_metadata.setdefault(keyword, None)

    return ParsedMetadata(**values, full_metadata=full_metadata)


def _extract_with_offsets(data: bytes, config: ExtractorConfig) -> ParsedMetadata:
    reader = ElementOffsetReader.from_bytes(data)
    character_set = reader.read_string(SPECIFIC_CHARACTER_SET_TAG)
    decode_raw = uses_iso2022(character_set)
    if decode_raw:
        logger.debug("Decoding strings through the ISO 2022 decoder (%s)", character_set)

    def get_string(tag: int) -> Optional[str]:
        if not decode_raw:
            return reader.read_string(tag)
        raw = reader.read_raw_bytes(tag)
        if raw is None:
            return None
        decoded = decode_iso2022(raw, debug=config.debug_charset)
        if decoded is None:
            return None
        # Element values are padded to even length with a trailing space.
        return decoded.rstrip() or None

    values: Dict[str, Any] = {}
    for attr, _, tag, kind in FIELD_TAGS:
        if kind == "uid":
            values[attr] = get_string(tag) or ""
        elif kind == "date":
            values[attr] = parse_date(get_string(tag))
        elif kind == "int":
            values[attr] = reader.read_int(tag)
        else:
            values[attr] = get_string(tag)

    return ParsedMetadata(**values, full_metadata=dict(FALLBACK_MARKER))


def parse_dicom_file(
    data: bytes, config: Optional[ExtractorConfig] = None, name: Optional[str] = None
) -> ParsedMetadata:
    """Extract metadata from the raw bytes of one DICOM file.

    The buffer is parsed with pydicom first. If that raises, the element
    offset reader is used instead; its ``full_metadata`` is only a marker
    object. When both fail a ``DicomParseError`` naming the first failure is
    raised.
    """

    config = resolve_config(config)
    label = name or "<buffer>"

    try:
        return _extract_with_dataset(data, config)
    except Exception as exc:
        if not config.enable_fallback:
            raise DicomParseError(f"Failed to parse DICOM file: {exc}", primary_error=exc) from exc
        logger.warning("Full dataset parse failed for %s, retrying with element offsets: %s", label, exc)
        primary_error = exc

    try:
        return _extract_with_offsets(data, config)
    except Exception as exc:
        logger.debug("Element offset parse failed for %s: %s", label, exc)
        raise DicomParseError(
            f"Failed to parse DICOM file: {primary_error}", primary_error=primary_error
        ) from exc


__all__ = ["DicomParseError", "parse_dicom_file"]
