"""Builders for small synthetic DICOM buffers used across the tests."""
from __future__ import annotations

import struct
from typing import Iterable, Tuple, Union

import pytest

EXPLICIT_VR_LITTLE_ENDIAN = "1.2.840.10008.1.2.1"
IMPLICIT_VR_LITTLE_ENDIAN = "1.2.840.10008.1.2"
CT_IMAGE_STORAGE = "1.2.840.10008.5.1.4.1.1.2"

LONG_LENGTH_VRS = {"OB", "OD", "OF", "OL", "OV", "OW", "SQ", "SV", "UC", "UN", "UR", "UT", "UV"}

Value = Union[str, bytes, int]
Element = Tuple[int, str, Value]


def encode_value(vr: str, value: Value) -> bytes:
    if isinstance(value, int):
        fmt = {"US": "<H", "UL": "<I", "SS": "<h", "SL": "<i"}[vr]
        return struct.pack(fmt, value)
    raw = value.encode("latin-1") if isinstance(value, str) else value
    if len(raw) % 2:
        raw += b"\x00" if vr in ("UI", "OB", "UN") else b" "
    return raw


def encode_element(tag: int, vr: str, value: Value, explicit: bool = True) -> bytes:
    raw = encode_value(vr, value)
    group, element = tag >> 16, tag & 0xFFFF
    if not explicit:
        return struct.pack("<HHI", group, element, len(raw)) + raw
    if vr in LONG_LENGTH_VRS:
        return struct.pack("<HH2sHI", group, element, vr.encode("ascii"), 0, len(raw)) + raw
    return struct.pack("<HH2sH", group, element, vr.encode("ascii"), len(raw)) + raw


def build_dataset(elements: Iterable[Element], explicit: bool = True) -> bytes:
    return b"".join(
        encode_element(tag, vr, value, explicit) for tag, vr, value in sorted(elements, key=lambda e: e[0])
    )


def build_part10(
    elements: Iterable[Element],
    transfer_syntax: str = EXPLICIT_VR_LITTLE_ENDIAN,
    sop_instance_uid: str = "1.2.3.4.5.6",
) -> bytes:
    """Return a Part 10 file: preamble, DICM, file meta group and dataset."""

    meta_body = b"".join(
        [
            encode_element(0x00020001, "OB", b"\x00\x01"),
            encode_element(0x00020002, "UI", CT_IMAGE_STORAGE),
            encode_element(0x00020003, "UI", sop_instance_uid),
            encode_element(0x00020010, "UI", transfer_syntax),
        ]
    )
    group_length = encode_element(0x00020000, "UL", len(meta_body))
    explicit = transfer_syntax != IMPLICIT_VR_LITTLE_ENDIAN
    return b"\x00" * 128 + b"DICM" + group_length + meta_body + build_dataset(elements, explicit)


CT_ELEMENTS = [
    (0x00080008, "CS", "ORIGINAL\\PRIMARY"),
    (0x00080016, "UI", CT_IMAGE_STORAGE),
    (0x00080018, "UI", "1.2.3.4.5.6"),
    (0x00080020, "DA", "20230115"),
    (0x00080030, "TM", "093015"),
    (0x00080050, "SH", "ACC123"),
    (0x00080060, "CS", "CT"),
    (0x00080070, "LO", "ACME"),
    (0x00081030, "LO", "CHEST CT"),
    (0x0008103E, "LO", "AXIAL"),
    (0x00100010, "PN", "Yamada^Tarou"),
    (0x00100020, "LO", "PID001"),
    (0x00100030, "DA", "19800229"),
    (0x00100040, "CS", "M"),
    (0x0020000D, "UI", "1.2.3"),
    (0x0020000E, "UI", "1.2.3.4"),
    (0x00200011, "IS", "3"),
    (0x00200013, "IS", "12"),
    (0x00280010, "US", 512),
    (0x00280011, "US", 256),
]


@pytest.fixture
def ct_elements():
    return list(CT_ELEMENTS)


@pytest.fixture
def ct_file(ct_elements) -> bytes:
    return build_part10(ct_elements)


@pytest.fixture
def ct_raw_dataset(ct_elements) -> bytes:
    """Explicit VR dataset without preamble or file meta group."""

    return build_dataset(ct_elements)
