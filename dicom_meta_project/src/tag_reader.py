"""Tag readers over an in-memory DICOM buffer.

Two layouts are supported:

* ``DatasetTagReader`` wraps a full pydicom parse and exposes the dataset as
  naturalized keyword/value pairs.
* ``ElementOffsetReader`` runs pydicom's raw element generator over the buffer
  and keeps only an index of ``tag -> byte range`` into the original bytes, so
  callers can pull the raw value bytes of any top-level element.

Both readers answer ``read_string``/``read_int``/``read_raw_bytes`` and return
None for anything they cannot resolve.
"""
from __future__ import annotations

import base64
import logging
import struct
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from io import BytesIO
from typing import Any, Dict, Iterator, Optional, Tuple, Union

import pydicom
from pydicom.datadict import dictionary_VR
from pydicom.dataelem import RawDataElement
from pydicom.dataset import Dataset
from pydicom.errors import InvalidDicomError
from pydicom.filereader import data_element_generator, read_preamble
from pydicom.multival import MultiValue
from pydicom.tag import Tag
from pydicom.valuerep import PersonName

logger = logging.getLogger(__name__)

IMPLICIT_VR_LITTLE_ENDIAN = "1.2.840.10008.1.2"
EXPLICIT_VR_BIG_ENDIAN = "1.2.840.10008.1.2.2"
DEFLATED_EXPLICIT_VR_LITTLE_ENDIAN = "1.2.840.10008.1.2.1.99"

BINARY_INT_VRS = {"US": "H", "SS": "h", "UL": "I", "SL": "i"}

UNDEFINED_LENGTH = 0xFFFFFFFF
TRANSFER_SYNTAX_UID = 0x00020010


class ParseStrategy(Enum):
    FULL_DATASET = "full_dataset"
    ELEMENT_OFFSET = "element_offset"


class ElementIndexError(ValueError):
    """Raised when the element headers of a buffer cannot be indexed."""


def format_tag(tag: Union[int, str]) -> str:
    """Render a tag (int or keyword) as ``(GGGG,EEEE)``."""

    tag = Tag(tag)
    return f"({tag.group:04X},{tag.element:04X})"


def parse_int(value: Optional[str]) -> Optional[int]:
    """Parse the first value of an IS-style string as a base-10 integer."""

    if value is None:
        return None
    text = str(value).split("\\")[0].strip()
    try:
        return int(text)
    except ValueError:
        return None


# ---- Full dataset layout ----
def _plain_value(value: Any) -> Any:
    if isinstance(value, PersonName):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        return int(value)
    if isinstance(value, (float, Decimal)):
        return float(value)
    return str(value)


def naturalize_dataset(dataset: Dataset) -> Dict[str, Any]:
    """Return ``{keyword: value}`` for every element, recursing into sequences.

    Private and unknown elements are keyed by their ``GGGGEEEE`` tag.
    """

    naturalized: Dict[str, Any] = {}
    for elem in dataset:
        key = elem.keyword or f"{elem.tag.group:04X}{elem.tag.element:04X}"
        if elem.VR == "SQ":
            naturalized[key] = [naturalize_dataset(item) for item in elem.value]
        elif isinstance(elem.value, MultiValue):
            naturalized[key] = [_plain_value(v) for v in elem.value]
        else:
            naturalized[key] = _plain_value(elem.value)
    return naturalized


class DatasetTagReader:
    """Primary reader backed by ``pydicom.dcmread``."""

    strategy = ParseStrategy.FULL_DATASET

    def __init__(self, dataset: Dataset, source: Optional[bytes] = None) -> None:
        self.dataset = dataset
        self.source = source
        self._naturalized: Optional[Dict[str, Any]] = None
        self._offset_reader: Optional[ElementOffsetReader] = None

    @classmethod
    def from_bytes(cls, data: bytes, stop_before_pixels: bool = True) -> "DatasetTagReader":
        """Parse a Part 10 buffer; raises whatever pydicom raises."""

        dataset = pydicom.dcmread(BytesIO(data), stop_before_pixels=stop_before_pixels)
        reader = cls(dataset, source=bytes(data))
        # Decode every element now so value errors surface during the parse.
        reader.naturalized
        return reader

    @property
    def naturalized(self) -> Dict[str, Any]:
        if self._naturalized is None:
            self._naturalized = naturalize_dataset(self.dataset)
        return self._naturalized

    def get(self, keyword: str) -> Any:
        value = self.naturalized.get(keyword)
        if value in ("", []):
            return None
        return value

    def read_string(self, tag: int) -> Optional[str]:
        elem = self.dataset.get(tag)
        if elem is None or elem.value is None:
            return None
        value = elem.value
        if isinstance(value, MultiValue):
            text = "\\".join(str(v) for v in value)
        else:
            text = str(value)
        return text.strip() or None

    def read_int(self, tag: int) -> Optional[int]:
        elem = self.dataset.get(tag)
        if elem is None:
            return None
        value = elem.value
        if isinstance(value, MultiValue):
            value = value[0] if len(value) else None
        if isinstance(value, int) and not isinstance(value, bool):
            return int(value)
        return parse_int(value)

    def read_raw_bytes(self, tag: int) -> Optional[bytes]:
        if self.source is None:
            return None
        if self._offset_reader is None:
            try:
                self._offset_reader = ElementOffsetReader(self.source)
            except ElementIndexError as exc:
                logger.debug("Raw byte access unavailable: %s", exc)
                self.source = None
                return None
        return self._offset_reader.read_raw_bytes(tag)


# ---- Element offset layout ----
@dataclass(frozen=True)
class ElementRange:
    tag: int
    vr: Optional[str]
    offset: int
    length: Optional[int]  # None for undefined-length elements


def _not_group_0002(tag, vr, length) -> bool:
    return tag.group != 0x0002


def _dictionary_vr(tag: int) -> Optional[str]:
    try:
        return dictionary_VR(tag)
    except KeyError:
        return None


def _looks_explicit(data: bytes, offset: int) -> bool:
    vr = data[offset + 4:offset + 6]
    return len(vr) == 2 and all(0x41 <= b <= 0x5A for b in vr)


def _index_stream(
    fp: BytesIO, size: int, implicit: bool, little_endian: bool, stop_when=None
) -> Iterator[ElementRange]:
    """Yield the byte range of every element pydicom's raw reader visits."""

    for elem in data_element_generator(fp, implicit, little_endian, stop_when=stop_when):
        if isinstance(elem, RawDataElement):
            offset = elem.value_tell
            length = None if elem.length == UNDEFINED_LENGTH else elem.length
        else:
            # Undefined-length sequences come back already parsed.
            offset = elem.file_tell
            length = None
        if length is not None and offset + length > size:
            raise ElementIndexError(
                f"Element {format_tag(elem.tag)} at offset {offset} overruns the buffer "
                f"({length} bytes, {size - offset} available)"
            )
        yield ElementRange(int(elem.tag), elem.VR or _dictionary_vr(elem.tag), offset, length)


def index_elements(data: bytes) -> Tuple[Dict[int, ElementRange], Optional[str]]:
    """Index the top-level elements of ``data``.

    Returns the ``tag -> ElementRange`` mapping and the transfer syntax UID
    declared in the file meta group, if any.
    """

    if not data:
        raise ElementIndexError("Empty buffer")

    fp = BytesIO(data)
    elements: Dict[int, ElementRange] = {}
    try:
        if read_preamble(fp, force=True) is None and data[:4] == b"DICM":
            fp.seek(4)

        # File meta information is always explicit VR little endian.
        for element in _index_stream(fp, len(data), False, True, stop_when=_not_group_0002):
            elements[element.tag] = element

        transfer_syntax = None
        if TRANSFER_SYNTAX_UID in elements:
            ts = elements[TRANSFER_SYNTAX_UID]
            transfer_syntax = data[ts.offset:ts.offset + (ts.length or 0)].decode("ascii", errors="replace")
            transfer_syntax = transfer_syntax.strip("\x00 ")

        if transfer_syntax == DEFLATED_EXPLICIT_VR_LITTLE_ENDIAN:
            raise ElementIndexError("Deflated transfer syntax is not supported")

        little_endian = transfer_syntax != EXPLICIT_VR_BIG_ENDIAN
        if transfer_syntax is None:
            implicit = not _looks_explicit(data, fp.tell())
        else:
            implicit = transfer_syntax == IMPLICIT_VR_LITTLE_ENDIAN

        for element in _index_stream(fp, len(data), implicit, little_endian):
            elements[element.tag] = element
    except ElementIndexError:
        raise
    except (EOFError, OSError, ValueError, struct.error, InvalidDicomError) as exc:
        raise ElementIndexError(f"Cannot index data elements: {exc}") from exc

    if not elements:
        raise ElementIndexError("No data elements found")
    return elements, transfer_syntax


class ElementOffsetReader:
    """Fallback reader that only indexes element byte ranges."""

    strategy = ParseStrategy.ELEMENT_OFFSET

    def __init__(self, data: bytes) -> None:
        self.data = bytes(data)
        self.elements, self.transfer_syntax = index_elements(self.data)
        self.little_endian = self.transfer_syntax != EXPLICIT_VR_BIG_ENDIAN

    @classmethod
    def from_bytes(cls, data: bytes) -> "ElementOffsetReader":
        return cls(data)

    def __contains__(self, tag: int) -> bool:
        return tag in self.elements

    def read_raw_bytes(self, tag: int) -> Optional[bytes]:
        element = self.elements.get(tag)
        if element is None or element.length is None:
            return None
        return self.data[element.offset:element.offset + element.length]

    def read_string(self, tag: int) -> Optional[str]:
        raw = self.read_raw_bytes(tag)
        if raw is None:
            return None
        text = raw.decode("latin-1").strip("\x00 ")
        return text or None

    def read_int(self, tag: int) -> Optional[int]:
        element = self.elements.get(tag)
        if element is None:
            return None
        fmt = BINARY_INT_VRS.get(element.vr or "")
        if fmt is not None:
            size = struct.calcsize(fmt)
            if element.length is None or element.length < size:
                return None
            prefix = "<" if self.little_endian else ">"
            return struct.unpack_from(prefix + fmt, self.data, element.offset)[0]
        return parse_int(self.read_string(tag))


__all__ = [
    "DatasetTagReader",
    "ElementIndexError",
    "ElementOffsetReader",
    "ElementRange",
    "ParseStrategy",
    "format_tag",
    "index_elements",
    "naturalize_dataset",
    "parse_int",
]
