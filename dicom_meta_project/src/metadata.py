"""Metadata records produced by the extractor and helpers to normalize them."""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

# (attribute name, DICOM keyword, tag, kind) for every field the extractor reads.
# kind is one of "uid", "str", "int" or "date".
FieldSpec = Tuple[str, str, int, str]

FIELD_TAGS: Tuple[FieldSpec, ...] = (
    ("study_instance_uid", "StudyInstanceUID", 0x0020000D, "uid"),
    ("series_instance_uid", "SeriesInstanceUID", 0x0020000E, "uid"),
    ("sop_instance_uid", "SOPInstanceUID", 0x00080018, "uid"),
    ("patient_id", "PatientID", 0x00100020, "str"),
    ("patient_name", "PatientName", 0x00100010, "str"),
    ("patient_birth_date", "PatientBirthDate", 0x00100030, "date"),
    ("patient_sex", "PatientSex", 0x00100040, "str"),
    ("study_date", "StudyDate", 0x00080020, "date"),
    ("study_time", "StudyTime", 0x00080030, "str"),
    ("study_description", "StudyDescription", 0x00081030, "str"),
    ("accession_number", "AccessionNumber", 0x00080050, "str"),
    ("modality", "Modality", 0x00080060, "str"),
    ("series_number", "SeriesNumber", 0x00200011, "int"),
    ("series_description", "SeriesDescription", 0x0008103E, "str"),
    ("instance_number", "InstanceNumber", 0x00200013, "int"),
    ("rows", "Rows", 0x00280010, "int"),
    ("columns", "Columns", 0x00280011, "int"),
    ("number_of_frames", "NumberOfFrames", 0x00280008, "int"),
    ("manufacturer", "Manufacturer", 0x00080070, "str"),
    ("manufacturer_model_name", "ManufacturerModelName", 0x00081090, "str"),
    ("body_part_examined", "BodyPartExamined", 0x00180015, "str"),
    ("image_type", "ImageType", 0x00080008, "str"),
    ("content_date", "ContentDate", 0x00080023, "date"),
    ("content_time", "ContentTime", 0x00080033, "str"),
    ("acquisition_date", "AcquisitionDate", 0x00080022, "date"),
    ("acquisition_time", "AcquisitionTime", 0x00080032, "str"),
)

SPECIFIC_CHARACTER_SET_TAG = 0x00080005

FALLBACK_MARKER = {"note": "Parsed with element-offset reader (fallback)"}


def _camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass(frozen=True)
class ParsedMetadata:
    """Clinically relevant fields of one DICOM object."""

    study_instance_uid: str = ""
    series_instance_uid: str = ""
    sop_instance_uid: str = ""

    patient_id: Optional[str] = None
    patient_name: Optional[str] = None
    patient_birth_date: Optional[dt.date] = None
    patient_sex: Optional[str] = None

    study_date: Optional[dt.date] = None
    study_time: Optional[str] = None
    study_description: Optional[str] = None
    accession_number: Optional[str] = None

    modality: Optional[str] = None
    series_number: Optional[int] = None
    series_description: Optional[str] = None

    instance_number: Optional[int] = None
    rows: Optional[int] = None
    columns: Optional[int] = None
    number_of_frames: Optional[int] = None

    manufacturer: Optional[str] = None
    manufacturer_model_name: Optional[str] = None
    body_part_examined: Optional[str] = None

    image_type: Optional[str] = None
    content_date: Optional[dt.date] = None
    content_time: Optional[str] = None
    acquisition_date: Optional[dt.date] = None
    acquisition_time: Optional[str] = None

    full_metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-ready mapping with camelCase keys and ISO dates."""

        result: Dict[str, Any] = {}
        for attr, _, _, kind in FIELD_TAGS:
            value = getattr(self, attr)
            if kind == "date" and value is not None:
                value = value.isoformat()
            result[_camel_case(attr)] = value
        result["fullMetadata"] = dict(self.full_metadata)
        return result


@dataclass(frozen=True)
class UploadedFile:
    """In-memory contents of one uploaded file."""

    name: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: Path) -> "UploadedFile":
        path = Path(path)
        return cls(name=str(path), data=path.read_bytes())


@dataclass(frozen=True)
class FileParseResult:
    file: Any
    metadata: Optional[ParsedMetadata]
    status: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


def parse_date(value: Any) -> Optional[dt.date]:
    """Convert a DICOM DA value (``YYYYMMDD``) into a calendar date.

    Values shorter than 8 characters, non-numeric values and impossible
    calendar dates (``20230230``) all return None.
    """

    if isinstance(value, dt.date):
        return value
    if not value:
        return None

    text = str(value).strip()
    if len(text) < 8 or not text[:8].isdigit():
        return None

    try:
        return dt.date(int(text[0:4]), int(text[4:6]), int(text[6:8]))
    except ValueError:
        return None


def parse_dicom_time(value: Optional[str]) -> Optional[str]:
    """Format a DICOM TM value (``HHMMSS.FFFFFF``) as ``HH:MM:SS``."""

    if not value:
        return None
    return f"{value[0:2]}:{value[2:4]}:{value[4:6]}"


def _display_date(value: Optional[dt.date]) -> str:
    return value.isoformat() if value else "N/A"


def generate_metadata_summary(metadata: ParsedMetadata) -> Dict[str, Dict[str, Any]]:
    """Group the headline fields for display."""

    return {
        "patient": {
            "name": metadata.patient_name or "Unknown",
            "id": metadata.patient_id or "N/A",
            "sex": metadata.patient_sex or "N/A",
            "birthDate": _display_date(metadata.patient_birth_date),
        },
        "study": {
            "description": metadata.study_description or "N/A",
            "date": _display_date(metadata.study_date),
            "time": metadata.study_time or "N/A",
            "uid": metadata.study_instance_uid,
        },
        "series": {
            "modality": metadata.modality or "N/A",
            "description": metadata.series_description or "N/A",
            "number": metadata.series_number if metadata.series_number is not None else "N/A",
            "uid": metadata.series_instance_uid,
        },
        "instance": {
            "number": metadata.instance_number if metadata.instance_number is not None else "N/A",
            "uid": metadata.sop_instance_uid,
        },
    }


__all__ = [
    "FIELD_TAGS",
    "FALLBACK_MARKER",
    "SPECIFIC_CHARACTER_SET_TAG",
    "FileParseResult",
    "ParsedMetadata",
    "UploadedFile",
    "generate_metadata_summary",
    "parse_date",
    "parse_dicom_time",
]
