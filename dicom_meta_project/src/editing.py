"""Apply user corrections to an extracted metadata record."""
from __future__ import annotations

import dataclasses
import re
from typing import Any, Dict, Optional

from dicom_meta_project.src.metadata import FIELD_TAGS, ParsedMetadata

EDITABLE_TAGS = (
    "PatientName",
    "PatientID",
    "StudyDescription",
    "SeriesDescription",
    "BodyPartExamined",
)

_KEYWORD_TO_ATTR = {keyword: attr for attr, keyword, _, _ in FIELD_TAGS}


class FieldNotEditableError(ValueError):
    def __init__(self, field_name: str) -> None:
        super().__init__(f"Field {field_name} is not editable")
        self.field_name = field_name


def _lookup_key(name: str) -> str:
    return re.sub(r"[_\s]", "", name).lower()


_ALIASES: Dict[str, str] = {}
for _keyword in EDITABLE_TAGS:
    _ALIASES[_lookup_key(_keyword)] = _keyword
    _ALIASES[_lookup_key(_KEYWORD_TO_ATTR[_keyword])] = _keyword


def resolve_editable_keyword(field_name: str) -> Optional[str]:
    """Map ``PatientName``/``patientName``/``patient_name`` to its keyword."""

    if not isinstance(field_name, str):
        return None
    return _ALIASES.get(_lookup_key(field_name))


def is_editable_tag(field_name: str) -> bool:
    return resolve_editable_keyword(field_name) is not None


def edit_metadata(metadata: ParsedMetadata, field_name: str, new_value: Any) -> ParsedMetadata:
    """Return a copy of ``metadata`` with one allow-listed field replaced.

    The value is written to the record attribute and to ``full_metadata``
    under the DICOM keyword. ``metadata`` itself is left untouched.

    Raises:
        FieldNotEditableError: ``field_name`` is not on the allow-list.
    """

    keyword = resolve_editable_keyword(field_name)
    if keyword is None:
        raise FieldNotEditableError(field_name)

    full_metadata = dict(metadata.full_metadata)
    full_metadata[keyword] = new_value
    return dataclasses.replace(
        metadata,
        **{_KEYWORD_TO_ATTR[keyword]: new_value},
        full_metadata=full_metadata,
    )


__all__ = ["EDITABLE_TAGS", "FieldNotEditableError", "edit_metadata", "is_editable_tag"]
