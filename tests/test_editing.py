import pytest

from dicom_meta_project.src.editing import (
    EDITABLE_TAGS,
    FieldNotEditableError,
    edit_metadata,
    is_editable_tag,
)
from dicom_meta_project.src.metadata import ParsedMetadata


@pytest.fixture
def metadata():
    return ParsedMetadata(
        study_instance_uid="1.2.3",
        patient_name="Yamada^Tarou",
        modality="CT",
        full_metadata={"PatientName": "Yamada^Tarou", "Modality": "CT"},
    )


def test_edit_patient_name_returns_new_record(metadata):
    edited = edit_metadata(metadata, "PatientName", "Suzuki^Hanako")

    assert edited.patient_name == "Suzuki^Hanako"
    assert edited.full_metadata["PatientName"] == "Suzuki^Hanako"
    assert edited.modality == "CT"
    assert edited.full_metadata["Modality"] == "CT"
    assert edited.study_instance_uid == "1.2.3"


def test_edit_does_not_mutate_input(metadata):
    edit_metadata(metadata, "patientName", "Suzuki^Hanako")

    assert metadata.patient_name == "Yamada^Tarou"
    assert metadata.full_metadata["PatientName"] == "Yamada^Tarou"


@pytest.mark.parametrize("name", ["PatientID", "patientId", "patient_id"])
def test_field_name_spellings(metadata, name):
    edited = edit_metadata(metadata, name, "NEW")
    assert edited.patient_id == "NEW"
    assert edited.full_metadata["PatientID"] == "NEW"


def test_edit_adds_missing_full_metadata_key(metadata):
    edited = edit_metadata(metadata, "BodyPartExamined", "CHEST")
    assert edited.body_part_examined == "CHEST"
    assert edited.full_metadata["BodyPartExamined"] == "CHEST"


@pytest.mark.parametrize("name", ["Modality", "modality", "StudyInstanceUID", "fullMetadata", ""])
def test_edit_rejects_fields_outside_allow_list(metadata, name):
    with pytest.raises(FieldNotEditableError, match="is not editable"):
        edit_metadata(metadata, name, "MR")


def test_is_editable_tag():
    assert all(is_editable_tag(tag) for tag in EDITABLE_TAGS)
    assert is_editable_tag("series_description")
    assert not is_editable_tag("Modality")
    assert not is_editable_tag(None)
