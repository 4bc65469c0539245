import datetime as dt

import pytest

from dicom_meta_project.src.metadata import (
    ParsedMetadata,
    UploadedFile,
    generate_metadata_summary,
    parse_date,
    parse_dicom_time,
)


@pytest.mark.parametrize(
    "day",
    [dt.date(2000, 1, 1), dt.date(2020, 2, 29), dt.date(1999, 12, 31), dt.date(2023, 7, 4)],
)
def test_parse_date_round_trips_real_dates(day):
    assert parse_date(day.strftime("%Y%m%d")) == day


@pytest.mark.parametrize("value", ["20230230", "20231301", "20230000", "20190229", "00000101"])
def test_parse_date_invalid_calendar_dates(value):
    assert parse_date(value) is None


@pytest.mark.parametrize("value", [None, "", "2023", "2023-01-", "abcdefgh", "2023.01.15"])
def test_parse_date_malformed(value):
    assert parse_date(value) is None


def test_parse_date_ignores_trailing_characters():
    assert parse_date("20230115 ") == dt.date(2023, 1, 15)


def test_parse_dicom_time():
    assert parse_dicom_time("093015.123456") == "09:30:15"
    assert parse_dicom_time("235959") == "23:59:59"
    assert parse_dicom_time("") is None
    assert parse_dicom_time(None) is None


def test_to_dict_uses_camel_case_and_iso_dates():
    metadata = ParsedMetadata(
        study_instance_uid="1.2.3",
        patient_name="Yamada^Tarou",
        patient_birth_date=dt.date(1980, 2, 29),
        series_number=4,
        full_metadata={"PatientName": "Yamada^Tarou"},
    )
    result = metadata.to_dict()

    assert result["studyInstanceUid"] == "1.2.3"
    assert result["sopInstanceUid"] == ""
    assert result["patientName"] == "Yamada^Tarou"
    assert result["patientBirthDate"] == "1980-02-29"
    assert result["studyDate"] is None
    assert result["seriesNumber"] == 4
    assert result["manufacturerModelName"] is None
    assert result["fullMetadata"] == {"PatientName": "Yamada^Tarou"}


def test_summary_defaults():
    summary = generate_metadata_summary(ParsedMetadata(study_instance_uid="1.2.3"))

    assert summary["patient"] == {"name": "Unknown", "id": "N/A", "sex": "N/A", "birthDate": "N/A"}
    assert summary["study"]["uid"] == "1.2.3"
    assert summary["series"]["number"] == "N/A"
    assert summary["instance"]["uid"] == ""


def test_summary_values():
    metadata = ParsedMetadata(
        patient_name="ﾔﾏﾀﾞ",
        study_date=dt.date(2023, 1, 15),
        modality="MR",
        series_number=0,
        instance_number=7,
    )
    summary = generate_metadata_summary(metadata)

    assert summary["patient"]["name"] == "ﾔﾏﾀﾞ"
    assert summary["study"]["date"] == "2023-01-15"
    assert summary["series"]["modality"] == "MR"
    assert summary["series"]["number"] == 0
    assert summary["instance"]["number"] == 7


def test_uploaded_file_from_path(tmp_path):
    path = tmp_path / "a.dcm"
    path.write_bytes(b"1234")
    uploaded = UploadedFile.from_path(path)

    assert uploaded.name == str(path)
    assert uploaded.size == 4
