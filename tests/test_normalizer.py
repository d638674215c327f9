import pytest

from agentdist.errors import SchemaValidationFailed
from agentdist.ingest import normalize, normalize_row
from agentdist.ingest.normalize import EMPTY_FILE_ERROR
from agentdist.models import CanonicalRecord


def test_canonical_headers_are_valid():
    result = normalize(
        [
            {"FirstName": "John", "Phone": "1234567890", "Notes": "x"},
            {"FirstName": "Jane", "Phone": "2222222222", "Notes": "y"},
        ]
    )

    assert result.is_valid
    assert result.errors == []
    assert result.records == [
        CanonicalRecord(contact_name="John", phone="1234567890", notes="x"),
        CanonicalRecord(contact_name="Jane", phone="2222222222", notes="y"),
    ]


def test_variant_headers_resolve_to_canonical_fields():
    result = normalize([{"first_name": "John", "PHONE": "1234567890", "Note": "vip"}])

    assert result.is_valid
    assert result.records[0] == CanonicalRecord(contact_name="John", phone="1234567890", notes="vip")


@pytest.mark.parametrize("name_key", ["FirstName", "firstname", "FIRSTNAME", "First Name", "first_name"])
def test_every_name_variant_passes_presence_check(name_key):
    result = normalize([{name_key: "Ana", "phone": "555"}])
    assert result.is_valid
    assert result.records[0].contact_name == "Ana"


def test_normalizing_canonical_output_again_is_valid():
    first = normalize([{"FirstName": "John", "Phone": " 1234567890 ", "Notes": "x"}])

    second = normalize([record.model_dump() for record in first.records])

    assert second.is_valid
    assert second.missing_fields == []
    assert second.records == first.records

    camel = normalize([{"contactName": "John", "phone": "1234567890", "notes": "x"}])
    assert camel.is_valid
    assert camel.records == first.records


def test_notes_are_optional():
    result = normalize([{"FirstName": "Sam", "Phone": "333"}])

    assert result.is_valid
    assert result.records[0].notes == ""


def test_missing_phone_rejects_batch_but_still_projects_rows():
    result = normalize([{"FirstName": "John", "Notes": "x"}, {"FirstName": "Jane", "Notes": "y"}])

    assert not result.is_valid
    assert result.errors == ["Missing required field: Phone"]
    assert result.missing_fields == ["Phone"]
    assert [record.contact_name for record in result.records] == ["John", "Jane"]
    assert all(record.phone is None for record in result.records)


def test_missing_both_required_fields():
    result = normalize([{"Name": "John", "Mobile": "1"}])

    assert result.missing_fields == ["FirstName", "Phone"]
    assert result.records == [CanonicalRecord()]


def test_phone_number_header_projects_rows_but_fails_presence_check():
    result = normalize([{"FirstName": "John", "Phone Number": "1234567890"}])

    assert result.errors == ["Missing required field: Phone"]
    assert result.records[0].phone == "1234567890"


def test_presence_is_checked_on_first_row_only():
    result = normalize(
        [
            {"FirstName": "John", "Phone": "111"},
            {"first_name": "Jane", "phone_number": "222"},
            {"Surname": "Doe"},
        ]
    )

    assert result.is_valid
    assert result.records[1] == CanonicalRecord(contact_name="Jane", phone="222")
    assert result.records[2] == CanonicalRecord()


def test_values_are_stripped():
    record = normalize_row({"FirstName": "  John ", "Phone": " 123 ", "notes": " hi "})
    assert record == CanonicalRecord(contact_name="John", phone="123", notes="hi")


def test_empty_input_is_reported():
    result = normalize([])

    assert not result.is_valid
    assert result.errors == [EMPTY_FILE_ERROR]
    assert result.records == []


def test_ensure_valid_raises_with_missing_fields():
    result = normalize([{"FirstName": "John"}])

    with pytest.raises(SchemaValidationFailed) as excinfo:
        result.ensure_valid()

    assert excinfo.value.missing_fields == ["Phone"]
    assert excinfo.value.reason == "schema_validation_failed"
