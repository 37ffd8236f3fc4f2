"""
Test per CSVValidator
"""
import pytest

from src.repository.schema_registry import SchemaRegistry
from src.services.csv_import.csv_validator import CSVValidator
from tests.factories.schema_factory import ARTICLE_UID, COUNTRY_UID


@pytest.fixture
def validator(registry):
    return CSVValidator(registry)


@pytest.fixture
def country_schema(registry):
    return registry.get_content_type(COUNTRY_UID)


@pytest.fixture
def article_schema(registry):
    return registry.get_content_type(ARTICLE_UID)


@pytest.mark.asyncio
async def test_empty_input(validator, country_schema):
    outcome = await validator.validate([], country_schema)

    assert outcome.errors == ["CSV file is empty or invalid"]
    assert outcome.valid_data == []


@pytest.mark.asyncio
async def test_valid_rows_are_all_returned(validator, country_schema):
    rows = [
        {"name": "India", "code": "IN", "population": "1400", "is_member": "yes", "founded": "1947-08-15"},
        {"name": "Italy", "code": "IT", "population": "59", "is_member": "0", "founded": "1861-03-17"},
    ]

    outcome = await validator.validate(rows, country_schema)

    assert outcome.errors == []
    assert len(outcome.valid_data) == len(rows)
    first = outcome.valid_data[0]
    assert first.row_number == 1
    assert first.data == {
        "name": "India",
        "code": "IN",
        "population": 1400,
        "is_member": True,
        "founded": "1947-08-15T00:00:00.000Z",
    }


@pytest.mark.asyncio
async def test_missing_required_column_fails_fast(validator, country_schema):
    rows = [{"code": "IN", "other": "x"}]

    outcome = await validator.validate(rows, country_schema)

    # "status" ha un default e non è richiesto
    assert outcome.errors == ["Missing required fields: name"]
    assert outcome.warnings == ["Unknown fields (will be ignored): other"]
    assert outcome.valid_data == []
    assert outcome.invalid_rows == []


@pytest.mark.asyncio
async def test_empty_required_value_is_a_row_error(validator, country_schema):
    rows = [{"name": "", "code": "IN"}]

    outcome = await validator.validate(rows, country_schema)

    assert len(outcome.errors) >= 1
    assert outcome.errors[0] == 'Row 1: Required field "name" is missing'
    assert outcome.valid_data == []
    assert len(outcome.invalid_rows) == 1
    assert outcome.invalid_rows[0].original == {"name": "", "code": "IN"}


@pytest.mark.asyncio
async def test_row_errors_are_labelled_and_collected(validator, country_schema):
    rows = [
        {"name": "India", "population": "many", "is_member": "maybe"},
        {"name": "Italy", "population": "59", "is_member": "true"},
        {"name": "Mars", "population": "1", "is_member": "no", "continent": "Space", "contact": "bad"},
    ]

    outcome = await validator.validate(rows, country_schema)

    assert outcome.errors == [
        'Row 1: "population" must be a number',
        'Row 1: "is_member" must be true/false, 1/0, or yes/no',
        'Row 3: "continent" must be one of: Asia, Europe, Americas',
        'Row 3: "contact" must be a valid email',
    ]
    assert [row.row_number for row in outcome.valid_data] == [2]
    assert [row.row_number for row in outcome.invalid_rows] == [1, 3]


@pytest.mark.asyncio
async def test_dotted_headers_are_captured_not_coerced(validator, article_schema):
    rows = [{
        "title": "Hello",
        "country.code": "IN",
        "tags": "news,tech",
        "address.street": "Main St",
        "address.zip": "",
        "stops.city": "A,B",
    }]

    outcome = await validator.validate(rows, article_schema)

    assert outcome.errors == []
    row = outcome.valid_data[0]
    assert row.data == {"title": "Hello", "tags": "news,tech"}
    assert row.relation_captures["country"].relation_field == "code"
    assert row.relation_captures["country"].value == "IN"
    assert row.component_captures == {
        "address": {"street": "Main St", "zip": ""},
        "stops": {"city": "A,B"},
    }


@pytest.mark.asyncio
async def test_invalid_dotted_headers_are_ignored_without_warning(validator, article_schema):
    rows = [{"title": "Hello", "title.sub": "x", "unknown": "y"}]

    outcome = await validator.validate(rows, article_schema)

    assert outcome.errors == []
    assert outcome.warnings == ["Unknown fields (will be ignored): unknown"]
    assert outcome.valid_data[0].data == {"title": "Hello"}


@pytest.mark.asyncio
async def test_relation_field_must_be_unique_on_target(validator, article_schema):
    rows = [{"title": "Hello", "country.name": "India"}]

    outcome = await validator.validate(rows, article_schema)

    assert outcome.errors == [
        'Field "name" in content type "api::country.country" must be set as unique '
        'for relation field "country.name"'
    ]
    # La riga resta valida: l'errore è a livello file
    assert len(outcome.valid_data) == 1


@pytest.mark.asyncio
async def test_relation_field_missing_on_target(validator, article_schema):
    rows = [{"title": "Hello", "country.iso": "IN"}]

    outcome = await validator.validate(rows, article_schema)

    assert outcome.errors == [
        'Target field "iso" not found in content type "api::country.country" '
        'for relation field "country.iso"'
    ]


@pytest.mark.asyncio
async def test_relation_target_schema_missing_is_a_warning():
    registry = SchemaRegistry.from_mapping({
        "content_types": {
            "api::post.post": {
                "info": {"singularName": "post", "pluralName": "posts"},
                "attributes": {
                    "author": {"type": "relation", "relation": "manyToOne", "target": "api::author.author"},
                },
            },
        },
    })
    validator = CSVValidator(registry)

    outcome = await validator.validate([{"author.email": "a@b.it"}], registry.get_content_type("api::post.post"))

    assert outcome.errors == []
    assert outcome.warnings == [
        'Target content type "api::author.author" not found for relation field "author"'
    ]
