"""
Test per CSVExporter
"""
from datetime import date

import pytest

from src.repository.entity_repository import SqlEntityStore
from src.services.csv_import.exporter import CSVExporter, build_export_filename, format_cell
from tests.factories.schema_factory import ARTICLE_UID, COUNTRY_UID


@pytest.fixture
def exporter(entity_store, registry):
    return CSVExporter(entity_store, registry, max_rows=1000)


@pytest.fixture
def article_schema(registry):
    return registry.get_content_type(ARTICLE_UID)


def test_flatten_to_one_relation_uses_first_target_attribute(exporter, article_schema):
    entry = {"id": 1, "title": "Hello", "country": {"id": 4, "name": "India", "code": "IN"}}

    flattened = exporter.flatten_entry(entry, article_schema)

    assert flattened == {"id": 1, "title": "Hello", "country.name": "India"}


def test_flatten_drops_empty_relations(exporter, article_schema):
    entry = {"id": 1, "title": "Hello", "country": None, "tags": []}

    flattened = exporter.flatten_entry(entry, article_schema)

    assert flattened == {"id": 1, "title": "Hello"}


def test_flatten_to_many_relation_joins_labels(exporter, article_schema):
    entry = {"id": 1, "title": "Hello", "tags": [{"id": 1, "name": "news"}, {"id": 2, "name": None, "slug": "x"}]}

    flattened = exporter.flatten_entry(entry, article_schema)

    # Il secondo tag non ha name: fallback sull'id
    assert flattened["tags.name"] == "news, 2"
    assert "tags" not in flattened


def test_flatten_components_and_drop_timestamps(exporter, article_schema):
    entry = {
        "id": 1,
        "title": "Hello",
        "address": {"id": 9, "street": "Main St", "zip": 123, "geo": {"lat": 1.0}},
        "stops": [{"id": 1, "__component": "shared.stop", "street": "A", "city": "X"}, {"id": 2, "street": "B"}],
        "createdAt": "2024-01-01T00:00:00",
        "updatedAt": "2024-01-02T00:00:00",
        "publishedAt": None,
    }

    flattened = exporter.flatten_entry(entry, article_schema)

    assert flattened == {
        "id": 1,
        "title": "Hello",
        "address.street": "Main St",
        "address.zip": 123,
        "stops.1.street": "A",
        "stops.1.city": "X",
        "stops.2.street": "B",
    }


def test_to_csv_columns_union_and_quoting():
    rows = [
        {"id": 1, "name": 'Say "hi"', "__internal": "x", "meta": {"a": 1}},
        {"id": 2, "name": "A, B", "extra": True, "area": 10.0},
    ]

    content = CSVExporter.to_csv(rows)

    assert content.split("\n") == [
        "id,name,extra,area",
        '1,"Say ""hi""",,',
        '2,"A, B",true,10',
    ]


def test_to_csv_empty():
    assert CSVExporter.to_csv([]) == ""


def test_format_cell():
    assert format_cell(None) == ""
    assert format_cell(False) == "false"
    assert format_cell(2.5) == "2.5"
    assert format_cell(3) == "3"


def test_build_export_filename(article_schema):
    assert build_export_filename(article_schema, date(2024, 1, 15)) == "Field_Article_export_2024-01-15.csv"


@pytest.mark.asyncio
async def test_export_queries_store_with_populate_and_filters(exporter, entity_store, article_schema):
    entity_store.seed(
        ARTICLE_UID,
        id=1,
        title="Hello",
        country={"id": 4, "name": "India"},
    )

    content = await exporter.export(article_schema, {"title": "Hello"})

    call = entity_store.find_calls[0]
    assert call["filters"] == {"title": "Hello"}
    assert call["limit"] == 1000
    assert call["populate"] == ["country", "tags", "voucher", "address", "stops"]
    assert content == "id,title,country.name\n1,Hello,India"


@pytest.mark.asyncio
async def test_export_plain_fields_round_trip(service, entity_store, registry):
    content = "name,code,population,is_member,founded\nIndia,IN,1400,yes,2024-01-15\n".encode("utf-8")

    await service.import_csv("country", content)
    exported = await CSVExporter(entity_store, registry).export(registry.get_content_type(COUNTRY_UID))

    lines = exported.split("\n")
    assert lines[0] == "name,code,population,is_member,founded,id"
    assert lines[1] == "India,IN,1400,true,2024-01-15T00:00:00.000Z,1"


@pytest.mark.asyncio
async def test_export_relation_to_missing_target_has_no_raw_column(db_session, registry, article_schema):
    store = SqlEntityStore(db_session, registry)
    country = await store.create(COUNTRY_UID, {"name": "India"})
    await store.create(ARTICLE_UID, {"title": "Tour", "country": country["id"]})
    await store.create(ARTICLE_UID, {"title": "Orphan", "country": 999})

    content = await CSVExporter(store, registry).export(article_schema, {})

    lines = content.split("\n")
    assert lines[0] == "id,title,country.name"
    assert lines[1].endswith(",Tour,India")
    assert lines[2].endswith(",Orphan,")
