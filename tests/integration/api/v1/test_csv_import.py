"""
Test per endpoint CSV import/export
"""
import json

import pytest
from fastapi import status

from src.models.entity import Entity
from tests.factories.schema_factory import ARTICLE_UID, COUNTRY_UID
from tests.helpers.asserts import assert_csv_response, assert_error_response, assert_success_response
from tests.helpers.fakes import build_zip, csv_bytes

COUNTRIES_CSV = csv_bytes("name,code,population", "India,IN,1400", "Italy,IT,59")


def csv_file(content: bytes, filename: str = "data.csv") -> dict:
    return {"file": (filename, content, "text/csv")}


@pytest.mark.integration
class TestContentTypes:
    """Test per /csv-import/content-types"""

    @pytest.mark.asyncio
    async def test_list_importable_content_types(self, async_client):
        """
        Test: Elenco content type importabili

        Arrange: Registry con content type api:: e plugin::
        Act: GET /csv-import/content-types
        Assert: Solo i content type api::, indicizzati per singularName
        """
        response = await async_client.get("/csv-import/content-types")

        assert_success_response(response, check_fields=["country", "article"])
        body = response.json()
        assert "user" not in body["data"]
        assert body["meta"]["count"] == 4
        assert body["data"]["article"]["display_name"] == "Field Article"
        assert body["data"]["country"]["attributes"]["name"]["required"] is True


@pytest.mark.integration
class TestUploadAndPreview:
    """Test per /csv-import/upload e /csv-import/preview"""

    @pytest.mark.asyncio
    async def test_upload_valid_csv(self, async_client):
        response = await async_client.post("/csv-import/upload/country", files=csv_file(COUNTRIES_CSV))

        assert_success_response(response, check_fields=["validation", "preview", "total_rows"])
        data = response.json()["data"]
        assert data["total_rows"] == 2
        assert data["file_name"] == "data.csv"
        assert data["validation"]["errors"] == []

    @pytest.mark.asyncio
    async def test_upload_missing_required_column(self, async_client):
        """
        Test: Validazione con colonna obbligatoria mancante

        Arrange: CSV senza la colonna "name"
        Act: POST /csv-import/upload/country
        Assert: Status 400, errore a livello file e nessuna riga processata
        """
        response = await async_client.post(
            "/csv-import/upload/country",
            files=csv_file(csv_bytes("code,flag", "IN,x"))
        )

        assert_error_response(response, status.HTTP_400_BAD_REQUEST, "CSV_VALIDATION_FAILED", "validation failed")
        details = response.json()["details"]
        assert details["errors"] == ["Missing required fields: name"]
        assert details["warnings"] == ["Unknown fields (will be ignored): flag"]
        assert details["invalid_rows"] == []

    @pytest.mark.asyncio
    async def test_upload_rejects_non_csv_file(self, async_client):
        response = await async_client.post(
            "/csv-import/upload/country",
            files=csv_file(COUNTRIES_CSV, filename="data.txt")
        )

        assert_error_response(response, status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", "must be a CSV")

    @pytest.mark.asyncio
    async def test_upload_unknown_content_type(self, async_client):
        response = await async_client.post("/csv-import/upload/user", files=csv_file(COUNTRIES_CSV))

        assert_error_response(response, status.HTTP_404_NOT_FOUND, "CONTENT_TYPE_NOT_FOUND")

    @pytest.mark.asyncio
    async def test_preview(self, async_client):
        response = await async_client.post(
            "/csv-import/preview/country",
            files=csv_file(csv_bytes("name,code", ",IN"))
        )

        assert_success_response(response, check_fields=["headers", "preview", "content_type_attributes"])
        data = response.json()["data"]
        assert data["headers"] == ["name", "code"]
        assert data["preview"] == [{"name": "", "code": "IN"}]


@pytest.mark.integration
class TestImportExport:
    """Test per /csv-import/import e /csv-import/export"""

    @pytest.mark.asyncio
    async def test_import_creates_entities(self, async_client, db_session):
        """
        Test: Import di due paesi

        Arrange: CSV valido con due righe
        Act: POST /csv-import/import/country
        Assert: Status 200, due entità create con valori convertiti
        """
        response = await async_client.post("/csv-import/import/country", files=csv_file(COUNTRIES_CSV))

        assert_success_response(response, check_fields=["created", "updated", "errors"])
        data = response.json()["data"]
        assert data["created"] == 2
        assert data["content_type"] == "Country"

        records = db_session.query(Entity).filter(Entity.content_type == COUNTRY_UID).order_by(Entity.id).all()
        assert [record.data["population"] for record in records] == [1400, 59]

    @pytest.mark.asyncio
    async def test_import_upsert(self, async_client):
        form = {"upsert": "true", "upsert_field": "code"}

        await async_client.post("/csv-import/import/country", files=csv_file(COUNTRIES_CSV), data=form)
        response = await async_client.post(
            "/csv-import/import/country",
            files=csv_file(csv_bytes("name,code", "Republic of India,IN")),
            data=form
        )

        data = response.json()["data"]
        assert data["created"] == 0
        assert data["updated"] == 1

    @pytest.mark.asyncio
    async def test_import_invalid_batch_size(self, async_client):
        response = await async_client.post(
            "/csv-import/import/country",
            files=csv_file(COUNTRIES_CSV),
            data={"batch_size": "0"}
        )

        assert_error_response(response, 422, "VALIDATION_ERROR")

    @pytest.mark.asyncio
    async def test_import_skip_invalid_rows(self, async_client):
        response = await async_client.post(
            "/csv-import/import/country",
            files=csv_file(csv_bytes("name,population", "India,many", "Italy,59")),
            data={"skip_invalid_rows": "true"}
        )

        data = response.json()["data"]
        assert data["created"] == 1
        assert data["skipped_rows"] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw_mappings", [
        '{"field": "reports"}',
        '["reports", 3]',
        '[{"field": "reports", "uploaded_files": "IN.pdf"}]',
        'not json',
    ])
    async def test_import_ignores_malformed_media_field_mappings(self, async_client, raw_mappings):
        """
        Test: media_field_mappings non conforme

        Arrange: JSON che non è un array di mapping
        Act: POST /csv-import/import/country con il campo form
        Assert: Status 200, mapping ignorate e righe importate
        """
        response = await async_client.post(
            "/csv-import/import/country",
            files=csv_file(COUNTRIES_CSV),
            data={"media_field_mappings": raw_mappings}
        )

        assert_success_response(response, check_fields=["created"])
        assert response.json()["data"]["created"] == 2

    @pytest.mark.asyncio
    async def test_import_with_relations_then_export(self, async_client):
        """
        Test: Import con relation.field ed export

        Arrange: Paesi importati
        Act: Import articoli con country.code, poi export
        Assert: Relazione risolta ed esportata con il primo attributo del target
        """
        await async_client.post("/csv-import/import/country", files=csv_file(COUNTRIES_CSV))
        import_response = await async_client.post(
            "/csv-import/import/article",
            files=csv_file(csv_bytes("title,country.code,address.city", "Tour,IN,Delhi", "Trip,XX,")),
        )

        import_data = import_response.json()["data"]
        assert import_data["created"] == 2
        assert import_data["diagnostics"] == ['Row 2: relation "country" value "XX" not found']

        response = await async_client.post("/csv-import/export/article")

        lines = assert_csv_response(response, "Field_Article")
        assert lines[0] == "id,title,country.name,address.city"
        assert lines[1].endswith(",Tour,India,Delhi")
        assert lines[2].endswith(",Trip,,")

    @pytest.mark.asyncio
    async def test_export_with_filters(self, async_client):
        await async_client.post("/csv-import/import/country", files=csv_file(COUNTRIES_CSV))

        response = await async_client.post(
            "/csv-import/export/country",
            json={"filters": {"code": {"$eqi": "it"}}}
        )

        lines = assert_csv_response(response, "Country")
        assert lines[0] == "id,name,code,population"
        assert len(lines) == 2
        assert lines[1].endswith(",Italy,IT,59")

    @pytest.mark.asyncio
    async def test_export_empty(self, async_client):
        response = await async_client.post("/csv-import/export/tag")

        assert assert_csv_response(response, "Tag") == []


@pytest.mark.integration
class TestMediaArchives:
    """Test per /csv-import/upload-zip e /csv-import/upload-media-zip"""

    @pytest.mark.asyncio
    async def test_upload_zip(self, async_client):
        archive = build_zip({"docs/a.pdf": b"a", "b.png": b"b"}, directories=("docs",))

        response = await async_client.post(
            "/csv-import/upload-zip",
            files={"zip_file": ("files.zip", archive, "application/zip")},
            data={"media_field": "reports"}
        )

        assert_success_response(response)
        body = response.json()
        assert body["meta"]["files_uploaded"] == 2
        assert sorted(item["name"] for item in body["data"]) == ["b.png", "docs/a.pdf"]

    @pytest.mark.asyncio
    async def test_upload_zip_invalid_archive(self, async_client):
        response = await async_client.post(
            "/csv-import/upload-zip",
            files={"zip_file": ("files.zip", b"not a zip", "application/zip")},
            data={"media_field": "reports"}
        )

        assert_error_response(response, status.HTTP_400_BAD_REQUEST, "INVALID_ARCHIVE")

    @pytest.mark.asyncio
    async def test_media_zip_mappings_used_by_import(self, async_client, db_session):
        """
        Test: Archivio media strutturato e import con mapping

        Arrange: Zip con cartella "reports" e file nominati come i titoli
        Act: POST /csv-import/upload-media-zip, poi import con media_field_mappings
        Assert: Il campo media della riga contiene gli id dei file corrispondenti
        """
        archive = build_zip({
            "bundle/reports/Tour.pdf": b"1",
            "bundle/reports/Tour_2.pdf": b"2",
            "bundle/reports/Other.pdf": b"3",
            "bundle/__MACOSX/._Tour.pdf": b"x",
        })

        media_response = await async_client.post(
            "/csv-import/upload-media-zip",
            files={"zip_file": ("media.zip", archive, "application/zip")},
            data={"content_type": "article", "match_field": "title"}
        )

        assert_success_response(media_response)
        mappings = media_response.json()["data"]
        assert [mapping["field"] for mapping in mappings] == ["reports"]
        assert len(mappings[0]["uploaded_files"]) == 3
        ids = {item["name"]: item["id"] for item in mappings[0]["uploaded_files"]}

        response = await async_client.post(
            "/csv-import/import/article",
            files=csv_file(csv_bytes("title", "Tour")),
            data={"upsert_field": "title", "media_field_mappings": json.dumps(mappings)}
        )

        assert response.json()["data"]["created"] == 1
        article = db_session.query(Entity).filter(Entity.content_type == ARTICLE_UID).one()
        assert article.data["reports"] == [ids["Tour.pdf"], ids["Tour_2.pdf"]]


@pytest.mark.asyncio
async def test_health(async_client):
    response = await async_client.get("/health")

    assert response.json() == {"status": "healthy"}
