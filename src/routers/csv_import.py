"""
CSV Import Router

Endpoints per import/export CSV dei content type, con validazione,
anteprima e caricamento di archivi media.
"""
import json
import logging
from typing import Optional

from fastapi import APIRouter, Body, File, Form, Path, UploadFile, status
from fastapi.responses import StreamingResponse

from src.core.dependencies import csv_import_service_dependency
from src.core.exceptions import ErrorCode, ValidationException
from src.schemas.content_type_schema import ContentTypeResponseSchema, ExportRequestSchema
from src.services.csv_import.models import ImportOptions, MediaFieldMapping

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/csv-import",
    tags=["CSV Import"]
)


def _require_csv(file: UploadFile) -> None:
    if not file.filename or not file.filename.lower().endswith('.csv'):
        raise ValidationException(
            "File must be a CSV file",
            ErrorCode.VALIDATION_ERROR,
            {"filename": file.filename}
        )


def _parse_media_field_mappings(raw: Optional[str]) -> list:
    """
    Le mapping arrivano come array JSON in un campo form.

    Un JSON non valido o diverso da un array è ignorato, come le voci che non sono oggetti.
    """
    if not raw:
        return []
    try:
        items = json.loads(raw)
        if not isinstance(items, list):
            logger.warning(f"Ignoring media field mappings: expected a JSON array, got {type(items).__name__}")
            return []
        return [MediaFieldMapping.from_dict(item) for item in items if isinstance(item, dict)]
    except (ValueError, TypeError, KeyError, AttributeError) as e:
        logger.warning(f"Failed to parse media field mappings: {e}")
        return []


@router.get(
    "/content-types",
    status_code=status.HTTP_200_OK
)
async def get_content_types(service: csv_import_service_dependency):
    """
    Content type importabili (namespace api::), indicizzati per singularName.
    """
    content_types = service.get_content_types()
    return {
        "data": {
            name: ContentTypeResponseSchema.from_definition(definition).model_dump(mode="json")
            for name, definition in content_types.items()
        },
        "meta": {"count": len(content_types)}
    }


@router.post(
    "/upload/{content_type}",
    status_code=status.HTTP_200_OK,
    response_description="CSV validated"
)
async def upload_csv(
    service: csv_import_service_dependency,
    content_type: str = Path(..., description="singularName del content type"),
    file: UploadFile = File(..., description="CSV file to validate")
):
    """
    Valida un file CSV rispetto allo schema del content type.

    **Errori**: 400 con errors, warnings e invalid_rows se la validazione fallisce.
    """
    _require_csv(file)
    content = await file.read()

    result = await service.validate_csv(content_type, content)
    result["file_name"] = file.filename
    return {"data": result}


@router.post(
    "/preview/{content_type}",
    status_code=status.HTTP_200_OK
)
async def preview_csv(
    service: csv_import_service_dependency,
    content_type: str = Path(..., description="singularName del content type"),
    file: UploadFile = File(..., description="CSV file to preview")
):
    """Anteprima delle prime 10 righe, senza validazione"""
    _require_csv(file)
    content = await file.read()

    result = service.preview_csv(content_type, content)
    result["file_name"] = file.filename
    return {"data": result}


@router.post(
    "/upload-zip",
    status_code=status.HTTP_200_OK
)
async def upload_zip(
    service: csv_import_service_dependency,
    zip_file: UploadFile = File(..., description="Zip archive"),
    media_field: str = Form(..., description="Campo media di destinazione")
):
    """Carica tutti i file dell'archivio nella libreria media"""
    content = await zip_file.read()
    uploaded_files = await service.upload_zip(content, media_field)
    return {
        "data": [uploaded.to_dict() for uploaded in uploaded_files],
        "meta": {
            "media_field": media_field,
            "files_uploaded": len(uploaded_files)
        }
    }


@router.post(
    "/upload-media-zip",
    status_code=status.HTTP_200_OK
)
async def upload_media_zip(
    service: csv_import_service_dependency,
    zip_file: UploadFile = File(..., description="Zip archive"),
    content_type: str = Form(..., description="singularName del content type"),
    match_field: str = Form("id", description="Campo CSV confrontato con i nomi file")
):
    """
    Carica un archivio media e associa i file ai campi media del content type.

    **Layout**:
    - Cartelle con il nome del campo media (es. `reports/R-001.pdf`)
    - Altrimenti distribuzione per parole chiave nel nome file
    """
    content = await zip_file.read()
    mappings = await service.upload_media_zip(content, content_type, match_field)
    return {
        "data": [mapping.to_dict() for mapping in mappings],
        "meta": {
            "content_type": content_type,
            "match_field": match_field,
            "total_mappings": len(mappings)
        }
    }


@router.post(
    "/import/{content_type}",
    status_code=status.HTTP_200_OK,
    response_description="CSV import completed"
)
async def import_csv(
    service: csv_import_service_dependency,
    content_type: str = Path(..., description="singularName del content type"),
    file: UploadFile = File(..., description="CSV file to import"),
    upsert: bool = Form(False, description="Aggiorna i record esistenti per upsert_field"),
    batch_size: Optional[int] = Form(None, ge=1, description="Dimensione dei batch di iterazione"),
    upsert_field: str = Form("id", description="Campo di match per l'upsert"),
    media_field_mappings: Optional[str] = Form(None, description="JSON delle mapping prodotte da /upload-media-zip"),
    skip_invalid_rows: bool = Form(False, description="Importa le righe valide ignorando quelle con errori")
):
    """
    Import di un CSV nel content type.

    **Workflow**:
    1. Parse e validazione (gli errori bloccano l'import salvo skip_invalid_rows)
    2. Risoluzione relazioni (`relation` oppure `relation.field`)
    3. Costruzione component (`component.field`, valori separati da virgola per i repeatable)
    4. Create/upsert per riga: gli errori di una riga non interrompono l'import
    """
    _require_csv(file)
    content = await file.read()

    options = ImportOptions(
        upsert=upsert,
        batch_size=batch_size or service.settings.import_default_batch_size,
        upsert_field=upsert_field,
        media_field_mappings=_parse_media_field_mappings(media_field_mappings)
    )

    result = await service.import_csv(content_type, content, options, skip_invalid_rows=skip_invalid_rows)
    return {"data": result}


@router.post(
    "/export/{content_type}",
    status_code=status.HTTP_200_OK,
    response_description="CSV export"
)
async def export_csv(
    service: csv_import_service_dependency,
    content_type: str = Path(..., description="singularName del content type"),
    request: Optional[ExportRequestSchema] = Body(None)
):
    """
    Export CSV del content type (max EXPORT_MAX_ROWS righe).

    Relazioni esportate come `relation.<primo attributo del target>`,
    component come `component.field` / `component.<n>.field`.
    """
    filters = request.filters if request is not None else {}
    export = await service.export_csv(content_type, filters)

    return StreamingResponse(
        iter([export["content"]]),
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="{export["filename"]}"'
        }
    )
