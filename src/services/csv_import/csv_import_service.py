"""
CSV Import Service - Main orchestration service.

Coordinates the CSV import/export workflow: parsing, validation, relation and
component resolution, persistence, media archive handling and export.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from src.core.exceptions import ExceptionFactory
from src.core.interfaces import IEntityStore, IMediaStore, ISchemaRegistry
from src.core.settings import ImportSettings, get_import_settings
from src.schemas.content_type_schema import SchemaDefinition

from .component_processor import ComponentProcessor
from .csv_parser import CSVParser
from .csv_validator import CSVValidator
from .exporter import CSVExporter, build_export_filename
from .importer import EntityImporter
from .media_matcher import MediaArchiveMatcher
from .models import ImportOptions, MediaFieldMapping, UploadedFile, ValidationOutcome
from .relation_resolver import RelationResolver

logger = logging.getLogger(__name__)

IMPORTABLE_NAMESPACE = "api::"


class CSVImportService:
    """
    Service principale per orchestrazione import/export CSV.

    Coordina: parsing, validazione, risoluzione relazioni e component,
    import per riga, archivi media ed export.
    """

    def __init__(
        self,
        entity_store: IEntityStore,
        media_store: IMediaStore,
        schema_registry: ISchemaRegistry,
        settings: Optional[ImportSettings] = None
    ):
        self.entity_store = entity_store
        self.media_store = media_store
        self.schema_registry = schema_registry
        self.settings = settings or get_import_settings()

        self.validator = CSVValidator(schema_registry)
        self.relation_resolver = RelationResolver(entity_store, schema_registry)
        self.component_processor = ComponentProcessor(schema_registry, self.relation_resolver)
        self.media_matcher = MediaArchiveMatcher(media_store)
        self.importer = EntityImporter(entity_store, self.media_matcher)
        self.exporter = CSVExporter(entity_store, schema_registry, self.settings.export_max_rows)

    def get_content_types(self) -> Dict[str, SchemaDefinition]:
        """Content type importabili (namespace api::) indicizzati per singularName"""
        return {
            definition.info.singular_name: definition
            for definition in self.schema_registry.content_types()
            if definition.uid.startswith(IMPORTABLE_NAMESPACE)
        }

    def get_content_type(self, name: str) -> SchemaDefinition:
        """
        Ottiene un content type importabile per singularName.

        Raises:
            NotFoundException: Se il content type non esiste
        """
        definition = self.get_content_types().get(name)
        if definition is None:
            raise ExceptionFactory.content_type_not_found(name)
        return definition

    def parse_csv(self, file_content: bytes) -> List[Dict[str, str]]:
        """
        Parse del CSV con controllo della dimensione massima.

        Raises:
            ValidationException: Se il file supera CSV_MAX_FILE_SIZE
        """
        if len(file_content) > self.settings.csv_max_file_size:
            raise ExceptionFactory.csv_too_large(len(file_content), self.settings.csv_max_file_size)
        return CSVParser.parse(file_content)

    async def validate_csv(self, content_type: str, file_content: bytes) -> Dict[str, Any]:
        """
        Valida un CSV senza importarlo.

        Returns:
            Dizionario con content type, esito validazione, anteprima (5 righe) e totale

        Raises:
            ValidationException: Se la validazione produce errori
        """
        definition = self.get_content_type(content_type)
        rows = self.parse_csv(file_content)
        validation = await self.validator.validate(rows, definition)

        if not validation.is_valid:
            raise self._validation_failed(validation, len(rows))

        return {
            "content_type": definition.info.singular_name,
            "validation": validation.to_dict(),
            "preview": rows[:5],
            "total_rows": len(rows)
        }

    def preview_csv(self, content_type: str, file_content: bytes) -> Dict[str, Any]:
        """Anteprima del CSV (prime 10 righe) senza validazione"""
        definition = self.get_content_type(content_type)
        rows = self.parse_csv(file_content)
        return {
            "headers": CSVParser.headers(rows),
            "preview": rows[:10],
            "total_rows": len(rows),
            "content_type_attributes": list(definition.attributes.keys())
        }

    async def import_csv(
        self,
        content_type: str,
        file_content: bytes,
        options: Optional[ImportOptions] = None,
        skip_invalid_rows: bool = False
    ) -> Dict[str, Any]:
        """
        Import completo da CSV.

        Workflow:
        1. Parse e validazione
        2. Se ci sono errori: abort (salvo skip_invalid_rows, che importa solo le righe valide)
        3. Risoluzione relazioni
        4. Costruzione component
        5. Import per riga (create/upsert)

        Args:
            content_type: singularName del content type
            file_content: File CSV in bytes
            options: Opzioni di import
            skip_invalid_rows: Importa le righe valide anche in presenza di errori di riga

        Returns:
            Esito import con totale processato, warning e diagnostics

        Raises:
            ValidationException: Se la validazione fallisce
        """
        definition = self.get_content_type(content_type)
        options = options or ImportOptions(batch_size=self.settings.import_default_batch_size)

        rows = self.parse_csv(file_content)
        validation = await self.validator.validate(rows, definition)

        if not validation.is_valid:
            # Gli errori a livello file bloccano sempre
            row_errors = sum(len(row.errors) for row in validation.invalid_rows)
            has_file_errors = len(validation.errors) > row_errors
            if not skip_invalid_rows or has_file_errors:
                raise self._validation_failed(validation, len(rows))
            logger.warning(
                f"Importing {len(validation.valid_data)} valid rows of {len(rows)} "
                f"for {definition.uid}, skipping {len(validation.invalid_rows)} invalid rows"
            )

        resolved_rows = await self.relation_resolver.resolve(validation.valid_data, definition)
        processed_rows = await self.component_processor.process(resolved_rows, definition)

        outcome = await self.importer.import_rows(definition.uid, processed_rows, options)

        result = outcome.to_dict()
        result.update({
            "total_processed": len(processed_rows),
            "skipped_rows": len(validation.invalid_rows),
            "warnings": list(validation.warnings),
            "content_type": definition.display_name,
            "diagnostics": [message for row in processed_rows for message in row.diagnostics]
        })
        return result

    async def upload_zip(self, archive_bytes: bytes, media_field: str) -> List[UploadedFile]:
        """Carica tutti i file di un archivio zip nella libreria media"""
        return await self.media_matcher.extract_and_upload(archive_bytes, media_field)

    async def upload_media_zip(
        self,
        archive_bytes: bytes,
        content_type: str,
        match_field: str = "id"
    ) -> List[MediaFieldMapping]:
        """Carica i file di un archivio e li associa ai campi media del content type"""
        definition = self.get_content_type(content_type)
        return await self.media_matcher.extract_and_map(archive_bytes, definition, match_field)

    async def export_csv(
        self,
        content_type: str,
        filters: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, str]:
        """
        Esporta un content type in CSV.

        Returns:
            Dizionario con filename e content
        """
        definition = self.get_content_type(content_type)
        content = await self.exporter.export(definition, filters)
        return {
            "filename": build_export_filename(definition),
            "content": content
        }

    @staticmethod
    def _validation_failed(validation: ValidationOutcome, total_rows: int):
        return ExceptionFactory.csv_validation_failed(
            errors=list(validation.errors),
            warnings=list(validation.warnings),
            invalid_rows=[row.to_dict() for row in validation.invalid_rows],
            total_rows=total_rows
        )
