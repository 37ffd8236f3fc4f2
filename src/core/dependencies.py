"""
Dependency injection per FastAPI seguendo DIP
"""
from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from src.core.interfaces import ISchemaRegistry
from src.core.settings import ImportSettings, get_import_settings
from src.database import get_db
from src.repository.entity_repository import SqlEntityStore
from src.repository.media_repository import FileSystemMediaStore
from src.repository.schema_registry import SchemaRegistry
from src.services.csv_import.csv_import_service import CSVImportService

# Type aliases per le dipendenze
db_dependency = Annotated[Session, Depends(get_db)]
settings_dependency = Annotated[ImportSettings, Depends(get_import_settings)]


@lru_cache()
def get_schema_registry() -> ISchemaRegistry:
    """Registry degli schemi caricato una sola volta dal file configurato"""
    return SchemaRegistry.from_file(get_import_settings().schema_registry_path)


schema_registry_dependency = Annotated[ISchemaRegistry, Depends(get_schema_registry)]


def get_csv_import_service(
    db: db_dependency,
    schema_registry: schema_registry_dependency,
    settings: settings_dependency
) -> CSVImportService:
    """Costruisce il service di import con gli store legati alla sessione della request"""
    return CSVImportService(
        entity_store=SqlEntityStore(db, schema_registry),
        media_store=FileSystemMediaStore(db, settings.media_root, settings.media_base_url),
        schema_registry=schema_registry,
        settings=settings
    )


csv_import_service_dependency = Annotated[CSVImportService, Depends(get_csv_import_service)]
