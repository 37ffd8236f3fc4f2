"""
Fixture principali per i test del CSV import/export
"""
import sys
from pathlib import Path
from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Aggiungi il path del progetto
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from src.main import app
from src.database import Base, get_db
from src.core.dependencies import get_schema_registry
from src.core.settings import ImportSettings, get_import_settings
from src.repository.schema_registry import SchemaRegistry
from src.services.csv_import.csv_import_service import CSVImportService
from tests.factories.schema_factory import create_registry
from tests.helpers.fakes import InMemoryEntityStore, InMemoryMediaStore


# ============================================================================
# Database Test Setup
# ============================================================================

# SQLite in-memory per i test
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

test_engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """
    Crea una sessione database isolata per ogni test.
    Le tabelle sono ricreate per ogni test.
    """
    Base.metadata.create_all(bind=test_engine)

    session = TestSessionLocal()

    try:
        yield session
        session.rollback()
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


def override_get_db():
    """Override per get_db dependency"""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


# ============================================================================
# Collaboratori in memoria
# ============================================================================

@pytest.fixture
def registry() -> SchemaRegistry:
    return create_registry()


@pytest.fixture
def entity_store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture
def media_store() -> InMemoryMediaStore:
    return InMemoryMediaStore()


@pytest.fixture
def import_settings(tmp_path) -> ImportSettings:
    return ImportSettings(
        database_url=SQLALCHEMY_TEST_DATABASE_URL,
        media_root=str(tmp_path / "uploads"),
        media_base_url="/media/uploads",
        csv_max_file_size=64 * 1024,
        export_max_rows=1000,
    )


@pytest.fixture
def service(entity_store, media_store, registry, import_settings) -> CSVImportService:
    return CSVImportService(entity_store, media_store, registry, import_settings)


# ============================================================================
# App Fixture con Overrides
# ============================================================================

@pytest.fixture(scope="function")
def test_app(db_session: Session, registry: SchemaRegistry, import_settings: ImportSettings):
    """
    Crea l'app FastAPI con dependency overrides per i test.
    """
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_schema_registry] = lambda: registry
    app.dependency_overrides[get_import_settings] = lambda: import_settings

    try:
        yield app
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Client HTTP asincrono"""
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as ac:
        yield ac
