"""
Configuration settings for the CSV import/export engine
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class ImportSettings(BaseSettings):
    """Import/export configuration settings"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Database
    database_url: str = Field(default="sqlite:///./csv_import.db")

    # Schema registry (YAML o JSON)
    schema_registry_path: str = Field(default="schemas.yaml")

    # Media storage
    media_root: str = Field(default="media/uploads")
    media_base_url: str = Field(default="/media/uploads")

    # Import limits
    csv_max_file_size: int = Field(default=10 * 1024 * 1024)  # 10MB
    import_default_batch_size: int = Field(default=100, ge=1)

    # Export limits
    export_max_rows: int = Field(default=1000, ge=1)

    # Logging
    log_level: str = Field(default="INFO")


@lru_cache()
def get_import_settings() -> ImportSettings:
    """Get cached import settings instance"""
    return ImportSettings()
