"""
Configuration settings for HAPI resource extraction.

Uses Pydantic Settings to load environment variables for database connections,
logging, and extraction defaults. Run parameters for a single resource type are
carried by the explicit `ExtractionConfig` model rather than ambient options.
"""
from __future__ import annotations

import math
from functools import lru_cache

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from hapi_extract.domain.errors import InvalidConfiguration


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("hapi", alias="DB_NAME")
    db_statement_timeout_ms: int = Field(0, alias="DB_STATEMENT_TIMEOUT_MS")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Extraction defaults
    extract_pool_size: int = Field(4, alias="EXTRACT_POOL_SIZE")
    extract_batch_size: int = Field(100_000, alias="EXTRACT_BATCH_SIZE")
    extract_fetch_size: int = Field(1_000, alias="EXTRACT_FETCH_SIZE")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


def batch_count_for(resource_count: int, batch_size: int) -> int:
    """
    Number of sequential batches needed to cover `resource_count` rows.

    Always at least one, so an empty resource type still gets a (cheap) run.
    """
    if batch_size < 1:
        raise InvalidConfiguration(f"batch_size must be >= 1, got {batch_size}")
    if resource_count < 0:
        raise InvalidConfiguration(f"resource_count must be >= 0, got {resource_count}")
    return max(1, math.ceil(resource_count / batch_size))


class ExtractionConfig(BaseModel):
    """
    Parameters of one extraction run over a single resource type.
    """

    resource_type: str = Field(..., min_length=1, description="FHIR resource type, e.g. Patient.")
    pool_size: int = Field(..., ge=1, description="Max concurrent connections per batch.")
    batch_count: int = Field(1, ge=1, description="Number of sequential batches in the run.")

    model_config = {
        "frozen": True,
        "strict": True,
    }

    def __init__(self, **data) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise InvalidConfiguration(str(exc)) from exc

    @property
    def modulus(self) -> int:
        return self.batch_count * self.pool_size

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None,
        resource_type: str,
        resource_count: int,
    ) -> "ExtractionConfig":
        """
        Size a run from settings and a row-count estimate for the resource type.

        Passing `None` for `settings` uses the cached environment settings.
        """
        settings = settings or get_settings()
        return cls(
            resource_type=resource_type,
            pool_size=settings.extract_pool_size,
            batch_count=batch_count_for(resource_count, settings.extract_batch_size),
        )


__all__ = ["ExtractionConfig", "Settings", "batch_count_for", "get_settings"]
