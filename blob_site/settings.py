from __future__ import annotations

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATABASE_URL = (
    "mssql+pyodbc://@(localdb)\\MSSQLLocalDB/AzureStorageEmulatorDb510"
    "?driver=ODBC+Driver+17+for+SQL+Server&trusted_connection=yes"
)


class SiteSettings(BaseSettings):
    """Configuration for static site resolution and streaming."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, extra="ignore"
    )

    index_document: str = Field(
        default="index.html",
        validation_alias=AliasChoices(
            "BLOB_SITE_INDEX_DOCUMENT",
            "INDEX_DOCUMENT",
        ),
    )
    not_found_document: str = Field(
        default="404.html",
        validation_alias=AliasChoices(
            "BLOB_SITE_NOT_FOUND_DOCUMENT",
            "NOT_FOUND_DOCUMENT",
        ),
    )
    account_name: str = Field(
        default="devstoreaccount1",
        validation_alias="BLOB_SITE_ACCOUNT_NAME",
    )
    container_name: str = Field(
        default="$web",
        validation_alias="BLOB_SITE_CONTAINER_NAME",
    )
    buffer_pool_max_bytes: int = Field(
        default=64 * 1024 * 1024,
        validation_alias="BLOB_SITE_BUFFER_POOL_MAX_BYTES",
    )
    buffer_pool_max_per_class: int = Field(
        default=8,
        validation_alias="BLOB_SITE_BUFFER_POOL_MAX_PER_CLASS",
    )
    max_read_size: int = Field(
        default=4 * 1024 * 1024,
        validation_alias="BLOB_SITE_MAX_READ_SIZE",
    )

    @field_validator("index_document", "not_found_document")
    @classmethod
    def _require_document_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "document name must not be blank"
            raise ValueError(msg)
        return value

    @field_validator("max_read_size")
    @classmethod
    def _require_positive_read_size(cls, value: int) -> int:
        if value <= 0:
            msg = "max_read_size must be positive"
            raise ValueError(msg)
        return value


class CatalogSettings(BaseSettings):
    """Configuration for the relational catalog holding blob metadata."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, extra="ignore"
    )

    database_url: str = Field(
        default=DEFAULT_DATABASE_URL,
        validation_alias=AliasChoices(
            "BLOB_SITE_DATABASE_URL",
            "DATABASE_URL",
        ),
    )
    pool_size: int = Field(
        default=5,
        validation_alias="BLOB_SITE_DB_POOL_SIZE",
    )
    max_overflow: int = Field(
        default=10,
        validation_alias="BLOB_SITE_DB_MAX_OVERFLOW",
    )
    pool_timeout: float = Field(
        default=30.0,
        validation_alias="BLOB_SITE_DB_POOL_TIMEOUT",
    )
    pool_pre_ping: bool = Field(
        default=True,
        validation_alias="BLOB_SITE_DB_POOL_PRE_PING",
    )

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


def load_site_settings_from_env() -> SiteSettings:
    """Load site settings from environment variables.

    Returns:
        SiteSettings instance populated from environment variables.
    """
    return SiteSettings()


def load_catalog_settings_from_env() -> CatalogSettings:
    """Load catalog settings from environment variables.

    Returns:
        CatalogSettings instance populated from environment variables.
    """
    return CatalogSettings()
