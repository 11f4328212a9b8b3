from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Integer,
    LargeBinary,
    MetaData,
    String,
    Table,
    create_engine,
    insert,
    select,
    true,
)
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError

from ._threads import run_sync
from .errors import CatalogUnavailable
from .models import BlobRecord, ContainerRecord, SegmentRecord

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Connection, Engine

    from .settings import CatalogSettings, SiteSettings

LOG = logging.getLogger("blob_site.catalog")

WEB_CONTAINER_SERVICE_METADATA = b"SASIdentifiers:\r\n"

metadata = MetaData()

blob_table = Table(
    "Blob",
    metadata,
    Column("AccountName", String(256), key="account_name", primary_key=True),
    Column("ContainerName", String(256), key="container_name", primary_key=True),
    Column("BlobName", String(1024), key="blob_name", primary_key=True),
    Column("VersionTimestamp", DateTime, key="version_timestamp", primary_key=True),
    Column("BlobType", Integer, key="blob_type", default=0),
    Column("LastModificationTime", DateTime, key="last_modification_time"),
    Column("ContentLength", BigInteger, key="content_length", default=0),
    Column("ContentType", String(256), key="content_type"),
    Column("ServiceMetadata", LargeBinary, key="service_metadata"),
    Column("Metadata", LargeBinary, key="metadata"),
    Column("LeaseState", Integer, key="lease_state", default=0),
    Column("IsCommitted", Boolean, key="is_committed", default=True),
    Column("DirectoryPath", String(1024), key="directory_path"),
    Column("FileName", String(1024), key="file_name"),
)

block_table = Table(
    "BlockData",
    metadata,
    Column("AccountName", String(256), key="account_name"),
    Column("ContainerName", String(256), key="container_name"),
    Column("BlobName", String(1024), key="blob_name"),
    Column("VersionTimestamp", DateTime, key="version_timestamp"),
    Column("IsCommitted", Boolean, key="is_committed"),
    Column("BlockId", String(128), key="block_id"),
    Column("Length", BigInteger, key="length"),
    Column("StartOffset", BigInteger, key="start_offset"),
    Column("FilePath", String(1024), key="file_path"),
)

container_table = Table(
    "BlobContainer",
    metadata,
    Column("AccountName", String(256), key="account_name", primary_key=True),
    Column("ContainerName", String(256), key="container_name", primary_key=True),
    Column("LastModificationTime", DateTime, key="last_modification_time"),
    Column("ServiceMetadata", LargeBinary, key="service_metadata"),
    Column("Metadata", LargeBinary, key="metadata"),
    Column("LeaseId", String(36), key="lease_id"),
    Column("LeaseState", Integer, key="lease_state", default=0),
    Column("LeaseDuration", BigInteger, key="lease_duration", default=0),
    Column("LeaseEndTime", DateTime, key="lease_end_time"),
    Column("IsLeaseOp", Boolean, key="is_lease_op", default=False),
)


class Catalog(Protocol):
    """Read-only view of the catalog used while serving a request."""

    async def resolve_object(self, name: str) -> BlobRecord | None: ...

    async def list_segments(self, blob: BlobRecord) -> list[SegmentRecord]: ...


class CatalogGateway:
    """Pooled SQL gateway over the emulator catalog tables."""

    def __init__(self, engine: Engine, *, account_name: str, container_name: str):
        self._engine = engine
        self._account_name = account_name
        self._container_name = container_name

    @classmethod
    def from_settings(
        cls, catalog: CatalogSettings, site: SiteSettings
    ) -> CatalogGateway:
        engine_kwargs: dict[str, object] = {"pool_pre_ping": catalog.pool_pre_ping}
        if not catalog.is_sqlite:
            engine_kwargs.update(
                pool_size=catalog.pool_size,
                max_overflow=catalog.max_overflow,
                pool_timeout=catalog.pool_timeout,
            )
        engine = create_engine(catalog.database_url, **engine_kwargs)
        return cls(
            engine,
            account_name=site.account_name,
            container_name=site.container_name,
        )

    @property
    def engine(self) -> Engine:
        return self._engine

    async def resolve_object(self, name: str) -> BlobRecord | None:
        """Return the newest version of ``name`` in the site container."""
        return await run_sync(self._resolve_object, name)

    async def list_segments(self, blob: BlobRecord) -> list[SegmentRecord]:
        """Return the committed segments of ``blob`` in catalog order."""
        return await run_sync(self._list_segments, blob)

    async def ensure_web_container(self) -> bool:
        """Insert the site container record; ``False`` if it already existed."""
        return await run_sync(self._ensure_web_container)

    def dispose(self) -> None:
        self._engine.dispose()

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        try:
            with self._engine.connect() as connection:
                yield connection
        except (OperationalError, InterfaceError) as error:
            LOG.warning("catalog unavailable: %s", error.orig or error)
            msg = f"catalog unavailable: {error.orig or error}"
            raise CatalogUnavailable(msg) from error

    def _resolve_object(self, name: str) -> BlobRecord | None:
        statement = (
            select(blob_table)
            .where(
                blob_table.c.container_name == self._container_name,
                blob_table.c.blob_name == name,
            )
            .order_by(blob_table.c.version_timestamp.desc())
            .limit(1)
        )
        with self._connect() as connection:
            row = connection.execute(statement).mappings().first()
        if row is None:
            LOG.debug("no object %r in container %s", name, self._container_name)
            return None
        return BlobRecord.from_row(row)

    def _list_segments(self, blob: BlobRecord) -> list[SegmentRecord]:
        statement = select(block_table).where(
            block_table.c.account_name == blob.account_name,
            block_table.c.container_name == blob.container_name,
            block_table.c.blob_name == blob.name,
            block_table.c.version_timestamp == blob.version_timestamp,
            block_table.c.is_committed == true(),
        )
        with self._connect() as connection:
            rows = connection.execute(statement).mappings().all()
        return [SegmentRecord.from_row(row) for row in rows]

    def _ensure_web_container(self) -> bool:
        container = ContainerRecord(
            account_name=self._account_name,
            container_name=self._container_name,
            last_modified=datetime.now(UTC).replace(tzinfo=None),
            service_metadata=WEB_CONTAINER_SERVICE_METADATA,
        )
        statement = insert(container_table).values(
            account_name=container.account_name,
            container_name=container.container_name,
            last_modification_time=container.last_modified,
            service_metadata=container.service_metadata,
            metadata=container.metadata,
            lease_state=0,
            lease_duration=0,
            is_lease_op=False,
        )
        try:
            with self._connect() as connection, connection.begin():
                connection.execute(statement)
        except IntegrityError:
            LOG.debug(
                "container %s/%s already exists",
                self._account_name,
                self._container_name,
            )
            return False
        LOG.info(
            "created container %s/%s", self._account_name, self._container_name
        )
        return True
