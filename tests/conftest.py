from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

import pytest
from blob_site import SiteSettings, StaticSiteServer
from blob_site.assembler import BufferPool, SegmentStreamAssembler
from blob_site.catalog import CatalogGateway, blob_table, block_table, metadata
from sqlalchemy import create_engine, insert

if TYPE_CHECKING:
    from collections.abc import Generator, Sequence
    from pathlib import Path

    from pytest_databases._service import DockerService
    from sqlalchemy.engine import Engine


ACCOUNT = "devstoreaccount1"
CONTAINER = "$web"
VERSION = datetime(2024, 3, 5, 10, 0, 0)
LAST_MODIFIED = datetime(2024, 3, 5, 10, 15, 0, 500000)


class CatalogWriter:
    """Writes blob and block rows plus their backing files for tests."""

    def __init__(self, engine: Engine, root: Path):
        self.engine = engine
        self.root = root

    def backing_file(self, name: str, content: bytes) -> str:
        path = self.root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return str(path)

    def add_blob(
        self,
        name: str,
        segments: Sequence[tuple[str, int, int]] = (),
        *,
        content_type: str = "text/html",
        service_metadata: bytes = b"",
        last_modified: datetime = LAST_MODIFIED,
        version: datetime = VERSION,
        container: str = CONTAINER,
        uncommitted: Sequence[tuple[str, int, int]] = (),
        directory_path: str | None = None,
        file_name: str | None = None,
        content_length: int | None = None,
    ) -> None:
        if content_length is None:
            content_length = sum(length for _, _, length in segments)
        identity = {
            "account_name": ACCOUNT,
            "container_name": container,
            "blob_name": name,
            "version_timestamp": version,
        }
        with self.engine.begin() as connection:
            connection.execute(
                insert(blob_table).values(
                    **identity,
                    last_modification_time=last_modified,
                    content_length=content_length,
                    content_type=content_type,
                    service_metadata=service_metadata,
                    metadata=b"",
                    is_committed=True,
                    directory_path=directory_path,
                    file_name=file_name,
                )
            )
            blocks = [(segment, True) for segment in segments] + [
                (segment, False) for segment in uncommitted
            ]
            for index, ((path, offset, length), committed) in enumerate(blocks):
                connection.execute(
                    insert(block_table).values(
                        **identity,
                        is_committed=committed,
                        block_id=f"block-{len(blocks) - index:04d}",
                        length=length,
                        start_offset=offset,
                        file_path=path,
                    )
                )

    def add_file_blob(self, name: str, content: bytes, **kwargs) -> str:
        """Add an object stored as a single backing file with one segment."""
        path = self.backing_file(f"blocks/{name.replace('/', '_')}.bin", content)
        self.add_blob(name, [(path, 0, len(content))], **kwargs)
        return path


@pytest.fixture
def catalog_engine(tmp_path: Path) -> Generator[Engine]:
    engine = create_engine(f"sqlite:///{tmp_path / 'catalog.db'}")
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def gateway(catalog_engine: Engine) -> CatalogGateway:
    return CatalogGateway(
        catalog_engine, account_name=ACCOUNT, container_name=CONTAINER
    )


@pytest.fixture
def catalog_writer(catalog_engine: Engine, tmp_path: Path) -> CatalogWriter:
    return CatalogWriter(catalog_engine, tmp_path / "storage")


@pytest.fixture
def buffer_pool() -> BufferPool:
    return BufferPool(max_bytes=1024 * 1024, max_per_class=4)


@pytest.fixture
def site_settings() -> SiteSettings:
    return SiteSettings()


@pytest.fixture
def server(
    site_settings: SiteSettings, gateway: CatalogGateway, buffer_pool: BufferPool
) -> StaticSiteServer:
    return StaticSiteServer(
        site_settings,
        catalog=gateway,
        assembler=SegmentStreamAssembler(buffer_pool),
    )


@dataclass
class PostgresService:
    host: str
    port: int
    user: str
    password: str
    database: str

    @property
    def url(self) -> str:
        return (
            f"postgresql+psycopg://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )


@pytest.fixture(scope="session")
def postgres_user() -> str:
    return os.getenv("POSTGRES_USER", "postgres")


@pytest.fixture(scope="session")
def postgres_password() -> str:
    return os.getenv("POSTGRES_PASSWORD", "postgres")


@pytest.fixture(scope="session")
def postgres_service(
    docker_service: DockerService,
    postgres_user: str,
    postgres_password: str,
) -> Generator[PostgresService]:
    import psycopg
    from pytest_databases.types import ServiceContainer

    def check(_service: ServiceContainer) -> bool:
        try:
            with psycopg.connect(
                host=_service.host,
                port=_service.port,
                user=postgres_user,
                password=postgres_password,
                dbname="postgres",
                connect_timeout=5,
            ) as connection:
                connection.execute("SELECT 1")
        except psycopg.OperationalError:
            return False
        return True

    env = {
        "POSTGRES_USER": postgres_user,
        "POSTGRES_PASSWORD": postgres_password,
    }

    with docker_service.run(
        image="postgres:16-alpine",
        name="blob-site-catalog",
        container_port=5432,
        timeout=30,
        pause=0.5,
        env=env,
        check=check,
    ) as service:
        yield PostgresService(
            host=service.host,
            port=service.port,
            user=postgres_user,
            password=postgres_password,
            database="postgres",
        )


@pytest.fixture
def postgres_engine(postgres_service: PostgresService) -> Generator[Engine]:
    engine = create_engine(postgres_service.url)
    metadata.drop_all(engine)
    metadata.create_all(engine)
    yield engine
    metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def postgres_writer(postgres_engine: Engine, tmp_path: Path) -> CatalogWriter:
    return CatalogWriter(postgres_engine, tmp_path / "storage")
