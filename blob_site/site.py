from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .assembler import BufferPool, SegmentStreamAssembler
from .catalog import CatalogGateway
from .conditional import is_not_modified
from .errors import BackingFileMissing, BackingStoreCorrupt
from .headers import compose_headers
from .models import SegmentRecord
from .settings import (
    CatalogSettings,
    SiteSettings,
    load_catalog_settings_from_env,
    load_site_settings_from_env,
)
from .sinks import BufferedSink, write_text

if TYPE_CHECKING:
    from .catalog import Catalog
    from .models import BlobRecord
    from .sinks import ResponseSink

LOG = logging.getLogger("blob_site.site")

NO_NOT_FOUND_DOCUMENT = "404 Not Found - No Default 404 Page was found either"


class Outcome(enum.StrEnum):
    SERVED = "served"
    NOT_MODIFIED = "not_modified"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass
class RenderedResponse:
    status_code: int
    headers: dict[str, str]
    body: bytes
    outcome: Outcome


class StaticSiteServer:
    def __init__(
        self,
        site: SiteSettings,
        catalog_settings: CatalogSettings | None = None,
        *,
        catalog: Catalog | None = None,
        assembler: SegmentStreamAssembler | None = None,
    ):
        self._site_settings = site
        self._catalog_settings = catalog_settings
        self._catalog = catalog
        self._owns_catalog = False
        self._assembler = assembler or SegmentStreamAssembler(
            BufferPool(
                max_bytes=site.buffer_pool_max_bytes,
                max_per_class=site.buffer_pool_max_per_class,
            ),
            max_read_size=site.max_read_size,
        )

    @property
    def settings(self) -> SiteSettings:
        return self._site_settings

    @property
    def assembler(self) -> SegmentStreamAssembler:
        return self._assembler

    async def startup(self) -> None:
        if self._catalog is None:
            if self._catalog_settings is None:
                message = "no catalog configured"
                raise RuntimeError(message)
            self._catalog = CatalogGateway.from_settings(
                self._catalog_settings, self._site_settings
            )
            self._owns_catalog = True
        if isinstance(self._catalog, CatalogGateway):
            await self._catalog.ensure_web_container()
        LOG.info(
            "static site ready (container=%s, index=%s, not_found=%s)",
            self._site_settings.container_name,
            self._site_settings.index_document,
            self._site_settings.not_found_document,
        )

    async def shutdown(self) -> None:
        if self._owns_catalog and isinstance(self._catalog, CatalogGateway):
            self._catalog.dispose()
            self._catalog = None
            self._owns_catalog = False

    async def serve(
        self, path: str, if_modified_since: str | None, sink: ResponseSink
    ) -> Outcome:
        """Resolve ``path`` to an object and write the response to ``sink``.

        Tries the exact object name first, then the index document under the
        path, then the not-found document with a 404 status.

        Raises:
            CatalogUnavailable: The catalog could not be queried.
        """
        LOG.debug("serve path=%s", path)
        blob = await self._resolve(self._object_name(path))
        if blob is None:
            blob = await self._resolve(self._index_name(path))
        if blob is None:
            return await self._serve_not_found(sink)
        if is_not_modified(if_modified_since, blob.last_modified):
            LOG.debug("not modified: %s", blob.name)
            sink.status_code = 304
            return Outcome.NOT_MODIFIED
        return await self._write_blob(blob, sink)

    async def render(
        self, path: str, if_modified_since: str | None = None
    ) -> RenderedResponse:
        """Serve ``path`` into memory and return the complete response."""
        sink = BufferedSink()
        outcome = await self.serve(path, if_modified_since, sink)
        await sink.close()
        return RenderedResponse(
            status_code=sink.status_code,
            headers=dict(sink.headers),
            body=sink.body,
            outcome=outcome,
        )

    @staticmethod
    def _object_name(path: str) -> str:
        return path[1:] if path.startswith("/") else path

    def _index_name(self, path: str) -> str:
        # A trailing separator is kept, so "/a/" looks up "a//index.html".
        prefix = self._object_name(path)
        if not prefix:
            return self._site_settings.index_document
        return f"{prefix}/{self._site_settings.index_document}"

    async def _resolve(self, name: str) -> BlobRecord | None:
        if self._catalog is None:
            message = "static site not started"
            raise RuntimeError(message)
        return await self._catalog.resolve_object(name)

    async def _serve_not_found(self, sink: ResponseSink) -> Outcome:
        sink.status_code = 404
        blob = await self._resolve(self._site_settings.not_found_document)
        if blob is None:
            LOG.debug(
                "no not-found document %s", self._site_settings.not_found_document
            )
            await write_text(sink, NO_NOT_FOUND_DOCUMENT)
            return Outcome.NOT_FOUND
        outcome = await self._write_blob(blob, sink)
        return Outcome.NOT_FOUND if outcome is Outcome.SERVED else outcome

    async def _write_blob(self, blob: BlobRecord, sink: ResponseSink) -> Outcome:
        sink.headers.update(compose_headers(blob))
        segments = await self._content_segments(blob)
        try:
            written = await self._assembler.stream(segments, sink)
        except BackingFileMissing as error:
            LOG.error("backing file missing for %s: %s", blob.name, error.path)
            sink.status_code = 500
            await write_text(
                sink, f"File backing blocks were not found for '{blob.name}'"
            )
            return Outcome.ERROR
        except BackingStoreCorrupt as error:
            LOG.error("backing file truncated for %s: %s", blob.name, error)
            sink.status_code = 500
            await write_text(
                sink, f"File backing blocks were incomplete for '{blob.name}'"
            )
            return Outcome.ERROR
        LOG.debug(
            "served %s (%d bytes, %d segments)", blob.name, written, len(segments)
        )
        return Outcome.SERVED

    async def _content_segments(self, blob: BlobRecord) -> list[SegmentRecord]:
        assert self._catalog is not None
        segments = await self._catalog.list_segments(blob)
        if segments:
            return segments
        backing_file = blob.backing_file
        if backing_file is None or blob.content_length <= 0:
            return []
        return [
            SegmentRecord(
                file_path=backing_file, start_offset=0, length=blob.content_length
            )
        ]

    @classmethod
    def from_env(cls) -> StaticSiteServer:
        """Create a StaticSiteServer instance from environment variables.

        Returns:
            StaticSiteServer configured from environment variables.
        """
        return cls(
            site=load_site_settings_from_env(),
            catalog_settings=load_catalog_settings_from_env(),
        )
