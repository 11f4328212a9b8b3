"""Response sinks the site writes status, headers and body bytes into."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from litestar.types import Send

LOG = logging.getLogger("blob_site.sinks")

TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


class ResponseSink(Protocol):
    """Destination for one response.

    ``status_code`` and ``headers`` may change until the first body byte is
    written. ``write`` must copy the data before returning because the caller
    reuses the underlying buffer.
    """

    status_code: int
    headers: dict[str, str]

    @property
    def started(self) -> bool: ...

    async def write(self, data: bytes | memoryview) -> None: ...

    async def flush(self) -> None: ...

    async def close(self) -> None: ...


class BufferedSink:
    """Collects a whole response in memory."""

    def __init__(self) -> None:
        self.status_code = 200
        self.headers: dict[str, str] = {}
        self.closed = False
        self._body = bytearray()

    @property
    def started(self) -> bool:
        return bool(self._body)

    @property
    def body(self) -> bytes:
        return bytes(self._body)

    async def write(self, data: bytes | memoryview) -> None:
        self._body += data

    async def flush(self) -> None:
        return None

    async def close(self) -> None:
        self.closed = True


class ASGIResponseSink:
    """Writes a response to an ASGI ``send`` callable.

    The response start message goes out with the first body write (or on
    close), so status and headers stay mutable until then.
    """

    def __init__(self, send: Send) -> None:
        self.headers: dict[str, str] = {}
        self._send = send
        self._status_code = 200
        self._started = False
        self._closed = False

    @property
    def status_code(self) -> int:
        return self._status_code

    @status_code.setter
    def status_code(self, value: int) -> None:
        if self._started and value != self._status_code:
            LOG.warning(
                "response already started with status %s, cannot change to %s",
                self._status_code,
                value,
            )
            return
        self._status_code = value

    @property
    def started(self) -> bool:
        return self._started

    async def write(self, data: bytes | memoryview) -> None:
        if not data:
            return
        await self._start()
        await self._send(
            {"type": "http.response.body", "body": bytes(data), "more_body": True}
        )

    async def flush(self) -> None:
        return None

    async def close(self) -> None:
        if self._closed:
            return
        await self._start()
        await self._send(
            {"type": "http.response.body", "body": b"", "more_body": False}
        )
        self._closed = True

    async def _start(self) -> None:
        if self._started:
            return
        self._started = True
        raw_headers = [
            (name.lower().encode("latin-1"), value.encode("latin-1", "replace"))
            for name, value in self.headers.items()
        ]
        await self._send(
            {
                "type": "http.response.start",
                "status": self._status_code,
                "headers": raw_headers,
            }
        )


async def write_text(sink: ResponseSink, text: str) -> None:
    """Write a plain-text body, replacing any headers not yet sent."""
    if not sink.started:
        sink.headers.clear()
        sink.headers["Content-Type"] = TEXT_CONTENT_TYPE
    await sink.write(text.encode("utf-8"))
    await sink.flush()
