from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import unquote

from litestar import Litestar, Request, Response, get
from litestar.config.cors import CORSConfig
from litestar.handlers import asgi
from litestar.plugins.prometheus import PrometheusConfig, PrometheusController

from .errors import CatalogUnavailable
from .site import StaticSiteServer
from .sinks import TEXT_CONTENT_TYPE, ASGIResponseSink, write_text

if TYPE_CHECKING:
    from litestar.types import Receive, Scope, Send


prometheus_config = PrometheusConfig(app_name="blob_site", prefix="blob_site")

# Service routes live under a prefix so object names like "health" stay
# reachable through the site mount.
SERVICE_PREFIX = "/_blob_site"


class MetricsController(PrometheusController):
    path = f"{SERVICE_PREFIX}/metrics"


def _request_path(scope: Scope) -> str:
    raw_path = scope.get("raw_path")
    if raw_path:
        path = unquote(raw_path.split(b"?", 1)[0].decode("latin-1"))
    else:
        path = scope.get("path", "/")
    if not path.startswith("/"):
        path = f"/{path}"
    return path


def _catalog_unavailable(request: Request, exc: CatalogUnavailable) -> Response:
    return Response(
        content=str(exc),
        status_code=503,
        media_type=TEXT_CONTENT_TYPE,
    )


def create_app(server: StaticSiteServer | None = None) -> Litestar:
    """Create the static site ASGI application."""
    site = server or StaticSiteServer.from_env()

    @get(f"{SERVICE_PREFIX}/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @asgi(path="/", is_mount=True, copy_scope=True)
    async def site_handler(scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope=scope, receive=receive)
        sink = ASGIResponseSink(send)
        if request.method == "OPTIONS":
            sink.status_code = 204
        elif request.method != "GET":
            sink.status_code = 500
            await write_text(sink, "Only GET is supported")
        else:
            await site.serve(
                _request_path(scope),
                request.headers.get("if-modified-since"),
                sink,
            )
        await sink.close()

    async def startup(app: Litestar) -> None:
        await site.startup()

    async def shutdown(app: Litestar) -> None:
        await site.shutdown()

    cors_config = CORSConfig(
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Last-Modified", "Content-Disposition"],
    )

    return Litestar(
        route_handlers=[health, site_handler, MetricsController],
        on_startup=[startup],
        on_shutdown=[shutdown],
        cors_config=cors_config,
        middleware=[prometheus_config.middleware],
        exception_handlers={CatalogUnavailable: _catalog_unavailable},
    )


app = create_app()
