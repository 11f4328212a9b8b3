"""Static website serving for blobs reassembled from backing block files."""

from .app import create_app
from .settings import CatalogSettings, SiteSettings
from .site import Outcome, RenderedResponse, StaticSiteServer

__all__ = [
    "CatalogSettings",
    "Outcome",
    "RenderedResponse",
    "SiteSettings",
    "StaticSiteServer",
    "create_app",
]
