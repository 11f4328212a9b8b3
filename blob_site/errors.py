"""Exceptions raised while resolving and streaming site objects."""

from __future__ import annotations


class BlobSiteError(Exception):
    """Base exception for all static site errors."""


class CatalogUnavailable(BlobSiteError):
    """Raised when the metadata catalog cannot be reached."""


class BackingStoreError(BlobSiteError):
    """Raised when a backing block file cannot satisfy a segment."""

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


class BackingFileMissing(BackingStoreError):
    """Raised when a backing file or its directory does not exist."""

    def __init__(self, path: str):
        super().__init__(f"backing file not found: {path}", path)


class BackingStoreCorrupt(BackingStoreError):
    """Raised when a backing file holds fewer bytes than a segment declares."""

    def __init__(self, path: str, offset: int, expected: int, actual: int):
        super().__init__(
            f"short read from {path} at offset {offset}: "
            f"expected {expected} bytes, got {actual}",
            path,
        )
        self.offset = offset
        self.expected = expected
        self.actual = actual
