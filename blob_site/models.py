"""Catalog records read by the site."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime


@dataclass(frozen=True)
class BlobRecord:
    """A stored object as recorded in the ``Blob`` table."""

    account_name: str
    container_name: str
    name: str
    version_timestamp: datetime
    content_type: str | None
    content_length: int
    last_modified: datetime
    service_metadata: bytes | None = None
    metadata: bytes | None = None
    lease_state: int = 0
    is_committed: bool = True
    directory_path: str | None = None
    file_name: str | None = None

    @property
    def identity(self) -> tuple[str, str, str, datetime]:
        return (
            self.account_name,
            self.container_name,
            self.name,
            self.version_timestamp,
        )

    @property
    def backing_file(self) -> str | None:
        """Path of the single file holding the object's bytes, if recorded."""
        if not self.file_name:
            return None
        if self.directory_path:
            return os.path.join(self.directory_path, self.file_name)
        return self.file_name

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> BlobRecord:
        return cls(
            account_name=row["account_name"],
            container_name=row["container_name"],
            name=row["blob_name"],
            version_timestamp=row["version_timestamp"],
            content_type=row["content_type"],
            content_length=int(row["content_length"] or 0),
            last_modified=row["last_modification_time"],
            service_metadata=row["service_metadata"],
            metadata=row["metadata"],
            lease_state=row["lease_state"] or 0,
            is_committed=bool(row["is_committed"]),
            directory_path=row["directory_path"],
            file_name=row["file_name"],
        )


@dataclass(frozen=True)
class SegmentRecord:
    """One committed byte range of an object, held in a backing file."""

    file_path: str
    start_offset: int
    length: int
    block_id: str | None = None
    is_committed: bool = True

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> SegmentRecord:
        return cls(
            file_path=row["file_path"],
            start_offset=int(row["start_offset"]),
            length=int(row["length"]),
            block_id=row["block_id"],
            is_committed=bool(row["is_committed"]),
        )


@dataclass(frozen=True)
class ContainerRecord:
    account_name: str
    container_name: str
    last_modified: datetime
    service_metadata: bytes = b""
    metadata: bytes = b""
