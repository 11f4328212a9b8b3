from __future__ import annotations

from typing import TYPE_CHECKING

from .conditional import format_timestamp

if TYPE_CHECKING:
    from .models import BlobRecord

DEFAULT_CONTENT_TYPE = "application/octet-stream"

SERVICE_METADATA_HEADERS = {
    "CacheControl": "Cache-Control",
    "ContentDisposition": "Content-Disposition",
    "ContentEncoding": "Content-Encoding",
    "ContentLanguage": "Content-Language",
}


def parse_service_metadata(blob: bytes | str | None) -> dict[str, str]:
    """Decode a ``Key:Value`` per line service metadata blob.

    Lines are CRLF separated. Blank lines are skipped, as are lines whose key
    or whose text up to the next colon is blank. Only the first colon splits,
    so values may hold colons. A repeated key keeps its last value.
    """
    if not blob:
        return {}
    text = blob.decode("utf-8", errors="replace") if isinstance(blob, bytes) else blob
    properties: dict[str, str] = {}
    for line in text.split("\r\n"):
        if not line.strip() or ":" not in line:
            continue
        key, value = line.split(":", 1)
        key = key.strip()
        value = value.strip()
        if not key or not value.split(":", 1)[0].strip():
            continue
        properties[key] = value
    return properties


def compose_headers(blob: BlobRecord) -> dict[str, str]:
    headers = {
        "Content-Type": blob.content_type or DEFAULT_CONTENT_TYPE,
        "Last-Modified": format_timestamp(blob.last_modified),
    }
    properties = parse_service_metadata(blob.service_metadata)
    for key, header in SERVICE_METADATA_HEADERS.items():
        value = properties.get(key)
        if value is not None:
            headers[header] = value
    return headers
