"""Unit tests for response header composition."""

from __future__ import annotations

from datetime import datetime

from blob_site.headers import compose_headers, parse_service_metadata
from blob_site.models import BlobRecord


def _blob(**kwargs) -> BlobRecord:
    values = {
        "account_name": "devstoreaccount1",
        "container_name": "$web",
        "name": "index.html",
        "version_timestamp": datetime(2024, 3, 5, 10, 0, 0),
        "content_type": "text/html",
        "content_length": 0,
        "last_modified": datetime(2024, 3, 5, 10, 15, 0),
    }
    values.update(kwargs)
    return BlobRecord(**values)


class TestParseServiceMetadata:
    def test_parses_key_value_lines(self):
        result = parse_service_metadata(b"CacheControl:no-cache\r\nFoo:Bar\r\n")
        assert result == {"CacheControl": "no-cache", "Foo": "Bar"}

    def test_skips_malformed_lines(self):
        blob = b"\r\n   \r\nNoColon\r\n:value\r\nKey:\r\n  :  \r\nGood:yes"
        assert parse_service_metadata(blob) == {"Good": "yes"}

    def test_skips_line_with_blank_first_value_part(self):
        blob = b"CacheControl::max-age=60\r\nContentDisposition: :inline\r\n"
        assert parse_service_metadata(blob) == {}

    def test_value_keeps_later_colons(self):
        blob = b"ContentDisposition:attachment; filename=a:b.txt"
        assert parse_service_metadata(blob) == {
            "ContentDisposition": "attachment; filename=a:b.txt"
        }

    def test_empty_or_missing_blob(self):
        assert parse_service_metadata(None) == {}
        assert parse_service_metadata(b"") == {}

    def test_invalid_utf8_does_not_raise(self):
        result = parse_service_metadata(b"CacheControl:max-age=60\r\n\xff\xfe:x")
        assert result["CacheControl"] == "max-age=60"
        assert len(result) == 2


class TestComposeHeaders:
    """Test mapping of catalog records onto response headers."""

    def test_maps_recognised_keys_only(self):
        headers = compose_headers(
            _blob(service_metadata=b"CacheControl:no-cache\r\nFoo:Bar\r\n")
        )
        assert headers["Cache-Control"] == "no-cache"
        assert "Foo" not in headers
        assert all(value != "Bar" for value in headers.values())

    def test_content_type_and_last_modified(self):
        headers = compose_headers(_blob())
        assert headers == {
            "Content-Type": "text/html",
            "Last-Modified": "Tue, 05 03 2024 10:15:00 GMT",
        }

    def test_content_type_fallback(self):
        headers = compose_headers(_blob(content_type=None))
        assert headers["Content-Type"] == "application/octet-stream"

    def test_disposition_encoding_and_language(self):
        headers = compose_headers(
            _blob(
                service_metadata=(
                    b"ContentDisposition:inline\r\n"
                    b"ContentEncoding:gzip\r\n"
                    b"ContentLanguage:en-US\r\n"
                )
            )
        )
        assert headers["Content-Disposition"] == "inline"
        assert headers["Content-Encoding"] == "gzip"
        assert headers["Content-Language"] == "en-US"
