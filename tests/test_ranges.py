from __future__ import annotations

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import pytest

from engine.ranges import parse_range_header, serve_bytes

DATA = bytes(range(100))
STAMP = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        (None, None),
        ("", None),
        ("items=0-1", None),
        ("bytes=0-1,5-6", None),
        ("bytes=abc", None),
        ("bytes=5-2", None),
        ("bytes=0-9", (0, 9)),
        ("bytes=90-", (90, 99)),
        ("bytes=90-500", (90, 99)),
        ("bytes=-10", (90, 99)),
        ("bytes=-500", (0, 99)),
        ("bytes=100-", (100, 100)),
        ("bytes=-0", (100, 100)),
    ],
)
def test_parse_range_header(header, expected) -> None:
    assert parse_range_header(header, len(DATA)) == expected


def test_full_body_without_range() -> None:
    resp = serve_bytes(DATA, "Song - Artist.mp3", last_modified=STAMP)
    assert resp.status_code == 200
    assert resp.body == DATA
    assert resp.headers["Content-Length"] == "100"
    assert resp.headers["Accept-Ranges"] == "bytes"
    assert resp.headers["Content-Type"] == "audio/mpeg"
    assert resp.headers["Last-Modified"] == "Wed, 01 May 2024 12:00:00 GMT"


def test_partial_body() -> None:
    resp = serve_bytes(DATA, "a.mp3", range_header="bytes=10-19", last_modified=STAMP)
    assert resp.status_code == 206
    assert resp.body == DATA[10:20]
    assert resp.headers["Content-Range"] == "bytes 10-19/100"
    assert resp.headers["Content-Length"] == "10"


def test_unsatisfiable_range() -> None:
    resp = serve_bytes(DATA, "a.mp3", range_header="bytes=200-300", last_modified=STAMP)
    assert resp.status_code == 416
    assert resp.headers["Content-Range"] == "bytes */100"
    assert resp.body == b""


def test_malformed_range_serves_full_body() -> None:
    resp = serve_bytes(DATA, "a.mp3", range_header="bytes=0-1,4-5", last_modified=STAMP)
    assert resp.status_code == 200
    assert resp.body == DATA


def test_if_range_date_controls_partial_response() -> None:
    fresh = format_datetime(STAMP, usegmt=True)
    stale = format_datetime(STAMP - timedelta(hours=1), usegmt=True)

    assert serve_bytes(DATA, "a.mp3", range_header="bytes=0-1", if_range=fresh, last_modified=STAMP).status_code == 206
    assert serve_bytes(DATA, "a.mp3", range_header="bytes=0-1", if_range=stale, last_modified=STAMP).status_code == 200
    assert serve_bytes(DATA, "a.mp3", range_header="bytes=0-1", if_range='"etag"', last_modified=STAMP).status_code == 200


def test_unknown_extension_is_octet_stream() -> None:
    resp = serve_bytes(b"x", "blob.unknownext", last_modified=STAMP)
    assert resp.headers["Content-Type"] == "application/octet-stream"
