"""Serve an in-memory body with HTTP Range support.

Used for media that only exists locally (decrypted audio), where the origin
server cannot answer range requests for us.
"""

from __future__ import annotations

import mimetypes
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime


@dataclass
class RangeResponse:
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


def parse_range_header(value: str | None, size: int) -> tuple[int, int] | None:
    """Parse a single ``bytes=`` range into inclusive ``(start, end)``.

    Returns ``None`` when there is nothing usable (missing, malformed or
    multi-range), ``(size, size)`` as an unsatisfiable marker when the range
    does not overlap the body.
    """
    if not value:
        return None
    value = value.strip()
    if not value.lower().startswith("bytes="):
        return None
    spec = value[len("bytes="):].strip()
    if not spec or "," in spec or "-" not in spec:
        return None
    start_s, end_s = (part.strip() for part in spec.split("-", 1))
    try:
        if not start_s:
            suffix = int(end_s)
            if suffix < 0:
                return None
            if suffix == 0 or size == 0:
                return (size, size)
            return (max(0, size - suffix), size - 1)
        start = int(start_s)
        end = int(end_s) if end_s else size - 1
    except ValueError:
        return None
    if start < 0 or end < start:
        return None
    if start >= size:
        return (size, size)
    return (start, min(end, size - 1))


def _if_range_matches(if_range: str | None, last_modified: datetime) -> bool:
    if not if_range:
        return True
    try:
        stamp = parsedate_to_datetime(if_range)
    except (TypeError, ValueError):
        # Entity tags never match: this body has none.
        return False
    if stamp is None:
        return False
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return int(stamp.timestamp()) >= int(last_modified.timestamp())


def serve_bytes(
    data: bytes,
    filename: str,
    *,
    range_header: str | None = None,
    if_range: str | None = None,
    last_modified: datetime | None = None,
) -> RangeResponse:
    last_modified = last_modified or datetime.now(timezone.utc)
    size = len(data)
    content_type, _ = mimetypes.guess_type(os.path.basename(filename or ""))
    headers = {
        "Content-Type": content_type or "application/octet-stream",
        "Accept-Ranges": "bytes",
        "Last-Modified": format_datetime(last_modified.astimezone(timezone.utc), usegmt=True),
    }

    byte_range = None
    if _if_range_matches(if_range, last_modified):
        byte_range = parse_range_header(range_header, size)

    if byte_range is None:
        headers["Content-Length"] = str(size)
        return RangeResponse(200, headers, data)

    start, end = byte_range
    if start >= size:
        headers["Content-Range"] = f"bytes */{size}"
        headers["Content-Length"] = "0"
        return RangeResponse(416, headers, b"")

    chunk = data[start:end + 1]
    headers["Content-Range"] = f"bytes {start}-{end}/{size}"
    headers["Content-Length"] = str(len(chunk))
    return RangeResponse(206, headers, chunk)
