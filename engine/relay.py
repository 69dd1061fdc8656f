"""Resolve playable URLs and relay their bytes to the caller."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator
from urllib.parse import quote_plus

import requests

from config.settings import (
    ENCRYPTED_SOURCE,
    PROBE_TIMEOUT_SECONDS,
    REFERER_BILIBILI,
    REFERER_MIGU,
    REFERER_QQ,
    STREAM_CHUNK_SIZE,
    SWITCH_EXCLUDED_SOURCES,
    UA_COMMON,
    UA_MOBILE,
    UPSTREAM_TIMEOUT_SECONDS,
)
from engine.errors import BadRequestError, DecryptError, NotFoundError, UpstreamError
from engine.json_utils import log_event
from engine.models import Track
from engine.ranges import serve_bytes
from engine.registry import Capability, CapabilityRegistry

logger = logging.getLogger(__name__)

# Re-derived by the relay instead of copied from upstream.
_EXCLUDED_UPSTREAM_HEADERS = frozenset({
    "transfer-encoding",
    "date",
    "access-control-allow-origin",
    "connection",
    "content-disposition",
})

PROBE_RANGE = "bytes=0-1"


def content_disposition(filename: str) -> str:
    encoded = quote_plus(filename, safe="").replace("+", "%20")
    return f"attachment; filename=\"{encoded}\"; filename*=utf-8''{encoded}"


def filter_upstream_headers(headers) -> dict[str, str]:
    return {k: v for k, v in headers.items() if k.lower() not in _EXCLUDED_UPSTREAM_HEADERS}


def parse_total_size(content_range: str | None, content_length: str | None) -> int:
    """Total body size from ``Content-Range`` (``bytes 0-1/N``), else ``Content-Length``."""
    if content_range:
        parts = content_range.split("/")
        if len(parts) == 2:
            try:
                return int(parts[1].strip())
            except ValueError:
                return 0
    try:
        return max(0, int(content_length)) if content_length is not None else 0
    except ValueError:
        return 0


@dataclass
class InspectResult:
    valid: bool
    url: str = ""
    size: int = 0
    bitrate_kbps: int | None = None

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "url": self.url,
            "size": f"{self.size / 1024 / 1024:.1f} MB",
            "size_bytes": self.size,
            "bitrate": f"{self.bitrate_kbps} kbps" if self.bitrate_kbps is not None else "-",
            "bitrate_kbps": self.bitrate_kbps,
        }


@dataclass
class RelayResponse:
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | Iterator[bytes] = b""


class StreamRelay:
    def __init__(
        self,
        registry: CapabilityRegistry,
        *,
        session: requests.Session | None = None,
        encrypted_source: str = ENCRYPTED_SOURCE,
        probe_timeout: float = PROBE_TIMEOUT_SECONDS,
        upstream_timeout: float = UPSTREAM_TIMEOUT_SECONDS,
    ) -> None:
        self.registry = registry
        self.session = session or requests.Session()
        self.encrypted_source = encrypted_source
        self.probe_timeout = probe_timeout
        self.upstream_timeout = upstream_timeout

    def build_upstream_headers(self, source: str, range_header: str | None = None) -> dict[str, str]:
        headers = {"User-Agent": UA_COMMON}
        if range_header:
            headers["Range"] = range_header
        if source == "bilibili":
            headers["Referer"] = REFERER_BILIBILI
        elif source == "migu":
            headers["User-Agent"] = UA_MOBILE
            headers["Referer"] = REFERER_MIGU
        elif source == "qq":
            headers["Referer"] = REFERER_QQ
        # Read at build time: cookies may have been replaced since startup.
        cookie = self.registry.credentials.get(source)
        if cookie:
            headers["Cookie"] = cookie
        return headers

    def _is_encrypted(self, source: str) -> bool:
        return source == self.encrypted_source and self.registry.supports(source, Capability.ENCRYPTED_DOWNLOAD)

    def resolve_url(self, track: Track) -> str | None:
        """Playable URL for a track, or ``None`` when it cannot be resolved."""
        try:
            if self._is_encrypted(track.source):
                info = self.registry.lookup(track.source, Capability.ENCRYPTED_DOWNLOAD)(track)
                return info.url or None
            fn = self.registry.lookup(track.source, Capability.DOWNLOAD_URL)
            if fn is None:
                return None
            return fn(track) or None
        except Exception as exc:
            log_event(logging.INFO, "resolve_url_failed", source=track.source, id=track.id, error=str(exc))
            return None

    def _ranged_probe(self, url: str, source: str):
        resp = self.session.get(
            url,
            headers=self.build_upstream_headers(source, PROBE_RANGE),
            timeout=self.probe_timeout,
            stream=True,
        )
        try:
            return resp.status_code, resp.headers.get("Content-Range"), resp.headers.get("Content-Length")
        finally:
            resp.close()

    def probe(self, track: Track) -> bool:
        """Liveness probe: does the track resolve to a URL that answers a 2-byte range?"""
        if track is None or not track.id or not track.source:
            return False
        if track.source in SWITCH_EXCLUDED_SOURCES:
            return False
        if not self.registry.supports(track.source, Capability.DOWNLOAD_URL):
            return False
        url = self.resolve_url(Track(id=track.id, source=track.source))
        if not url:
            return False
        try:
            status, _, _ = self._ranged_probe(url, track.source)
        except requests.RequestException as exc:
            log_event(logging.INFO, "probe_failed", source=track.source, id=track.id, error=str(exc))
            return False
        return status in (200, 206)

    def inspect(self, track_id: str, source: str, duration: int | None = None) -> InspectResult:
        """Validity, size and estimated bitrate of a track's media. Never raises."""
        url = self.resolve_url(Track(id=track_id or "", source=source or ""))
        if not url:
            return InspectResult(valid=False)
        try:
            status, content_range, content_length = self._ranged_probe(url, source)
        except requests.RequestException as exc:
            log_event(logging.INFO, "inspect_failed", source=source, id=track_id, error=str(exc))
            return InspectResult(valid=False, url=url)

        if status not in (200, 206):
            return InspectResult(valid=False, url=url)
        size = parse_total_size(content_range, content_length)
        bitrate = None
        if size > 0 and duration and duration > 0:
            bitrate = int(size * 8 // duration // 1000)
        return InspectResult(valid=True, url=url, size=size, bitrate_kbps=bitrate)

    def open(
        self,
        track_id: str,
        source: str,
        *,
        name: str = "Unknown",
        artist: str = "Unknown",
        range_header: str | None = None,
        if_range: str | None = None,
    ) -> RelayResponse:
        if not track_id or not source:
            raise BadRequestError("Missing params")
        track = Track(id=track_id, source=source, name=name, artist=artist)
        filename = f"{name} - {artist}.mp3"
        if self._is_encrypted(source):
            return self._open_decrypted(track, filename, range_header, if_range)
        return self._open_direct(track, filename, range_header)

    def _open_decrypted(self, track, filename, range_header, if_range) -> RelayResponse:
        source = track.source
        try:
            info = self.registry.lookup(source, Capability.ENCRYPTED_DOWNLOAD)(track)
        except Exception as exc:
            raise UpstreamError(f"{source} download info error") from exc
        if not info or not info.url:
            raise UpstreamError(f"{source} download info error")

        # Decryption needs the complete ciphertext, so Range is not forwarded.
        try:
            resp = self.session.get(
                info.url,
                headers=self.build_upstream_headers(source),
                timeout=self.upstream_timeout,
            )
        except requests.RequestException as exc:
            raise UpstreamError(f"{source} stream error") from exc
        if resp.status_code >= 400:
            raise UpstreamError(f"{source} stream error: upstream status {resp.status_code}")
        ciphertext = resp.content

        decrypt = self.registry.lookup(source, Capability.DECRYPT)
        if decrypt is None:
            raise DecryptError("Decrypt failed")
        try:
            plaintext = decrypt(ciphertext, info.auth_token)
        except Exception as exc:
            log_event(logging.ERROR, "decrypt_failed", source=source, id=track.id, error=str(exc))
            raise DecryptError("Decrypt failed") from exc
        if plaintext is None:
            raise DecryptError("Decrypt failed")

        served = serve_bytes(
            plaintext,
            filename,
            range_header=range_header,
            if_range=if_range,
            last_modified=datetime.now(timezone.utc),
        )
        headers = dict(served.headers)
        headers["Content-Disposition"] = content_disposition(filename)
        return RelayResponse(served.status_code, headers, served.body)

    def _open_direct(self, track, filename, range_header) -> RelayResponse:
        source = track.source
        fn = self.registry.lookup(source, Capability.DOWNLOAD_URL)
        if fn is None:
            raise BadRequestError("Unknown source")
        try:
            url = fn(track)
        except Exception as exc:
            log_event(logging.INFO, "download_url_failed", source=source, id=track.id, error=str(exc))
            raise NotFoundError("Failed to get URL") from exc
        if not url:
            raise NotFoundError("Failed to get URL")

        try:
            upstream = self.session.get(
                url,
                headers=self.build_upstream_headers(source, range_header),
                timeout=self.upstream_timeout,
                stream=True,
            )
        except requests.RequestException as exc:
            raise UpstreamError("Upstream stream error") from exc

        headers = filter_upstream_headers(upstream.headers)
        headers["Content-Disposition"] = content_disposition(filename)
        return RelayResponse(upstream.status_code, headers, _iter_upstream(upstream))


def _iter_upstream(upstream) -> Iterator[bytes]:
    # Raw bytes: upstream Content-Encoding/Length headers are forwarded as-is.
    try:
        for chunk in upstream.raw.stream(STREAM_CHUNK_SIZE, decode_content=False):
            if chunk:
                yield chunk
    except Exception as exc:
        logger.warning("Upstream read error during relay: %s", exc)
    finally:
        upstream.close()
