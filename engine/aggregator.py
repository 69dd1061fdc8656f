from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError, as_completed
from typing import Callable, Iterable, Sequence

from config.settings import (
    DEFAULT_PLAYLIST_SEARCH_SOURCES,
    DEFAULT_RECOMMEND_SOURCES,
    DEFAULT_SONG_SEARCH_SOURCES,
    FANOUT_TIMEOUT_SECONDS,
    MAX_PARALLEL_SOURCES,
)
from engine.errors import BadRequestError, ChorusError, ParseFailedError, UnknownLinkError, UnsupportedCapabilityError
from engine.json_utils import log_event
from engine.models import Playlist, Track
from engine.registry import Capability, CapabilityRegistry
from input.intent_router import detect_source

logger = logging.getLogger(__name__)


def _run_source_task(task, source):
    """
    Execute one source's task safely.
    - Exceptions are contained and logged
    - ``None`` becomes an empty result
    - Never raises
    """
    try:
        result = task(source)
    except Exception as exc:
        log_event(logging.WARNING, "source_task_failed", source=source, error=str(exc))
        return []
    return list(result or [])


def fan_out(
    sources: Iterable[str],
    task: Callable[[str], Sequence | None],
    *,
    max_workers: int = MAX_PARALLEL_SOURCES,
    timeout: float | None = FANOUT_TIMEOUT_SECONDS,
) -> list:
    """Run ``task(source)`` for every source concurrently and merge the results.

    Each task runs in isolation: an exception or an empty answer from one
    source only removes that source's items. Items are merged in completion
    order by the single collecting loop below. When ``timeout`` is positive,
    sources still running at the deadline are abandoned and their results
    dropped.
    """
    sources = [s for s in dict.fromkeys(sources) if s]
    if not sources:
        return []

    merged: list = []
    pool = ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(sources))))
    futures = {pool.submit(_run_source_task, task, source): source for source in sources}
    deadline = timeout if timeout and timeout > 0 else None
    try:
        for fut in as_completed(futures, timeout=deadline):
            merged.extend(fut.result())
    except FuturesTimeoutError:
        pending = sorted(src for fut, src in futures.items() if not fut.done())
        log_event(logging.WARNING, "fan_out_deadline_exceeded", timeout=deadline, pending_sources=pending)
    finally:
        # Do not block on abandoned sources; their threads finish on their own.
        pool.shutdown(wait=False, cancel_futures=True)
    return merged


class Aggregator:
    """Runs one capability across many sources and merges the answers."""

    def __init__(
        self,
        registry: CapabilityRegistry,
        *,
        max_workers: int = MAX_PARALLEL_SOURCES,
        timeout: float | None = FANOUT_TIMEOUT_SECONDS,
    ) -> None:
        self.registry = registry
        self.max_workers = max_workers
        self.timeout = timeout

    def fan_out(self, sources, task):
        return fan_out(sources, task, max_workers=self.max_workers, timeout=self.timeout)

    def _fan_out_capability(self, capability, sources, call):
        def task(source):
            fn = self.registry.lookup(source, capability)
            if fn is None:
                return []
            return [item.with_source(source) for item in (call(fn) or [])]

        return self.fan_out(sources, task)

    def search_tracks(self, keyword: str, sources: Sequence[str] | None = None) -> list[Track]:
        return self._fan_out_capability(
            Capability.SEARCH,
            sources or DEFAULT_SONG_SEARCH_SOURCES,
            lambda fn: fn(keyword),
        )

    def search_playlists(self, keyword: str, sources: Sequence[str] | None = None) -> list[Playlist]:
        return self._fan_out_capability(
            Capability.SEARCH_PLAYLIST,
            sources or DEFAULT_PLAYLIST_SEARCH_SOURCES,
            lambda fn: fn(keyword),
        )

    def recommend_playlists(self, sources: Sequence[str] | None = None) -> list[Playlist]:
        return self._fan_out_capability(
            Capability.RECOMMEND,
            sources or DEFAULT_RECOMMEND_SOURCES,
            lambda fn: fn(),
        )

    def parse_link(self, link: str, search_type: str = "song") -> dict:
        """Resolve a share link to tracks or a playlist.

        Returns ``{"type", "songs", "playlists"}``. Single-item parsing is
        tried before playlist parsing.
        """
        source = detect_source(link)
        if not source:
            raise UnknownLinkError("Unsupported link or unrecognized source")

        parse = self.registry.lookup(source, Capability.PARSE)
        if parse is not None:
            try:
                track = parse(link)
            except Exception as exc:
                log_event(logging.INFO, "parse_single_failed", source=source, error=str(exc))
            else:
                if track is not None:
                    return {"type": "song", "songs": [track.with_source(source)], "playlists": []}

        parse_playlist = self.registry.lookup(source, Capability.PARSE_PLAYLIST)
        if parse_playlist is not None:
            try:
                playlist, tracks = parse_playlist(link)
            except Exception as exc:
                log_event(logging.INFO, "parse_playlist_failed", source=source, error=str(exc))
            else:
                if search_type == "playlist":
                    return {"type": "playlist", "songs": [], "playlists": [playlist.with_source(source)]}
                return {
                    "type": "song",
                    "songs": [t.with_source(source) for t in tracks or []],
                    "playlists": [],
                }

        raise ParseFailedError(f"Parse failed: link type not supported on {source} or parsing errored")

    def playlist_detail(self, playlist_id: str, source: str) -> list[Track]:
        if not playlist_id or not source:
            raise BadRequestError("Missing id or source")
        fn = self.registry.lookup(source, Capability.PLAYLIST_DETAIL)
        if fn is None:
            raise UnsupportedCapabilityError(f"Playlist detail is not supported for source {source}")
        try:
            tracks = fn(playlist_id)
        except Exception as exc:
            raise ChorusError(str(exc) or "Playlist detail failed") from exc
        # Providers do not reliably set the source on each track.
        return [t.with_source(source) for t in tracks or []]

    def download_url(self, track: Track) -> str:
        fn = self.registry.lookup(track.source, Capability.DOWNLOAD_URL)
        if fn is None:
            raise UnsupportedCapabilityError("Unsupported source")
        try:
            return fn(track) or ""
        except Exception as exc:
            raise ChorusError(str(exc) or "Failed to resolve download URL") from exc

    def lyrics(self, track: Track) -> str:
        """Lyrics for a track; provider failures yield an empty string."""
        fn = self.registry.lookup(track.source, Capability.LYRICS)
        if fn is None:
            raise UnsupportedCapabilityError("Lyrics are not supported for this source")
        try:
            return fn(track) or ""
        except Exception as exc:
            log_event(logging.INFO, "lyrics_failed", source=track.source, id=track.id, error=str(exc))
            return ""
