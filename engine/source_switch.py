"""Find a playable replacement for a track whose source cannot play it."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from config.settings import SWITCH_EXCLUDED_SOURCES, SWITCH_MAX_HITS_PER_SOURCE, SWITCH_SOURCES
from engine.aggregator import Aggregator
from engine.json_utils import log_event
from engine.models import Candidate, Track
from engine.registry import Capability
from engine.search_scoring import is_duration_close, rank_candidates, song_similarity

logger = logging.getLogger(__name__)


class SwitchOutcome(Enum):
    FOUND = "found"
    NO_MATCH = "no_match"
    NO_PLAYABLE_MATCH = "no_playable_match"
    BAD_REQUEST = "bad_request"


@dataclass
class SwitchRequest:
    name: str
    artist: str = ""
    source: str = ""  # the broken source, never searched
    target: str = ""  # restrict the search to this one source
    duration: int = 0  # seconds, 0 when unknown


@dataclass
class SwitchResult:
    outcome: SwitchOutcome
    track: Track | None = None
    score: float = 0.0
    candidates_considered: int = 0

    def to_dict(self) -> dict:
        if self.track is None:
            return {}
        t = self.track
        return {
            "id": t.id,
            "name": t.name,
            "artist": t.artist,
            "album": t.album,
            "duration": t.duration,
            "source": t.source,
            "cover": t.cover,
            "score": self.score,
            "link": t.link,
        }


class SourceSwitcher:
    def __init__(self, aggregator: Aggregator, prober: Callable[[Track], bool]) -> None:
        self.aggregator = aggregator
        self.registry = aggregator.registry
        self.prober = prober

    def candidate_sources(self, request: SwitchRequest) -> list[str]:
        sources = [request.target] if request.target else list(SWITCH_SOURCES)
        out = []
        for source in sources:
            if not source or source == request.source or source in SWITCH_EXCLUDED_SOURCES:
                continue
            if not self.registry.supports(source, Capability.SEARCH):
                continue
            out.append(source)
        return out

    def _search_with_retry(self, source, query, request):
        fn = self.registry.lookup(source, Capability.SEARCH)
        if fn is None:
            return []
        try:
            hits = fn(query)
        except Exception as exc:
            log_event(logging.INFO, "switch_search_failed", source=source, query=query, error=str(exc))
            hits = []
        if not hits and request.artist:
            # Some platforms return nothing for "name artist" but do match the bare name.
            hits = fn(request.name)
        return hits or []

    def _collect_candidates(self, source, query, request) -> list[Candidate]:
        hits = self._search_with_retry(source, query, request)
        out = []
        for hit in hits[:SWITCH_MAX_HITS_PER_SOURCE]:
            track = hit.with_source(source)
            score = song_similarity(request.name, request.artist, track.name, track.artist)
            if score <= 0:
                continue
            diff = 0
            if request.duration > 0 and track.duration > 0:
                diff = abs(request.duration - track.duration)
                if not is_duration_close(request.duration, track.duration):
                    continue
            out.append(Candidate(track=track, score=score, duration_diff=diff))
        return out

    def switch(self, request: SwitchRequest) -> SwitchResult:
        name = (request.name or "").strip()
        if not name:
            return SwitchResult(SwitchOutcome.BAD_REQUEST)
        request = SwitchRequest(
            name=name,
            artist=(request.artist or "").strip(),
            source=(request.source or "").strip(),
            target=(request.target or "").strip(),
            duration=max(0, int(request.duration or 0)),
        )
        query = f"{request.name} {request.artist}" if request.artist else request.name

        sources = self.candidate_sources(request)
        candidates = self.aggregator.fan_out(
            sources,
            lambda source: self._collect_candidates(source, query, request),
        )
        if not candidates:
            log_event(logging.INFO, "switch_no_match", name=request.name, artist=request.artist, sources=sources)
            return SwitchResult(SwitchOutcome.NO_MATCH)

        ranked = rank_candidates(candidates)
        # Probe one at a time in rank order and stop at the first playable
        # candidate, so upstream calls are only spent on likely winners.
        for candidate in ranked:
            if self.prober(candidate.track):
                log_event(
                    logging.INFO,
                    "switch_found",
                    name=request.name,
                    source=candidate.track.source,
                    id=candidate.track.id,
                    score=round(candidate.score, 4),
                )
                return SwitchResult(
                    SwitchOutcome.FOUND,
                    track=candidate.track,
                    score=candidate.score,
                    candidates_considered=len(ranked),
                )
        log_event(logging.INFO, "switch_no_playable_match", name=request.name, candidates=len(ranked))
        return SwitchResult(SwitchOutcome.NO_PLAYABLE_MATCH, candidates_considered=len(ranked))
