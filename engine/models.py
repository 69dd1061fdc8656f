"""Transient value types shared by providers, the aggregator and the relay."""

from __future__ import annotations

from dataclasses import dataclass, field, replace


@dataclass
class Track:
    id: str
    name: str = ""
    artist: str = ""
    album: str = ""
    duration: int = 0  # seconds
    cover: str = ""
    source: str = ""
    link: str = ""
    extra: dict[str, str] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str]:
        """Identity of the track: ids are only unique within a source."""
        return (self.source, self.id)

    def with_source(self, source: str) -> "Track":
        return replace(self, source=source)


@dataclass
class Playlist:
    id: str
    name: str = ""
    cover: str = ""
    source: str = ""
    track_count: int = 0
    creator: str = ""
    description: str = ""
    link: str = ""
    tracks: list[Track] = field(default_factory=list)

    def with_source(self, source: str) -> "Playlist":
        return replace(self, source=source, tracks=[t.with_source(source) for t in self.tracks])


@dataclass(frozen=True)
class EncryptedDownload:
    url: str
    auth_token: str


@dataclass(frozen=True)
class Candidate:
    track: Track
    score: float
    duration_diff: int = 0
