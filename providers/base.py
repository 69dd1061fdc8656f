"""Contract implemented by per-platform provider objects.

Providers live outside this repository. Each one is constructed with the
current cookie for its source (``Provider(cookie)``) and implements any
subset of the methods below; errors are signalled by raising.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, Union

if TYPE_CHECKING:
    from engine.models import EncryptedDownload, Playlist, Track


class MusicProvider(Protocol):
    def search(self, keyword: str) -> list[Track]:
        raise NotImplementedError

    def get_download_url(self, track: Track) -> str:
        raise NotImplementedError

    def get_lyrics(self, track: Track) -> str:
        raise NotImplementedError

    def parse(self, url: str) -> Track:
        raise NotImplementedError

    def search_playlist(self, keyword: str) -> list[Playlist]:
        raise NotImplementedError

    def get_playlist_tracks(self, playlist_id: str) -> list[Track]:
        raise NotImplementedError

    def get_recommended_playlists(self) -> list[Playlist]:
        raise NotImplementedError

    def parse_playlist(self, url: str) -> tuple[Playlist, list[Track]]:
        raise NotImplementedError


class EncryptedMediaProvider(Protocol):
    def get_download_info(self, track: Track) -> EncryptedDownload:
        raise NotImplementedError

    def decrypt_audio(self, ciphertext: bytes, auth_token: str) -> bytes:
        raise NotImplementedError


Provider = Union[MusicProvider, EncryptedMediaProvider]
