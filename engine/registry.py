"""Source id -> provider capability lookup."""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable

from config.settings import KNOWN_SOURCES
from engine.credentials import CredentialStore
from engine.errors import ProviderInitError
from providers.base import Provider

logger = logging.getLogger(__name__)


class Capability(Enum):
    SEARCH = "search"
    DOWNLOAD_URL = "download_url"
    LYRICS = "lyrics"
    PARSE = "parse"
    SEARCH_PLAYLIST = "search_playlist"
    PLAYLIST_DETAIL = "playlist_detail"
    RECOMMEND = "recommend"
    PARSE_PLAYLIST = "parse_playlist"
    ENCRYPTED_DOWNLOAD = "encrypted_download"
    DECRYPT = "decrypt"


# Provider method backing each capability.
CAPABILITY_METHODS = {
    Capability.SEARCH: "search",
    Capability.DOWNLOAD_URL: "get_download_url",
    Capability.LYRICS: "get_lyrics",
    Capability.PARSE: "parse",
    Capability.SEARCH_PLAYLIST: "search_playlist",
    Capability.PLAYLIST_DETAIL: "get_playlist_tracks",
    Capability.RECOMMEND: "get_recommended_playlists",
    Capability.PARSE_PLAYLIST: "parse_playlist",
    Capability.ENCRYPTED_DOWNLOAD: "get_download_info",
    Capability.DECRYPT: "decrypt_audio",
}

ProviderFactory = Callable[[str], Provider]


@dataclass(frozen=True)
class ProviderSpec:
    source: str
    factory: ProviderFactory
    capabilities: frozenset[Capability]


def detect_capabilities(factory: ProviderFactory) -> frozenset[Capability]:
    """Capabilities a provider class implements, judged by its methods."""
    found = set()
    for capability, method in CAPABILITY_METHODS.items():
        if callable(getattr(factory, method, None)):
            found.add(capability)
    return frozenset(found)


class CapabilityRegistry:
    def __init__(self, credentials: CredentialStore | None = None) -> None:
        self.credentials = credentials or CredentialStore()
        self._specs: dict[str, ProviderSpec] = {}

    def register(
        self,
        source: str,
        factory: ProviderFactory,
        capabilities: Iterable[Capability | str] | None = None,
    ) -> ProviderSpec:
        if capabilities is None:
            caps = detect_capabilities(factory)
        else:
            caps = frozenset(_coerce_capability(c) for c in capabilities)
        spec = ProviderSpec(source=source, factory=factory, capabilities=caps)
        self._specs[source] = spec
        return spec

    def sources(self) -> list[str]:
        return list(self._specs)

    def capabilities(self, source: str) -> frozenset[Capability]:
        spec = self._specs.get(source)
        return spec.capabilities if spec else frozenset()

    def supports(self, source: str, capability: Capability) -> bool:
        return capability in self.capabilities(source)

    def provider(self, source: str) -> Provider | None:
        """Build the provider for ``source`` with the credential current now.

        Raises ``ProviderInitError`` when the provider's constructor fails.
        """
        spec = self._specs.get(source)
        if spec is None:
            return None
        try:
            return spec.factory(self.credentials.get(source))
        except Exception as exc:
            logger.warning("Provider construction failed source=%s: %s", source, exc)
            raise ProviderInitError(f"Provider for {source} failed to initialise") from exc

    def lookup(self, source: str, capability: Capability) -> Callable | None:
        """Return the bound provider method, or ``None`` when unsupported.

        The provider is rebuilt on every lookup.
        """
        if not self.supports(source, capability):
            return None
        provider = self.provider(source)
        return getattr(provider, CAPABILITY_METHODS[capability], None)


def _coerce_capability(value) -> Capability:
    if isinstance(value, Capability):
        return value
    return Capability(str(value).strip().lower())


def import_target(target: str):
    """Import ``"package.module:Attribute"`` (or a dotted path)."""
    if ":" in target:
        module_name, attr = target.split(":", 1)
    else:
        module_name, _, attr = target.rpartition(".")
    if not module_name or not attr:
        raise ValueError(f"Invalid provider target: {target!r}")
    module = importlib.import_module(module_name)
    obj = module
    for part in attr.split("."):
        obj = getattr(obj, part)
    return obj


def build_registry(config: dict | None, credentials: CredentialStore) -> CapabilityRegistry:
    """Build a registry from the ``providers`` section of the config.

    Entries are either ``"module:Class"`` strings or objects with a
    ``target`` and an optional explicit ``capabilities`` list. A provider that
    fails to import is skipped so the remaining sources stay available.
    """
    registry = CapabilityRegistry(credentials)
    providers = (config or {}).get("providers") or {}
    for source, entry in providers.items():
        if isinstance(entry, dict):
            target = entry.get("target")
            capabilities = entry.get("capabilities")
        else:
            target = entry
            capabilities = None
        if not target:
            logger.warning("Provider for source=%s has no target; skipped", source)
            continue
        if source not in KNOWN_SOURCES:
            logger.warning("Registering provider for unrecognized source=%s", source)
        try:
            factory = import_target(str(target))
            registry.register(source, factory, capabilities)
        except Exception:
            logger.exception("Failed to load provider source=%s target=%s", source, target)
            continue
        logger.info(
            "Registered provider source=%s capabilities=%s",
            source,
            sorted(c.value for c in registry.capabilities(source)),
        )
    return registry
