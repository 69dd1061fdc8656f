import json
import logging
import os
from dataclasses import dataclass

from config.settings import (
    ENCRYPTED_SOURCE,
    FANOUT_TIMEOUT_SECONDS,
    MAX_PARALLEL_SOURCES,
    PROBE_TIMEOUT_SECONDS,
)
from engine.aggregator import Aggregator
from engine.credentials import CredentialStore
from engine.registry import CapabilityRegistry, build_registry
from engine.relay import StreamRelay
from engine.source_switch import SourceSwitcher

DEFAULT_CONFIG = {
    "providers": {},
    "fanout_timeout_sec": FANOUT_TIMEOUT_SECONDS,
    "max_parallel_sources": MAX_PARALLEL_SOURCES,
    "encrypted_source": ENCRYPTED_SOURCE,
    "probe_timeout_sec": PROBE_TIMEOUT_SECONDS,
}


def load_config(path):
    with open(path, "r") as f:
        return json.load(f)


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config):
    errors = []
    if not isinstance(config, dict):
        return ["config must be a JSON object"]

    providers = config.get("providers")
    if providers is not None and not isinstance(providers, dict):
        errors.append("providers must be an object")
    if isinstance(providers, dict):
        for source, entry in providers.items():
            if isinstance(entry, str):
                if not entry.strip():
                    errors.append(f"providers.{source} must not be empty")
                continue
            if not isinstance(entry, dict):
                errors.append(f"providers.{source} must be a string or an object")
                continue
            if not isinstance(entry.get("target"), str) or not entry.get("target").strip():
                errors.append(f"providers.{source}.target is required")
            caps = entry.get("capabilities")
            if caps is not None and not isinstance(caps, list):
                errors.append(f"providers.{source}.capabilities must be a list")

    timeout = config.get("fanout_timeout_sec")
    if timeout is not None and (not _is_number(timeout) or timeout < 0):
        errors.append("fanout_timeout_sec must be a number >= 0")

    workers = config.get("max_parallel_sources")
    if workers is not None and (not isinstance(workers, int) or isinstance(workers, bool) or workers < 1):
        errors.append("max_parallel_sources must be an integer >= 1")

    probe_timeout = config.get("probe_timeout_sec")
    if probe_timeout is not None and (not _is_number(probe_timeout) or probe_timeout <= 0):
        errors.append("probe_timeout_sec must be a number > 0")

    encrypted = config.get("encrypted_source")
    if encrypted is not None and not isinstance(encrypted, str):
        errors.append("encrypted_source must be a string")

    return errors


def read_config(path):
    """Load and validate the config file, falling back to defaults.

    A missing file is normal (no providers configured yet). An invalid one is
    logged and ignored.
    """
    config = dict(DEFAULT_CONFIG)
    if not path or not os.path.isfile(path):
        logging.info("Config not found at %s; using defaults", path)
        return config
    try:
        loaded = load_config(path)
    except (OSError, ValueError) as exc:
        logging.error("Failed to read config %s: %s", path, exc)
        return config
    errors = validate_config(loaded)
    if errors:
        for error in errors:
            logging.error("Invalid config %s: %s", path, error)
        return config
    config.update(loaded)
    return config


@dataclass
class Services:
    credentials: CredentialStore
    registry: CapabilityRegistry
    aggregator: Aggregator
    relay: StreamRelay
    switcher: SourceSwitcher


def build_services(config, credentials, *, registry=None, session=None):
    """Wire registry, aggregator, relay and fallback matcher together."""
    config = config or DEFAULT_CONFIG
    registry = registry or build_registry(config, credentials)
    aggregator = Aggregator(
        registry,
        max_workers=int(config.get("max_parallel_sources") or MAX_PARALLEL_SOURCES),
        timeout=config.get("fanout_timeout_sec", FANOUT_TIMEOUT_SECONDS),
    )
    relay = StreamRelay(
        registry,
        session=session,
        encrypted_source=config.get("encrypted_source") or ENCRYPTED_SOURCE,
        probe_timeout=float(config.get("probe_timeout_sec") or PROBE_TIMEOUT_SECONDS),
    )
    switcher = SourceSwitcher(aggregator, relay.probe)
    return Services(
        credentials=credentials,
        registry=registry,
        aggregator=aggregator,
        relay=relay,
        switcher=switcher,
    )
