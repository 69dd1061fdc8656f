from .aggregator import Aggregator, fan_out
from .core import Services, build_services, load_config, read_config, validate_config
from .credentials import CredentialStore
from .models import Candidate, EncryptedDownload, Playlist, Track
from .registry import Capability, CapabilityRegistry, build_registry
from .relay import StreamRelay
from .runtime import get_runtime_info
from .source_switch import SourceSwitcher, SwitchOutcome, SwitchRequest

__all__ = [
    "Aggregator",
    "Candidate",
    "Capability",
    "CapabilityRegistry",
    "CredentialStore",
    "EncryptedDownload",
    "Playlist",
    "Services",
    "SourceSwitcher",
    "StreamRelay",
    "SwitchOutcome",
    "SwitchRequest",
    "Track",
    "build_registry",
    "build_services",
    "fan_out",
    "get_runtime_info",
    "load_config",
    "read_config",
    "validate_config",
]
