import json
import logging
import math
from dataclasses import asdict, is_dataclass
from enum import Enum


def safe_json(value):
    """Return a JSON-compatible copy of ``value``.

    Dataclasses become dicts, enums their values, non-finite floats ``None``
    and anything unknown its ``str()``.
    """
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, Enum):
        return safe_json(value.value)
    if is_dataclass(value) and not isinstance(value, type):
        return safe_json(asdict(value))
    if isinstance(value, dict):
        return {str(k): safe_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [safe_json(v) for v in value]
    if isinstance(value, bytes):
        return f"<{len(value)} bytes>"
    return str(value)


def safe_json_dumps(value, **kwargs):
    kwargs.setdefault("ensure_ascii", False)
    return json.dumps(safe_json(value), **kwargs)


def log_event(level, message, **fields):
    payload = {"message": message, **fields}
    try:
        logging.log(level, safe_json_dumps(payload, sort_keys=True))
    except Exception as exc:
        logging.log(level, f"log_event_serialization_failed: {exc} message={message}")
