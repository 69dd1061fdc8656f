import os
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parent.parent

def _is_container_runtime():
    if os.path.exists("/.dockerenv"):
        return True
    return os.path.isdir("/data")


def _default_root_paths():
    if _is_container_runtime():
        return {
            "config": Path("/config"),
            "logs": Path("/logs"),
        }
    base = PROJECT_ROOT / "data"
    return {
        "config": base / "config",
        "logs": base / "logs",
    }


_DEFAULTS = _default_root_paths()

CONFIG_DIR = Path(os.environ.get("CHORUS_CONFIG_DIR", _DEFAULTS["config"])).resolve()
LOG_DIR = Path(os.environ.get("CHORUS_LOG_DIR", _DEFAULTS["logs"])).resolve()
COOKIE_FILE = Path(os.environ.get("CHORUS_COOKIE_FILE", CONFIG_DIR / "cookies.json")).resolve()
CONFIG_PATH = Path(os.environ.get("CHORUS_CONFIG_PATH", CONFIG_DIR / "config.json")).resolve()


def ensure_dir(path):
    if path:
        os.makedirs(path, exist_ok=True)


def resolve_config_path(path):
    if not path:
        return str(CONFIG_PATH)
    if os.path.isabs(path):
        return os.path.abspath(path)
    return os.path.abspath(os.path.join(CONFIG_DIR, path))
