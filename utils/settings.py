import json
import logging
import os
from pathlib import Path
from typing import Dict

logger = logging.getLogger(__name__)

RDB_BASE = "https://raw.githubusercontent.com/libretro/libretro-database/master/rdb"
DEFAULT_SYSTEM = "Nintendo - Game Boy Advance"
MAX_DOWNLOAD_BYTES = 5 * 1024 * 1024
THUMBNAIL_BASE = "https://raw.githubusercontent.com/libretro-thumbnails"
MAX_ARTWORK_BYTES = 2 * 1024 * 1024

DEFAULTS: Dict[str, object] = {
    "data_dir": "data",
    "rdb_base": RDB_BASE,
    "system": DEFAULT_SYSTEM,
    "max_download_bytes": MAX_DOWNLOAD_BYTES,
    "timeout": 120,
    "thumbnail_base": THUMBNAIL_BASE,
    "max_artwork_bytes": MAX_ARTWORK_BYTES,
    "artwork_timeout": 10,
}

# settings key -> (environment variable, type)
ENV_OVERRIDES = {
    "data_dir": ("RDB_CATALOG_DATA_DIR", str),
    "rdb_base": ("RDB_CATALOG_RDB_BASE", str),
    "system": ("RDB_CATALOG_SYSTEM", str),
    "max_download_bytes": ("RDB_CATALOG_MAX_DOWNLOAD", int),
    "timeout": ("RDB_CATALOG_TIMEOUT", int),
    "thumbnail_base": ("RDB_CATALOG_THUMBNAIL_BASE", str),
    "max_artwork_bytes": ("RDB_CATALOG_MAX_ARTWORK", int),
    "artwork_timeout": ("RDB_CATALOG_ARTWORK_TIMEOUT", int),
}


def config_path() -> Path:
    return Path(os.environ.get("RDB_CATALOG_CONFIG", Path("data") / "config" / "settings.json"))


def _load_file(path: Path) -> Dict:
    if not path.exists():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return {}
    if not isinstance(payload, dict):
        logger.warning("Ignoring settings file %s: expected a JSON object", path)
        return {}
    return payload


def load_settings() -> Dict[str, object]:
    """Defaults, overlaid by the settings file, overlaid by the environment."""
    settings = dict(DEFAULTS)
    for key, value in _load_file(config_path()).items():
        if key in DEFAULTS:
            settings[key] = value

    for key, (env_name, cast) in ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw is None or raw == "":
            continue
        try:
            settings[key] = cast(raw)
        except ValueError:
            logger.warning("Invalid %s=%r; keeping %r", env_name, raw, settings[key])
    return settings


def save_settings(settings: Dict[str, object]) -> Path:
    path = config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {key: settings[key] for key in DEFAULTS if key in settings}
    path.write_text(json.dumps(payload, indent=2))
    return path
