import os
import re
from pathlib import Path
from typing import Dict, List, Optional

from utils.settings import load_settings

_slug_re = re.compile(r"[^a-z0-9]+")


def _slugify(value: str) -> str:
    if not value:
        return "default"
    return _slug_re.sub("_", value.lower()).strip("_") or "default"


def system_slug(name: str) -> str:
    return _slugify(name)


def data_dir(settings: Optional[Dict] = None) -> Path:
    settings = settings or load_settings()
    return Path(str(settings["data_dir"]))


def metadata_dir(settings: Optional[Dict] = None) -> Path:
    return data_dir(settings) / "metadata"


def artwork_dir(settings: Optional[Dict] = None) -> Path:
    return data_dir(settings) / "artwork"


def rdb_path(system: str, settings: Optional[Dict] = None) -> Path:
    """Local path of the cached RDB file for ``system``."""
    return metadata_dir(settings) / f"{system_slug(system)}.rdb"


def artwork_path(crc: str, settings: Optional[Dict] = None) -> Path:
    """Local path of the box art saved for the game with checksum ``crc`` (hex)."""
    return artwork_dir(settings) / f"{crc.upper()}.png"


def list_cached_rdbs(settings: Optional[Dict] = None) -> List[Dict[str, object]]:
    """Return the RDB files already present in the metadata directory."""
    directory = metadata_dir(settings)
    if not directory.is_dir():
        return []

    results: List[Dict[str, object]] = []
    for path in sorted(directory.glob("*.rdb")):
        try:
            size = os.path.getsize(path)
        except OSError:
            size = None
        results.append({
            "slug": path.stem,
            "path": str(path),
            "size": size,
        })
    return results
