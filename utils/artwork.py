import logging
import threading
from pathlib import Path
from typing import Dict, Iterable, Optional

import requests

from core.rdb_store import MetadataStore, format_crc32, parse_crc32
from utils.library_sync import RDBTooLargeError, read_limited, write_atomic
from utils.paths import artwork_path
from utils.settings import load_settings

logger = logging.getLogger(__name__)

ARTWORK_CATEGORY = "Named_Boxarts"
SAFE_CHARS = "()[]!-_.,'"
# characters libretro-thumbnails stores as "_" in file names
UNSAFE_FILENAME_CHARS = '&*/:`<>?\\|"'

_missing_lock = threading.Lock()


def thumbnail_repo(system: str) -> str:
    """Repository name for ``system``, e.g. ``Nintendo_-_Game_Boy_Advance``."""
    return system.strip().replace(" ", "_")


def encode_artwork_name(name: str) -> str:
    sanitized = "".join("_" if ch in UNSAFE_FILENAME_CHARS else ch for ch in name)
    return requests.utils.quote(sanitized, safe=SAFE_CHARS)


def derive_artwork_url(
    name: str,
    system: str,
    base: Optional[str] = None,
    category: str = ARTWORK_CATEGORY,
) -> Optional[str]:
    if not name or not system.strip():
        return None
    if base is None:
        base = str(load_settings()["thumbnail_base"])
    repo = requests.utils.quote(thumbnail_repo(system))
    return f"{base.rstrip('/')}/{repo}/master/{category}/{encode_artwork_name(name)}.png"


def fetch_artwork(
    crc: str,
    name: str,
    system: Optional[str] = None,
    *,
    settings: Optional[Dict] = None,
    session: Optional[requests.Session] = None,
) -> Optional[Path]:
    """Download box art for ``name`` and save it under ``crc``.

    Returns the saved path, or None when there is no usable image. Failures
    are logged and never raised.
    """
    settings = settings or load_settings()
    system = system or str(settings["system"])
    url = derive_artwork_url(name, system, str(settings["thumbnail_base"]))
    if url is None:
        return None
    http = session or requests

    try:
        response = http.get(url, timeout=int(settings["artwork_timeout"]), stream=True)
    except requests.RequestException as exc:
        logger.debug("Artwork download failed for %s: %s", name, exc)
        return None

    try:
        if response.status_code != 200:
            logger.debug("No artwork for %s (HTTP %d)", name, response.status_code)
            return None
        image = read_limited(response, int(settings["max_artwork_bytes"]))
    except RDBTooLargeError as exc:
        logger.debug("Artwork too large for %s: %s", name, exc)
        return None
    except requests.RequestException as exc:
        logger.debug("Artwork download failed for %s: %s", name, exc)
        return None
    finally:
        response.close()

    target = artwork_path(crc, settings)
    try:
        write_atomic(image, target)
    except OSError as exc:
        logger.warning("Failed to save artwork to %s: %s", target, exc)
        return None
    return target


def download_missing_artwork(
    crcs: Iterable[str],
    store: MetadataStore,
    *,
    session: Optional[requests.Session] = None,
) -> Optional[int]:
    """Fetch art for every game in ``crcs`` that has none saved yet.

    Names come from the store's catalog; games it does not know are skipped.
    Returns how many images were saved, or None if another run is active.
    """
    if not _missing_lock.acquire(blocking=False):
        logger.info("Artwork download already in progress")
        return None
    try:
        downloaded = 0
        for crc in crcs:
            try:
                value = parse_crc32(crc)
            except ValueError:
                continue
            key = format_crc32(value)
            if artwork_path(key, store.settings).exists():
                continue
            record = store.lookup(value)
            if record is None or not record.name:
                continue
            logger.debug("Downloading artwork for %s", record.name)
            if fetch_artwork(key, record.name, store.system, settings=store.settings, session=session):
                downloaded += 1
        return downloaded
    finally:
        _missing_lock.release()
