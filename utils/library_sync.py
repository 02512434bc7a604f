import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

import requests

from utils.paths import rdb_path
from utils.settings import load_settings

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class RDBError(RuntimeError):
    """Base class for RDB fetch / storage failures."""


class RDBInvalidURLError(RDBError):
    """Raised when no RDB URL can be built for a system."""


class RDBDownloadError(RDBError):
    """Raised on network failures or a non-200 response."""


class RDBTooLargeError(RDBError):
    """Raised when a payload exceeds its download ceiling."""

    def __init__(self, limit: int, received: int) -> None:
        self.limit = limit
        self.received = received
        super().__init__(f"Download exceeds maximum size limit ({received:,} > {limit:,} bytes)")


def rdb_url(system: str, base: Optional[str] = None) -> str:
    if not system or not system.strip():
        raise RDBInvalidURLError("Invalid RDB URL: system name is empty")
    if base is None:
        base = str(load_settings()["rdb_base"])
    return f"{base.rstrip('/')}/{requests.utils.quote(system.strip())}.rdb"


def read_limited(response: requests.Response, max_bytes: int) -> bytes:
    declared = response.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > max_bytes:
        raise RDBTooLargeError(max_bytes, int(declared))

    chunks = []
    received = 0
    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
        if not chunk:
            continue
        received += len(chunk)
        if received > max_bytes:
            raise RDBTooLargeError(max_bytes, received)
        chunks.append(chunk)
    return b"".join(chunks)


def write_atomic(blob: bytes, destination: Path) -> Path:
    """Write ``blob`` so readers never see a half-written file."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=destination.parent, suffix=".part")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(blob)
        os.replace(tmp_name, destination)
    except OSError:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise
    return destination


def read_rdb(path: Path) -> bytes:
    return Path(path).read_bytes()


def download_rdb(
    system: str,
    destination: Optional[Path] = None,
    *,
    settings: Optional[Dict] = None,
    session: Optional[requests.Session] = None,
) -> bytes:
    """Fetch the RDB for ``system``, save it locally and return its bytes."""
    settings = settings or load_settings()
    url = rdb_url(system, str(settings["rdb_base"]))
    max_bytes = int(settings["max_download_bytes"])
    timeout = int(settings["timeout"])
    http = session or requests

    logger.info("Downloading RDB for %s from %s", system, url)
    try:
        response = http.get(url, timeout=timeout, stream=True)
    except requests.RequestException as exc:
        raise RDBDownloadError(f"Failed to download RDB: {exc}") from exc

    try:
        if response.status_code != 200:
            raise RDBDownloadError(f"Failed to download RDB: HTTP {response.status_code}")
        try:
            blob = read_limited(response, max_bytes)
        except requests.RequestException as exc:
            raise RDBDownloadError(f"Failed to download RDB: {exc}") from exc
    finally:
        response.close()

    target = destination or rdb_path(system, settings)
    try:
        write_atomic(blob, Path(target))
    except OSError as exc:
        raise RDBError(f"Failed to save RDB to {target}: {exc}") from exc
    logger.info("Saved %d bytes of RDB data to %s", len(blob), target)
    return blob
