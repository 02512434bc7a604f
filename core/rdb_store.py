import logging
import re
import threading
from pathlib import Path
from typing import Dict, Optional, Union

from core.rdb_catalog import Catalog, DecodeResult, decode_rdb
from core.rdb_records import GameRecord
from utils.library_sync import RDBError, download_rdb, read_rdb
from utils.paths import rdb_path
from utils.settings import load_settings

logger = logging.getLogger(__name__)

_crc_re = re.compile(r"[0-9a-f]{1,8}")


def parse_crc32(value: str) -> int:
    """Parse a hex checksum such as ``"1A2B3C4D"`` or ``"0x1a2b3c4d"``."""
    text = value.strip().lower()
    if text.startswith("0x"):
        text = text[2:]
    if not _crc_re.fullmatch(text):
        raise ValueError(f"Invalid CRC32: {value!r}")
    return int(text, 16)


def format_crc32(value: int) -> str:
    return f"{value & 0xFFFFFFFF:08X}"


class MetadataStore:
    """Holds the current catalog for one system.

    A new catalog replaces the old one in a single assignment, so readers
    always see a record list and checksum index from the same decode.
    """

    def __init__(self, system: Optional[str] = None, settings: Optional[Dict] = None):
        self.settings = settings or load_settings()
        self.system = system or str(self.settings["system"])
        self._catalog = Catalog()
        self._swap_lock = threading.Lock()
        self._download_lock = threading.Lock()
        self.last_result: Optional[DecodeResult] = None

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    @property
    def game_count(self) -> int:
        return len(self._catalog)

    @property
    def is_loaded(self) -> bool:
        return self.last_result is not None

    @property
    def is_downloading(self) -> bool:
        return self._download_lock.locked()

    @property
    def path(self) -> Path:
        return rdb_path(self.system, self.settings)

    def lookup(self, crc32: Union[int, str]) -> Optional[GameRecord]:
        if isinstance(crc32, str):
            try:
                crc32 = parse_crc32(crc32)
            except ValueError:
                return None
        return self._catalog.lookup(crc32)

    def load_bytes(self, data: bytes) -> DecodeResult:
        result = decode_rdb(data)
        with self._swap_lock:
            self._catalog = result.catalog
            self.last_result = result
        if not result.complete:
            logger.warning(
                "RDB for %s decoded partially (%s at offset %d); kept %d records",
                self.system, result.stop_reason, result.stop_offset, len(result.catalog),
            )
        logger.info("Loaded %d games for %s", len(result.catalog), self.system)
        return result

    def load_file(self, path: Optional[Path] = None) -> DecodeResult:
        return self.load_bytes(read_rdb(Path(path) if path else self.path))

    def download_and_load(self) -> Optional[DecodeResult]:
        """Download, save and load the RDB. Returns None if a download is already running."""
        if not self._download_lock.acquire(blocking=False):
            logger.info("RDB download for %s already in progress", self.system)
            return None
        try:
            blob = download_rdb(self.system, self.path, settings=self.settings)
        finally:
            self._download_lock.release()
        return self.load_bytes(blob)

    def load_or_download(self) -> bool:
        """Load the cached RDB if present, otherwise fetch it. Failures are logged."""
        if self.path.exists():
            try:
                self.load_file()
                return True
            except OSError as exc:
                logger.error("Failed to load RDB %s: %s", self.path, exc)
                return False
        try:
            return self.download_and_load() is not None
        except RDBError as exc:
            logger.error("Failed to download RDB for %s: %s", self.system, exc)
            return False
