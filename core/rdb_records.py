"""Record assembly for RDB field streams.

Fields arrive as alternating key / value tokens. A map boundary closes the
record in progress and opens a new one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from core import naming
from core.rdb_reader import FieldKind, RawField, read_uint_be

logger = logging.getLogger(__name__)

UINT64_MASK = 0xFFFFFFFFFFFFFFFF
UINT32_MASK = 0xFFFFFFFF


@dataclass(frozen=True)
class GameRecord:
    """Game metadata from one RDB entry."""

    name: str = ""
    description: str = ""
    genre: str = ""
    developer: str = ""
    publisher: str = ""
    franchise: str = ""
    esrb_rating: str = ""
    rom_name: str = ""
    release_month: int = 0
    release_year: int = 0
    size: int = 0
    crc32: int = 0
    serial: str = ""

    @property
    def has_data(self) -> bool:
        return bool(self.name) or self.crc32 != 0

    @property
    def display_name(self) -> str:
        return naming.display_name(self.name)

    @property
    def region(self) -> str:
        return naming.region(self.name)

    @property
    def crc32_hex(self) -> str:
        return f"{self.crc32:08X}"

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "region": self.region,
            "description": self.description,
            "genre": self.genre,
            "developer": self.developer,
            "publisher": self.publisher,
            "franchise": self.franchise,
            "esrb_rating": self.esrb_rating,
            "rom_name": self.rom_name,
            "release_month": self.release_month,
            "release_year": self.release_year,
            "size": self.size,
            "crc32": self.crc32_hex,
            "serial": self.serial,
        }


def decode_text(value: bytes) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        return ""


def _uint64(value: bytes) -> int:
    return read_uint_be(value) & UINT64_MASK


def _crc32(value: bytes) -> int:
    return read_uint_be(value) & UINT32_MASK


# key in the RDB -> (GameRecord attribute, converter)
FIELD_TABLE: Dict[str, Tuple[str, Callable[[bytes], object]]] = {
    "name": ("name", decode_text),
    "description": ("description", decode_text),
    "genre": ("genre", decode_text),
    "developer": ("developer", decode_text),
    "publisher": ("publisher", decode_text),
    "franchise": ("franchise", decode_text),
    "esrb_rating": ("esrb_rating", decode_text),
    "rom_name": ("rom_name", decode_text),
    "serial": ("serial", decode_text),
    "size": ("size", _uint64),
    "releasemonth": ("release_month", _uint64),
    "releaseyear": ("release_year", _uint64),
    "crc": ("crc32", _crc32),
}


def apply_field(fields: Dict[str, object], key: str, value: bytes) -> bool:
    """Store ``key``'s converted value in ``fields``; False for unknown keys."""
    target = FIELD_TABLE.get(key)
    if target is None:
        return False
    attr, convert = target
    fields[attr] = convert(value)
    return True


class RecordAccumulator:
    """Builds one GameRecord at a time from a stream of RawFields.

    Values collect in a plain dict and are frozen into a GameRecord once,
    when the record is closed.
    """

    def __init__(self) -> None:
        self._fields: Dict[str, object] = {}
        self.expecting_key = True
        self.pending_key = ""
        self.ignored_keys: Dict[str, int] = {}

    @property
    def current(self) -> GameRecord:
        return GameRecord(**self._fields)

    def feed(self, field: RawField) -> Optional[GameRecord]:
        """Consume one field; returns a record when a boundary closes one."""
        if field.kind == FieldKind.MAP:
            finished = self.finish()
            self._fields = {}
            self.expecting_key = True
            return finished

        if not field.is_value:
            # skip padding; nil and stop conditions are the caller's concern
            return None

        if self.expecting_key:
            self.pending_key = decode_text(field.payload)
        elif not apply_field(self._fields, self.pending_key, field.payload):
            self.ignored_keys[self.pending_key] = self.ignored_keys.get(self.pending_key, 0) + 1
        self.expecting_key = not self.expecting_key
        return None

    def finish(self) -> Optional[GameRecord]:
        """Hand back the record in progress if it is worth keeping."""
        if not self._fields.get("name") and not self._fields.get("crc32"):
            return None
        return GameRecord(**self._fields)
