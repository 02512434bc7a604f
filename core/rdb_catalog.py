"""Decode RDB bytes into a checksum-indexed catalog.

Decoding is best-effort: short headers, truncated fields and tags outside the
RDB subset end the decode early but never raise. What stopped the decode is
reported on the returned ``DecodeResult``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple

from core.rdb_reader import FieldKind, read_field
from core.rdb_records import GameRecord, RecordAccumulator

logger = logging.getLogger(__name__)

HEADER_SIZE = 0x10
MIN_RDB_SIZE = HEADER_SIZE + 1

STOP_END = "end"
STOP_TERMINATOR = "terminator"
STOP_TRUNCATED = "truncated"
STOP_UNSUPPORTED = "unsupported_tag"
STOP_SHORT_HEADER = "short_header"


@dataclass(frozen=True)
class Catalog:
    """Records in stream order plus a crc32 -> record index.

    Records without a checksum (crc32 == 0) are listed but never indexed.
    """

    records: Tuple[GameRecord, ...] = ()
    by_crc32: Mapping[int, GameRecord] = field(default_factory=lambda: MappingProxyType({}))

    def lookup(self, crc32: int) -> Optional[GameRecord]:
        return self.by_crc32.get(crc32)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)


@dataclass(frozen=True)
class DecodeResult:
    catalog: Catalog
    truncated_fields: int = 0
    stop_reason: str = STOP_END
    stop_offset: int = 0

    @property
    def complete(self) -> bool:
        return self.stop_reason in (STOP_END, STOP_TERMINATOR)


def build_catalog(records: Iterable[GameRecord]) -> Catalog:
    ordered = tuple(records)
    index = {}
    for record in ordered:
        if record.crc32 != 0:
            # later entries win
            index[record.crc32] = record
    return Catalog(records=ordered, by_crc32=MappingProxyType(index))


def decode_rdb(data: bytes) -> DecodeResult:
    """Decode a complete RDB buffer. Never raises on malformed input."""
    if len(data) < MIN_RDB_SIZE:
        logger.debug("RDB buffer too short (%d bytes); returning empty catalog", len(data))
        return DecodeResult(Catalog(), stop_reason=STOP_SHORT_HEADER, stop_offset=0)

    accumulator = RecordAccumulator()
    records = []
    truncated = 0
    stop_reason = STOP_END
    pos = HEADER_SIZE

    while pos < len(data):
        raw, next_pos = read_field(data, pos)
        if raw.kind == FieldKind.NIL:
            stop_reason = STOP_TERMINATOR
            break
        if raw.kind == FieldKind.TRUNCATED:
            truncated += 1
            stop_reason = STOP_TRUNCATED
            logger.debug("RDB field with tag 0x%02X truncated at offset %d", raw.tag, pos)
            break
        if raw.kind == FieldKind.UNSUPPORTED:
            stop_reason = STOP_UNSUPPORTED
            logger.debug("Unsupported RDB tag 0x%02X at offset %d", raw.tag, pos)
            break
        finished = accumulator.feed(raw)
        if finished is not None:
            records.append(finished)
        pos = next_pos

    last = accumulator.finish()
    if last is not None:
        records.append(last)

    if accumulator.ignored_keys:
        logger.debug("Ignored RDB keys: %s", sorted(accumulator.ignored_keys))

    catalog = build_catalog(records)
    logger.debug(
        "Decoded %d RDB records (%d indexed), stopped at offset %d (%s)",
        len(catalog), len(catalog.by_crc32), pos, stop_reason,
    )
    return DecodeResult(catalog, truncated_fields=truncated, stop_reason=stop_reason, stop_offset=pos)


def parse_games(data: bytes) -> Catalog:
    """Shorthand for callers that only want the catalog."""
    return decode_rdb(data).catalog
