#!/usr/bin/env python3
"""Inspect libretro .rdb files.

Given a URL (or local path) to an .rdb file, decodes it with the catalog
decoder and prints the first few entries plus decode diagnostics. With
``--compare`` the file is also unpacked with msgpack and the entry counts
are checked against each other.

Usage:
    python tools/rdb_poc.py https://example.com/rdb/Sega%20-%20Dreamcast.rdb
"""

from __future__ import annotations

import argparse
import io
import sys
import textwrap
from pathlib import Path
from typing import Iterable

import msgpack  # type: ignore
import requests

from core.rdb_catalog import HEADER_SIZE, DecodeResult, decode_rdb
from core.rdb_records import GameRecord


def fetch_bytes(source: str) -> bytes:
    path = Path(source)
    if path.exists():
        return path.read_bytes()
    response = requests.get(source, timeout=60)
    response.raise_for_status()
    return response.content


def iter_msgpack_entries(blob: bytes, offset: int = HEADER_SIZE) -> Iterable[dict]:
    unpacker = msgpack.Unpacker(io.BytesIO(blob[offset:]), raw=False, unicode_errors="replace")
    for obj in unpacker:
        if obj is None:
            break
        if isinstance(obj, dict):
            yield obj


def summarize(records: list[GameRecord], limit: int = 5) -> str:
    if not records:
        return "(no entries)"
    lines = []
    for idx, entry in enumerate(records[:limit], 1):
        lines.append(
            f"{idx}. {entry.name or 'Unnamed'}\n"
            f"    Display: {entry.display_name}    Region: {entry.region or '—'}\n"
            f"    CRC32: {entry.crc32_hex}    Size: {entry.size or '—'}\n"
            f"    Serial: {entry.serial or '—'}\n"
            f"    Dev: {entry.developer or '—'}    Pub: {entry.publisher or '—'}"
            f"    Release: {entry.release_year or '—'}"
        )
    return "\n".join(lines)


def describe(result: DecodeResult) -> str:
    catalog = result.catalog
    return (
        f"{len(catalog)} entries, {len(catalog.by_crc32)} indexed by CRC32, "
        f"stopped at offset {result.stop_offset} ({result.stop_reason})"
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="Inspect libretro .rdb files")
    parser.add_argument("source", help="URL or local path to the .rdb file")
    parser.add_argument("--limit", type=int, default=5, help="Number of entries to display")
    parser.add_argument("--compare", action="store_true", help="Cross-check entry count with msgpack")
    args = parser.parse_args()

    try:
        blob = fetch_bytes(args.source)
    except Exception as exc:
        print(f"Failed to fetch {args.source}: {exc}", file=sys.stderr)
        return 1

    result = decode_rdb(blob)
    print(f"Loaded {args.source}: {describe(result)}")
    print("\n" + textwrap.indent(summarize(list(result.catalog.records), args.limit), prefix="  "))

    if args.compare:
        try:
            reference = sum(1 for _ in iter_msgpack_entries(blob))
        except Exception as exc:
            print(f"msgpack could not unpack {args.source}: {exc}", file=sys.stderr)
            return 1
        status = "match" if reference == len(result.catalog) else "MISMATCH"
        print(f"\nmsgpack saw {reference} entries ({status})")
        if reference != len(result.catalog):
            return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
