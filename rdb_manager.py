#!/usr/bin/env python3
import argparse
import json
import logging
import sys
from typing import Optional

from core.rdb_store import MetadataStore
from utils.artwork import download_missing_artwork
from utils.backend_client import BackendError, fetch_game_count, lookup_game
from utils.library_sync import RDBError
from utils.paths import list_cached_rdbs
from utils.rom_import import identify_rom
from utils.settings import DEFAULTS, config_path, load_settings, save_settings


def _store(system: Optional[str]) -> MetadataStore:
    return MetadataStore(system=system)


def _load_local(store: MetadataStore) -> None:
    if not store.path.exists():
        print(f"❌ No RDB cached for {store.system}. Run `fetch` first.")
        sys.exit(1)
    try:
        store.load_file()
    except OSError as exc:
        print(f"❌ Failed to read {store.path}: {exc}")
        sys.exit(1)


# -------------------------------------------------------------------
# Commands
# -------------------------------------------------------------------

def cmd_fetch(system=None):
    """Download the RDB for a system and report what it contains."""
    store = _store(system)
    print(f"⬇️ Downloading RDB for {store.system} …")
    try:
        result = store.download_and_load()
    except RDBError as exc:
        print(f"❌ {exc}")
        sys.exit(1)
    if result is None:
        print("⚠️ A download is already running.")
        return
    print(f"✅ Saved to {store.path} ({store.game_count} games)")


def cmd_info(system=None, limit=10, remote=False):
    if remote:
        try:
            summary = fetch_game_count()
        except BackendError as exc:
            print(f"❌ {exc}")
            sys.exit(1)
        print(f"📋 {summary['system']}: {summary['count']} games (backend)")
        return
    store = _store(system)
    _load_local(store)
    result = store.last_result
    catalog = store.catalog
    print(f"📋 {store.system}: {len(catalog)} games, {len(catalog.by_crc32)} with CRC32")
    if not result.complete:
        print(f"⚠️ Decode stopped early at offset {result.stop_offset} ({result.stop_reason})")
    for record in catalog.records[:limit]:
        print(f"  {record.crc32_hex}  {record.name}")


def _print_record(payload):
    print(f"🎮 {payload['display_name']} [{payload['region'] or '—'}]")
    print(f"    Name: {payload['name']}")
    print(f"    CRC32: {payload['crc32']}    Serial: {payload['serial'] or '—'}")
    print(f"    Developer: {payload['developer'] or '—'}    Publisher: {payload['publisher'] or '—'}")
    print(f"    Genre: {payload['genre'] or '—'}    Released: {payload['release_month'] or '—'}/{payload['release_year'] or '—'}")


def cmd_lookup(crc, system=None, as_json=False, remote=False):
    if remote:
        try:
            payload = lookup_game(crc)
        except BackendError as exc:
            print(f"❌ {exc}")
            sys.exit(1)
        where = "the backend"
    else:
        store = _store(system)
        _load_local(store)
        record = store.lookup(crc)
        payload = record.to_dict() if record else None
        where = store.system
    if payload is None:
        print(f"❌ No game with CRC32 {crc} in {where}.")
        sys.exit(1)
    if as_json:
        print(json.dumps(payload, indent=2))
        return
    _print_record(payload)


def cmd_search(query, system=None, limit=20):
    store = _store(system)
    _load_local(store)
    needle = query.lower()
    matches = [r for r in store.catalog.records if needle in r.name.lower()]
    print(f"🔍 Found {len(matches)} matches for '{query}':\n")
    for record in matches[:limit]:
        print(f"  {record.crc32_hex}  {record.name}")


def cmd_identify(paths, system=None):
    store = _store(system)
    _load_local(store)
    for path in paths:
        try:
            entry = identify_rom(path, store)
        except OSError as exc:
            print(f"❌ {path}: {exc}")
            continue
        mark = "✅" if entry["matched"] else "⚠️"
        print(f"{mark} {entry['file']}: {entry['crc32']} → {entry['display_name']} [{entry['region'] or '—'}]")


def cmd_artwork(crcs, system=None):
    store = _store(system)
    _load_local(store)
    print(f"🖼️ Fetching box art for {len(crcs)} game(s) …")
    saved = download_missing_artwork(crcs, store)
    if saved is None:
        print("⚠️ An artwork download is already running.")
        return
    print(f"✅ Saved {saved} image(s)")


def _apply_assignments(settings, assignments):
    for assignment in assignments:
        key, sep, raw = assignment.partition("=")
        key = key.strip()
        if not sep or key not in DEFAULTS:
            print(f"❌ Unknown setting: {assignment}")
            sys.exit(1)
        try:
            settings[key] = type(DEFAULTS[key])(raw.strip())
        except ValueError:
            print(f"❌ Invalid value for {key}: {raw!r}")
            sys.exit(1)
    path = save_settings(settings)
    print(f"💾 Saved {len(assignments)} setting(s) to {path}")


def cmd_settings(assignments=None):
    settings = load_settings()
    if assignments:
        _apply_assignments(settings, assignments)
        settings = load_settings()
    print(f"⚙️ Settings ({config_path()}):")
    for key, value in settings.items():
        print(f"  {key}: {value}")
    cached = list_cached_rdbs(settings)
    print(f"\n📦 Cached RDB files: {len(cached)}")
    for item in cached:
        print(f"  - {item['slug']} ({item['size']} bytes)")


# -------------------------------------------------------------------
# Main CLI
# -------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(
        description="RDB Catalog CLI: fetch and query libretro game metadata"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    fetch_parser = sub.add_parser("fetch", help="Download the RDB for a system")
    fetch_parser.add_argument("--system", help="libretro system name (e.g., 'Sega - Mega Drive - Genesis')")

    info_parser = sub.add_parser("info", help="Summarize the cached RDB")
    info_parser.add_argument("--system", help="libretro system name")
    info_parser.add_argument("--limit", type=int, default=10, help="Number of entries to show")
    info_parser.add_argument("--remote", action="store_true", help="Ask the backend API instead of the local file")

    lookup_parser = sub.add_parser("lookup", help="Look up a game by CRC32")
    lookup_parser.add_argument("crc", help="CRC32 in hex (e.g., 1A2B3C4D)")
    lookup_parser.add_argument("--system", help="libretro system name")
    lookup_parser.add_argument("--json", action="store_true", help="Print the record as JSON")
    lookup_parser.add_argument("--remote", action="store_true", help="Ask the backend API instead of the local file")

    search_parser = sub.add_parser("search", help="Search games by name")
    search_parser.add_argument("query", help="Search term")
    search_parser.add_argument("--system", help="libretro system name")
    search_parser.add_argument("--limit", type=int, default=20, help="Number of entries to show")

    identify_parser = sub.add_parser("identify", help="Identify ROM files by CRC32")
    identify_parser.add_argument("paths", nargs="+", help="ROM files")
    identify_parser.add_argument("--system", help="libretro system name")

    artwork_parser = sub.add_parser("artwork", help="Download box art for games by CRC32")
    artwork_parser.add_argument("crcs", nargs="+", help="CRC32 values in hex")
    artwork_parser.add_argument("--system", help="libretro system name")

    settings_parser = sub.add_parser("settings", help="Show effective settings and cached files")
    settings_parser.add_argument("--set", dest="assignments", action="append", metavar="KEY=VALUE", help="Persist a setting (repeatable)")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "fetch":
        cmd_fetch(system=args.system)
    elif args.command == "info":
        cmd_info(system=args.system, limit=args.limit, remote=args.remote)
    elif args.command == "lookup":
        cmd_lookup(args.crc, system=args.system, as_json=args.json, remote=args.remote)
    elif args.command == "search":
        cmd_search(args.query, system=args.system, limit=args.limit)
    elif args.command == "identify":
        cmd_identify(args.paths, system=args.system)
    elif args.command == "artwork":
        cmd_artwork(args.crcs, system=args.system)
    elif args.command == "settings":
        cmd_settings(args.assignments)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
