import zlib
from pathlib import Path
from typing import Dict

from core.naming import display_name, region
from core.rdb_store import MetadataStore, format_crc32, parse_crc32

CHUNK_SIZE = 1024 * 1024


def compute_crc32(path: Path) -> int:
    crc = 0
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(CHUNK_SIZE), b""):
            crc = zlib.crc32(chunk, crc)
    return crc & 0xFFFFFFFF


def identify_rom(path: Path, store: MetadataStore) -> Dict[str, object]:
    """Build a library entry for a ROM file, filled from the RDB when it matches."""
    path = Path(path)
    crc = compute_crc32(path)
    match = store.lookup(crc)
    name = match.name if match and match.name else path.stem
    return {
        "crc32": format_crc32(crc),
        "file": path.name,
        "name": name,
        "display_name": display_name(name),
        "region": region(name),
        "matched": match is not None,
    }


def refresh_library_metadata(games: Dict[str, Dict], store: MetadataStore) -> bool:
    """Update entries keyed by CRC hex with names from the store; True if any changed."""
    updated = False
    for crc, game in games.items():
        try:
            record = store.lookup(parse_crc32(crc))
        except ValueError:
            continue
        if record is None:
            continue
        fresh = {
            "name": record.name,
            "display_name": record.display_name,
            "region": record.region,
        }
        if any(game.get(key) != value for key, value in fresh.items()):
            game.update(fresh)
            updated = True
    return updated
