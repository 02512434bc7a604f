from fastapi import FastAPI, HTTPException

from core.rdb_store import MetadataStore, parse_crc32


app = FastAPI(title="RDB Catalog Backend", version="0.1.0")

_store: MetadataStore | None = None


def get_store() -> MetadataStore:
    global _store
    if _store is None:
        _store = MetadataStore()
        if _store.path.exists():
            _store.load_file()
    return _store


def set_store(store: MetadataStore | None) -> None:
    global _store
    _store = store


@app.get("/healthz")
async def health_check() -> dict:
    """Simple health endpoint for Render probes."""
    return {"status": "ok"}


@app.get("/games")
def game_count() -> dict:
    store = get_store()
    return {
        "system": store.system,
        "count": store.game_count,
        "loaded": store.is_loaded,
    }


@app.get("/games/{crc}")
def lookup_game(crc: str) -> dict:
    try:
        crc32 = parse_crc32(crc)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    record = get_store().lookup(crc32)
    if record is None:
        raise HTTPException(status_code=404, detail=f"No game with CRC32 {crc}")
    return record.to_dict()


@app.post("/reload")
def reload_catalog() -> dict:
    """Re-read the cached RDB file from disk.

    Declared without ``async`` so FastAPI runs the decode in its threadpool.
    """
    store = get_store()
    if not store.path.exists():
        raise HTTPException(status_code=404, detail=f"RDB file not found: {store.path}")
    try:
        result = store.load_file()
    except OSError as exc:
        raise HTTPException(status_code=500, detail=f"Failed to read RDB: {exc}") from exc
    return {
        "system": store.system,
        "count": len(result.catalog),
        "indexed": len(result.catalog.by_crc32),
        "stop_reason": result.stop_reason,
    }
