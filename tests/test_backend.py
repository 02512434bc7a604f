import inspect

import pytest
from fastapi.testclient import TestClient

from backend.app import main
from core.rdb_store import MetadataStore
from rdb_fixtures import crc, entry, rdb, text


@pytest.fixture
def store(tmp_path):
    store = MetadataStore(settings={
        "data_dir": str(tmp_path),
        "rdb_base": "https://example.com",
        "system": "Sega - Game Gear",
        "max_download_bytes": 1024,
        "timeout": 5,
    })
    store.path.parent.mkdir(parents=True)
    store.path.write_bytes(rdb(
        entry(("name", text("Sonic (USA)")), ("crc", crc(0xABCDEF01)), ("genre", text("Action"))),
        entry(("name", text("No Checksum"))),
    ))
    store.load_file()
    main.set_store(store)
    yield store
    main.set_store(None)


@pytest.fixture
def client(store):
    return TestClient(main.app)


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_game_count(client):
    payload = client.get("/games").json()
    assert payload == {"system": "Sega - Game Gear", "count": 2, "loaded": True}


def test_lookup_found(client):
    response = client.get("/games/abcdef01")
    assert response.status_code == 200
    payload = response.json()
    assert payload["name"] == "Sonic (USA)"
    assert payload["display_name"] == "Sonic"
    assert payload["region"] == "us"
    assert payload["crc32"] == "ABCDEF01"
    assert payload["genre"] == "Action"


def test_lookup_missing_and_invalid(client):
    assert client.get("/games/00000002").status_code == 404
    assert client.get("/games/zzzz").status_code == 400


@pytest.mark.parametrize("crc", ["-1", "+ff", "1_0"])
def test_lookup_rejects_signed_or_separated_hex(client, crc):
    assert client.get(f"/games/{crc}").status_code == 400


def test_reload_picks_up_new_file(client, store):
    store.path.write_bytes(rdb(entry(("name", text("Columns (Japan)")), ("crc", crc(2)))))
    payload = client.post("/reload").json()
    assert payload["count"] == 1
    assert payload["indexed"] == 1
    assert payload["stop_reason"] == "terminator"
    assert client.get("/games/00000002").json()["region"] == "jp"
    assert client.get("/games/abcdef01").status_code == 404


def test_reload_without_file(client, store):
    store.path.unlink()
    assert client.post("/reload").status_code == 404


@pytest.mark.parametrize("endpoint", [main.game_count, main.lookup_game, main.reload_catalog])
def test_store_endpoints_run_in_threadpool(endpoint):
    assert not inspect.iscoroutinefunction(endpoint)
