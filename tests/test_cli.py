import json
import sys
from unittest.mock import patch

import pytest

import rdb_manager
from tools import rdb_poc
from utils.backend_client import BackendError
from utils.paths import rdb_path
from utils.settings import ENV_OVERRIDES, load_settings
from rdb_fixtures import crc, entry, rdb, text, uint

SYSTEM = "Sega - Game Gear"


@pytest.fixture
def cached_rdb(tmp_path, monkeypatch):
    monkeypatch.setenv("RDB_CATALOG_CONFIG", str(tmp_path / "settings.json"))
    monkeypatch.setenv("RDB_CATALOG_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("RDB_CATALOG_SYSTEM", SYSTEM)
    path = rdb_path(SYSTEM, load_settings())
    path.parent.mkdir(parents=True)
    path.write_bytes(rdb(
        entry(("name", text("Sonic (USA)")), ("crc", crc(0xABCDEF01)), ("releaseyear", uint(1991, 2))),
        entry(("name", text("Columns (Japan)")), ("crc", crc(2))),
    ))
    return path


def test_lookup_prints_record(cached_rdb, capsys):
    rdb_manager.cmd_lookup("abcdef01")
    out = capsys.readouterr().out
    assert "Sonic [us]" in out
    assert "ABCDEF01" in out
    assert "1991" in out


def test_lookup_missing_exits(cached_rdb):
    with pytest.raises(SystemExit) as excinfo:
        rdb_manager.cmd_lookup("00000099")
    assert excinfo.value.code == 1


def test_search_and_info(cached_rdb, capsys):
    rdb_manager.cmd_search("columns")
    assert "Found 1 matches" in capsys.readouterr().out
    rdb_manager.cmd_info(limit=5)
    out = capsys.readouterr().out
    assert "2 games, 2 with CRC32" in out


def test_commands_require_cached_file(tmp_path, monkeypatch):
    monkeypatch.setenv("RDB_CATALOG_CONFIG", str(tmp_path / "settings.json"))
    monkeypatch.setenv("RDB_CATALOG_DATA_DIR", str(tmp_path / "empty"))
    with pytest.raises(SystemExit):
        rdb_manager.cmd_info()


def test_rdb_poc_compares_with_msgpack(cached_rdb, capsys, monkeypatch):
    monkeypatch.setattr(sys, "argv", ["rdb_poc.py", str(cached_rdb), "--compare"])
    assert rdb_poc.main() == 0
    out = capsys.readouterr().out
    assert "2 entries, 2 indexed by CRC32" in out
    assert "msgpack saw 2 entries (match)" in out


def test_lookup_remote_uses_backend(capsys):
    payload = {
        "name": "Sonic (USA)", "display_name": "Sonic", "region": "us",
        "crc32": "ABCDEF01", "serial": "", "developer": "Sega", "publisher": "",
        "genre": "", "release_month": 0, "release_year": 1991,
    }
    with patch("rdb_manager.lookup_game", return_value=payload) as lookup:
        rdb_manager.cmd_lookup("abcdef01", remote=True)
    lookup.assert_called_once_with("abcdef01")
    out = capsys.readouterr().out
    assert "Sonic [us]" in out
    assert "Developer: Sega" in out


def test_lookup_remote_missing_or_failing_exits():
    with patch("rdb_manager.lookup_game", return_value=None):
        with pytest.raises(SystemExit):
            rdb_manager.cmd_lookup("00000001", remote=True)
    with patch("rdb_manager.lookup_game", side_effect=BackendError("down")):
        with pytest.raises(SystemExit):
            rdb_manager.cmd_lookup("00000001", remote=True)


def test_info_remote(capsys):
    with patch("rdb_manager.fetch_game_count", return_value={"system": SYSTEM, "count": 7}):
        rdb_manager.cmd_info(remote=True)
    assert "Sega - Game Gear: 7 games (backend)" in capsys.readouterr().out


def test_settings_set_persists_values(tmp_path, monkeypatch, capsys):
    config = tmp_path / "settings.json"
    monkeypatch.setenv("RDB_CATALOG_CONFIG", str(config))
    for env_name, _ in ENV_OVERRIDES.values():
        monkeypatch.delenv(env_name, raising=False)
    rdb_manager.cmd_settings(["system=Atari - 2600", "timeout=30"])
    saved = json.loads(config.read_text())
    assert saved["system"] == "Atari - 2600"
    assert saved["timeout"] == 30
    assert "system: Atari - 2600" in capsys.readouterr().out


@pytest.mark.parametrize("assignment", ["nope=1", "timeout", "timeout=soon"])
def test_settings_set_rejects_bad_input(tmp_path, monkeypatch, assignment):
    config = tmp_path / "settings.json"
    monkeypatch.setenv("RDB_CATALOG_CONFIG", str(config))
    with pytest.raises(SystemExit):
        rdb_manager.cmd_settings([assignment])
    assert not config.exists()


def test_artwork_downloads_for_cached_catalog(cached_rdb, tmp_path, capsys):
    with patch("rdb_manager.download_missing_artwork", return_value=1) as download:
        rdb_manager.cmd_artwork(["abcdef01"])
    crcs, store = download.call_args[0]
    assert crcs == ["abcdef01"]
    assert store.lookup("ABCDEF01").name == "Sonic (USA)"
    assert "Saved 1 image(s)" in capsys.readouterr().out
