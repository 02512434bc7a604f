from unittest.mock import Mock, patch

import pytest
import requests

from core.rdb_store import MetadataStore
from utils import artwork
from utils.artwork import derive_artwork_url, download_missing_artwork, encode_artwork_name, fetch_artwork
from utils.settings import DEFAULTS
from rdb_fixtures import crc, entry, rdb, text

BASE = "https://thumbs.example.com"
PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 8


def _settings(tmp_path, **overrides):
    settings = dict(
        DEFAULTS,
        data_dir=str(tmp_path),
        system="Sega - Game Gear",
        thumbnail_base=BASE,
        max_artwork_bytes=64,
        artwork_timeout=3,
    )
    settings.update(overrides)
    return settings


def _response(status=200, chunks=(PNG,), headers=None):
    resp = Mock(status_code=status)
    resp.headers = headers or {}
    resp.iter_content.return_value = list(chunks)
    return resp


@pytest.mark.parametrize("name,expected", [
    ("Sonic the Hedgehog (USA, Europe)", "Sonic%20the%20Hedgehog%20(USA,%20Europe)"),
    ("Tom & Jerry (USA)", "Tom%20_%20Jerry%20(USA)"),
    ("What?: Part 1/2 (Japan)", "What__%20Part%201_2%20(Japan)"),
])
def test_encode_artwork_name(name, expected):
    assert encode_artwork_name(name) == expected


def test_derive_artwork_url():
    url = derive_artwork_url("Tom & Jerry (USA)", "Nintendo - Game Boy Advance", BASE)
    assert url == (
        f"{BASE}/Nintendo_-_Game_Boy_Advance/master/Named_Boxarts/Tom%20_%20Jerry%20(USA).png"
    )


def test_derive_artwork_url_needs_name_and_system():
    assert derive_artwork_url("", "Sega - Game Gear", BASE) is None
    assert derive_artwork_url("Sonic (USA)", " ", BASE) is None


def test_fetch_artwork_saves_image_per_crc(tmp_path):
    settings = _settings(tmp_path)
    with patch("utils.artwork.requests.get") as get:
        get.return_value = _response()
        path = fetch_artwork("abcdef01", "Sonic (USA)", settings=settings)

    assert path == tmp_path / "artwork" / "ABCDEF01.png"
    assert path.read_bytes() == PNG
    args, kwargs = get.call_args
    assert args[0] == f"{BASE}/Sega_-_Game_Gear/master/Named_Boxarts/Sonic%20(USA).png"
    assert kwargs["timeout"] == 3
    assert kwargs["stream"] is True
    get.return_value.close.assert_called_once()


def test_fetch_artwork_missing_image(tmp_path):
    settings = _settings(tmp_path)
    with patch("utils.artwork.requests.get") as get:
        get.return_value = _response(status=404, chunks=[b"Not Found"])
        assert fetch_artwork("00000001", "Nothing (USA)", settings=settings) is None
    assert not (tmp_path / "artwork").exists()


@pytest.mark.parametrize("headers,chunks", [
    ({"content-length": "65"}, [PNG]),
    ({}, [b"x" * 40, b"x" * 40]),
])
def test_fetch_artwork_rejects_oversized_image(tmp_path, headers, chunks):
    settings = _settings(tmp_path)
    with patch("utils.artwork.requests.get") as get:
        get.return_value = _response(chunks=chunks, headers=headers)
        assert fetch_artwork("00000001", "Huge (USA)", settings=settings) is None
    assert not (tmp_path / "artwork" / "00000001.png").exists()


def test_fetch_artwork_network_error(tmp_path):
    settings = _settings(tmp_path)
    with patch("utils.artwork.requests.get", side_effect=requests.ConnectionError("down")):
        assert fetch_artwork("00000001", "Sonic (USA)", settings=settings) is None


@pytest.fixture
def store(tmp_path):
    store = MetadataStore(settings=_settings(tmp_path))
    store.load_bytes(rdb(
        entry(("name", text("Sonic (USA)")), ("crc", crc(0xABCDEF01))),
        entry(("name", text("Columns (Japan)")), ("crc", crc(2))),
    ))
    return store


def test_download_missing_artwork_skips_saved_and_unknown(store, tmp_path):
    existing = tmp_path / "artwork" / "00000002.png"
    existing.parent.mkdir(parents=True)
    existing.write_bytes(b"old")

    with patch("utils.artwork.requests.get") as get:
        get.return_value = _response()
        count = download_missing_artwork(["abcdef01", "00000002", "00000099", "junk"], store)

    assert count == 1
    assert get.call_count == 1
    assert "Sonic%20(USA).png" in get.call_args[0][0]
    assert (tmp_path / "artwork" / "ABCDEF01.png").read_bytes() == PNG
    assert existing.read_bytes() == b"old"


def test_download_missing_artwork_counts_only_saved(store):
    with patch("utils.artwork.requests.get") as get:
        get.return_value = _response(status=404)
        assert download_missing_artwork(["ABCDEF01", "00000002"], store) == 0
    assert get.call_count == 2


def test_overlapping_artwork_runs_are_skipped(store):
    assert artwork._missing_lock.acquire(blocking=False)
    try:
        with patch("utils.artwork.requests.get") as get:
            assert download_missing_artwork(["ABCDEF01"], store) is None
        get.assert_not_called()
    finally:
        artwork._missing_lock.release()
