import os
from typing import Dict, Optional

import requests

DEFAULT_API_BASE = "http://localhost:8000"


class BackendError(RuntimeError):
    """Raised when the backend API returns an error or invalid data."""


def _api_base() -> str:
    return os.environ.get("RDB_CATALOG_BACKEND", DEFAULT_API_BASE).rstrip("/")


def _get(path: str, timeout: int = 15) -> requests.Response:
    url = f"{_api_base()}{path}"
    try:
        return requests.get(url, timeout=timeout)
    except requests.RequestException as exc:
        raise BackendError(f"Backend request failed: {exc}") from exc


def _json(response: requests.Response) -> Dict:
    try:
        return response.json()
    except ValueError as exc:
        raise BackendError(f"Invalid JSON payload: {exc}") from exc


def fetch_game_count() -> Dict[str, object]:
    response = _get("/games")
    if response.status_code != 200:
        raise BackendError(f"Backend returned {response.status_code}: {response.text}")
    payload = _json(response)
    return {
        "system": payload.get("system"),
        "count": payload.get("count"),
    }


def lookup_game(crc: str) -> Optional[Dict]:
    """Return the game for ``crc`` (hex), or None when the backend has no match."""
    response = _get(f"/games/{crc}")
    if response.status_code == 404:
        return None
    if response.status_code != 200:
        raise BackendError(f"Backend returned {response.status_code}: {response.text}")
    return _json(response)
