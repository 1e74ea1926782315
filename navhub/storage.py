import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import quote

from pydantic import ValidationError as SchemaError

from .models import AppData

logger = logging.getLogger(__name__)

# Keys of the remote key-value store.
ADMIN_CONFIG_KEY = "admin_config"
APP_DATA_KEY = "app_data"
SEARCH_CONFIG_KEY = "search_config"
AI_CONFIG_KEY = "ai_config"
WEBSITE_CONFIG_KEY = "website_config"
LAST_AUTH_TIME_KEY = "last_auth_time"
FAVICON_KEY_PREFIX = "favicon:"


def _write_json(path: Path, payload: Any):
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    os.replace(tmp, path)


class FileKVStore:
    """
    String key-value store, one JSON file per key under ``data_dir``.
    Entries written with a TTL read back as missing once it has passed.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{quote(key, safe='')}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        with self._lock:
            if not path.exists():
                return None
            try:
                entry = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning("Unreadable entry for %s: %s", key, exc)
                return None
            expires_at = entry.get("expiresAt")
            if expires_at is not None and time.time() >= expires_at:
                path.unlink(missing_ok=True)
                return None
            return entry.get("value")

    def put(self, key: str, value: str, ttl_seconds: Optional[int] = None):
        entry = {
            "value": value,
            "expiresAt": time.time() + ttl_seconds if ttl_seconds else None,
        }
        with self._lock:
            _write_json(self._path(key), entry)

    def delete(self, key: str):
        with self._lock:
            self._path(key).unlink(missing_ok=True)


class LocalCache:
    """
    Client-side durable cache: the last known document plus the admin
    credential and when it was issued. One JSON file.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable local cache %s: %s", self.path, exc)
            return {}
        return raw if isinstance(raw, dict) else {}

    def _write(self, contents: Dict[str, Any]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        _write_json(self.path, contents)

    def load_data(self) -> Optional[AppData]:
        raw = self._read().get("data")
        if raw is None:
            return None
        try:
            return AppData.from_json(raw)
        except SchemaError as exc:
            logger.warning("Cached document failed validation, ignoring it: %s", exc)
            return None

    def save_data(self, data: AppData):
        contents = self._read()
        contents["data"] = data.to_json_dict()
        self._write(contents)

    def load_credential(self) -> Optional[Dict[str, Any]]:
        auth = self._read().get("auth")
        if not isinstance(auth, dict) or not auth.get("token"):
            return None
        return auth

    def save_credential(self, token: str, issued_at: int):
        contents = self._read()
        contents["auth"] = {"token": token, "issuedAt": issued_at}
        self._write(contents)

    def clear_credential(self):
        contents = self._read()
        if contents.pop("auth", None) is not None:
            self._write(contents)
