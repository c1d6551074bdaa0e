import json
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

# Storage keys shared with the web client
CURRENT_PROFILE_KEY = "userProfile"
ALL_PROFILES_KEY = "userProfiles"
REPORTS_KEY = "mockReports"
LANGUAGE_KEY = "language"


class KeyValueStore:
    """String key/value storage, shaped like the browser's localStorage"""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class InMemoryStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """All keys in one JSON file; every write rewrites the file.

    Read-merge-write with no locking across processes, so two writers can
    overwrite each other.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Store file {} unreadable, starting empty: {}", self.path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _save(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self.path)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if key in data:
                del data[key]
                self._save(data)


def read_json(store: KeyValueStore, key: str, default: Any) -> Any:
    """Parse a JSON value; missing, malformed or wrongly-typed data yields default"""
    raw = store.get(key)
    if raw is None:
        return default
    try:
        value = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring corrupt JSON under {!r}", key)
        return default
    if default is not None and not isinstance(value, type(default)):
        logger.warning("Ignoring {!r}: expected {}, found {}", key, type(default).__name__, type(value).__name__)
        return default
    return value


def write_json(store: KeyValueStore, key: str, value: Any) -> None:
    store.set(key, json.dumps(value, ensure_ascii=False))
