"""
Recently analyzed links, persisted locally.

The cache keeps at most ``HISTORY_LIMIT`` entries, one per URL, most
recent first. Re-recording a URL moves it to the front instead of adding
a duplicate. Each browser gets its own store file, so visitors of the
same server never see each other's links.
"""

import json
import logging
import os
import re
import tempfile
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol

from app_config import HISTORY_LIMIT, HISTORY_STORAGE_KEY, get_data_dir
from models import HistoryItem

logger = logging.getLogger(__name__)

BROWSER_ID_PATTERN = re.compile(r'[0-9a-f]{32}')

# One lock per store file, shared by every session of this process
_PATH_LOCKS: Dict[str, threading.RLock] = {}
_PATH_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Path) -> threading.RLock:
    with _PATH_LOCKS_GUARD:
        return _PATH_LOCKS.setdefault(str(path.absolute()), threading.RLock())


def is_valid_browser_id(browser_id: Optional[str]) -> bool:
    return bool(browser_id) and BROWSER_ID_PATTERN.fullmatch(browser_id) is not None


class KeyValueStore(Protocol):
    """Opaque local key-value storage."""

    def get(self, key: str) -> Optional[Any]:
        """Return the stored value or None."""

    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value."""

    def update(self, key: str, func: Callable[[Optional[Any]], Any]) -> Any:
        """Replace the value with ``func(current)`` as one step and return it."""

    def delete(self, key: str) -> None:
        """Remove a key if present."""


class MemoryStore:
    """Process-local store."""

    def __init__(self):
        self._data: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def update(self, key: str, func: Callable[[Optional[Any]], Any]) -> Any:
        with self._lock:
            value = self._data[key] = func(self._data.get(key))
        return value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """
    Stores all keys in one JSON object on disk.

    Reads and read-modify-writes hold a per-file lock, and every write goes
    through its own temp file before replacing the target. A write that
    fails is logged and dropped; the store then behaves as if nothing was
    persisted.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else get_data_dir() / "local_storage.json"
        self._lock = _lock_for(self.path)

    @classmethod
    def for_browser(cls, browser_id: str, data_dir: Optional[Path] = None) -> "JsonFileStore":
        """
        Store private to one browser.

        Raises:
            ValueError: If ``browser_id`` is not a 32-char hex id
        """
        if not is_valid_browser_id(browser_id):
            raise ValueError(f"Invalid browser id {browser_id!r}")
        return cls(Path(data_dir or get_data_dir()) / "browsers" / f"{browser_id}.json")

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable local storage at %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed local storage at %s", self.path)
            return {}
        return data

    def _save(self, data: Dict[str, Any]) -> bool:
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f"{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except OSError as e:
            logger.warning("Could not write local storage at %s: %s", self.path, e)
            if tmp_name and os.path.exists(tmp_name):
                os.remove(tmp_name)
            return False
        return True

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)

    def update(self, key: str, func: Callable[[Optional[Any]], Any]) -> Any:
        with self._lock:
            data = self._load()
            value = data[key] = func(data.get(key))
            self._save(data)
        return value

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if key in data:
                del data[key]
                self._save(data)


def _now_ms() -> int:
    return int(time.time() * 1000)


class HistoryCache:
    """Bounded, deduplicated, most-recent-first list of submitted links."""

    def __init__(
        self,
        store: KeyValueStore,
        key: str = HISTORY_STORAGE_KEY,
        limit: int = HISTORY_LIMIT,
        clock: Callable[[], int] = _now_ms,
    ):
        self.store = store
        self.key = key
        self.limit = limit
        self.clock = clock

    def _parse(self, raw: Any) -> List[HistoryItem]:
        raw = raw or []
        if not isinstance(raw, list):
            logger.warning("Discarding malformed history under %r", self.key)
            return []

        items: List[HistoryItem] = []
        seen = set()
        for entry in raw:
            try:
                item = HistoryItem.from_dict(entry)
            except (KeyError, TypeError, ValueError):
                continue
            if item.url in seen:
                continue
            seen.add(item.url)
            items.append(item)

        # Stored order is submission order, newest first
        return items[:self.limit]

    def _load(self) -> List[HistoryItem]:
        return self._parse(self.store.get(self.key))

    def record(self, url: str) -> HistoryItem:
        """Add a URL at the front, dropping any earlier entry for it."""
        item = HistoryItem(url=url, timestamp=self.clock())

        def prepend(raw: Any) -> List[Dict[str, Any]]:
            remaining = [existing for existing in self._parse(raw) if existing.url != url]
            return [entry.to_dict() for entry in [item] + remaining[:self.limit - 1]]

        self.store.update(self.key, prepend)
        return item

    def clear(self) -> None:
        self.store.set(self.key, [])

    def list(self) -> List[HistoryItem]:
        return self._load()

    def __len__(self) -> int:
        return len(self._load())


def format_age(timestamp_ms: int, now_ms: Optional[int] = None) -> str:
    """Short relative age for a history entry."""
    now_ms = _now_ms() if now_ms is None else now_ms
    minutes = (now_ms - timestamp_ms) // (1000 * 60)

    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"

    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"

    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%x")
