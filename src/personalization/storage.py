"""Key-value storage for personalization state.

All personalization data lives under a small set of flat string keys holding
JSON-serialized values. The store is passed explicitly to the tracker, scorer
and selector so that tests can swap in an in-memory backend.
"""

import json
import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

# Configure module logger
logger = logging.getLogger(__name__)

# Current on-disk layout of the stored JSON values
SCHEMA_VERSION = 1


class StorageKeys:
    """Storage key names shared with the storefront's browser storage."""

    BROWSING_HISTORY = "user_browsing_history"
    PRODUCT_VIEWS = "product_view_count"
    CATEGORY_PREFERENCES = "category_preferences"
    SEARCH_HISTORY = "search_history"
    PERSONALIZATION_PROFILE = "personalization_profile"
    RECOMMENDATION_FEEDBACK = "recommendation_feedback"
    PERSONALIZATION_METRICS = "personalization_metrics"
    PERSONALIZATION_SETTINGS = "personalization_settings"

    SCHEMA_VERSION = "personalization_schema_version"
    PERFORMANCE_DATA = "personalization_performance_data"

    @classmethod
    def personalization_keys(cls) -> List[str]:
        """Keys purged when a shopper clears their personalization data."""
        return [
            cls.BROWSING_HISTORY,
            cls.PRODUCT_VIEWS,
            cls.CATEGORY_PREFERENCES,
            cls.SEARCH_HISTORY,
            cls.PERSONALIZATION_PROFILE,
            cls.RECOMMENDATION_FEEDBACK,
            cls.PERSONALIZATION_METRICS,
            cls.PERSONALIZATION_SETTINGS,
        ]


class StorageError(Exception):
    """Raised when the backing store cannot be read or written."""


class KeyValueStore:
    """Base class for string key-value stores.

    Subclasses implement ``get``, ``set``, ``remove`` and ``keys``. The base
    class provides per-key locks and JSON helpers on top of them.
    """

    def __init__(self):
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def keys(self) -> List[str]:
        raise NotImplementedError

    @contextmanager
    def lock(self, key: str) -> Iterator[None]:
        """Hold the lock guarding read-modify-write cycles on ``key``."""
        with self._locks_guard:
            key_lock = self._locks.get(key)
            if key_lock is None:
                key_lock = threading.RLock()
                self._locks[key] = key_lock
        with key_lock:
            yield

    def read_json(self, key: str, default: Any = None) -> Any:
        """Read and decode the JSON value stored under ``key``.

        Missing keys and corrupted values both return ``default``; corruption
        is logged so it can be noticed without breaking the caller.
        """
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(
                "Discarding corrupted stored value",
                extra={"key": key, "error": str(e)},
            )
            return default

    def write_json(self, key: str, value: Any) -> None:
        """Encode ``value`` as JSON and store it under ``key``."""
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Cannot serialize value for '{key}': {e}") from e
        self.set(key, payload)


class InMemoryStore(KeyValueStore):
    """Process-local store backed by a dictionary."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        super().__init__()
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StorageError(f"Stored values must be strings, got {type(value).__name__}")
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data.keys())


class JsonFileStore(KeyValueStore):
    """Store persisted as a single JSON object in a file.

    Every write rewrites the file through a temporary sibling and an atomic
    rename, so a crash mid-write leaves the previous contents intact.

    Args:
        path: Location of the JSON file. Parent directories are created on
            the first write.
    """

    def __init__(self, path: str):
        super().__init__()
        self.path = Path(path)
        self._file_lock = threading.Lock()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except ValueError as e:
            logger.error(f"Store file {self.path} is corrupted, starting empty: {e}")
            return {}
        except OSError as e:
            raise StorageError(f"Cannot read store file {self.path}: {e}") from e

        if not isinstance(data, dict):
            logger.error(f"Store file {self.path} does not hold a JSON object, starting empty")
            return {}
        return data

    def _dump(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StorageError(f"Cannot write store file {self.path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        with self._file_lock:
            return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StorageError(f"Stored values must be strings, got {type(value).__name__}")
        with self._file_lock:
            data = self._load()
            data[key] = value
            self._dump(data)

    def remove(self, key: str) -> None:
        with self._file_lock:
            data = self._load()
            if key in data:
                del data[key]
                self._dump(data)

    def keys(self) -> List[str]:
        with self._file_lock:
            return list(self._load().keys())


def check_schema_version(store: KeyValueStore) -> bool:
    """Check whether stored data can be interpreted by this version.

    Data without a version marker was written by the storefront's browser
    storage and uses the version 1 layout.

    Returns:
        True if the stored data is readable, False if it was written by a
        newer schema.
    """
    version = store.read_json(StorageKeys.SCHEMA_VERSION, default=SCHEMA_VERSION)
    if not isinstance(version, int) or version > SCHEMA_VERSION:
        logger.warning(
            "Stored personalization data uses an unsupported schema",
            extra={"stored_version": version, "supported_version": SCHEMA_VERSION},
        )
        return False
    return True


def mark_schema_version(store: KeyValueStore) -> None:
    """Stamp the store with the current schema version if unmarked."""
    if store.get(StorageKeys.SCHEMA_VERSION) is None:
        store.write_json(StorageKeys.SCHEMA_VERSION, SCHEMA_VERSION)
