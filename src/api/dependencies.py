"""Shared dependencies for the API routes.

The personalization engine is built once per process from the service
configuration and cached; routes receive it through ``Depends(get_engine)``
so tests can substitute an engine over an in-memory store.
"""

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

from src.config import config
from src.personalization.catalog import load_catalog
from src.personalization.engine import PersonalizationEngine
from src.personalization.storage import JsonFileStore

# Configure module logger
logger = logging.getLogger(__name__)

# Cache for the engine built from the service configuration
_engine_cache: Optional[PersonalizationEngine] = None
_engine_lock = threading.Lock()
_catalog_loaded_at: Optional[str] = None

# One store per file, kept across engine rebuilds so all writers share its locks
_stores: Dict[str, JsonFileStore] = {}
_stores_lock = threading.Lock()


def open_store(store_path: str) -> JsonFileStore:
    """Return the process-wide store for ``store_path``, creating it once."""
    key = str(Path(store_path).resolve())
    with _stores_lock:
        store = _stores.get(key)
        if store is None:
            store = JsonFileStore(store_path)
            _stores[key] = store
        return store


def build_engine(
    store_path: str = config.store_path,
    catalog_path: str = config.catalog_path,
    index_dir: Optional[str] = config.index_dir,
) -> PersonalizationEngine:
    """Create an engine over a JSON file store and, if present, a catalog.

    A missing or unreadable catalog is logged; the engine still serves
    tracking and scoring requests without one.
    """
    global _catalog_loaded_at

    catalog = None
    try:
        catalog = load_catalog(catalog_path)
        _catalog_loaded_at = datetime.now().isoformat()
    except (FileNotFoundError, ValueError) as e:
        logger.warning(f"Catalog unavailable, recommendations need explicit candidates: {e}")
        _catalog_loaded_at = None

    return PersonalizationEngine(
        open_store(store_path),
        catalog=catalog,
        random_state=config.random_seed,
        index_dir=index_dir,
    )


def get_engine() -> PersonalizationEngine:
    """Return the cached engine, building it on first use."""
    global _engine_cache

    with _engine_lock:
        if _engine_cache is None:
            logger.info(
                "Building personalization engine",
                extra={"store_path": config.store_path, "catalog_path": config.catalog_path},
            )
            _engine_cache = build_engine()
        return _engine_cache


def reset_engine() -> None:
    """Drop the cached engine so the next request rebuilds it.

    The underlying store is kept, so requests still holding the old engine
    keep writing under the same locks.
    """
    global _engine_cache
    with _engine_lock:
        _engine_cache = None


def catalog_loaded_at() -> Optional[str]:
    return _catalog_loaded_at
