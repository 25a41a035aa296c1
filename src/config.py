"""Service configuration read from the environment.

Values may also come from a ``.env`` file in the working directory.
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


def _optional_int(value: Optional[str]) -> Optional[int]:
    return int(value) if value not in (None, "") else None


class ServiceConfig(BaseModel):
    store_path: str = os.getenv("SHOPPERSONA_STORE_PATH", "data/personalization_store.json")
    catalog_path: str = os.getenv("SHOPPERSONA_CATALOG_PATH", "data/catalog.csv")
    log_level: str = os.getenv("SHOPPERSONA_LOG_LEVEL", "INFO")
    random_seed: Optional[int] = _optional_int(os.getenv("SHOPPERSONA_RANDOM_SEED"))
    index_dir: Optional[str] = os.getenv("SHOPPERSONA_INDEX_DIR") or None


config = ServiceConfig()
