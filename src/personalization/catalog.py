"""Product catalog loading.

The personalization engine only needs each product's ``id`` and
``category``; every other column is carried through untouched so that
recommendations can be rendered from the returned records.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

# Configure module logger
logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {"id", "category"}

# Products with at least this rating count as popular
POPULAR_RATING = 4.0


class Catalog:
    """In-memory product catalog.

    Args:
        products: Product records, each with at least ``id`` and ``category``.
    """

    def __init__(self, products: Iterable[Dict[str, Any]]):
        self.products: List[Dict[str, Any]] = list(products)
        self._by_id = {str(p["id"]): p for p in self.products}
        logger.info(f"Initialized Catalog with {len(self.products)} products")

    def __len__(self) -> int:
        return len(self.products)

    def __iter__(self):
        return iter(self.products)

    def get(self, product_id: Any) -> Optional[Dict[str, Any]]:
        return self._by_id.get(str(product_id))

    def ids(self) -> List[str]:
        return list(self._by_id.keys())

    def by_category(self, category: str) -> List[Dict[str, Any]]:
        return [p for p in self.products if p.get("category") == category]

    def featured(self) -> List[Dict[str, Any]]:
        return [p for p in self.products if p.get("featured")]

    def popular(self) -> List[Dict[str, Any]]:
        """Featured or highly rated products, in catalog order."""
        return [
            p for p in self.products
            if p.get("featured") or (p.get("rating") or 0) >= POPULAR_RATING
        ]

    def bestsellers(self) -> List[Dict[str, Any]]:
        """Products ordered by rating, best first."""
        return sorted(self.products, key=lambda p: p.get("rating") or 0, reverse=True)


def load_catalog(path: str) -> Catalog:
    """Load a product catalog from a CSV or JSON file.

    Args:
        path: Path to a ``.csv`` file, or a ``.json`` file holding a list of
            product objects.

    Returns:
        The loaded catalog. Missing cells become ``None``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the format is unsupported, the file is empty, a
            required column is missing or product ids are duplicated.
    """
    catalog_file = Path(path)
    if not catalog_file.exists():
        raise FileNotFoundError(f"Catalog file not found: {path}")

    logger.info(f"Loading catalog from {path}")
    suffix = catalog_file.suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(catalog_file)
    elif suffix == ".json":
        df = pd.read_json(catalog_file, orient="records")
    else:
        raise ValueError(f"Unsupported catalog format: {suffix}")

    if df.empty:
        raise ValueError("Cannot load an empty catalog")

    if not REQUIRED_COLUMNS.issubset(df.columns):
        missing = REQUIRED_COLUMNS - set(df.columns)
        raise ValueError(f"Catalog missing required columns: {missing}")

    duplicated = df["id"].astype(str).duplicated()
    if duplicated.any():
        raise ValueError(
            f"Catalog has duplicate product ids: {sorted(df.loc[duplicated, 'id'].astype(str))}"
        )

    # NaN is not JSON-serializable; use None for missing values
    df = df.astype(object).where(pd.notna(df), None)
    products = [
        {key: _to_python(value) for key, value in record.items()}
        for record in df.to_dict(orient="records")
    ]

    logger.info(f"Loaded {len(products)} products in {df['category'].nunique()} categories")
    return Catalog(products)


def _to_python(value: Any) -> Any:
    if isinstance(value, np.generic):
        return value.item()
    return value
