"""Related products for product detail pages.

Builds TF-IDF vectors from product text (name, category, description) and
uses cosine similarity to order same-category products, then fills the list
with popular and finally any remaining products.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import joblib
import numpy as np
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity

from src.personalization.catalog import Catalog

# Configure module logger
logger = logging.getLogger(__name__)

# Constants
SIMILARITY_INDEX_FILENAME = "similarity_index.joblib"
DEFAULT_MAX_FEATURES = 500
DEFAULT_RELATED_LIMIT = 8
TEXT_FIELDS = ("name", "category", "description")


class ProductSimilarityIndex:
    """TF-IDF vectors for catalog products.
    """

    def __init__(
        self,
        vectors: np.ndarray,
        product_id_to_idx: Dict[str, int],
        vectorizer: Optional[TfidfVectorizer] = None,
    ):
        self.vectors = vectors
        self.product_id_to_idx = product_id_to_idx
        self.vectorizer = vectorizer
        self.idx_to_product_id = {idx: pid for pid, idx in product_id_to_idx.items()}

        logger.info(
            f"Initialized ProductSimilarityIndex: {len(product_id_to_idx)} products, "
            f"dim={vectors.shape[1] if vectors.ndim == 2 else 0}"
        )

    def similarity(self, product_id1: Any, product_id2: Any) -> Optional[float]:
        """Cosine similarity between two products, or None if either is unknown."""
        idx1 = self.product_id_to_idx.get(str(product_id1))
        idx2 = self.product_id_to_idx.get(str(product_id2))
        if idx1 is None or idx2 is None:
            return None
        return float(cosine_similarity(self.vectors[[idx1]], self.vectors[[idx2]])[0, 0])

    def similarities_to(self, product_id: Any) -> Dict[str, float]:
        """Similarity of every indexed product to ``product_id``."""
        idx = self.product_id_to_idx.get(str(product_id))
        if idx is None:
            logger.warning(f"Product {product_id} not found in similarity index")
            return {}
        scores = cosine_similarity(self.vectors[[idx]], self.vectors)[0]
        return {self.idx_to_product_id[i]: float(s) for i, s in enumerate(scores)}


def _product_text(product: Dict[str, Any]) -> str:
    return " ".join(str(product[f]) for f in TEXT_FIELDS if product.get(f))


def build_similarity_index(
    catalog: Catalog,
    max_features: int = DEFAULT_MAX_FEATURES,
) -> ProductSimilarityIndex:
    """Fit TF-IDF vectors over the catalog's product text.

    Raises:
        ValueError: If the catalog is empty.
    """
    if len(catalog) == 0:
        raise ValueError("Cannot build a similarity index for an empty catalog")

    logger.info(
        f"Building TF-IDF similarity index for {len(catalog)} products, "
        f"max_features={max_features}"
    )

    product_ids = catalog.ids()
    documents = [_product_text(catalog.get(pid)) or pid for pid in product_ids]

    vectorizer = TfidfVectorizer(
        max_features=max_features,
        lowercase=True,
        stop_words="english",
        token_pattern=r"(?u)\b\w+\b",
    )
    vectors = vectorizer.fit_transform(documents).toarray()

    return ProductSimilarityIndex(
        vectors=vectors,
        product_id_to_idx={pid: idx for idx, pid in enumerate(product_ids)},
        vectorizer=vectorizer,
    )


def save_similarity_index(index: ProductSimilarityIndex, output_dir: str) -> Path:
    """Save a similarity index to ``output_dir`` and return the file path."""
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    index_file = output_path / SIMILARITY_INDEX_FILENAME
    joblib.dump(
        {
            "vectors": index.vectors,
            "product_id_to_idx": index.product_id_to_idx,
            "vectorizer": index.vectorizer,
        },
        index_file,
    )
    logger.info(f"Saved similarity index to {index_file}")
    return index_file


def load_similarity_index(model_dir: str) -> Optional[ProductSimilarityIndex]:
    """Load a saved similarity index, or None if there is none."""
    index_file = Path(model_dir) / SIMILARITY_INDEX_FILENAME
    if not index_file.exists():
        logger.warning(f"Similarity index not found in {model_dir}")
        return None

    data = joblib.load(index_file)
    return ProductSimilarityIndex(
        vectors=data["vectors"],
        product_id_to_idx=data["product_id_to_idx"],
        vectorizer=data.get("vectorizer"),
    )


def related_products(
    catalog: Catalog,
    product_id: Any,
    limit: int = DEFAULT_RELATED_LIMIT,
    index: Optional[ProductSimilarityIndex] = None,
) -> List[Dict[str, Any]]:
    """Products to suggest alongside ``product_id``.

    Same-category products come first (most similar first when an index is
    given), then popular products, then everything else. The product itself
    is never included.

    Raises:
        KeyError: If ``product_id`` is not in the catalog.
    """
    current = catalog.get(product_id)
    if current is None:
        raise KeyError(f"Product {product_id} not found in catalog")

    current_id = str(current["id"])
    others = [p for p in catalog if str(p["id"]) != current_id]

    same_category = [p for p in others if p.get("category") == current.get("category")]
    if index is not None:
        scores = index.similarities_to(current_id)
        # Stable sort keeps catalog order for products missing from the index
        same_category = sorted(
            same_category,
            key=lambda p: scores.get(str(p["id"]), 0.0),
            reverse=True,
        )

    ordered = list(same_category)
    chosen = {str(p["id"]) for p in ordered}
    for tier in (catalog.popular(), others):
        if len(ordered) >= limit:
            break
        for product in tier:
            pid = str(product["id"])
            if pid != current_id and pid not in chosen:
                chosen.add(pid)
                ordered.append(product)

    return ordered[:limit]
