"""Personalization engine.

Wires the tracker, scorer and selector over one store and one catalog, and is
the single object the API and the CLI work with.
"""

import logging
import time
from datetime import datetime
from typing import Any, Callable, Collection, Dict, List, Mapping, Optional, Sequence

from src.personalization.catalog import Catalog
from src.personalization.models import PersonalizationSettings, RelevanceScore, utc_now
from src.personalization.performance import PerformanceLog
from src.personalization.related import (
    DEFAULT_RELATED_LIMIT,
    ProductSimilarityIndex,
    build_similarity_index,
    load_similarity_index,
    related_products,
    save_similarity_index,
)
from src.personalization.scoring import RelevanceScorer
from src.personalization.sections import Section, build_personalized_sections
from src.personalization.selector import DEFAULT_LIMIT, RecommendationSelector
from src.personalization.settings import load_settings, reset_settings, save_settings
from src.personalization.storage import KeyValueStore
from src.personalization.tracker import BrowsingTracker, HistoryLimits

# Configure module logger
logger = logging.getLogger(__name__)


class PersonalizationEngine:
    """Facade over the personalization components.

    Args:
        store: Key-value store holding the shopper's personalization state.
        catalog: Products used as the default recommendation pool. Optional
            for tracking-only use.
        limits: Caps on the stored aggregates.
        clock: Callable returning the current time; injectable for tests.
        random_state: Seed for the backfill shuffle.
        index_dir: Directory where the related-products index is cached
            between runs. The index is rebuilt in memory when omitted.
    """

    def __init__(
        self,
        store: KeyValueStore,
        catalog: Optional[Catalog] = None,
        limits: Optional[HistoryLimits] = None,
        clock: Callable[[], datetime] = utc_now,
        random_state: Optional[int] = None,
        index_dir: Optional[str] = None,
    ):
        self.store = store
        self.catalog = catalog
        self.tracker = BrowsingTracker(store, limits=limits, clock=clock)
        self.scorer = RelevanceScorer(store, clock=clock)
        self.selector = RecommendationSelector(
            store, scorer=self.scorer, random_state=random_state
        )
        self.performance = PerformanceLog(store)
        self._similarity_index: Optional[ProductSimilarityIndex] = None
        self.index_dir = index_dir

    # ----- Tracking -----

    def record_event(
        self,
        path: str,
        page_type: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        return self.tracker.record_event(path, page_type, metadata)

    def record_feedback(self, section_id: Any, product_id: Any, is_relevant: bool) -> bool:
        return self.tracker.record_feedback(section_id, product_id, is_relevant)

    def clear(self) -> bool:
        return self.tracker.clear_personalization_data()

    # ----- Settings -----

    @property
    def settings(self) -> PersonalizationSettings:
        return load_settings(self.store)

    def update_settings(self, overrides: Mapping[str, Any]) -> PersonalizationSettings:
        return save_settings(self.store, overrides)

    def reset_settings(self) -> PersonalizationSettings:
        return reset_settings(self.store)

    # ----- Scoring and selection -----

    def score(self, product_id: Any) -> float:
        return self.scorer.score_product(product_id)

    def explain(self, product_id: Any) -> RelevanceScore:
        return self.scorer.explain_product(product_id)

    def recommend(
        self,
        limit: int = DEFAULT_LIMIT,
        exclude_ids: Optional[Collection] = None,
        candidates: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> List[Dict[str, Any]]:
        """Select recommendations and count them as impressions.

        Args:
            limit: Maximum number of products to return.
            exclude_ids: Product ids to leave out.
            candidates: Product pool; the whole catalog if omitted.
        """
        if candidates is None:
            candidates = list(self.catalog) if self.catalog is not None else []

        start_time = time.time()
        recommendations = self.selector.select_recommendations(
            candidates, limit=limit, exclude_ids=exclude_ids
        )
        algorithm_time = time.time() - start_time

        self.tracker.record_impressions(len(recommendations))

        logger.info(
            "Recommendations generated",
            extra={
                "num_candidates": len(candidates),
                "num_recommendations": len(recommendations),
                "algorithm_time_ms": round(algorithm_time * 1000, 2),
            },
        )
        return recommendations

    # ----- Catalog-backed helpers -----

    def _require_catalog(self) -> Catalog:
        if self.catalog is None:
            raise RuntimeError("No product catalog loaded")
        return self.catalog

    def sections(self) -> List[Section]:
        return build_personalized_sections(
            self._require_catalog(), self.tracker, self.settings
        )

    def _load_or_build_index(self, catalog: Catalog) -> Optional[ProductSimilarityIndex]:
        """Reuse a saved index that covers the catalog, else build and save one."""
        if self.index_dir is not None:
            saved = load_similarity_index(self.index_dir)
            if saved is not None and set(saved.product_id_to_idx) == set(catalog.ids()):
                return saved

        try:
            index = build_similarity_index(catalog)
        except ValueError as e:
            logger.warning(f"Similarity index unavailable, using catalog order: {e}")
            return None

        if self.index_dir is not None:
            save_similarity_index(index, self.index_dir)
        return index

    def related(self, product_id: Any, limit: int = DEFAULT_RELATED_LIMIT) -> List[Dict[str, Any]]:
        """Related products for ``product_id``.

        The TF-IDF index is loaded from ``index_dir`` or built on first use;
        if building it fails, related products fall back to catalog order.

        Raises:
            KeyError: If ``product_id`` is not in the catalog.
        """
        catalog = self._require_catalog()
        if self._similarity_index is None:
            self._similarity_index = self._load_or_build_index(catalog)
        return related_products(catalog, product_id, limit=limit, index=self._similarity_index)
