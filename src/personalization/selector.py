"""Recommendation selection.

Ranks a candidate product pool by relevance, keeps the products that pass
the minimum relevance cutoff and backfills the rest of the requested slots
with uniformly shuffled candidates.
"""

import logging
from typing import Any, Collection, Dict, List, Mapping, Optional, Sequence

import numpy as np

from src.personalization.scoring import RelevanceScorer
from src.personalization.settings import load_settings
from src.personalization.storage import KeyValueStore

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 8


def _tag(product: Mapping[str, Any], score: float, personalized: bool) -> Dict[str, Any]:
    return {**product, "relevanceScore": score, "isPersonalized": personalized}


class RecommendationSelector:
    """Chooses which products to show a shopper.

    Args:
        store: Key-value store holding the personalization state.
        scorer: Relevance scorer; one over ``store`` is created if omitted.
        random_state: Seed for the backfill shuffle, for reproducibility.
    """

    def __init__(
        self,
        store: KeyValueStore,
        scorer: Optional[RelevanceScorer] = None,
        random_state: Optional[int] = None,
    ):
        self.store = store
        self.scorer = scorer or RelevanceScorer(store)
        self.rng = np.random.default_rng(random_state)

    def _shuffled(self, products: Sequence[Mapping[str, Any]]) -> List[Mapping[str, Any]]:
        order = self.rng.permutation(len(products))
        return [products[int(i)] for i in order]

    def _random_selection(
        self,
        eligible: Sequence[Mapping[str, Any]],
        limit: int,
    ) -> List[Dict[str, Any]]:
        return [_tag(p, 0.0, False) for p in self._shuffled(eligible)[:limit]]

    def select_recommendations(
        self,
        candidates: Sequence[Mapping[str, Any]],
        limit: int = DEFAULT_LIMIT,
        exclude_ids: Optional[Collection] = None,
    ) -> List[Dict[str, Any]]:
        """Pick up to ``limit`` products from ``candidates``.

        Args:
            candidates: Product records, each with an ``id``.
            limit: Maximum number of products to return.
            exclude_ids: Product ids that must not be returned.

        Returns:
            Copies of the chosen products with ``relevanceScore`` and
            ``isPersonalized`` added. Personalized products come first,
            ordered by descending score; backfilled products follow in
            random order. Never contains duplicate or excluded ids.
        """
        excluded = {str(pid) for pid in (exclude_ids or ())}

        eligible = []
        seen = set()
        for product in candidates:
            if product.get("id") is None:
                logger.warning("Skipping candidate without an id", extra={"candidate": dict(product)})
                continue
            pid = str(product["id"])
            if pid in excluded or pid in seen:
                continue
            seen.add(pid)
            eligible.append(product)

        if not eligible or limit <= 0:
            return []

        try:
            settings = load_settings(self.store)
            if not settings.enabled:
                logger.debug("Personalization disabled, returning random selection")
                return self._random_selection(eligible, limit)

            scores = self.scorer.score_products(p["id"] for p in eligible)

            # sorted() is stable, so equal scores keep their candidate order
            ranked = sorted(
                (p for p in eligible if scores[str(p["id"])] >= settings.min_relevance_score),
                key=lambda p: scores[str(p["id"])],
                reverse=True,
            )
            selected = [_tag(p, scores[str(p["id"])], True) for p in ranked[:limit]]

            if len(selected) < limit:
                chosen = {str(p["id"]) for p in selected}
                leftovers = [p for p in eligible if str(p["id"]) not in chosen]
                selected.extend(self._random_selection(leftovers, limit - len(selected)))

            logger.info(
                "Selected recommendations",
                extra={
                    "candidates": len(eligible),
                    "personalized": sum(1 for p in selected if p["isPersonalized"]),
                    "returned": len(selected),
                },
            )
            return selected

        except Exception as e:
            logger.error(
                "Error selecting personalized recommendations, falling back to random",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            return self._random_selection(eligible, limit)
