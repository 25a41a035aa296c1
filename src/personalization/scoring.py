"""Relevance scoring for personalized recommendations.

Blends three signals into a score in [0, 1]:

- recency: exponential decay over the hours since the product was last viewed
- frequency: the product's view count relative to the most viewed product
- feedback: recency-weighted explicit relevant / not relevant verdicts

Scores are recomputed from storage on every call and never cached.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

import numpy as np

from src.personalization.models import (
    BrowsingEvent,
    FeedbackRecord,
    PageType,
    PersonalizationSettings,
    RelevanceScore,
    parse_timestamp,
    utc_now,
)
from src.personalization.settings import load_settings
from src.personalization.storage import KeyValueStore
from src.personalization.tracker import BrowsingTracker

# Configure module logger
logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600.0
HOURS_PER_DAY = 24.0

# Feedback component for products nobody has rated
NEUTRAL_FEEDBACK = 0.5


def recency_decay(decay_rate: float, elapsed: float) -> float:
    """Decay factor after ``elapsed`` time units at ``decay_rate`` per unit.

    Negative elapsed times (clock skew) count as zero.
    """
    return float(decay_rate ** max(elapsed, 0.0))


def half_life_hours(decay_rate: float) -> float:
    """Hours after which a view's recency weight has halved.

    Returns ``inf`` when ``decay_rate`` is 1 (no decay).
    """
    if decay_rate >= 1.0:
        return math.inf
    return math.log(2) / math.log(1.0 / decay_rate)


@dataclass
class ScoringSnapshot:
    """Signals read from storage once per scoring call."""

    settings: PersonalizationSettings
    view_counts: Dict[str, int]
    history: List[BrowsingEvent]
    feedback: List[FeedbackRecord]
    now: datetime

    @property
    def max_views(self) -> int:
        return max(max(self.view_counts.values(), default=0), 1)


class RelevanceScorer:
    """Scores products from the shopper's browsing signals.

    Args:
        store: Key-value store holding the personalization state.
        clock: Callable returning the current time; injectable for tests.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.clock = clock
        self._tracker = BrowsingTracker(store, clock=clock)

    def snapshot(self) -> ScoringSnapshot:
        """Read every signal the scorer needs from storage."""
        return ScoringSnapshot(
            settings=load_settings(self.store),
            view_counts=self._tracker.get_product_view_counts(),
            history=self._tracker.get_browsing_history(),
            feedback=list(self._tracker.get_feedback().values()),
            now=self.clock(),
        )

    # ----- Components -----

    def _frequency(self, product_id: str, snapshot: ScoringSnapshot) -> float:
        count = snapshot.view_counts.get(product_id, 0)
        return float(count) / snapshot.max_views

    def _recency(self, product_id: str, snapshot: ScoringSnapshot) -> float:
        # History is newest first, so the first match is the latest view
        for event in snapshot.history:
            if event.page_type is PageType.PRODUCT and event.product_id == product_id:
                viewed_at = parse_timestamp(event.timestamp)
                hours = (snapshot.now - viewed_at).total_seconds() / SECONDS_PER_HOUR
                return recency_decay(snapshot.settings.decay_rate, hours)
        return 0.0

    def _feedback(self, product_id: str, snapshot: ScoringSnapshot) -> float:
        records = [r for r in snapshot.feedback if r.product_id == product_id]
        if not records:
            return NEUTRAL_FEEDBACK

        days = np.array([
            (snapshot.now - parse_timestamp(r.timestamp)).total_seconds()
            / SECONDS_PER_HOUR / HOURS_PER_DAY
            for r in records
        ])
        verdicts = np.array([1.0 if r.is_relevant else -1.0 for r in records])
        weights = np.power(snapshot.settings.decay_rate, np.maximum(days, 0.0))

        total_weight = weights.sum()
        if total_weight <= 0:
            return NEUTRAL_FEEDBACK
        average = float(np.dot(weights, verdicts) / total_weight)
        return (average + 1.0) / 2.0

    # ----- Scoring -----

    def _explain(self, product_id: str, snapshot: ScoringSnapshot) -> RelevanceScore:
        settings = snapshot.settings
        if not settings.enabled:
            return RelevanceScore(
                product_id=product_id, score=0.0, feedback=NEUTRAL_FEEDBACK
            )

        recency = self._recency(product_id, snapshot)
        frequency = self._frequency(product_id, snapshot)
        feedback = self._feedback(product_id, snapshot)

        total_weight = (
            settings.weight_recency + settings.weight_frequency + settings.weight_feedback
        )
        if total_weight <= 0:
            score = 0.0
        else:
            score = (
                settings.weight_recency * recency
                + settings.weight_frequency * frequency
                + settings.weight_feedback * feedback
            ) / total_weight

        return RelevanceScore(
            product_id=product_id,
            score=float(np.clip(score, 0.0, 1.0)),
            recency=recency,
            frequency=frequency,
            feedback=feedback,
        )

    def explain_product(self, product_id) -> RelevanceScore:
        """Score a product and return the components behind the score.

        Raises:
            Exception: Any storage or parsing error, unlike ``score_product``.
        """
        return self._explain(str(product_id), self.snapshot())

    def score_product(self, product_id) -> float:
        """Relevance of ``product_id`` in [0, 1]; 0 on any error."""
        try:
            return self.explain_product(product_id).score
        except Exception as e:
            logger.error(
                "Error calculating relevance score",
                extra={"product_id": str(product_id), "error": str(e)},
            )
            return 0.0

    def score_products(
        self,
        product_ids: Iterable,
        snapshot: Optional[ScoringSnapshot] = None,
    ) -> Dict[str, float]:
        """Score several products against a single storage snapshot.

        Raises:
            Exception: Any storage or parsing error; callers decide how to
                degrade.
        """
        snapshot = snapshot or self.snapshot()
        return {
            str(pid): self._explain(str(pid), snapshot).score for pid in product_ids
        }
