"""Browsing event recording and aggregate maintenance.

Records page views into a bounded newest-first history and keeps the derived
aggregates (product view counts, category preferences, search history,
recommendation feedback and engagement metrics) up to date as events arrive.
Every public operation is fail-open: errors are logged and reported through
the return value instead of being raised.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import ValidationError

from src.personalization.models import (
    BrowsingEvent,
    FeedbackRecord,
    PageType,
    PersonalizationMetrics,
    PersonalizationProfile,
    ProfilePreferences,
    ProfileStats,
    SearchHistoryEntry,
    feedback_key,
    format_timestamp,
    parse_timestamp,
    utc_now,
)
from src.personalization.storage import (
    KeyValueStore,
    StorageError,
    StorageKeys,
    check_schema_version,
    mark_schema_version,
)

# Configure module logger
logger = logging.getLogger(__name__)

# Number of entries surfaced in the profile summary
PROFILE_TOP_CATEGORIES = 3
PROFILE_TOP_PRODUCTS = 5
PROFILE_RECENT_SEARCHES = 3


@dataclass(frozen=True)
class HistoryLimits:
    """Maximum number of entries kept per aggregate."""

    browsing_history: int = 50
    product_views: int = 100
    category_preferences: int = 10
    search_history: int = 20
    feedback: int = 100


def _top_counts(counts: Dict[str, int], limit: int) -> Dict[str, int]:
    """Keep the ``limit`` entries with the highest counts."""
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return dict(ranked[:limit])


class BrowsingTracker:
    """Records browsing events and maintains the aggregates derived from them.

    Args:
        store: Key-value store holding the personalization state.
        limits: Caps applied to each bounded aggregate.
        clock: Callable returning the current time; injectable for tests.
    """

    def __init__(
        self,
        store: KeyValueStore,
        limits: Optional[HistoryLimits] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.limits = limits or HistoryLimits()
        self.clock = clock

    def _now(self) -> str:
        return format_timestamp(self.clock())

    def _read(self, key: str, default: Any) -> Any:
        if not check_schema_version(self.store):
            return default
        value = self.store.read_json(key, default=default)
        if not isinstance(value, type(default)):
            logger.warning(f"Unexpected stored shape under '{key}', ignoring it")
            return default
        return value

    def _write(self, key: str, value: Any) -> None:
        if not check_schema_version(self.store):
            raise StorageError("Refusing to overwrite data written by a newer schema")
        mark_schema_version(self.store)
        self.store.write_json(key, value)

    # ----- Event recording -----

    def record_event(
        self,
        path: str,
        page_type: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """Record a page view and update the matching aggregates.

        Args:
            path: Path of the viewed page; must be a non-empty string.
            page_type: One of ``page``, ``product``, ``category``, ``search``.
            metadata: Extra fields. ``category``, ``productId`` and
                ``searchTerm`` feed the category, product and search
                aggregates for the matching page types.

        Returns:
            True if the event was recorded, False otherwise.
        """
        metadata = dict(metadata or {})

        try:
            if not isinstance(path, str) or not path:
                raise ValueError("path must be a non-empty string")
            event = BrowsingEvent(
                path=path,
                page_type=PageType(page_type),
                timestamp=self._now(),
                metadata=metadata,
            )

            with self.store.lock(StorageKeys.BROWSING_HISTORY):
                history = self._read(StorageKeys.BROWSING_HISTORY, [])
                history.insert(0, event.to_storage())
                self._write(
                    StorageKeys.BROWSING_HISTORY,
                    history[: self.limits.browsing_history],
                )

            ok = True
            if event.page_type is PageType.CATEGORY and metadata.get("category"):
                ok = self.update_category_preference(metadata["category"]) and ok
            if event.page_type is PageType.PRODUCT and metadata.get("productId"):
                ok = self.increment_product_view(metadata["productId"]) and ok
            if event.page_type is PageType.SEARCH and metadata.get("searchTerm"):
                ok = self.add_search_term(metadata["searchTerm"]) and ok

            self.update_personalization_profile()

            logger.debug(
                "Recorded browsing event",
                extra={"path": path, "page_type": event.page_type.value},
            )
            return ok

        except Exception as e:
            logger.error(
                "Error tracking page view",
                extra={
                    "path": path,
                    "page_type": page_type,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            return False

    def get_browsing_history(self) -> List[BrowsingEvent]:
        """Return the browsing history, newest first."""
        try:
            events = []
            for raw in self._read(StorageKeys.BROWSING_HISTORY, []):
                try:
                    events.append(BrowsingEvent.model_validate(raw))
                except ValidationError:
                    logger.debug(f"Skipping malformed history entry: {raw!r}")
            return events
        except Exception as e:
            logger.error(f"Error getting browsing history: {e}")
            return []

    def get_recent_product_views(self, limit: int = 10) -> List[BrowsingEvent]:
        history = self.get_browsing_history()
        return [e for e in history if e.page_type is PageType.PRODUCT][:limit]

    def get_recent_category_views(self, limit: int = 5) -> List[BrowsingEvent]:
        history = self.get_browsing_history()
        return [e for e in history if e.page_type is PageType.CATEGORY][:limit]

    # ----- Aggregates -----

    def _increment_counter(self, key: str, item: str, limit: int) -> bool:
        with self.store.lock(key):
            counts = self._read(key, {})
            counts[item] = int(counts.get(item, 0)) + 1
            if len(counts) > limit:
                counts = _top_counts(counts, limit)
            self._write(key, counts)
        return True

    def increment_product_view(self, product_id: Any) -> bool:
        """Add one view to ``product_id``, evicting the least viewed past the cap."""
        try:
            return self._increment_counter(
                StorageKeys.PRODUCT_VIEWS, str(product_id), self.limits.product_views
            )
        except Exception as e:
            logger.error(f"Error incrementing product view count for {product_id}: {e}")
            return False

    def get_product_view_counts(self) -> Dict[str, int]:
        try:
            return self._read(StorageKeys.PRODUCT_VIEWS, {})
        except Exception as e:
            logger.error(f"Error getting product view counts: {e}")
            return {}

    def get_most_viewed_products(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Return ``{"productId", "viewCount"}`` entries, most viewed first."""
        counts = self.get_product_view_counts()
        return [
            {"productId": product_id, "viewCount": count}
            for product_id, count in _top_counts(counts, limit).items()
        ]

    def update_category_preference(self, category: str) -> bool:
        """Add one unit of weight to ``category``, evicting the weakest past the cap."""
        try:
            return self._increment_counter(
                StorageKeys.CATEGORY_PREFERENCES,
                str(category),
                self.limits.category_preferences,
            )
        except Exception as e:
            logger.error(f"Error updating category preference for {category}: {e}")
            return False

    def get_category_preferences(self) -> Dict[str, int]:
        try:
            return self._read(StorageKeys.CATEGORY_PREFERENCES, {})
        except Exception as e:
            logger.error(f"Error getting category preferences: {e}")
            return {}

    def get_preferred_categories(self, limit: int = 5) -> List[Dict[str, Any]]:
        """Return ``{"category", "weight"}`` entries, heaviest first."""
        preferences = self.get_category_preferences()
        return [
            {"category": category, "weight": weight}
            for category, weight in _top_counts(preferences, limit).items()
        ]

    def add_search_term(self, term: str) -> bool:
        """Move ``term`` to the front of the search history."""
        try:
            entry = SearchHistoryEntry(term=str(term), timestamp=self._now())
            with self.store.lock(StorageKeys.SEARCH_HISTORY):
                history = self._read(StorageKeys.SEARCH_HISTORY, [])
                history = [
                    item for item in history
                    if not (isinstance(item, dict) and item.get("term") == entry.term)
                ]
                history.insert(0, entry.to_storage())
                self._write(
                    StorageKeys.SEARCH_HISTORY, history[: self.limits.search_history]
                )
            return True
        except Exception as e:
            logger.error(f"Error adding to search history: {e}")
            return False

    def get_search_history(self) -> List[SearchHistoryEntry]:
        try:
            entries = []
            for raw in self._read(StorageKeys.SEARCH_HISTORY, []):
                try:
                    entries.append(SearchHistoryEntry.model_validate(raw))
                except ValidationError:
                    logger.debug(f"Skipping malformed search entry: {raw!r}")
            return entries
        except Exception as e:
            logger.error(f"Error getting search history: {e}")
            return []

    # ----- Profile summary -----

    def update_personalization_profile(self) -> Optional[PersonalizationProfile]:
        """Recompute the profile summary from the aggregates and persist it."""
        try:
            history = self.get_browsing_history()
            page_types = [event.page_type for event in history]

            profile = PersonalizationProfile(
                last_updated=self._now(),
                stats=ProfileStats(
                    total_page_views=len(history),
                    product_views=page_types.count(PageType.PRODUCT),
                    category_views=page_types.count(PageType.CATEGORY),
                    search_count=page_types.count(PageType.SEARCH),
                ),
                preferences=ProfilePreferences(
                    top_categories=[
                        item["category"]
                        for item in self.get_preferred_categories(PROFILE_TOP_CATEGORIES)
                    ],
                    top_products=[
                        item["productId"]
                        for item in self.get_most_viewed_products(PROFILE_TOP_PRODUCTS)
                    ],
                    recent_searches=[
                        entry.term
                        for entry in self.get_search_history()[:PROFILE_RECENT_SEARCHES]
                    ],
                ),
            )

            with self.store.lock(StorageKeys.PERSONALIZATION_PROFILE):
                self._write(StorageKeys.PERSONALIZATION_PROFILE, profile.to_storage())
            return profile

        except Exception as e:
            logger.error(f"Error updating personalization profile: {e}")
            return None

    def get_personalization_profile(self) -> Optional[PersonalizationProfile]:
        try:
            raw = self._read(StorageKeys.PERSONALIZATION_PROFILE, {})
            return PersonalizationProfile.model_validate(raw) if raw else None
        except Exception as e:
            logger.error(f"Error getting personalization profile: {e}")
            return None

    # ----- Feedback and metrics -----

    def record_feedback(self, section_id: Any, product_id: Any, is_relevant: bool) -> bool:
        """Record whether a recommended product was relevant.

        Later feedback for the same section and product replaces earlier
        feedback. Beyond the cap, the oldest feedback is evicted.
        """
        try:
            record = FeedbackRecord(
                section_id=section_id,
                product_id=product_id,
                is_relevant=bool(is_relevant),
                timestamp=self._now(),
            )

            with self.store.lock(StorageKeys.RECOMMENDATION_FEEDBACK):
                feedback = self._read(StorageKeys.RECOMMENDATION_FEEDBACK, {})
                feedback[record.key] = record.to_storage()
                if len(feedback) > self.limits.feedback:
                    newest = sorted(
                        feedback.items(),
                        key=lambda item: _timestamp_or_epoch(item[1]),
                        reverse=True,
                    )
                    feedback = dict(newest[: self.limits.feedback])
                self._write(StorageKeys.RECOMMENDATION_FEEDBACK, feedback)

            def bump(metrics: PersonalizationMetrics) -> None:
                if record.is_relevant:
                    metrics.feedback.positive += 1
                else:
                    metrics.feedback.negative += 1

            self._update_metrics(bump)
            return True

        except Exception as e:
            logger.error(
                "Error recording recommendation feedback",
                extra={"section_id": section_id, "product_id": product_id, "error": str(e)},
            )
            return False

    def get_feedback(self) -> Dict[str, FeedbackRecord]:
        """Return feedback records keyed by ``sectionId:productId``."""
        try:
            records = {}
            for key, raw in self._read(StorageKeys.RECOMMENDATION_FEEDBACK, {}).items():
                try:
                    records[key] = FeedbackRecord.model_validate(raw)
                except ValidationError:
                    logger.debug(f"Skipping malformed feedback under {key!r}")
            return records
        except Exception as e:
            logger.error(f"Error getting recommendation feedback: {e}")
            return {}

    def get_feedback_for(self, section_id: Any, product_id: Any) -> Optional[FeedbackRecord]:
        return self.get_feedback().get(feedback_key(section_id, product_id))

    def _update_metrics(self, mutate: Callable[[PersonalizationMetrics], None]) -> None:
        with self.store.lock(StorageKeys.PERSONALIZATION_METRICS):
            metrics = self.get_metrics()
            mutate(metrics)
            metrics.last_updated = self._now()
            self._write(StorageKeys.PERSONALIZATION_METRICS, metrics.to_storage())

    def get_metrics(self) -> PersonalizationMetrics:
        try:
            raw = self._read(StorageKeys.PERSONALIZATION_METRICS, {})
            return PersonalizationMetrics.model_validate(raw)
        except Exception as e:
            logger.error(f"Error getting personalization metrics: {e}")
            return PersonalizationMetrics()

    def record_impressions(self, count: int = 1) -> bool:
        """Count recommendations shown to the shopper."""
        if count <= 0:
            return True
        try:
            def add(metrics: PersonalizationMetrics) -> None:
                metrics.impressions += count

            self._update_metrics(add)
            return True
        except Exception as e:
            logger.error(f"Error recording impressions: {e}")
            return False

    def record_click(self) -> bool:
        try:
            def add(metrics: PersonalizationMetrics) -> None:
                metrics.clicks += 1

            self._update_metrics(add)
            return True
        except Exception as e:
            logger.error(f"Error recording click: {e}")
            return False

    def record_conversion(self) -> bool:
        try:
            def add(metrics: PersonalizationMetrics) -> None:
                metrics.conversions += 1

            self._update_metrics(add)
            return True
        except Exception as e:
            logger.error(f"Error recording conversion: {e}")
            return False

    # ----- Reset -----

    def clear_personalization_data(self) -> bool:
        """Remove every stored personalization key."""
        try:
            for key in StorageKeys.personalization_keys() + [StorageKeys.SCHEMA_VERSION]:
                with self.store.lock(key):
                    self.store.remove(key)
            logger.info("Cleared personalization data")
            return True
        except Exception as e:
            logger.error(f"Error clearing personalization data: {e}")
            return False


def _timestamp_or_epoch(raw: Any) -> datetime:
    try:
        return parse_timestamp(raw["timestamp"])
    except (KeyError, TypeError, ValueError):
        return datetime.min.replace(tzinfo=timezone.utc)
