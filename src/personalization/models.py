"""Typed records for personalization data.

The stored JSON uses the camelCase field names of the storefront's browser
storage. Each model maps those names onto snake_case attributes through
aliases, so ``model_dump(by_alias=True)`` produces the stored shape.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S"


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """Format a datetime as ISO-8601 with milliseconds and a ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return f"{moment.strftime(ISO_FORMAT)}.{moment.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive timestamps are assumed to be UTC.

    Raises:
        ValueError: If ``value`` is not a valid ISO-8601 timestamp.
    """
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class PageType(str, Enum):
    """Kinds of pages a browsing event can describe."""

    PAGE = "page"
    PRODUCT = "product"
    CATEGORY = "category"
    SEARCH = "search"


class StoredRecord(BaseModel):
    """Base for records persisted under camelCase field names."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class BrowsingEvent(StoredRecord):
    """A single page view in the browsing history."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    path: str
    page_type: PageType = Field(alias="pageType")
    timestamp: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _fold_spread_metadata(cls, data: Any) -> Any:
        # Older entries stored metadata fields next to path/pageType/timestamp
        if isinstance(data, dict) and "metadata" not in data:
            known = {"path", "pageType", "page_type", "timestamp"}
            extras = {k: v for k, v in data.items() if k not in known}
            if extras:
                data = {k: v for k, v in data.items() if k in known}
                data["metadata"] = extras
        return data

    @property
    def product_id(self) -> Optional[str]:
        value = self.metadata.get("productId")
        return None if value is None else str(value)


class SearchHistoryEntry(StoredRecord):
    term: str
    timestamp: str


class FeedbackRecord(StoredRecord):
    """A shopper's verdict on one recommended product in one section."""

    section_id: str = Field(alias="sectionId")
    product_id: str = Field(alias="productId")
    is_relevant: bool = Field(alias="isRelevant")
    timestamp: str

    @model_validator(mode="before")
    @classmethod
    def _stringify_ids(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            for key in ("sectionId", "section_id", "productId", "product_id"):
                if key in data and data[key] is not None:
                    data[key] = str(data[key])
        return data

    @property
    def key(self) -> str:
        return feedback_key(self.section_id, self.product_id)


def feedback_key(section_id: Any, product_id: Any) -> str:
    """Composite key under which feedback for a section/product is stored."""
    return f"{section_id}:{product_id}"


class PersonalizationSettings(StoredRecord):
    """Tunables for scoring and section layout.

    Attributes:
        enabled: Master switch; when off every score is 0 and selection is
            purely random.
        weight_recency: Blend weight of the recency component.
        weight_frequency: Blend weight of the view-frequency component.
        weight_feedback: Blend weight of the explicit feedback component.
        decay_rate: Per-hour (views) or per-day (feedback) decay factor.
        min_relevance_score: Cutoff a product must reach to be personalized.
        refresh_interval: Hours between profile refreshes, for schedulers.
        max_sections: Maximum personalized homepage sections.
        max_items_per_section: Maximum products per section.
    """

    enabled: bool = True
    weight_recency: float = Field(default=0.7, ge=0.0, le=1.0, alias="weightRecency")
    weight_frequency: float = Field(default=0.5, ge=0.0, le=1.0, alias="weightFrequency")
    weight_feedback: float = Field(default=0.8, ge=0.0, le=1.0, alias="weightFeedback")
    decay_rate: float = Field(default=0.95, gt=0.0, le=1.0, alias="decayRate")
    min_relevance_score: float = Field(
        default=0.3, ge=0.0, le=1.0, alias="minRelevanceScore"
    )
    refresh_interval: int = Field(default=24, ge=0, alias="refreshInterval")
    max_sections: int = Field(default=3, ge=0, alias="maxSections")
    max_items_per_section: int = Field(default=8, ge=0, alias="maxItemsPerSection")


class ProfileStats(StoredRecord):
    total_page_views: int = Field(default=0, alias="totalPageViews")
    product_views: int = Field(default=0, alias="productViews")
    category_views: int = Field(default=0, alias="categoryViews")
    search_count: int = Field(default=0, alias="searchCount")


class ProfilePreferences(StoredRecord):
    top_categories: List[str] = Field(default_factory=list, alias="topCategories")
    top_products: List[str] = Field(default_factory=list, alias="topProducts")
    recent_searches: List[str] = Field(default_factory=list, alias="recentSearches")


class PersonalizationProfile(StoredRecord):
    """Snapshot summary derived from the browsing aggregates."""

    last_updated: str = Field(alias="lastUpdated")
    stats: ProfileStats = Field(default_factory=ProfileStats)
    preferences: ProfilePreferences = Field(default_factory=ProfilePreferences)


class FeedbackCounts(StoredRecord):
    positive: int = 0
    negative: int = 0


class PersonalizationMetrics(StoredRecord):
    """Engagement counters for personalized recommendations."""

    impressions: int = 0
    clicks: int = 0
    feedback: FeedbackCounts = Field(default_factory=FeedbackCounts)
    conversions: int = 0
    last_updated: Optional[str] = Field(default=None, alias="lastUpdated")


class RelevanceScore(BaseModel):
    """Relevance of one product with its blended components."""

    product_id: str
    score: float = Field(ge=0.0, le=1.0)
    recency: float = 0.0
    frequency: float = 0.0
    feedback: float = 0.5
