"""Tracking endpoints for the ShopPersona API.

This module provides API endpoints the storefront calls as the shopper
browses: page view events, recommendation feedback, engagement counters,
settings and the shopper's stored profile.
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.api.dependencies import get_engine
from src.api.exceptions import InvalidSettingsError
from src.personalization.engine import PersonalizationEngine
from src.personalization.models import PageType
from src.personalization.performance import engagement_rate, feedback_quality

# Configure module logger
logger = logging.getLogger(__name__)

# Create API router
router = APIRouter(tags=["tracking"])


class EventRequest(BaseModel):
    """Request model for recording a page view.

    Attributes:
        path: Path of the viewed page.
        page_type: Kind of page viewed.
        metadata: Extra fields such as productId, category or searchTerm.
    """

    model_config = ConfigDict(populate_by_name=True)

    path: str = Field(..., min_length=1, description="Path of the viewed page")
    page_type: PageType = Field(..., alias="pageType", description="Kind of page viewed")
    metadata: Dict[str, Any] = Field(default_factory=dict)


class FeedbackRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    section_id: str = Field(..., min_length=1, alias="sectionId")
    product_id: str = Field(..., min_length=1, alias="productId")
    is_relevant: bool = Field(..., alias="isRelevant")


class PerformanceSample(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    load_time: float = Field(..., ge=0, alias="loadTime")
    render_time: float = Field(..., ge=0, alias="renderTime")
    algorithm_time: float = Field(..., ge=0, alias="algorithmTime")


class SuccessResponse(BaseModel):
    success: bool


@router.post("/events", response_model=SuccessResponse)
def record_event(
    event: EventRequest,
    engine: PersonalizationEngine = Depends(get_engine),
) -> SuccessResponse:
    """Record a page view.

    Example:
        POST /events {"path": "/products/7", "pageType": "product",
                      "metadata": {"productId": "7"}}
    """
    success = engine.record_event(event.path, event.page_type.value, event.metadata)
    return SuccessResponse(success=success)


@router.post("/feedback", response_model=SuccessResponse)
def record_feedback(
    feedback: FeedbackRequest,
    engine: PersonalizationEngine = Depends(get_engine),
) -> SuccessResponse:
    """Record whether a recommended product was relevant."""
    success = engine.record_feedback(
        feedback.section_id, feedback.product_id, feedback.is_relevant
    )
    return SuccessResponse(success=success)


@router.post("/metrics/clicks", response_model=SuccessResponse)
def record_click(engine: PersonalizationEngine = Depends(get_engine)) -> SuccessResponse:
    return SuccessResponse(success=engine.tracker.record_click())


@router.post("/metrics/conversions", response_model=SuccessResponse)
def record_conversion(engine: PersonalizationEngine = Depends(get_engine)) -> SuccessResponse:
    return SuccessResponse(success=engine.tracker.record_conversion())


@router.get("/metrics")
def get_metrics(engine: PersonalizationEngine = Depends(get_engine)) -> Dict[str, Any]:
    """Engagement counters with derived engagement rate and feedback quality."""
    metrics = engine.tracker.get_metrics()
    return {
        **metrics.to_storage(),
        "engagementRate": round(engagement_rate(metrics), 2),
        "feedbackQuality": round(feedback_quality(metrics), 2),
    }


@router.get("/profile")
def get_profile(engine: PersonalizationEngine = Depends(get_engine)) -> Dict[str, Any]:
    profile = engine.tracker.get_personalization_profile()
    return {"profile": profile.to_storage() if profile else None}


@router.get("/history")
def get_history(
    limit: int = 10,
    engine: PersonalizationEngine = Depends(get_engine),
) -> Dict[str, List[Dict[str, Any]]]:
    """Recent browsing activity and the aggregates derived from it."""
    tracker = engine.tracker
    return {
        "events": [e.to_storage() for e in tracker.get_browsing_history()[:limit]],
        "searches": [s.to_storage() for s in tracker.get_search_history()[:limit]],
        "mostViewed": tracker.get_most_viewed_products(limit),
        "preferredCategories": tracker.get_preferred_categories(limit),
    }


@router.get("/settings")
def get_settings(engine: PersonalizationEngine = Depends(get_engine)) -> Dict[str, Any]:
    return engine.settings.to_storage()


@router.put("/settings")
def update_settings(
    overrides: Dict[str, Any],
    engine: PersonalizationEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """Merge the given values over the current settings.

    Raises:
        InvalidSettingsError: If a value is out of range.
    """
    try:
        return engine.update_settings(overrides).to_storage()
    except ValidationError as e:
        logger.warning(f"Rejected settings update: {e.error_count()} errors")
        raise InvalidSettingsError(e.errors(include_url=False, include_context=False))


@router.delete("/settings")
def reset_settings(engine: PersonalizationEngine = Depends(get_engine)) -> Dict[str, Any]:
    return engine.reset_settings().to_storage()


@router.delete("/data", response_model=SuccessResponse)
def clear_data(engine: PersonalizationEngine = Depends(get_engine)) -> SuccessResponse:
    """Remove all stored personalization data for the shopper."""
    return SuccessResponse(success=engine.clear())


@router.get("/performance")
def get_performance(engine: PersonalizationEngine = Depends(get_engine)) -> Dict[str, Any]:
    return engine.performance.summary()


@router.post("/performance", response_model=SuccessResponse)
def record_performance(
    sample: PerformanceSample,
    engine: PersonalizationEngine = Depends(get_engine),
) -> SuccessResponse:
    """Store one set of timings reported by the storefront."""
    engine.performance.record(sample.load_time, sample.render_time, sample.algorithm_time)
    return SuccessResponse(success=True)


@router.delete("/performance", response_model=SuccessResponse)
def reset_performance(engine: PersonalizationEngine = Depends(get_engine)) -> SuccessResponse:
    engine.performance.reset()
    return SuccessResponse(success=True)
