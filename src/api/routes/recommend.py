"""Recommendation endpoints for the ShopPersona API.

This module provides API endpoints for personalized product recommendations,
relevance scores, homepage sections and related products.
"""

import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from src.api.dependencies import get_engine, reset_engine
from src.api.exceptions import CatalogNotLoadedError, ProductNotFoundError
from src.api.metrics import metrics_service
from src.config import config
from src.personalization.engine import PersonalizationEngine
from src.personalization.related import DEFAULT_RELATED_LIMIT
from src.personalization.selector import DEFAULT_LIMIT

# Configure module logger
logger = logging.getLogger(__name__)

# Create API router
router = APIRouter(
    prefix="/recommend",
    tags=["recommendations"],
)


class RecommendationRequest(BaseModel):
    """Request model for recommendation selection.

    Attributes:
        limit: Maximum number of products to return.
        exclude_ids: Product ids that must not be returned.
        candidates: Product pool to choose from; the catalog if omitted.
    """

    model_config = ConfigDict(populate_by_name=True)

    limit: int = Field(default=DEFAULT_LIMIT, ge=0, description="Maximum products returned")
    exclude_ids: List[str] = Field(default_factory=list, alias="excludeIds")
    candidates: Optional[List[Dict[str, Any]]] = Field(
        default=None, description="Products with at least an 'id' field"
    )


class RecommendationResponse(BaseModel):
    """Response model for recommendation requests.

    Attributes:
        recommendations: Chosen products with relevanceScore and
            isPersonalized added.
        count: Number of recommendations returned.
        personalized: Number of recommendations that passed the cutoff.
    """

    recommendations: List[Dict[str, Any]] = Field(
        ..., description="Chosen products, personalized ones first"
    )
    count: int
    personalized: int


class ScoreResponse(BaseModel):
    product_id: str
    score: float
    components: Optional[Dict[str, float]] = None


def _timed(operation: str, start_time: float) -> None:
    metrics_service.record_call(operation, (time.time() - start_time) * 1000)


@router.post("", response_model=RecommendationResponse)
def get_recommendations(
    request: RecommendationRequest,
    engine: PersonalizationEngine = Depends(get_engine),
) -> RecommendationResponse:
    """Select personalized recommendations for the shopper.

    Raises:
        CatalogNotLoadedError: If no candidates are given and no catalog is
            loaded.

    Example:
        POST /recommend {"limit": 4, "excludeIds": ["7"]}
    """
    start_time = time.time()

    if request.candidates is None and engine.catalog is None:
        raise CatalogNotLoadedError(config.catalog_path)

    recommendations = engine.recommend(
        limit=request.limit,
        exclude_ids=request.exclude_ids,
        candidates=request.candidates,
    )
    _timed("recommend", start_time)

    return RecommendationResponse(
        recommendations=recommendations,
        count=len(recommendations),
        personalized=sum(1 for r in recommendations if r["isPersonalized"]),
    )


@router.get("/score/{product_id}", response_model=ScoreResponse)
def get_score(
    product_id: str,
    engine: PersonalizationEngine = Depends(get_engine),
) -> ScoreResponse:
    """Relevance score of one product, with its components when available."""
    start_time = time.time()
    try:
        explained = engine.explain(product_id)
        response = ScoreResponse(
            product_id=product_id,
            score=explained.score,
            components={
                "recency": explained.recency,
                "frequency": explained.frequency,
                "feedback": explained.feedback,
            },
        )
    except Exception as e:
        logger.error(f"Error explaining score for product {product_id}: {e}", exc_info=True)
        response = ScoreResponse(product_id=product_id, score=0.0)
    _timed("score", start_time)
    return response


@router.get("/sections")
def get_sections(engine: PersonalizationEngine = Depends(get_engine)) -> Dict[str, Any]:
    """Personalized homepage sections.

    Raises:
        CatalogNotLoadedError: If no catalog is loaded.
    """
    if engine.catalog is None:
        raise CatalogNotLoadedError(config.catalog_path)

    start_time = time.time()
    sections = engine.sections()
    _timed("sections", start_time)
    return {"sections": [s.model_dump() for s in sections]}


@router.get("/related/{product_id}")
def get_related(
    product_id: str,
    limit: int = DEFAULT_RELATED_LIMIT,
    engine: PersonalizationEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """Products to show alongside ``product_id``.

    Raises:
        CatalogNotLoadedError: If no catalog is loaded.
        ProductNotFoundError: If the product is not in the catalog.
    """
    if engine.catalog is None:
        raise CatalogNotLoadedError(config.catalog_path)

    start_time = time.time()
    try:
        products = engine.related(product_id, limit=limit)
    except KeyError:
        raise ProductNotFoundError(product_id)
    _timed("related", start_time)
    return {"product_id": product_id, "products": products}


@router.post("/reload-catalog")
def reload_catalog() -> Dict[str, str]:
    """Rebuild the engine so an updated catalog file is picked up.

    Useful when the catalog has changed and needs to be loaded without
    restarting the server.
    """
    logger.info("Reloading catalog...")
    reset_engine()
    engine = get_engine()
    if engine.catalog is None:
        raise CatalogNotLoadedError(config.catalog_path)
    return {"status": f"Catalog reloaded with {len(engine.catalog)} products"}
