"""ShopPersona: session-scoped product personalization for a storefront.

This package provides a relevance engine that records shopper browsing
activity, maintains lightweight aggregates over it and turns them into
personalized product recommendations.

Modules:
    api: FastAPI application and REST API endpoints
    personalization: Event tracking, relevance scoring and selection logic
"""

__version__ = "0.1.0"
