"""FastAPI application main module.

This module defines the main FastAPI application instance and core API endpoints
for the ShopPersona personalization service. It provides health and status
endpoints, error handlers, and serves as the entry point for the API server.
"""

import logging
from typing import Any, Dict

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.api.dependencies import catalog_loaded_at, get_engine
from src.api.exceptions import ShopPersonaException
from src.api.logging_config import RequestLoggingMiddleware, setup_logging
from src.api.metrics import metrics_service
from src.api.routes import recommend, tracking
from src.config import config
from src.personalization.engine import PersonalizationEngine

setup_logging(config.log_level)

# Configure module logger
logger = logging.getLogger(__name__)

# Create FastAPI application instance
app = FastAPI(
    title="ShopPersona API",
    description="Session-scoped product personalization service",
    version="0.1.0",
)

app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(tracking.router)
app.include_router(recommend.router)


@app.exception_handler(ShopPersonaException)
async def shoppersona_exception_handler(
    request: Request, exc: ShopPersonaException
) -> JSONResponse:
    """Render domain errors as ``{"error", "message", "details"}``."""
    logger.warning(
        exc.message,
        extra={"path": str(request.url.path), "status_code": exc.status_code},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": type(exc).__name__,
            "message": exc.message,
            "details": jsonable_encoder(exc.details),
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": "Validation error", "detail": jsonable_encoder(exc.errors())},
    )


@app.get("/ping")
def ping() -> Dict[str, str]:
    """Health check endpoint.

    Returns a simple status response to verify the API is running.

    Returns:
        Dictionary with status key set to "ok".

    Example:
        >>> response = client.get("/ping")
        >>> assert response.json() == {"status": "ok"}
    """
    return {"status": "ok"}


@app.get("/status")
def status(engine: PersonalizationEngine = Depends(get_engine)) -> Dict[str, Any]:
    """Catalog and request metrics for the running service."""
    settings = engine.settings
    return {
        "catalog_loaded": engine.catalog is not None,
        "timestamp_catalog_loaded": catalog_loaded_at(),
        "num_products": len(engine.catalog) if engine.catalog is not None else 0,
        "personalization_enabled": settings.enabled,
        "metrics": metrics_service.get_metrics(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
