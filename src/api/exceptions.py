"""Custom exceptions for the ShopPersona API.

Defines specific exception types for better error handling and reporting.
"""

from typing import Any, Dict, List, Optional


class ShopPersonaException(Exception):
    """Base exception for ShopPersona errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code for API responses
            details: Additional error details for debugging
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class CatalogNotLoadedError(ShopPersonaException):
    """Raised when an operation needs the product catalog and none is loaded."""

    def __init__(self, catalog_path: str, details: Optional[Dict[str, Any]] = None):
        message = f"Catalog not loaded from '{catalog_path}'. Please provide a catalog file."
        super().__init__(
            message=message,
            status_code=503,
            details=details or {"catalog_path": catalog_path},
        )


class ProductNotFoundError(ShopPersonaException):
    """Raised when a product id is not in the catalog."""

    def __init__(self, product_id: str, details: Optional[Dict[str, Any]] = None):
        message = f"Product {product_id} not found in catalog."
        super().__init__(
            message=message,
            status_code=404,
            details=details or {"product_id": product_id},
        )


class InvalidSettingsError(ShopPersonaException):
    """Raised when personalization settings fail validation."""

    def __init__(self, errors: List[Dict[str, Any]]):
        fields = sorted({".".join(str(p) for p in e.get("loc", ())) for e in errors})
        message = f"Invalid personalization settings: {', '.join(fields)}"
        super().__init__(
            message=message,
            status_code=422,
            details={"errors": errors},
        )
