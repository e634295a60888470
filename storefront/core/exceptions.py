"""
Storefront - Custom Exceptions
==============================
Business-level exceptions raised by the service layer and translated into the
``ActionResult`` envelope by the API exception handlers.
"""
from typing import Dict, List, Optional


class StorefrontError(Exception):
    """Base exception for all business logic errors."""
    status_code = 400

    def __init__(self, message: str = "Something went wrong. Please try again."):
        self.message = message
        super().__init__(self.message)


class UnauthorizedError(StorefrontError):
    """Raised when no authenticated user is present."""
    status_code = 401


class ForbiddenError(StorefrontError):
    """Raised when the user lacks permission."""
    status_code = 403


class NotFoundError(StorefrontError):
    """Raised when a requested resource doesn't exist."""
    status_code = 404


class ValidationError(StorefrontError):
    """Raised for field-level rejections detected inside a service."""
    status_code = 422

    def __init__(self, message: str = "Invalid input", field_errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(message)
        self.field_errors = field_errors or {}


class InsufficientStockError(StorefrontError):
    """Raised when inventory cannot cover the requested quantity."""

    def __init__(self, available: int, product_name: str = ""):
        self.available = available
        if product_name:
            msg = f"Only {available} items available for {product_name}"
        else:
            msg = f"Only {available} items available in stock"
        super().__init__(msg)


class InvalidDiscountCodeError(StorefrontError):
    """Raised when a discount code cannot be applied."""
    pass


class InvalidOrderStatusError(StorefrontError):
    """Raised for a disallowed order status transition."""
    status_code = 409


class AIServiceError(StorefrontError):
    """Raised when the AI prediction service fails or returns garbage."""
    status_code = 502
