"""Storefront error types."""

from typing import Optional


class StorefrontError(Exception):
    """Base class for storefront errors."""


class BackendError(StorefrontError):
    """The hosted backend could not be reached or rejected a request."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class CheckoutError(StorefrontError):
    """Checkout cannot proceed (empty cart, missing details, ...)."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class NotAuthenticatedError(StorefrontError):
    """Admin operation attempted without an authenticated session."""
