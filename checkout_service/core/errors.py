"""Checkout error hierarchy"""

from typing import Any, Optional


class CheckoutError(Exception):
    """Base exception for checkout errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CheckoutValidationError(CheckoutError):
    """Local validation failure, raised before any network call"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InvalidStepError(CheckoutError):
    """Action not allowed in the session's current step"""
    pass


class InvalidTransitionError(CheckoutError):
    """Step transition not present in the transition table"""

    def __init__(self, current: Any, target: Any):
        super().__init__(f"Cannot move checkout from '{current}' to '{target}'")
        self.current = current
        self.target = target


class StoreClientError(CheckoutError):
    """Storefront API call failed (network or non-2xx response)"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        server_message: Optional[str] = None,
        payload: Optional[dict] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.server_message = server_message
        self.payload = payload or {}


class AuthenticationError(StoreClientError):
    """Storefront rejected the bearer token"""
    pass


class OrderNotFoundError(StoreClientError):
    """Order is missing or does not belong to the user"""
    pass
