"""
Domain errors and their HTTP mapping
"""
from typing import Any, Optional

from fastapi import status


class AppError(Exception):
    """Operational error carrying an HTTP status and a client-safe message"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal Server Error"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation Error"


class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not authorized"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class ProductNotFound(NotFound):
    # unresolvable cart lines are a client error
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "One or more products not found"


class InsufficientStock(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Insufficient quantity"


class InvalidTransition(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid status transition"


class InvalidState(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid state"


class UpstreamProviderError(AppError):
    """
    Payment provider failure.

    retryable=True (timeout, 5xx, 429) is answered with 502,
    a provider rejection (4xx) with 400.
    """
    default_message = "Payment provider error"

    def __init__(self, message: Optional[str] = None, details: Any = None, retryable: bool = False):
        super().__init__(message, details)
        self.retryable = retryable
        self.status_code = status.HTTP_502_BAD_GATEWAY if retryable else status.HTTP_400_BAD_REQUEST
