"""
PayCall SDK - pay-per-call tools for AI agents
"""

from .client import PayCallClient
from .exceptions import (
    PayCallError,
    AuthenticationError,
    NotFoundError,
    PaymentRequiredError,
    PaymentRejectedError,
    DuplicatePaymentError,
    PaymentLimitError,
    ProviderError,
    ServerError,
    NetworkError,
)

__version__ = "1.0.0"

__all__ = [
    "PayCallClient",
    "PayCallError",
    "AuthenticationError",
    "NotFoundError",
    "PaymentRequiredError",
    "PaymentRejectedError",
    "DuplicatePaymentError",
    "PaymentLimitError",
    "ProviderError",
    "ServerError",
    "NetworkError",
]
