"""
Core module for Moto Shop Web.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy
- printful_client: Printful REST API client
- cache: In-process cache for catalog lookups
"""

from .exceptions import (
    ShopApiError,
    ConfigurationError,
    RequestValidationError,
    OrderPreparationError,
    PrintfulAPIError,
    PollingError,
    PollingFailedError,
    PollingTimeoutError,
    PollingCancelledError,
)
from .cache import MemoryCache
from .printful_client import PrintfulClient

__all__ = [
    "ShopApiError",
    "ConfigurationError",
    "RequestValidationError",
    "OrderPreparationError",
    "PrintfulAPIError",
    "PollingError",
    "PollingFailedError",
    "PollingTimeoutError",
    "PollingCancelledError",
    "MemoryCache",
    "PrintfulClient",
]
