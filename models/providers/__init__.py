"""Model providers package."""

from .base_model_provider import BaseModelProvider
from .exceptions import ProviderRateLimitError, ProviderRequestError
from .open_router_provider import OpenRouterProvider

__all__ = [
    "BaseModelProvider",
    "OpenRouterProvider",
    "ProviderRateLimitError",
    "ProviderRequestError",
]
