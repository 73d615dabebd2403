from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from config.settings import SystemConfig


class BaseModelProvider(ABC):
    """Abstract base class for chat model providers."""

    def __init__(self, system_config: "SystemConfig"):
        self.system_config = system_config

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of this provider."""
        pass

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the provider has credentials to make requests."""
        pass

    @abstractmethod
    async def generate_response(
        self,
        model: str,
        messages: list[dict[str, str]],
        max_tokens: int = 1000,
        temperature: float = 0.7,
    ) -> str:
        """Generate a chat completion and return its text content."""
        pass
