import asyncio
import logging
import os
import time
from typing import TYPE_CHECKING, ClassVar

from openai import APIError, AsyncOpenAI, RateLimitError

from .base_model_provider import BaseModelProvider
from .exceptions import ProviderRateLimitError, ProviderRequestError

if TYPE_CHECKING:
    from openai.types.chat import ChatCompletion

    from config.settings import SystemConfig

logger = logging.getLogger(__name__)


class OpenRouterProvider(BaseModelProvider):
    """OpenRouter model provider implementation."""

    # Class-level rate limiting to prevent 429 errors
    _last_request_time: ClassVar[float | None] = None
    _request_lock: ClassVar[asyncio.Lock] = asyncio.Lock()
    _min_request_interval: ClassVar[float] = 3.0

    def __init__(self, system_config: "SystemConfig"):
        super().__init__(system_config)

        # Get API key from config or environment
        api_key = system_config.openrouter.api_key or os.getenv("OPENROUTER_API_KEY")

        if not api_key:
            logger.warning(
                "No OpenRouter API key found. Set OPENROUTER_API_KEY or configure in system settings."
            )
            self._client: AsyncOpenAI | None = None
        else:
            # Prepare headers for OpenRouter
            headers = {}
            if system_config.openrouter.site_url:
                headers["HTTP-Referer"] = system_config.openrouter.site_url
            if system_config.openrouter.app_name:
                headers["X-Title"] = system_config.openrouter.app_name

            self._client = AsyncOpenAI(
                base_url=system_config.openrouter.base_url,
                api_key=api_key,
                timeout=system_config.openrouter.timeout,
                max_retries=system_config.openrouter.max_retries,
                default_headers=headers,
            )

    @property
    def provider_name(self) -> str:
        return "openrouter"

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    async def _rate_limit_request(self) -> None:
        """Ensure minimum time between requests to avoid 429 errors."""
        async with self._request_lock:
            current_time = time.time()

            if self._last_request_time is not None:
                time_since_last = current_time - self._last_request_time
                if time_since_last < self._min_request_interval:
                    sleep_time = self._min_request_interval - time_since_last
                    logger.debug(
                        f"Rate limiting: waiting {sleep_time:.2f}s before next OpenRouter request"
                    )
                    await asyncio.sleep(sleep_time)

            OpenRouterProvider._last_request_time = time.time()

    async def generate_response(
        self,
        model: str,
        messages: list[dict[str, str]],
        max_tokens: int = 1000,
        temperature: float = 0.7,
    ) -> str:
        """Generate a response using OpenRouter."""
        if not self._client:
            raise RuntimeError("OpenRouter client not initialized - check API key")

        await self._rate_limit_request()

        try:
            response: "ChatCompletion" = await self._client.chat.completions.create(
                model=model,
                messages=messages,  # type: ignore[arg-type]
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except RateLimitError as e:
            raise ProviderRateLimitError(
                provider=self.provider_name,
                model=model,
                status_code=429,
                detail="OpenRouter rate limited the request.",
            ) from e
        except APIError as e:
            # Connection errors, timeouts and non-429 status codes
            logger.error(f"OpenRouter generation failed for {model}: {e}")
            raise ProviderRequestError(
                provider=self.provider_name, model=model, detail=str(e)
            ) from e

        content = response.choices[0].message.content or ""
        if not content.strip():
            logger.warning(f"OpenRouter model {model} returned empty content")
        else:
            logger.debug(f"Generated {len(content)} chars from OpenRouter model {model}")

        return content.strip()
