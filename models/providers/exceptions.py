"""Provider-level exceptions."""


class ProviderRateLimitError(RuntimeError):
    """Raised when an upstream model provider rejects a request with HTTP 429."""

    def __init__(self, provider: str, model: str, status_code: int = 429, detail: str | None = None):
        self.provider = provider
        self.model = model
        self.status_code = status_code
        self.detail = detail or "Rate limit exceeded"
        super().__init__(f"{status_code} {provider} rate limit for {model}: {self.detail}")


class ProviderRequestError(RuntimeError):
    """Raised when a provider request fails for any reason other than rate limiting."""

    def __init__(self, provider: str, model: str, detail: str):
        self.provider = provider
        self.model = model
        self.detail = detail
        super().__init__(f"{provider} request failed for {model}: {detail}")
