"""Error kinds raised inside the digest pipeline.

Provider and completion errors are recovered at component boundaries;
only ConfigurationError is meant to reach the caller.
"""


class DigestError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(DigestError):
    """Missing or invalid configuration (e.g. an API key). Fatal at startup."""


# ── Providers ──────────────────────────────────────────────────────────


class ProviderError(DigestError):
    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ProviderRateLimited(ProviderError):
    """Daily quota used up or HTTP 429; do not retry this provider."""


class ProviderUnavailable(ProviderError):
    """Network failure or non-429 HTTP error."""


class MalformedProviderResponse(ProviderError):
    """Provider answered, but not with the expected payload."""


# ── Completion service ─────────────────────────────────────────────────


class CompletionError(DigestError):
    pass


class CompletionServiceTimeout(CompletionError):
    pass


class CompletionRateLimited(CompletionError):
    pass


class MalformedCompletionResponse(CompletionError):
    pass


class NoRelevantArticles(DigestError):
    """No candidate article mentions the topic."""
