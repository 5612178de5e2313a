class ProviderError(Exception):
    """Base error for a single external provider."""

    def __init__(self, source: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message
        self.status_code = status_code


class ProviderUnavailableError(ProviderError):
    """Raised on non-success status, network failure, timeout or missing credentials."""


class ProviderParseError(ProviderError):
    """Raised when a provider answers with a malformed or unexpected body."""


class AllProvidersExhaustedError(Exception):
    """Raised when every provider of a fallback chain failed or returned nothing."""

    def __init__(self, capability: str, failures: dict[str, str]) -> None:
        reasons = "; ".join(f"{source}: {reason}" for source, reason in failures.items()) or "no providers configured"
        super().__init__(f"all {capability} providers failed ({reasons})")
        self.capability = capability
        self.failures = failures
