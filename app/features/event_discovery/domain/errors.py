"""
Failure taxonomy for a discovery run.

Every pipeline stage catches these locally and degrades; only
ConfigurationMissing is meant to reach the HTTP caller.
"""


class DiscoveryError(Exception):
    """Base exception for event discovery failures."""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.recoverable = recoverable


class FetchTimeout(DiscoveryError):
    """An outbound fetch exceeded its per-request timeout."""


class FetchFailed(DiscoveryError):
    """An outbound fetch failed (connection error or non-success status)."""

    def __init__(self, message: str, status_code: int | None = None, recoverable: bool = True):
        super().__init__(message, recoverable=recoverable)
        self.status_code = status_code


class RateLimited(DiscoveryError):
    """The completion API answered with a rate-limit response."""


class ServerError(DiscoveryError):
    """The completion API answered with a 5xx or timed out."""


class ParseFailed(DiscoveryError):
    """A response could not be parsed into the expected structure."""


class Cooldown(DiscoveryError):
    """The rate gate is cooling down and the caller asked to fail fast."""

    def __init__(self, message: str, retry_after: float = 0.0):
        super().__init__(message, recoverable=True)
        self.retry_after = retry_after


class ConfigurationMissing(DiscoveryError):
    """Required credentials are absent; no discovery run can start."""

    def __init__(self, missing: list[str]):
        super().__init__(f"Missing required configuration: {', '.join(missing)}", recoverable=False)
        self.missing = missing
