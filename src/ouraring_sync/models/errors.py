"""Error types raised by the API clients and the sync orchestrator."""


class OuraSyncError(Exception):
    """Base class for every error raised by this package."""


class AuthenticationError(OuraSyncError):
    """The API rejected the configured token."""


class NotFoundError(OuraSyncError):
    """The requested resource does not exist."""

    def __init__(self, resource: str, message: str = "Resource not found"):
        self.resource = resource
        super().__init__(f"{message}: {resource}")


class RateLimitError(OuraSyncError):
    """The API asked us to slow down."""

    def __init__(self, retry_after: int | None = None):
        self.retry_after = retry_after
        message = "Rate limit exceeded"
        if retry_after:
            message += f" (retry after {retry_after}s)"
        super().__init__(message)


class NetworkError(OuraSyncError):
    """Transport failure, server error, or an unusable response body."""


class TimeoutError(OuraSyncError):  # noqa: A001
    """A request kept timing out until retries were exhausted."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Operation timed out: {operation}")


class SyncInProgressError(OuraSyncError):
    """Another sync currently holds the writer role."""
