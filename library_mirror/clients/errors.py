"""Exceptions raised by the platform clients and the mirror."""

from typing import Optional


class MirrorError(Exception):
    """Base class for all mirror errors."""

    pass


class RequestError(MirrorError):
    """A remote call failed and will not be retried any further."""

    def __init__(self, message: str, status: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.url = url

    def __str__(self) -> str:
        status = self.status if self.status is not None else "-"
        return f"[{status}] {self.message} ({self.url})"


class RateLimitedError(RequestError):
    """HTTP 429 from the remote API."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = 429,
        url: Optional[str] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, status=status, url=url)
        self.retry_after = retry_after


class TransientNetworkError(RequestError):
    """Connection reset or timeout."""

    pass


class FormatError(MirrorError, ValueError):
    """An identifier does not have the expected shape. Never retried."""

    pass
