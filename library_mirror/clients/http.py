"""
Resilient HTTP client shared by the Vimeo and Panda clients.

Wraps a requests.Session with a timeout and a tenacity retry policy:
- HTTP 429 waits for retry-after seconds (or a fallback) times the attempt number
- connection resets and timeouts wait network_backoff seconds times the attempt number
- everything else is raised to the caller as RequestError
"""

import logging
import time
from typing import Callable, Optional

import requests
from tenacity import RetryCallState, RetryError, Retrying, retry_if_exception_type, stop_after_attempt

from library_mirror.clients.errors import RateLimitedError, RequestError, TransientNetworkError

logger = logging.getLogger(__name__)


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a retry-after header given in seconds."""
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except (TypeError, ValueError):
        return None


class ResilientClient:
    """
    Session-backed JSON client with retry and rate-limit backoff.

    Usage:
        with ResilientClient("https://api.vimeo.com", headers=..., max_attempts=5) as http:
            page = http.get("/me/projects")
    """

    def __init__(
        self,
        base_url: str,
        headers: Optional[dict] = None,
        timeout: float = 15.0,
        max_attempts: int = 3,
        rate_limit_fallback: float = 2.0,
        network_backoff: float = 2.0,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        name: str = "HTTP",
    ):
        """
        Initialize the client.

        Args:
            base_url: Prefix for relative URLs (absolute URLs are used verbatim)
            headers: Headers sent with every request (auth, accept)
            timeout: Per-request timeout in seconds
            max_attempts: Total attempts including the first one
            rate_limit_fallback: Base wait for a 429 without retry-after
            network_backoff: Base wait after a connection reset or timeout
            session: Optional pre-built session (tests inject fakes here)
            sleep: Sleep function used between attempts
            name: Tag used in log lines
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.rate_limit_fallback = rate_limit_fallback
        self.network_backoff = network_backoff
        self.name = name
        self._sleep = sleep

        self.session = session or requests.Session()
        if headers:
            self.session.headers.update(headers)

    def __enter__(self) -> "ResilientClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Release pooled connections."""
        self.session.close()

    def build_url(self, url: str) -> str:
        if url.startswith("http://") or url.startswith("https://"):
            return url
        if not url.startswith("/"):
            url = "/" + url
        return f"{self.base_url}{url}"

    def backoff_seconds(self, retry_state: RetryCallState) -> float:
        """Wait before the next attempt, escalating with the attempt number."""
        error = retry_state.outcome.exception()
        attempt = retry_state.attempt_number

        if isinstance(error, RateLimitedError):
            base = error.retry_after if error.retry_after is not None else self.rate_limit_fallback
            return base * attempt
        return self.network_backoff * attempt

    def _log_backoff(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception()
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        kind = "Rate limited" if isinstance(error, RateLimitedError) else "Connection problem"
        logger.warning(
            f"[{self.name}] {kind} on attempt {retry_state.attempt_number}/{self.max_attempts} "
            f"({error.url}). Waiting {wait:.1f}s before retrying..."
        )

    def _send(
        self,
        method: str,
        url: str,
        payload: Optional[dict],
        params: Optional[dict],
        headers: Optional[dict],
    ) -> dict:
        """Perform one attempt and translate failures into the error taxonomy."""
        try:
            response = self.session.request(
                method,
                url,
                json=payload,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransientNetworkError(str(e), url=url) from e
        except requests.RequestException as e:
            raise RequestError(str(e), url=url) from e

        if response.status_code == 429:
            raise RateLimitedError(
                "Too many requests",
                url=url,
                retry_after=_parse_retry_after(response.headers.get("retry-after")),
            )

        if response.status_code >= 400:
            raise RequestError(
                f"API error {response.status_code}: {response.text[:200]}",
                status=response.status_code,
                url=url,
            )

        if not response.content:
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise RequestError(
                "Response is not valid JSON", status=response.status_code, url=url
            ) from e

    def request(
        self,
        method: str,
        url: str,
        payload: Optional[dict] = None,
        params: Optional[dict] = None,
        headers: Optional[dict] = None,
    ) -> dict:
        """
        Send a request and return the decoded JSON body.

        Args:
            method: HTTP method
            url: Relative path or absolute URL
            payload: JSON body
            params: Query string parameters
            headers: Extra per-request headers

        Returns:
            Decoded JSON body ({} for empty responses)

        Raises:
            RequestError: Non-retryable failure or retries exhausted
        """
        full_url = self.build_url(url)
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.backoff_seconds,
            retry=retry_if_exception_type((RateLimitedError, TransientNetworkError)),
            before_sleep=self._log_backoff,
            sleep=self._sleep,
        )

        try:
            return retrying(self._send, method.upper(), full_url, payload, params, headers)
        except RetryError as e:
            last = e.last_attempt.exception()
            logger.error(
                f"[{self.name}] {method.upper()} {full_url} failed after "
                f"{self.max_attempts} attempts: {last}"
            )
            raise RequestError(
                f"Gave up after {self.max_attempts} attempts: {last.message}",
                status=last.status,
                url=full_url,
            ) from last
        except RequestError as e:
            logger.error(f"[{self.name}] {method.upper()} {full_url} failed: {e}")
            raise

    def get(self, url: str, params: Optional[dict] = None) -> dict:
        return self.request("GET", url, params=params)

    def post(self, url: str, payload: Optional[dict] = None) -> dict:
        return self.request("POST", url, payload=payload)
