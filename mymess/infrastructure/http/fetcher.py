"""
Resilient fetcher - HTTP request with bounded retries and geometric backoff

Attempt N (0-based) that fails is followed by a pause of
initial_delay * 1.5 ** N before attempt N + 1. The attempt count includes the
first try, so max_attempts=1 never retries.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import requests

from mymess.config import get_settings

logger = logging.getLogger(__name__)

BACKOFF_FACTOR = 1.5


class FetchExhausted(Exception):
    """All attempts of a request failed; carries the last underlying error"""

    def __init__(self, request: "HttpRequest", attempts: int, last_error: Exception):
        self.request = request
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{request.method} {request.url} failed after {attempts} attempt(s): {last_error}"
        )


@dataclass(frozen=True)
class HttpRequest:
    """
    Request descriptor

    data is sent form-encoded, json as a JSON body.
    """
    method: str
    url: str
    params: Optional[Dict[str, Any]] = None
    data: Optional[Dict[str, Any]] = None
    json: Optional[Any] = None
    headers: Dict[str, str] = field(default_factory=dict)


class ResilientFetcher:
    """
    Issues requests through a requests.Session, retrying transport errors and
    non-2xx responses.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        max_attempts: Optional[int] = None,
        initial_delay: Optional[float] = None,
        timeout: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        settings = get_settings()
        self.session = session or requests.Session()
        self.max_attempts = max_attempts if max_attempts is not None else settings.FETCH_MAX_ATTEMPTS
        self.initial_delay = initial_delay if initial_delay is not None else settings.FETCH_INITIAL_DELAY
        self.timeout = timeout if timeout is not None else settings.FETCH_TIMEOUT
        self._sleep = sleep

    def fetch(
        self,
        request: HttpRequest,
        max_attempts: Optional[int] = None,
        initial_delay: Optional[float] = None,
    ) -> requests.Response:
        """
        Perform the request, retrying until it succeeds or attempts run out

        Args:
            request: request descriptor
            max_attempts: total attempts including the first (>= 1)
            initial_delay: pause before the first retry, seconds (> 0)

        Returns:
            The first successful (2xx) response

        Raises:
            FetchExhausted: after max_attempts consecutive failures
            ValueError: invalid max_attempts / initial_delay
        """
        attempts = self.max_attempts if max_attempts is None else max_attempts
        delay = self.initial_delay if initial_delay is None else initial_delay
        if attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {attempts}")
        if delay <= 0:
            raise ValueError(f"initial_delay must be > 0, got {delay}")

        last_error: Optional[Exception] = None
        for attempt in range(attempts):
            try:
                response = self.session.request(
                    request.method,
                    request.url,
                    params=request.params,
                    data=request.data,
                    json=request.json,
                    headers=request.headers or None,
                    timeout=self.timeout,
                )
                response.raise_for_status()
                if attempt:
                    logger.info("%s %s succeeded on attempt %d", request.method, request.url, attempt + 1)
                return response
            except requests.RequestException as exc:
                last_error = exc

            remaining = attempts - attempt - 1
            if remaining == 0:
                break
            pause = delay * BACKOFF_FACTOR ** attempt
            logger.warning(
                "%s %s failed (%s), retrying in %.2fs, %d attempt(s) left",
                request.method, request.url, last_error, pause, remaining,
            )
            self._sleep(pause)

        logger.error("%s %s failed after %d attempt(s)", request.method, request.url, attempts)
        raise FetchExhausted(request, attempts, last_error)
