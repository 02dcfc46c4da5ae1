"""
Base ranking-service client with rate limiting, retry logic, and error handling.

ScoreSaber, AccSaber and BeatSavior clients share this transport; each one
only adds its endpoints and response processing.
"""

import asyncio
import logging
import random
import time
from enum import IntEnum
from typing import Any, Optional

import httpx
from asyncio_throttle import Throttler

from config import Config

logger = logging.getLogger(__name__)


class Priority(IntEnum):
    """Request priority. Lower value = more urgent."""
    FG_HIGH = 0
    FG_LOW = 1
    BG_HIGH = 2
    BG_NORMAL = 3
    BG_LOW = 4

    @property
    def is_background(self) -> bool:
        return self >= Priority.BG_HIGH


class RankingAPIError(Exception):
    """Base exception for ranking service errors."""
    pass


class RankingAPIRateLimitError(RankingAPIError):
    """Raised when rate limit is exceeded."""
    pass


class RankingAPINonRetryableError(RankingAPIError):
    """Raised for non-retryable errors (4xx except 429)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RankingAPIClient:
    """Shared HTTP transport for the ranking services."""

    service_name = "ranking"

    def __init__(
        self,
        config: Config,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.base_url = base_url
        self.max_retries = config.max_retries
        self.retry_backoff_base = config.retry_backoff_base
        self.max_retry_delay = config.max_retry_delay

        self.throttler = Throttler(
            rate_limit=config.max_requests_per_minute,
            period=60.0
        )
        self.min_interval = config.min_request_interval
        self.last_request_time = 0.0

        self.client = http_client or httpx.AsyncClient(
            timeout=config.request_timeout,
            follow_redirects=True,
            headers={
                "User-Agent": "score-refresh-service/1.0",
                "Accept": "application/json",
            }
        )

    async def _wait_for_rate_limit(self, priority: Priority):
        """Wait to respect rate limiting. Background requests also keep a minimum spacing."""
        await self.throttler.acquire()

        if priority.is_background:
            time_since_last = time.time() - self.last_request_time
            if time_since_last < self.min_interval:
                wait_time = self.min_interval - time_since_last
                jitter = wait_time * 0.25 * (random.random() * 2 - 1)
                await asyncio.sleep(max(0.0, wait_time + jitter))

        self.last_request_time = time.time()

    def _is_retryable_error(self, status_code: int) -> bool:
        return status_code in {429, 500, 502, 503, 504}

    def _backoff(self, attempt: int) -> float:
        backoff = min(
            self.retry_backoff_base * (2 ** attempt),
            self.max_retry_delay
        )
        jitter = backoff * 0.25 * (random.random() * 2 - 1)
        return backoff + jitter

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith("http"):
            return endpoint
        return f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

    async def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        priority: Priority = Priority.FG_LOW,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path or absolute URL
            priority: Request priority
            **kwargs: Additional arguments for httpx request

        Returns:
            httpx.Response object

        Raises:
            RankingAPIRateLimitError: If rate limited after all retries
            RankingAPINonRetryableError: If non-retryable error
            RankingAPIError: For other errors after retries exhausted
        """
        url = self._url(endpoint)
        last_exception = None

        for attempt in range(self.max_retries + 1):
            try:
                await self._wait_for_rate_limit(priority)

                response = await self.client.request(method, url, **kwargs)

                if response.is_success:
                    return response

                status_code = response.status_code

                if status_code == 429:
                    retry_after = int(response.headers.get("Retry-After", 60))
                    logger.warning(
                        "Rate limited by ranking service",
                        extra={
                            "service": self.service_name,
                            "endpoint": endpoint,
                            "retry_after": retry_after,
                            "attempt": attempt + 1
                        }
                    )
                    if attempt < self.max_retries:
                        await asyncio.sleep(min(retry_after, self.max_retry_delay))
                        continue
                    raise RankingAPIRateLimitError(
                        f"Rate limited after {self.max_retries} retries"
                    )

                if not self._is_retryable_error(status_code):
                    error_text = response.text[:500]
                    # 404 is an expected answer for unknown players; callers decide
                    log = logger.debug if status_code == 404 else logger.error
                    log(
                        "Non-retryable error from ranking service",
                        extra={
                            "service": self.service_name,
                            "endpoint": endpoint,
                            "status_code": status_code,
                            "error": error_text
                        }
                    )
                    raise RankingAPINonRetryableError(
                        f"Non-retryable error {status_code}: {error_text}",
                        status_code=status_code,
                    )

                if attempt < self.max_retries:
                    wait_time = self._backoff(attempt)
                    logger.warning(
                        "Retryable error from ranking service, retrying",
                        extra={
                            "service": self.service_name,
                            "endpoint": endpoint,
                            "status_code": status_code,
                            "attempt": attempt + 1,
                            "wait_time": wait_time
                        }
                    )
                    await asyncio.sleep(wait_time)
                    continue

                error_text = response.text[:500]
                raise RankingAPIError(
                    f"Request failed after {self.max_retries} retries: "
                    f"{status_code} - {error_text}"
                )

            except httpx.TimeoutException as e:
                last_exception = e
                if attempt < self.max_retries:
                    wait_time = self._backoff(attempt)
                    logger.warning(
                        "Timeout from ranking service, retrying",
                        extra={
                            "service": self.service_name,
                            "endpoint": endpoint,
                            "attempt": attempt + 1,
                            "wait_time": wait_time
                        }
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise RankingAPIError(f"Request timeout after {self.max_retries} retries") from e

            except httpx.NetworkError as e:
                last_exception = e
                if attempt < self.max_retries:
                    wait_time = self._backoff(attempt)
                    logger.warning(
                        "Network error from ranking service, retrying",
                        extra={
                            "service": self.service_name,
                            "endpoint": endpoint,
                            "attempt": attempt + 1,
                            "wait_time": wait_time,
                            "error": str(e)
                        }
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise RankingAPIError(f"Network error after {self.max_retries} retries") from e

        raise RankingAPIError("Request failed") from last_exception

    async def fetch_json(
        self,
        endpoint: str,
        priority: Priority = Priority.FG_LOW,
        allow_not_found: bool = False,
        **kwargs
    ) -> Any:
        """
        GET an endpoint and parse the JSON body.

        Returns None for an empty body, or for a 404 when ``allow_not_found`` is set.
        """
        try:
            response = await self._request_with_retry("GET", endpoint, priority, **kwargs)
        except RankingAPINonRetryableError as e:
            if allow_not_found and e.status_code == 404:
                return None
            raise

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            logger.error("JSON parse failed", extra={
                "service": self.service_name,
                "endpoint": endpoint,
                "status_code": response.status_code,
                "content_type": response.headers.get("content-type", "unknown"),
                "response_preview": response.text[:500],
            })
            raise RankingAPIError(f"Failed to parse JSON: {e}") from e

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
