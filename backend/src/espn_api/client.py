"""
ESPN scoreboard API client with rate limiting, retry logic, and error handling.

Handles all communication with the ESPN site API.
"""

import asyncio
import logging
import random
import time
from typing import Any, Dict, List

import httpx
from asyncio_throttle import Throttler

from config import Config

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "live-scoreboard/1.0 (+https://github.com/)",
    "Accept": "application/json",
    "Accept-Language": "en-US,en;q=0.9",
}


class ESPNAPIError(Exception):
    """Base exception for ESPN API errors."""
    pass


class ESPNAPIRateLimitError(ESPNAPIError):
    """Raised when rate limit is exceeded."""
    pass


class ESPNAPINonRetryableError(ESPNAPIError):
    """Raised for non-retryable errors (4xx except 429)."""
    pass


class ESPNAPIClient:
    """Client for the ESPN scoreboard endpoints."""

    def __init__(self, config: Config, http_client: httpx.AsyncClient = None):
        self.config = config
        self.base_url = config.espn_api_base_url.rstrip("/")
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
            timeout=30.0,
            follow_redirects=True,
            headers=DEFAULT_HEADERS,
        )

    async def _wait_for_rate_limit(self):
        """Wait to respect rate limiting."""
        await self.throttler.acquire()

        # Also enforce minimum interval between requests
        time_since_last = time.time() - self.last_request_time
        if time_since_last < self.min_interval:
            wait_time = self.min_interval - time_since_last
            jitter = wait_time * 0.25 * (random.random() * 2 - 1)
            await asyncio.sleep(max(wait_time + jitter, 0))

        self.last_request_time = time.time()

    def _is_retryable_error(self, status_code: int) -> bool:
        """Check if error is retryable."""
        # Retryable: 429 (rate limit), 500, 502, 503, 504
        # Non-retryable: 400, 401, 403, 404
        return status_code in {429, 500, 502, 503, 504}

    def _retry_after(self, response: httpx.Response) -> float:
        """Seconds to wait from a 429 Retry-After header; 60 when missing or not a number."""
        try:
            return max(float(response.headers.get("Retry-After", 60)), 0.0)
        except ValueError:
            return 60.0

    def _backoff(self, attempt: int) -> float:
        """Exponential backoff with ±25% jitter."""
        backoff = min(
            self.retry_backoff_base * (2 ** attempt),
            self.max_retry_delay
        )
        jitter = backoff * 0.25 * (random.random() * 2 - 1)
        return backoff + jitter

    async def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API path relative to the base URL, or an absolute URL
            **kwargs: Additional arguments for httpx request

        Returns:
            httpx.Response object

        Raises:
            ESPNAPIRateLimitError: If still rate limited after retries
            ESPNAPINonRetryableError: If non-retryable error
            ESPNAPIError: For other errors after retries exhausted
        """
        if endpoint.startswith("http"):
            url = endpoint
        else:
            url = f"{self.base_url}/{endpoint.lstrip('/')}"
        last_exception = None

        for attempt in range(self.max_retries + 1):
            try:
                await self._wait_for_rate_limit()

                response = await self.client.request(method, url, **kwargs)

                if response.is_success:
                    return response

                status_code = response.status_code

                if status_code == 429:
                    retry_after = self._retry_after(response)
                    logger.warning(
                        "Rate limited by ESPN API",
                        extra={
                            "endpoint": endpoint,
                            "retry_after": retry_after,
                            "attempt": attempt + 1
                        }
                    )
                    if attempt < self.max_retries:
                        await asyncio.sleep(retry_after)
                        continue
                    raise ESPNAPIRateLimitError(
                        f"Rate limited after {self.max_retries} retries"
                    )

                if not self._is_retryable_error(status_code):
                    error_text = response.text[:500]
                    logger.error(
                        "Non-retryable error from ESPN API",
                        extra={
                            "endpoint": endpoint,
                            "status_code": status_code,
                            "error": error_text
                        }
                    )
                    raise ESPNAPINonRetryableError(
                        f"Non-retryable error {status_code}: {error_text}"
                    )

                if attempt < self.max_retries:
                    wait_time = self._backoff(attempt)
                    logger.warning(
                        "Retryable error from ESPN API, retrying",
                        extra={
                            "endpoint": endpoint,
                            "status_code": status_code,
                            "attempt": attempt + 1,
                            "wait_time": wait_time
                        }
                    )
                    await asyncio.sleep(wait_time)
                    continue

                error_text = response.text[:500]
                raise ESPNAPIError(
                    f"Request failed after {self.max_retries} retries: "
                    f"{status_code} - {error_text}"
                )

            except httpx.TimeoutException as e:
                last_exception = e
                if attempt < self.max_retries:
                    wait_time = self._backoff(attempt)
                    logger.warning(
                        "Timeout from ESPN API, retrying",
                        extra={
                            "endpoint": endpoint,
                            "attempt": attempt + 1,
                            "wait_time": wait_time
                        }
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise ESPNAPIError(f"Request timeout after {self.max_retries} retries") from e

            except httpx.TransportError as e:
                last_exception = e
                if attempt < self.max_retries:
                    wait_time = self._backoff(attempt)
                    logger.warning(
                        "Transport error from ESPN API, retrying",
                        extra={
                            "endpoint": endpoint,
                            "attempt": attempt + 1,
                            "wait_time": wait_time,
                            "error": str(e),
                            "error_type": type(e).__name__
                        }
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise ESPNAPIError(f"Transport error after {self.max_retries} retries") from e

        raise ESPNAPIError("Request failed") from last_exception

    async def get_scoreboard(self, slug: str) -> List[Dict[str, Any]]:
        """
        Get the current scoreboard events for one league.

        Args:
            slug: ESPN sport/league path, e.g. "football/nfl"

        Returns:
            List of ESPN event dictionaries (empty when the league has no games)
        """
        response = await self._request_with_retry("GET", f"/{slug}/scoreboard")

        try:
            data = response.json()
        except ValueError as e:
            logger.error("Scoreboard JSON parse failed", extra={
                "slug": slug,
                "status_code": response.status_code,
                "content_type": response.headers.get("content-type", "unknown"),
                "response_preview": response.text[:500] if response.text else "No text content",
            })
            raise ESPNAPIError(f"Failed to parse JSON for {slug}: {e}") from e

        events = (data.get("events") or []) if isinstance(data, dict) else []

        logger.debug("Fetched scoreboard", extra={
            "slug": slug,
            "events_count": len(events)
        })

        return events

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
