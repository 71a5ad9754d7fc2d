"""Base API client with retry logic and persistent caching."""

import logging
import time
from pathlib import Path
from typing import Any

import requests
import requests_cache
from requests.exceptions import ConnectionError, HTTPError, Timeout
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from snp_annotation.config.schema import AnnotationConfig

logger = logging.getLogger(__name__)


def _is_retryable(exc: BaseException) -> bool:
    """Retry network failures, 429 and 5xx; never other 4xx client errors."""
    if isinstance(exc, (Timeout, ConnectionError)):
        return True
    if isinstance(exc, HTTPError) and exc.response is not None:
        status = exc.response.status_code
        return status == 429 or status >= 500
    return False


class CachedAPIClient:
    """
    HTTP client with rate limiting, retry logic, and persistent SQLite caching.

    Features:
    - Automatic retry on 429/5xx/network errors with exponential backoff
    - Persistent SQLite cache (GET and POST) with configurable TTL
    - Rate limiting applied only to requests that missed the cache
    """

    def __init__(
        self,
        cache_dir: Path,
        rate_limit: int = 5,
        max_retries: int = 5,
        cache_ttl: int = 86400,
        timeout: int = 30,
    ):
        """
        Initialize API client with caching and retry logic.

        Args:
            cache_dir: Directory for SQLite cache storage
            rate_limit: Maximum requests per second
            max_retries: Maximum attempts per request
            cache_ttl: Cache time-to-live in seconds (0 = infinite)
            timeout: Request timeout in seconds
        """
        self.cache_dir = Path(cache_dir)
        self.rate_limit = rate_limit
        self.max_retries = max_retries
        self.timeout = timeout

        self.cache_dir.mkdir(parents=True, exist_ok=True)

        cache_path = self.cache_dir / "api_cache"
        expire_after = cache_ttl if cache_ttl > 0 else None

        # VEP batch lookups are POSTs; the request body is part of the cache key
        self.session = requests_cache.CachedSession(
            cache_name=str(cache_path),
            backend="sqlite",
            expire_after=expire_after,
            allowable_methods=("GET", "POST"),
        )

    def _should_rate_limit(self, response: requests.Response) -> bool:
        """Check if response came from cache (no rate limit needed)."""
        return not getattr(response, "from_cache", False)

    def _create_retry_decorator(self):
        """Create retry decorator with exponential backoff."""
        return retry(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=1, min=2, max=60),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        )

    def request(
        self,
        method: str,
        url: str,
        **kwargs,
    ) -> requests.Response:
        """
        Make an HTTP request with retry logic and caching.

        Args:
            method: HTTP method ("GET" or "POST")
            url: Request URL
            **kwargs: Additional arguments passed to requests (params, json, headers)

        Returns:
            Response object

        Raises:
            HTTPError: On HTTP error (immediately for non-retryable 4xx)
            Timeout: On timeout after retries exhausted
            ConnectionError: On connection error after retries exhausted
        """
        @self._create_retry_decorator()
        def _request_with_retry():
            response = self.session.request(
                method,
                url,
                timeout=self.timeout,
                **kwargs,
            )

            try:
                response.raise_for_status()
            except HTTPError:
                if response.status_code == 429:
                    logger.warning(
                        f"Rate limited by API (429). "
                        f"URL: {url}. Will retry with backoff."
                    )
                raise

            return response

        response = _request_with_retry()

        if self._should_rate_limit(response):
            time.sleep(1 / self.rate_limit)

        return response

    def get(self, url: str, params: dict[str, Any] | None = None, **kwargs) -> requests.Response:
        """GET with retry and caching."""
        return self.request("GET", url, params=params, **kwargs)

    def get_json(self, url: str, params: dict[str, Any] | None = None, **kwargs) -> Any:
        """GET and decode the JSON body."""
        return self.get(url, params=params, **kwargs).json()

    def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        params: dict[str, Any] | None = None,
        **kwargs,
    ) -> Any:
        """
        POST a JSON payload and decode the JSON body.

        Args:
            url: Request URL
            payload: JSON-serializable request body
            params: Query parameters

        Returns:
            Parsed JSON response
        """
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        headers.update(kwargs.pop("headers", {}) or {})
        response = self.request(
            "POST",
            url,
            params=params,
            json=payload,
            headers=headers,
            **kwargs,
        )
        return response.json()

    @classmethod
    def from_config(cls, config: AnnotationConfig) -> "CachedAPIClient":
        """
        Create client from annotation configuration.

        Args:
            config: AnnotationConfig instance

        Returns:
            Configured CachedAPIClient instance
        """
        return cls(
            cache_dir=config.cache_dir,
            rate_limit=config.api.rate_limit_per_second,
            max_retries=config.api.max_retries,
            cache_ttl=config.api.cache_ttl_seconds,
            timeout=config.api.timeout_seconds,
        )

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()
