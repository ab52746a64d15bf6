"""
Wildberries HTTP client implementation.

Provides authenticated, rate-limit aware access to the Wildberries statistics,
seller-analytics, content and advert APIs. Every request goes through one
retry loop driven by an injected RetryPolicy:

- 429: wait for the X-Ratelimit-Retry / Retry-After hint and re-issue
- 5xx and network failures: exponential backoff with jitter
- 401/403: fail immediately, the key is wrong or lacks a category
- 400: fail immediately with the upstream message
"""

import asyncio
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from wb_reports.utils.logger import get_logger
from wb_reports.utils.config import get_config
from wb_reports.utils.exceptions import (
    APIError, MalformedResponseError, RetryBudgetExhaustedError,
    UpstreamUnavailableError, ValidationError, handle_api_error
)
from wb_reports.utils.rate_limiting import Phase, Sleeper
from wb_reports.utils.retry import RetryPolicy, parse_retry_hint


logger = get_logger(__name__)


class RateLimitedHttpClient:
    """
    HTTP client for Wildberries seller APIs.

    The blocking requests.Session transport runs in a worker thread so the
    event loop stays free while a request is in flight.
    """

    def __init__(self, api_key: str,
                 retry_policy: Optional[RetryPolicy] = None,
                 sleeper: Optional[Sleeper] = None,
                 session: Optional[requests.Session] = None,
                 timeout: Optional[int] = None):
        """
        Initialize the client.

        Args:
            api_key: Seller API token, sent as the raw Authorization header
            retry_policy: Attempt budget and delays; defaults from configuration
            sleeper: Suspension point for backoff waits
            session: Pre-built session (tests inject a fake one)
            timeout: Per-request timeout in seconds
        """
        if not api_key or not api_key.strip():
            raise ValidationError("API key is required", field="api_key")

        config = get_config()
        self.api_key = api_key.strip()
        self.retry_policy = retry_policy or config.retry
        self.sleeper = sleeper or Sleeper()
        self.timeout = timeout or config.wildberries.timeout

        if session is None:
            session = requests.Session()

            # Connection-level retries only; status retries are handled below
            retry_strategy = Retry(
                total=2,
                connect=2,
                read=0,
                status=0,
                backoff_factor=0.5,
                allowed_methods=None,
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount("http://", adapter)
            session.mount("https://", adapter)

        self.session = session
        self.session.headers.update({
            "Authorization": self.api_key,
            "Content-Type": "application/json",
            "User-Agent": "WBReports/1.0",
        })

        logger.debug(f"Initialized Wildberries HTTP client (max attempts: {self.retry_policy.max_attempts})")

    def _send(self, method: str, url: str, params: Optional[Dict[str, Any]],
              json: Any) -> requests.Response:
        logger.debug(f"Making {method} request to {url} params={params}")
        return self.session.request(method, url, params=params, json=json, timeout=self.timeout)

    async def call(self, method: str, url: str,
                   params: Optional[Dict[str, Any]] = None,
                   json: Any = None) -> requests.Response:
        """
        Issue a request, retrying throttling and transient failures.

        Args:
            method: HTTP method
            url: Absolute request URL
            params: Query parameters
            json: JSON body

        Returns:
            Successful (2xx) response

        Raises:
            RetryBudgetExhaustedError: 429 persisted past the attempt budget
            UpstreamUnavailableError: 5xx/network failures persisted
            InvalidCredentialError: 401/403
            BadRequestError: 400
            APIError: Any other non-success status
        """
        policy = self.retry_policy

        for attempt in range(policy.max_attempts):
            last_attempt = attempt + 1 >= policy.max_attempts

            try:
                response = await asyncio.to_thread(self._send, method, url, params, json)
            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                if last_attempt:
                    logger.error(f"❌ {url} unreachable after {policy.max_attempts} attempts: {e}")
                    raise UpstreamUnavailableError(
                        f"Upstream unavailable after {policy.max_attempts} attempts: {e}",
                        endpoint=url
                    ) from e
                await self.sleeper.sleep(policy.backoff_delay(attempt), Phase.BACKING_OFF,
                                         f"network error on {url}")
                continue
            except requests.exceptions.RequestException as e:
                raise APIError(f"Request failed: {e}", endpoint=url) from e

            status = response.status_code

            if status == 429:
                if last_attempt:
                    logger.error(f"❌ Rate limit on {url} persisted for {policy.max_attempts} attempts")
                    raise RetryBudgetExhaustedError(
                        f"Rate limit persisted after {policy.max_attempts} attempts",
                        attempts=policy.max_attempts,
                        retry_after=parse_retry_hint(response.headers),
                        endpoint=url
                    )
                delay = policy.throttle_delay(parse_retry_hint(response.headers))
                logger.warning(f"⚠️ 429 from {url}, retrying in {delay}s (attempt {attempt + 1})")
                await self.sleeper.sleep(delay, Phase.BACKING_OFF, "rate limited")
                continue

            if status >= 500:
                if last_attempt:
                    logger.error(f"❌ {url} returned {status} for {policy.max_attempts} attempts")
                    raise UpstreamUnavailableError(
                        f"Server error: {status}",
                        status_code=status,
                        response_data=response.text[:300] if response.text else None,
                        endpoint=url
                    )
                delay = policy.backoff_delay(attempt)
                logger.warning(f"⚠️ {status} from {url}, retrying in {delay:.1f}s")
                await self.sleeper.sleep(delay, Phase.BACKING_OFF, f"server error {status}")
                continue

            if not 200 <= status < 300:
                handle_api_error(response, url)

            return response

        # max_attempts >= 1 guarantees the loop returns or raises
        raise UpstreamUnavailableError("Retry loop exited without a response", endpoint=url)

    async def call_json(self, method: str, url: str,
                        params: Optional[Dict[str, Any]] = None,
                        json: Any = None) -> Any:
        """
        Issue a request and parse the JSON body.

        Returns:
            Parsed JSON, or None for an empty body

        Raises:
            MalformedResponseError: If the body is not valid JSON
        """
        response = await self.call(method, url, params=params, json=json)

        if response.status_code == 204 or not response.content or not response.content.strip():
            return None

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"Invalid JSON in response from {url}",
                status_code=response.status_code,
                response_data=response.text[:300],
                endpoint=url
            ) from e

    def close(self) -> None:
        """Close the HTTP session."""
        if self.session:
            self.session.close()
        logger.debug("Closed Wildberries HTTP client")


def create_http_client(api_key: str, sleeper: Optional[Sleeper] = None) -> RateLimitedHttpClient:
    """
    Factory function to create a client with configured retry policy.

    Args:
        api_key: Seller API token
        sleeper: Optional suspension point

    Returns:
        Configured RateLimitedHttpClient instance.
    """
    return RateLimitedHttpClient(api_key=api_key, sleeper=sleeper)
