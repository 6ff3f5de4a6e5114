"""
Async HTTP client for the upstream commerce API.

Fetches the full order and product lists in one request each. The upstream
authenticates with a static token in the Authorization header.

Features:
- Connection pooling with httpx
- Explicit per-request timeout
- Exponential backoff retry on connection errors (3 attempts)
- Circuit breaker (opens after 5 consecutive failures)
- Request correlation IDs for tracing
"""
from typing import Dict, List, Any, Optional

import httpx

from replenish.config import ConfigurationError, UpstreamConfig, config
from replenish.exceptions import UpstreamAPIError, UpstreamConnectionError, UpstreamDataError
from replenish.observability import get_logger, get_correlation_id, Timer
from replenish.resilience import (
    CircuitBreaker,
    CircuitBreakerConfig,
    RetryConfig,
    retry_with_backoff,
)

logger = get_logger(__name__)

RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    base_delay=1.0,
    max_delay=10.0,
    exponential_base=2.0
)

CIRCUIT_BREAKER_CONFIG = CircuitBreakerConfig(
    failure_threshold=5,
    recovery_timeout=60.0,
    half_open_requests=1
)


class CommerceClient:
    """
    Async client for the upstream orders/products API.

    Missing URLs or token are reported as ConfigurationError when a fetch is
    attempted, before any network call, so each sync leg can fail on its own.

    Usage:
        async with CommerceClient.from_config() as client:
            orders = await client.fetch_orders()
    """

    def __init__(
        self,
        orders_url: str = "",
        products_url: str = "",
        token: str = "",
        auth_scheme: str = "",
        timeout: float = 30.0,
        retry_config: Optional[RetryConfig] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            orders_url: Full URL returning the order list
            products_url: Full URL returning the product list
            token: Opaque API token sent in the Authorization header
            auth_scheme: Optional scheme prefix, e.g. "Bearer"
            timeout: Request timeout in seconds
            retry_config: Retry policy for connection errors
            circuit_breaker: Breaker shared across requests
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.orders_url = orders_url
        self.products_url = products_url
        self.token = token
        self.auth_scheme = auth_scheme
        self.timeout = timeout
        self.retry_config = retry_config or RETRY_CONFIG
        self.circuit_breaker = circuit_breaker or CircuitBreaker(config=CIRCUIT_BREAKER_CONFIG)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, upstream: Optional[UpstreamConfig] = None, **kwargs) -> "CommerceClient":
        upstream = upstream or config.upstream
        return cls(
            orders_url=upstream.orders_url,
            products_url=upstream.products_url,
            token=upstream.token,
            auth_scheme=upstream.auth_scheme,
            timeout=upstream.request_timeout,
            **kwargs,
        )

    @property
    def headers(self) -> Dict[str, str]:
        """Request headers with auth."""
        authorization = f"{self.auth_scheme} {self.token}" if self.auth_scheme else self.token
        return {
            "Authorization": authorization,
            "Accept": "application/json",
        }

    async def connect(self) -> None:
        """Create HTTP client with connection pooling."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
            )

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "CommerceClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ═══════════════════════════════════════════════════════════════════════════
    # PUBLIC API
    # ═══════════════════════════════════════════════════════════════════════════

    async def fetch_orders(self) -> List[Dict[str, Any]]:
        """Fetch the full raw order list."""
        url = self._require_url(self.orders_url, "COMMERCE_ORDERS_URL")
        return await self._fetch_list(url, "orders")

    async def fetch_products(self) -> List[Dict[str, Any]]:
        """Fetch the full raw product list."""
        url = self._require_url(self.products_url, "COMMERCE_PRODUCTS_URL")
        return await self._fetch_list(url, "products")

    # ═══════════════════════════════════════════════════════════════════════════
    # INTERNALS
    # ═══════════════════════════════════════════════════════════════════════════

    def _require_url(self, url: str, setting: str) -> str:
        if not url:
            raise ConfigurationError(f"{setting} is not configured")
        if not self.token:
            raise ConfigurationError("COMMERCE_API_TOKEN is not configured")
        return url

    async def _fetch_list(self, url: str, resource: str) -> List[Dict[str, Any]]:
        payload = await self._request(url, resource)

        # Accept a bare list or a {"data": [...]} envelope
        if isinstance(payload, dict) and isinstance(payload.get("data"), list):
            payload = payload["data"]
        if not isinstance(payload, list):
            raise UpstreamDataError(
                f"Unexpected {resource} payload",
                expected="list",
                got=type(payload).__name__,
            )

        logger.info(f"Fetched {len(payload)} {resource} from upstream")
        return payload

    async def _request(self, url: str, resource: str) -> Any:
        """GET with retry and circuit breaker."""
        if not await self.circuit_breaker.can_execute():
            raise UpstreamConnectionError(
                "Circuit breaker is open",
                details=f"request for {resource} rejected",
            )

        try:
            result = await retry_with_backoff(
                self._do_request,
                url, resource,
                config=self.retry_config,
                retryable_exceptions=(UpstreamConnectionError,),
            )
        except Exception:
            # Any failure, not only connection errors, re-opens a half-open breaker
            await self.circuit_breaker.record_failure()
            raise

        await self.circuit_breaker.record_success()
        return result

    async def _do_request(self, url: str, resource: str) -> Any:
        """Execute a single HTTP request (called by retry wrapper)."""
        if not self._client:
            await self.connect()

        headers = dict(self.headers)
        correlation_id = get_correlation_id()
        if correlation_id:
            headers["X-Request-ID"] = correlation_id

        try:
            with Timer(f"upstream_{resource}", logger):
                response = await self._client.get(url, headers=headers)
        except httpx.TimeoutException as e:
            logger.error(
                f"Request timeout: GET {resource}",
                extra={"resource": resource, "timeout": self.timeout}
            )
            raise UpstreamConnectionError(
                f"Request timeout after {self.timeout}s",
                retry_after=5
            ) from e
        except httpx.RequestError as e:
            logger.error(
                f"Request failed: GET {resource} - {e}",
                extra={"resource": resource, "error": str(e)}
            )
            raise UpstreamConnectionError(f"Request to {resource} failed", details=str(e)) from e

        if response.status_code >= 400:
            error_text = response.text[:500]
            logger.error(
                f"API error {response.status_code}: {error_text}",
                extra={"resource": resource, "status_code": response.status_code}
            )
            raise UpstreamAPIError(
                f"API returned {response.status_code}",
                status_code=response.status_code,
                details=error_text
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamDataError(
                f"Invalid JSON in {resource} response",
                details=str(e),
                expected="json",
                got=response.headers.get("content-type"),
            ) from e
