"""
Async client for the Shopify Admin GraphQL API.

Only the product lookup needed for side classification is implemented.

Features:
- Connection pooling with httpx
- Exponential backoff retry on network errors and throttling (429)
- Circuit breaker (opens after 5 consecutive failures)
- Request correlation IDs for tracing
- Per-shop access tokens resolved through ShopTokenProvider
"""
import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from battle.config import AppConfig
from battle.exceptions import (
    MissingCredentialsError,
    ShopifyAPIError,
    ShopifyConnectionError,
    ShopifyDataError,
)
from battle.observability import get_logger, get_correlation_id, Timer
from battle.resilience import (
    CircuitBreaker,
    CircuitBreakerConfig,
    RetryConfig,
    retry_with_backoff,
)
from battle.store import RedisStore

logger = get_logger(__name__)

PRODUCT_SIDE_QUERY = """query ProductSide($id: ID!) {
  product(id: $id) {
    tags
    metafield(namespace: "battle", key: "side") {
      value
    }
  }
}"""

RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    base_delay=0.25,
    max_delay=2.0,
    exponential_base=2.0
)

CIRCUIT_BREAKER_CONFIG = CircuitBreakerConfig(
    failure_threshold=5,
    recovery_timeout=30.0,
    half_open_requests=1
)


def product_gid(product_id: Any) -> str:
    """Admin API global id for a numeric product id."""
    text = str(product_id)
    if text.startswith("gid://"):
        return text
    return f"gid://shopify/Product/{text}"


def _parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Seconds from a Retry-After header; None when absent or not a number."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return int(seconds)


@dataclass
class ProductSideHints:
    """Raw classification inputs read from a product."""
    metafield_value: Optional[str] = None
    tags: List[str] = field(default_factory=list)


class ShopTokenProvider:
    """
    Resolves the Admin API access token for a shop.

    Tokens stored by the app install flow under ``battle:shop:{shop}:token``
    win; otherwise the single-store ``SHOPIFY_ADMIN_TOKEN`` is used.
    """

    def __init__(self, store: RedisStore, config: AppConfig):
        self.store = store
        self.config = config

    async def get_token(self, shop_domain: Optional[str]) -> Optional[str]:
        if shop_domain:
            token = await self.store.get(self.config.battle.shop_token_key(shop_domain))
            if isinstance(token, str) and token:
                return token
        return self.config.shopify.admin_token or None


class ShopifyClient:
    """
    Async Shopify Admin GraphQL client.

    Usage:
        async with ShopifyClient(config, tokens) as client:
            hints = await client.fetch_product_side_hints(55, "shop.myshopify.com")
    """

    def __init__(
        self,
        config: AppConfig,
        tokens: ShopTokenProvider,
        circuit_breaker: Optional[CircuitBreaker] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.config = config.shopify
        self.tokens = tokens
        self.timeout = self.config.request_timeout
        self.circuit_breaker = circuit_breaker or CircuitBreaker(config=CIRCUIT_BREAKER_CONFIG)
        self.retry_config = retry_config or RETRY_CONFIG
        self._client: Optional[httpx.AsyncClient] = None

    async def connect(self) -> None:
        """Create HTTP client with connection pooling."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
                limits=httpx.Limits(
                    max_keepalive_connections=10,
                    max_connections=20,
                )
            )

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ShopifyClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def graphql(
        self,
        shop_domain: Optional[str],
        query: str,
        variables: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Run a GraphQL query with retry and circuit breaker.

        Args:
            shop_domain: Shop to query (defaults to SHOPIFY_STORE_DOMAIN)
            query: GraphQL document
            variables: Query variables

        Returns:
            The ``data`` object of the response

        Raises:
            MissingCredentialsError: No shop domain or token
            ShopifyConnectionError: Network/timeout errors or open circuit
            ShopifyAPIError: HTTP error or GraphQL errors
            ShopifyDataError: Response body is not the expected shape
        """
        shop = shop_domain or self.config.store_domain
        token = await self.tokens.get_token(shop)
        if not shop or not token:
            raise MissingCredentialsError(
                "Missing Shopify shop domain or access token",
                details=shop or None,
            )

        if not await self.circuit_breaker.can_execute():
            raise ShopifyConnectionError(
                "Circuit breaker is open, Shopify request rejected",
                details=shop,
            )

        try:
            result = await retry_with_backoff(
                self._do_request,
                shop, token, query, variables,
                config=self.retry_config,
                retryable_exceptions=(ShopifyConnectionError,),
            )
            await self.circuit_breaker.record_success()
            return result

        except (ShopifyAPIError, ShopifyConnectionError):
            await self.circuit_breaker.record_failure()
            raise

    async def _do_request(
        self,
        shop: str,
        token: str,
        query: str,
        variables: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """Execute a single GraphQL request (called by retry wrapper)."""
        if not self._client:
            await self.connect()

        url = self.config.graphql_url(shop)

        request_headers = {"X-Shopify-Access-Token": token}
        correlation_id = get_correlation_id()
        if correlation_id:
            request_headers["X-Request-ID"] = correlation_id

        try:
            with Timer("shopify_graphql", logger):
                response = await self._client.request(
                    method="POST",
                    url=url,
                    json={"query": query, "variables": variables or {}},
                    headers=request_headers,
                )

        except httpx.TimeoutException as e:
            logger.error(
                f"Shopify request timeout: {shop}",
                extra={"shop": shop, "timeout": self.timeout}
            )
            raise ShopifyConnectionError(
                f"Request timeout after {self.timeout}s",
                retry_after=5
            ) from e

        except httpx.RequestError as e:
            logger.error(
                f"Shopify request failed: {shop} - {e}",
                extra={"shop": shop, "error": str(e)}
            )
            raise ShopifyConnectionError(str(e)) from e

        if response.status_code == 429:
            raise ShopifyConnectionError(
                "Shopify API throttled",
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            )

        if response.status_code >= 400:
            error_text = response.text[:500]
            logger.error(
                f"Shopify API error {response.status_code}: {error_text}",
                extra={"shop": shop, "status_code": response.status_code}
            )
            raise ShopifyAPIError(
                f"Shopify GraphQL error: {response.status_code}",
                details=error_text,
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ShopifyDataError("Response is not valid JSON", expected="object") from e

        if not isinstance(body, dict):
            raise ShopifyDataError(
                "Unexpected response body",
                expected="object",
                got=type(body).__name__,
            )

        if body.get("errors"):
            raise ShopifyAPIError(
                "Shopify GraphQL error",
                details=json.dumps(body["errors"])[:500],
            )

        data = body.get("data")
        if not isinstance(data, dict):
            raise ShopifyDataError(
                "Response has no data object",
                expected="object",
                got=type(data).__name__,
            )
        return data

    # ═══════════════════════════════════════════════════════════════════════════
    # PRODUCT METHODS
    # ═══════════════════════════════════════════════════════════════════════════

    async def fetch_product_side_hints(
        self,
        product_id: Any,
        shop_domain: Optional[str],
    ) -> Optional[ProductSideHints]:
        """
        Read the ``battle.side`` metafield and tags of a product.

        Returns:
            ProductSideHints, or None if the product does not exist
        """
        data = await self.graphql(
            shop_domain,
            PRODUCT_SIDE_QUERY,
            {"id": product_gid(product_id)},
        )

        product = data.get("product")
        if not product:
            return None

        metafield = product.get("metafield") or {}
        tags = product.get("tags")
        return ProductSideHints(
            metafield_value=metafield.get("value") if isinstance(metafield, dict) else None,
            tags=[str(tag) for tag in tags] if isinstance(tags, list) else [],
        )
