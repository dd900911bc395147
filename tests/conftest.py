"""
Pytest configuration and shared fixtures.
"""
import pytest
import pytest_asyncio
from typing import Dict, Any
from unittest.mock import AsyncMock, MagicMock

import fakeredis
from fakeredis import aioredis as fake_aioredis

from battle.config import AppConfig, ShopifyConfig, StoreConfig
from battle.engine import BattleEngine
from battle.resilience import CircuitBreaker
from battle.shopify import ProductSideHints
from battle.store import RedisStore

WEBHOOK_SECRET = "test-webhook-secret"
SHOP_DOMAIN = "battle-test.myshopify.com"


@pytest.fixture
def config() -> AppConfig:
    """Config that does not depend on the environment."""
    return AppConfig(
        shopify=ShopifyConfig(
            store_domain=SHOP_DOMAIN,
            admin_token="shpat_test_token",
            webhook_secret=WEBHOOK_SECRET,
            api_version="2024-01",
        ),
        store=StoreConfig(url="redis://localhost:6379/15"),
    )


@pytest.fixture
def redis_client():
    """In-memory Redis speaking the real protocol, isolated per test."""
    return fake_aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest_asyncio.fixture
async def store(redis_client, config) -> RedisStore:
    """Connected RedisStore backed by fakeredis."""
    store = RedisStore(config.store.url, client=redis_client)
    await store.connect()
    return store


@pytest.fixture
def catalog() -> Dict[str, ProductSideHints]:
    """Products known to the fake Shopify API, keyed by product id."""
    return {
        "55": ProductSideHints(metafield_value="sweet", tags=[]),
        "56": ProductSideHints(metafield_value=None, tags=["Dessert", "SWEET"]),
        "66": ProductSideHints(metafield_value="Savoury ", tags=["sweet"]),
        "67": ProductSideHints(metafield_value=None, tags=["savoury"]),
        "77": ProductSideHints(metafield_value=None, tags=["gift-card"]),
    }


@pytest.fixture
def shopify(catalog):
    """Mock Shopify client answering product lookups from ``catalog``."""
    client = MagicMock()

    async def lookup(product_id, shop_domain):
        return catalog.get(str(product_id))

    client.fetch_product_side_hints = AsyncMock(side_effect=lookup)
    client.connect = AsyncMock()
    client.close = AsyncMock()
    client.circuit_breaker = CircuitBreaker()
    return client


@pytest.fixture
def engine(config, store, shopify) -> BattleEngine:
    """Fully wired engine over fakeredis and the mock Shopify client."""
    return BattleEngine(config, store, shopify=shopify)


def make_line_item(
    line_item_id: int,
    product_id: Any,
    quantity: int,
    price: str,
    discount: str = "0.00",
) -> Dict[str, Any]:
    """Line item shaped like Shopify's orders/paid payload."""
    return {
        "id": line_item_id,
        "product_id": product_id,
        "quantity": quantity,
        "price": price,
        "price_set": {"shop_money": {"amount": price, "currency_code": "GBP"}},
        "total_discount": discount,
        "total_discount_set": {"shop_money": {"amount": discount, "currency_code": "GBP"}},
    }


@pytest.fixture
def paid_order_1001() -> Dict[str, Any]:
    """Order 1001: two units of sweet product 55 at 10.00."""
    return {
        "id": 1001,
        "currency": "GBP",
        "line_items": [make_line_item(9001, 55, 2, "10.00")],
    }


@pytest.fixture
def mixed_order() -> Dict[str, Any]:
    """Order 2002 with sweet, savoury and unclassifiable lines."""
    return {
        "id": 2002,
        "line_items": [
            make_line_item(9101, 55, 3, "4.00", discount="2.00"),   # sweet 10.00
            make_line_item(9102, 67, 1, "15.50"),                   # savoury 15.50
            make_line_item(9103, 77, 1, "25.00"),                   # no side
            make_line_item(9104, 66, 0, "8.00"),                    # zero quantity
        ],
    }


def refund_payload(order_id: int, *lines) -> Dict[str, Any]:
    """refunds/create payload refunding ``(line_item_id, quantity)`` pairs."""
    return {
        "id": 7000 + order_id,
        "order_id": order_id,
        "refund_line_items": [
            {"id": 8000 + index, "line_item_id": line_item_id, "quantity": quantity}
            for index, (line_item_id, quantity) in enumerate(lines)
        ],
    }
