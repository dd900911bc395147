"""
Wiring for the event-processing engine.

Builds every component from one AppConfig so the web layer (and tests)
deal with a single object.

Usage:
    engine = BattleEngine.from_config(config)
    await engine.start()
    outcome = await engine.router.route(topic, payload, shop_domain)
    totals = await engine.totals.read()
    await engine.stop()
"""
from typing import Optional

from battle.classifier import ProductClassifier
from battle.config import AppConfig
from battle.contribution import ContributionCalculator
from battle.handlers import OrderEventHandlers
from battle.ledger import LedgerStore, TotalsAggregator
from battle.observability import get_logger
from battle.refunds import RefundProrationEngine
from battle.router import EventRouter
from battle.shopify import ShopifyClient, ShopTokenProvider
from battle.store import RedisStore

logger = get_logger(__name__)


class BattleEngine:
    """Holds the store, Shopify client and the components built on them."""

    def __init__(
        self,
        config: AppConfig,
        store: RedisStore,
        shopify: Optional[ShopifyClient] = None,
    ):
        self.config = config
        self.store = store
        self.shopify = shopify or ShopifyClient(config, ShopTokenProvider(store, config))

        self.classifier = ProductClassifier(store, self.shopify, config)
        self.calculator = ContributionCalculator(self.classifier)
        self.ledger = LedgerStore(store, config)
        self.totals = TotalsAggregator(store, config)
        self.handlers = OrderEventHandlers(
            self.calculator, self.ledger, self.totals, RefundProrationEngine()
        )
        self.router = EventRouter(self.handlers)

    @classmethod
    def from_config(cls, config: AppConfig) -> "BattleEngine":
        store = RedisStore(config.store.url, socket_timeout=config.store.socket_timeout)
        return cls(config, store)

    async def start(self) -> None:
        """Connect to Redis and open the Shopify connection pool."""
        if not self.store.is_connected:
            await self.store.connect()
        await self.shopify.connect()
        logger.info("Battle engine started")

    async def stop(self) -> None:
        await self.shopify.close()
        await self.store.disconnect()
        logger.info("Battle engine stopped")
