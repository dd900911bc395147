"""
Product side classification with a time-bounded Redis cache.

A product's side comes from its ``battle.side`` metafield, falling back to
a ``sweet``/``savoury`` tag. Resolved sides are cached for 24 hours;
unresolved products are not cached, so fixing the product in Shopify takes
effect on the next order.
"""
import asyncio
from typing import Any, Dict, Iterable, Optional

from battle.config import AppConfig
from battle.models import ProductSideCacheEntry, Side
from battle.observability import get_logger
from battle.shopify import ProductSideHints, ShopifyClient
from battle.store import RedisStore

logger = get_logger(__name__)


def resolve_side(hints: Optional[ProductSideHints]) -> Optional[Side]:
    """
    Pick a side from lookup results.

    The metafield wins over tags; among tags ``sweet`` is checked before
    ``savoury``.
    """
    if hints is None:
        return None

    side = Side.normalize(hints.metafield_value)
    if side is not None:
        return side

    tags = {tag.strip().lower() for tag in hints.tags}
    for candidate in (Side.SWEET, Side.SAVOURY):
        if candidate.value in tags:
            return candidate
    return None


class ProductClassifier:
    """Resolves product ids to sides, cache first."""

    def __init__(self, store: RedisStore, shopify: ShopifyClient, config: AppConfig):
        self.store = store
        self.shopify = shopify
        self.keys = config.battle
        self.ttl = config.battle.classification_ttl_seconds
        self._lookup_limit = asyncio.Semaphore(config.shopify.max_concurrent_lookups)

    async def classify(self, product_id: Any, shop_domain: Optional[str]) -> Optional[Side]:
        """
        Resolve the side of one product.

        Raises:
            ClassificationError: Remote lookup failed
            StoreError: Cache read/write failed
        """
        cache_key = self.keys.product_key(str(product_id), shop_domain)

        cached = Side.normalize(await self.store.get(cache_key))
        if cached is not None:
            return cached

        async with self._lookup_limit:
            hints = await self.shopify.fetch_product_side_hints(product_id, shop_domain)

        side = resolve_side(hints)
        if side is None:
            logger.info(
                "Product has no side",
                extra={"product_id": str(product_id), "shop": shop_domain}
            )
            return None

        await self._remember(ProductSideCacheEntry(str(product_id), shop_domain, side))
        return side

    async def classify_many(
        self,
        product_ids: Iterable[Any],
        shop_domain: Optional[str],
    ) -> Dict[str, Optional[Side]]:
        """
        Resolve several products concurrently.

        Any failure propagates and discards the other results.
        """
        unique_ids = list(dict.fromkeys(str(pid) for pid in product_ids))
        sides = await asyncio.gather(
            *(self.classify(pid, shop_domain) for pid in unique_ids)
        )
        return dict(zip(unique_ids, sides))

    async def _remember(self, entry: ProductSideCacheEntry) -> None:
        await self.store.set(
            self.keys.product_key(entry.product_id, entry.shop_domain),
            entry.side.value,
            ttl=self.ttl,
        )
