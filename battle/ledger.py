"""
Per-order ledger records and the shared side totals.

LedgerStore keeps one JSON document per order under ``battle:order:{id}``.
TotalsAggregator owns the ``battle:totals`` hash and changes it only
through HINCRBYFLOAT, so concurrent events never overwrite each other.
"""
from typing import Optional

from battle.config import AppConfig
from battle.models import OrderRecord, TotalsDelta, TotalsRecord, utc_now_iso
from battle.observability import get_logger
from battle.store import RedisStore

logger = get_logger(__name__)


class LedgerStore:
    """Current-state ledger, one record per order."""

    def __init__(self, store: RedisStore, config: AppConfig):
        self.store = store
        self.keys = config.battle

    async def exists(self, order_id: str) -> bool:
        return await self.store.exists(self.keys.order_key(order_id))

    async def get(self, order_id: str) -> Optional[OrderRecord]:
        """Load an order record; None if never recorded or cancelled."""
        data = await self.store.get(self.keys.order_key(order_id))
        if not isinstance(data, dict):
            return None
        record = OrderRecord.from_store(data)
        record.order_id = record.order_id or order_id
        return record

    async def create_if_absent(self, record: OrderRecord) -> bool:
        """
        Claim an order id by writing its record atomically.

        Returns:
            True if this call created the record, False on a duplicate
        """
        return await self.store.set_if_absent(
            self.keys.order_key(record.order_id), record.to_store()
        )

    async def save(self, record: OrderRecord) -> None:
        await self.store.set(self.keys.order_key(record.order_id), record.to_store())

    async def delete(self, order_id: str) -> bool:
        return await self.store.delete(self.keys.order_key(order_id))


class TotalsAggregator:
    """Running sweet/savoury sums shared by every event."""

    def __init__(self, store: RedisStore, config: AppConfig):
        self.store = store
        self.key = config.battle.totals_key

    async def apply_delta(self, delta: TotalsDelta) -> None:
        """
        Add a signed delta to both sides and stamp ``lastUpdated``.

        The three commands go out as one MULTI/EXEC. A zero delta is a no-op.

        Raises:
            StoreError: The transaction failed
        """
        if delta.is_zero:
            return

        async with self.store.pipeline() as pipe:
            pipe.hincrbyfloat(self.key, "sweet", delta.sweet)
            pipe.hincrbyfloat(self.key, "savoury", delta.savoury)
            pipe.hset(self.key, mapping={"lastUpdated": utc_now_iso()})

        logger.info("Totals updated", extra={"delta": delta.to_dict()})

    async def read(self) -> TotalsRecord:
        """Current totals; zeros and the current time when nothing is stored."""
        return TotalsRecord.from_hash(await self.store.hgetall(self.key))
