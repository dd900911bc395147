"""
Order event handlers.

Each handler applies one webhook payload to the ledger and totals and
returns a HandlerOutcome. Every handler is safe to run again with the
same payload: the sender retries anything that was not acknowledged.

Order lifecycle:
    NonExistent -> Active      orders/paid with a nonzero contribution
    Active      -> Active      refunds/create (remaining only shrinks)
    Active      -> Removed     orders/cancelled (terminal)

Refunds and cancellations for orders that are not Active are no-ops.
"""
from typing import Any, Dict, Optional

from battle.contribution import ContributionCalculator
from battle.exceptions import StoreError
from battle.ledger import LedgerStore, TotalsAggregator
from battle.models import HandlerOutcome, OrderRecord, OutcomeStatus
from battle.observability import get_logger
from battle.refunds import RefundProrationEngine
from battle.validators import validate_line_items, validate_order_id

logger = get_logger(__name__)


class OrderEventHandlers:
    """Applies paid, cancelled and refund events."""

    def __init__(
        self,
        calculator: ContributionCalculator,
        ledger: LedgerStore,
        totals: TotalsAggregator,
        refunds: Optional[RefundProrationEngine] = None,
    ):
        self.calculator = calculator
        self.ledger = ledger
        self.totals = totals
        self.refunds = refunds or RefundProrationEngine()

    async def handle_order_paid(
        self,
        payload: Dict[str, Any],
        shop_domain: Optional[str],
    ) -> HandlerOutcome:
        """
        Record a paid order once.

        The existence check up front only saves Shopify lookups on obvious
        redeliveries; the atomic create-if-absent is what decides.
        """
        order_id = validate_order_id(payload.get("id"), "id")

        if await self.ledger.exists(order_id):
            return HandlerOutcome(OutcomeStatus.DUPLICATE, "order_already_recorded", order_id)

        contribution = await self.calculator.compute(
            validate_line_items(payload, "line_items"), shop_domain
        )
        if contribution.is_empty:
            return HandlerOutcome(OutcomeStatus.NOOP, "no_classified_items", order_id)

        record = contribution.to_order_record(order_id)
        if not await self.ledger.create_if_absent(record):
            return HandlerOutcome(OutcomeStatus.DUPLICATE, "order_already_recorded", order_id)

        delta = contribution.to_delta()
        try:
            await self.totals.apply_delta(delta)
        except StoreError:
            await self._release_claim(order_id)
            raise

        logger.info(
            f"Order {order_id} recorded",
            extra={"order_id": order_id, "sweet": delta.sweet, "savoury": delta.savoury}
        )
        return HandlerOutcome(OutcomeStatus.PROCESSED, "order_recorded", order_id, delta)

    async def handle_order_cancelled(
        self,
        payload: Dict[str, Any],
        shop_domain: Optional[str] = None,
    ) -> HandlerOutcome:
        """
        Drop the order's record and reverse whatever it still contributes.

        The record is deleted first, so only the delivery that removed it
        reverses the totals. If the reversal fails the record is put back
        for the retry.
        """
        order_id = validate_order_id(payload.get("id"), "id")

        record = await self.ledger.get(order_id)
        if record is None:
            return HandlerOutcome(OutcomeStatus.NOOP, "order_not_tracked", order_id)

        if not await self.ledger.delete(order_id):
            return HandlerOutcome(OutcomeStatus.NOOP, "order_not_tracked", order_id)

        delta = record.outstanding().negated()
        try:
            await self.totals.apply_delta(delta)
        except StoreError:
            await self._restore_record(record)
            raise

        logger.info(
            f"Order {order_id} cancelled",
            extra={"order_id": order_id, "sweet": delta.sweet, "savoury": delta.savoury}
        )
        return HandlerOutcome(OutcomeStatus.PROCESSED, "order_cancelled", order_id, delta)

    async def handle_refund_create(
        self,
        payload: Dict[str, Any],
        shop_domain: Optional[str] = None,
    ) -> HandlerOutcome:
        """
        Prorate a refund against the order's recorded line items.

        Refunds for cancelled or unknown orders are dropped.
        """
        order_id = validate_order_id(payload.get("order_id"), "order_id")

        record = await self.ledger.get(order_id)
        if record is None or not record.line_items:
            # TODO: confirm with product whether late refunds on cancelled orders should be kept
            return HandlerOutcome(OutcomeStatus.NOOP, "order_not_tracked", order_id)

        result = self.refunds.apply(record, validate_line_items(payload, "refund_line_items"))
        if not result.changed:
            return HandlerOutcome(OutcomeStatus.NOOP, "nothing_to_refund", order_id)

        await self.totals.apply_delta(result.delta)
        await self.ledger.save(result.record)

        logger.info(
            f"Refund applied to order {order_id}",
            extra={
                "order_id": order_id,
                "sweet": result.delta.sweet,
                "savoury": result.delta.savoury,
            }
        )
        return HandlerOutcome(OutcomeStatus.PROCESSED, "refund_applied", order_id, result.delta)

    async def _release_claim(self, order_id: str) -> None:
        """Drop a just-claimed record so a retried delivery can apply it."""
        try:
            await self.ledger.delete(order_id)
        except StoreError as e:
            logger.error(
                f"Could not release ledger claim for order {order_id}; totals are behind",
                extra={"order_id": order_id, "error": str(e)}
            )

    async def _restore_record(self, record: OrderRecord) -> None:
        """Put back a record whose cancellation could not be applied."""
        try:
            await self.ledger.create_if_absent(record)
        except StoreError as e:
            logger.error(
                f"Could not restore order {record.order_id} after failed cancellation; totals are ahead",
                extra={"order_id": record.order_id, "error": str(e)}
            )
