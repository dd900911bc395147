"""
Refund proration against recorded line items.

A refund of ``q`` units of a line bought ``n`` times reverses
``revenue * min(q / n, 1)``, capped by what the line has left. Lines
therefore never go below zero no matter how many refunds arrive.
"""
from dataclasses import dataclass
from typing import Any, Dict, List

from battle.models import OrderRecord, TotalsDelta
from battle.observability import get_logger
from battle.validators import parse_quantity

logger = get_logger(__name__)


@dataclass
class RefundResult:
    """Aggregate delta and the updated copy of the order record."""
    delta: TotalsDelta
    record: OrderRecord

    @property
    def changed(self) -> bool:
        return not self.delta.is_zero


class RefundProrationEngine:
    """Computes the reversal caused by a refunds/create event."""

    def apply(
        self,
        record: OrderRecord,
        refund_line_items: List[Dict[str, Any]],
    ) -> RefundResult:
        """
        Prorate refunded quantities against ``record``.

        The input record is left untouched.

        Args:
            record: Ledger record of the refunded order
            refund_line_items: ``refund_line_items`` of the refund payload

        Returns:
            RefundResult with a non-positive delta per side
        """
        updated = record.copy()
        delta = TotalsDelta()

        for refund_item in refund_line_items or []:
            line_item_id = refund_item.get("line_item_id")
            line = updated.line_items.get(str(line_item_id)) if line_item_id is not None else None
            if line is None:
                continue

            quantity = parse_quantity(refund_item.get("quantity"))
            if quantity <= 0 or line.original_quantity <= 0:
                continue

            fraction = min(quantity / line.original_quantity, 1.0)
            refund_amount = min(line.remaining, line.revenue * fraction)
            if refund_amount <= 0:
                continue

            line.remaining = max(line.remaining - refund_amount, 0.0)
            delta.add(line.side, -refund_amount)

            logger.debug(
                "Refund prorated",
                extra={
                    "line_item_id": str(line_item_id),
                    "refund_amount": refund_amount,
                    "remaining": line.remaining,
                }
            )

        updated.sweet_revenue = max(updated.sweet_revenue + delta.sweet, 0.0)
        updated.savoury_revenue = max(updated.savoury_revenue + delta.savoury, 0.0)
        return RefundResult(delta=delta, record=updated)
