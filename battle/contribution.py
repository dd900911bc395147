"""
Per-order contribution to each side.

Turns the ``line_items`` of an orders/paid payload into side totals and
ledger entries. All classification happens before the caller writes
anything, so a failed lookup leaves no partial state behind.
"""
from typing import Any, Dict, List, Optional

from battle.classifier import ProductClassifier
from battle.models import Contribution, LineItemRecord, parse_money
from battle.observability import get_logger
from battle.validators import parse_quantity

logger = get_logger(__name__)


def _shop_money(item: Dict[str, Any], set_field: str, plain_field: str) -> float:
    """Read ``{set_field}.shop_money.amount``, falling back to ``plain_field``."""
    money_set = item.get(set_field) or {}
    shop_money = money_set.get("shop_money") if isinstance(money_set, dict) else None
    amount = parse_money(shop_money.get("amount")) if isinstance(shop_money, dict) else 0.0
    return amount or parse_money(item.get(plain_field))


def line_total(item: Dict[str, Any], quantity: int) -> float:
    """Unit price times quantity less the line discount, never negative."""
    price = _shop_money(item, "price_set", "price")
    discount = _shop_money(item, "total_discount_set", "total_discount")
    return max(price * quantity - discount, 0.0)


class ContributionCalculator:
    """Computes side totals and ledger fragments for an order."""

    def __init__(self, classifier: ProductClassifier):
        self.classifier = classifier

    async def compute(
        self,
        line_items: List[Dict[str, Any]],
        shop_domain: Optional[str],
    ) -> Contribution:
        """
        Compute the contribution of an order's line items.

        Items without a product id, with quantity <= 0, or whose product has
        no side are left out entirely.

        Raises:
            ClassificationError: A product lookup failed
        """
        countable = [
            item for item in line_items or []
            if item and item.get("product_id") and parse_quantity(item.get("quantity")) > 0
        ]

        sides = await self.classifier.classify_many(
            (item["product_id"] for item in countable), shop_domain
        )

        contribution = Contribution()
        for index, item in enumerate(countable):
            side = sides.get(str(item["product_id"]))
            if side is None:
                continue

            quantity = parse_quantity(item.get("quantity"))
            line_item_id = str(item.get("id") or f"product-{item['product_id']}-{index}")
            contribution.add_line(
                line_item_id,
                LineItemRecord.new(side, quantity, line_total(item, quantity)),
            )

        logger.debug(
            "Contribution computed",
            extra={
                "sweet": contribution.sweet_total,
                "savoury": contribution.savoury_total,
                "lines": len(contribution.line_items),
            }
        )
        return contribution
