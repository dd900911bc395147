"""
Domain models for the revenue battle ledger.

Provides dataclasses for ledger records, aggregate totals and handler
outcomes. ``from_store``/``to_store`` convert to and from the JSON layout
kept in Redis (camelCase keys, line items keyed by stringified line item id).
"""
import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class Side(str, Enum):
    """Revenue category a product belongs to."""
    SWEET = "sweet"
    SAVOURY = "savoury"

    @classmethod
    def normalize(cls, value: Any) -> Optional["Side"]:
        """
        Parse a metafield value or tag into a Side.

        Trims whitespace and ignores case; anything else is None.
        """
        if not value:
            return None
        text = str(value).strip().lower()
        for side in cls:
            if side.value == text:
                return side
        return None


class WebhookTopic(str, Enum):
    """Webhook topics the router acts on."""
    ORDERS_PAID = "orders/paid"
    ORDERS_CANCELLED = "orders/cancelled"
    REFUNDS_CREATE = "refunds/create"

    @classmethod
    def parse(cls, topic: Optional[str]) -> Optional["WebhookTopic"]:
        """Return the topic, or None for unknown/missing topics."""
        try:
            return cls(topic)
        except ValueError:
            return None


class OutcomeStatus(str, Enum):
    """Result of handling one webhook delivery."""
    PROCESSED = "processed"   # State changed
    DUPLICATE = "duplicate"   # Order already recorded
    NOOP = "noop"             # Valid event, nothing to apply
    IGNORED = "ignored"       # Unknown topic
    REJECTED = "rejected"     # Invalid payload
    FAILED = "failed"         # Lookup or store failure, sender should retry

    @property
    def acknowledged(self) -> bool:
        """Whether the sender should treat the delivery as done."""
        return self not in (OutcomeStatus.REJECTED, OutcomeStatus.FAILED)


def parse_money(value: Any) -> float:
    """
    Parse a money amount that may arrive as number or string.

    Strings may contain thousands separators ("1,250.00"). Anything
    unparseable or non-finite ("NaN", "inf") reads as 0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        if isinstance(value, (int, float)):
            amount = float(value)
        else:
            amount = float(str(value).replace(",", "").strip() or "0")
    except (ValueError, OverflowError):
        return 0.0
    return amount if math.isfinite(amount) else 0.0


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ═══════════════════════════════════════════════════════════════════════════════
# DATACLASSES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class TotalsDelta:
    """Signed change to apply to the aggregate."""
    sweet: float = 0.0
    savoury: float = 0.0

    @property
    def is_zero(self) -> bool:
        return self.sweet == 0 and self.savoury == 0

    def add(self, side: Side, amount: float) -> None:
        """Accumulate an amount on one side."""
        if side == Side.SWEET:
            self.sweet += amount
        else:
            self.savoury += amount

    def negated(self) -> "TotalsDelta":
        return TotalsDelta(sweet=-self.sweet, savoury=-self.savoury)

    def to_dict(self) -> Dict[str, float]:
        return {"sweet": self.sweet, "savoury": self.savoury}


@dataclass
class LineItemRecord:
    """
    Ledger entry for one purchased line item.

    ``revenue`` is fixed at order time; ``remaining`` only shrinks as
    refunds are applied and stays within [0, revenue].
    """
    side: Side
    original_quantity: int
    revenue: float
    remaining: float

    @classmethod
    def new(cls, side: Side, quantity: int, revenue: float) -> "LineItemRecord":
        return cls(side=side, original_quantity=quantity, revenue=revenue, remaining=revenue)

    @classmethod
    def from_store(cls, data: Dict[str, Any]) -> Optional["LineItemRecord"]:
        """Create from stored JSON; None if the side is unreadable."""
        side = Side.normalize(data.get("side"))
        if side is None:
            return None
        revenue = parse_money(data.get("revenue"))
        remaining = data.get("remaining")
        return cls(
            side=side,
            original_quantity=int(data.get("quantity") or 0),
            revenue=revenue,
            remaining=revenue if remaining is None else parse_money(remaining),
        )

    def to_store(self) -> Dict[str, Any]:
        return {
            "side": self.side.value,
            "quantity": self.original_quantity,
            "revenue": self.revenue,
            "remaining": self.remaining,
        }

    @property
    def refunded(self) -> float:
        return self.revenue - self.remaining


@dataclass
class OrderRecord:
    """Current ledger state for one order."""
    order_id: str
    sweet_revenue: float = 0.0
    savoury_revenue: float = 0.0
    line_items: Dict[str, LineItemRecord] = field(default_factory=dict)

    @classmethod
    def from_store(cls, data: Dict[str, Any]) -> "OrderRecord":
        """Create OrderRecord from the stored JSON document."""
        line_items = {}
        for line_item_id, item in (data.get("lineItems") or {}).items():
            record = LineItemRecord.from_store(item or {})
            if record is not None:
                line_items[str(line_item_id)] = record

        return cls(
            order_id=str(data.get("orderId", "")),
            sweet_revenue=parse_money(data.get("sweet")),
            savoury_revenue=parse_money(data.get("savoury")),
            line_items=line_items,
        )

    def to_store(self) -> Dict[str, Any]:
        return {
            "orderId": self.order_id,
            "sweet": self.sweet_revenue,
            "savoury": self.savoury_revenue,
            "lineItems": {
                line_item_id: item.to_store()
                for line_item_id, item in self.line_items.items()
            },
        }

    def outstanding(self) -> TotalsDelta:
        """Side totals still counted in the aggregate."""
        return TotalsDelta(sweet=self.sweet_revenue, savoury=self.savoury_revenue)

    def copy(self) -> "OrderRecord":
        return replace(
            self,
            line_items={k: replace(v) for k, v in self.line_items.items()},
        )


@dataclass
class Contribution:
    """What one paid order adds to each side."""
    sweet_total: float = 0.0
    savoury_total: float = 0.0
    line_items: Dict[str, LineItemRecord] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.sweet_total == 0 and self.savoury_total == 0

    def add_line(self, line_item_id: str, record: LineItemRecord) -> None:
        if record.side == Side.SWEET:
            self.sweet_total += record.revenue
        else:
            self.savoury_total += record.revenue
        self.line_items[line_item_id] = record

    def to_delta(self) -> TotalsDelta:
        return TotalsDelta(sweet=self.sweet_total, savoury=self.savoury_total)

    def to_order_record(self, order_id: str) -> OrderRecord:
        return OrderRecord(
            order_id=order_id,
            sweet_revenue=self.sweet_total,
            savoury_revenue=self.savoury_total,
            line_items=dict(self.line_items),
        )


@dataclass
class TotalsRecord:
    """Process-wide aggregate exposed by the public state endpoint."""
    sweet_revenue: float = 0.0
    savoury_revenue: float = 0.0
    last_updated: str = field(default_factory=utc_now_iso)

    @classmethod
    def from_hash(cls, data: Optional[Dict[str, Any]]) -> "TotalsRecord":
        """Create from the Redis hash; missing fields read as zero/now."""
        data = data or {}
        return cls(
            sweet_revenue=parse_money(data.get("sweet")),
            savoury_revenue=parse_money(data.get("savoury")),
            last_updated=data.get("lastUpdated") or utc_now_iso(),
        )

    def to_response(self) -> Dict[str, Any]:
        return {
            "sweetRevenue": self.sweet_revenue,
            "savouryRevenue": self.savoury_revenue,
            "lastUpdated": self.last_updated,
        }


@dataclass
class ProductSideCacheEntry:
    """Cached classification for one product of one shop."""
    product_id: str
    shop_domain: Optional[str]
    side: Side


@dataclass
class HandlerOutcome:
    """What happened to one webhook delivery."""
    status: OutcomeStatus
    reason: str = ""
    order_id: Optional[str] = None
    delta: Optional[TotalsDelta] = None

    @property
    def acknowledged(self) -> bool:
        return self.status.acknowledged

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "reason": self.reason,
            "order_id": self.order_id,
            "delta": self.delta.to_dict() if self.delta else None,
        }
