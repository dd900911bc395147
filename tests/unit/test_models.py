"""
Tests for battle.models module.
"""
import pytest

from battle.models import (
    Contribution,
    HandlerOutcome,
    LineItemRecord,
    OrderRecord,
    OutcomeStatus,
    Side,
    TotalsDelta,
    TotalsRecord,
    WebhookTopic,
    parse_money,
)


class TestSide:
    """Tests for Side.normalize."""

    @pytest.mark.parametrize("raw,expected", [
        ("sweet", Side.SWEET),
        ("  SWEET ", Side.SWEET),
        ("Savoury", Side.SAVOURY),
        ("savory", None),
        ("", None),
        (None, None),
        ("both", None),
    ])
    def test_normalize(self, raw, expected):
        assert Side.normalize(raw) is expected

    def test_str_value(self):
        assert Side.SWEET.value == "sweet"


class TestWebhookTopic:

    def test_known_topics(self):
        assert WebhookTopic.parse("orders/paid") is WebhookTopic.ORDERS_PAID
        assert WebhookTopic.parse("orders/cancelled") is WebhookTopic.ORDERS_CANCELLED
        assert WebhookTopic.parse("refunds/create") is WebhookTopic.REFUNDS_CREATE

    def test_unknown_topics(self):
        assert WebhookTopic.parse("orders/create") is None
        assert WebhookTopic.parse(None) is None


class TestParseMoney:

    @pytest.mark.parametrize("raw,expected", [
        ("10.00", 10.0),
        ("1,250.50", 1250.5),
        (12, 12.0),
        (3.5, 3.5),
        (None, 0.0),
        ("", 0.0),
        ("abc", 0.0),
        (True, 0.0),
        ("NaN", 0.0),
        ("inf", 0.0),
        ("-Infinity", 0.0),
        (float("nan"), 0.0),
        (10 ** 400, 0.0),
    ])
    def test_parse(self, raw, expected):
        assert parse_money(raw) == expected


class TestOrderRecordSerialization:
    """Stored layout matches what is already in Redis."""

    def test_to_store_layout(self):
        record = OrderRecord(
            order_id="1001",
            sweet_revenue=20.0,
            line_items={"9001": LineItemRecord.new(Side.SWEET, 2, 20.0)},
        )

        assert record.to_store() == {
            "orderId": "1001",
            "sweet": 20.0,
            "savoury": 0.0,
            "lineItems": {
                "9001": {"side": "sweet", "quantity": 2, "revenue": 20.0, "remaining": 20.0},
            },
        }

    def test_from_store_missing_remaining_defaults_to_revenue(self):
        record = OrderRecord.from_store({
            "orderId": 1001,
            "sweet": 20,
            "savoury": 0,
            "lineItems": {"9001": {"side": "sweet", "quantity": 2, "revenue": 20}},
        })

        line = record.line_items["9001"]
        assert record.order_id == "1001"
        assert line.remaining == 20.0
        assert line.refunded == 0.0

    def test_from_store_keeps_zero_remaining(self):
        """A fully refunded line stays fully refunded."""
        record = OrderRecord.from_store({
            "orderId": "5",
            "lineItems": {"1": {"side": "savoury", "quantity": 1, "revenue": 8, "remaining": 0}},
        })
        assert record.line_items["1"].remaining == 0.0

    def test_from_store_drops_unreadable_lines(self):
        record = OrderRecord.from_store({
            "orderId": "5",
            "lineItems": {"1": {"side": "umami", "quantity": 1, "revenue": 8}},
        })
        assert record.line_items == {}

    def test_copy_is_independent(self):
        record = OrderRecord("1", 10.0, 0.0, {"1": LineItemRecord.new(Side.SWEET, 1, 10.0)})
        clone = record.copy()
        clone.line_items["1"].remaining = 0.0

        assert record.line_items["1"].remaining == 10.0


class TestContributionAndDelta:

    def test_add_line_accumulates_per_side(self):
        contribution = Contribution()
        contribution.add_line("a", LineItemRecord.new(Side.SWEET, 1, 5.0))
        contribution.add_line("b", LineItemRecord.new(Side.SAVOURY, 2, 7.5))
        contribution.add_line("c", LineItemRecord.new(Side.SWEET, 1, 2.5))

        assert contribution.sweet_total == 7.5
        assert contribution.savoury_total == 7.5
        assert contribution.to_delta() == TotalsDelta(sweet=7.5, savoury=7.5)

    def test_empty(self):
        assert Contribution().is_empty

    def test_negated(self):
        assert TotalsDelta(3.0, -1.0).negated() == TotalsDelta(-3.0, 1.0)

    def test_zero_delta(self):
        assert TotalsDelta().is_zero
        assert not TotalsDelta(savoury=0.01).is_zero


class TestTotalsRecord:

    def test_from_empty_hash(self):
        totals = TotalsRecord.from_hash({})
        assert totals.sweet_revenue == 0.0
        assert totals.savoury_revenue == 0.0
        assert totals.last_updated.endswith("Z")

    def test_to_response(self):
        totals = TotalsRecord.from_hash({
            "sweet": "20", "savoury": "5.5", "lastUpdated": "2026-10-18T09:00:00.000Z",
        })
        assert totals.to_response() == {
            "sweetRevenue": 20.0,
            "savouryRevenue": 5.5,
            "lastUpdated": "2026-10-18T09:00:00.000Z",
        }


class TestHandlerOutcome:

    @pytest.mark.parametrize("status,acknowledged", [
        (OutcomeStatus.PROCESSED, True),
        (OutcomeStatus.DUPLICATE, True),
        (OutcomeStatus.NOOP, True),
        (OutcomeStatus.IGNORED, True),
        (OutcomeStatus.REJECTED, False),
        (OutcomeStatus.FAILED, False),
    ])
    def test_acknowledged(self, status, acknowledged):
        assert HandlerOutcome(status).acknowledged is acknowledged

    def test_to_dict(self):
        outcome = HandlerOutcome(OutcomeStatus.PROCESSED, "order_recorded", "1001", TotalsDelta(20.0, 0.0))
        assert outcome.to_dict() == {
            "status": "processed",
            "reason": "order_recorded",
            "order_id": "1001",
            "delta": {"sweet": 20.0, "savoury": 0.0},
        }
