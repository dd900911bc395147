"""
Tests for battle.refunds module.
"""
import pytest

from battle.models import LineItemRecord, OrderRecord, Side, TotalsDelta
from battle.refunds import RefundProrationEngine


def order_record() -> OrderRecord:
    """Order with 2 sweet units (20.00) and 4 savoury units (12.00)."""
    return OrderRecord(
        order_id="1001",
        sweet_revenue=20.0,
        savoury_revenue=12.0,
        line_items={
            "9001": LineItemRecord.new(Side.SWEET, 2, 20.0),
            "9002": LineItemRecord.new(Side.SAVOURY, 4, 12.0),
        },
    )


def refund_items(*lines):
    return [{"line_item_id": line_item_id, "quantity": qty} for line_item_id, qty in lines]


class TestRefundProrationEngine:
    """Tests for refund proration."""

    @pytest.fixture
    def engine(self):
        return RefundProrationEngine()

    def test_partial_refund_is_prorated(self, engine):
        """Refunding 1 of 2 units reverses half the line."""
        result = engine.apply(order_record(), refund_items((9001, 1)))

        assert result.delta == TotalsDelta(sweet=-10.0, savoury=0.0)
        assert result.record.line_items["9001"].remaining == 10.0
        assert result.record.sweet_revenue == 10.0
        assert result.changed

    def test_both_sides_in_one_refund(self, engine):
        result = engine.apply(order_record(), refund_items((9001, 2), (9002, 1)))

        assert result.delta == TotalsDelta(sweet=-20.0, savoury=-3.0)
        assert result.record.savoury_revenue == 9.0

    def test_over_refund_is_capped_at_line_revenue(self, engine):
        result = engine.apply(order_record(), refund_items((9001, 5)))

        assert result.delta.sweet == -20.0
        assert result.record.line_items["9001"].remaining == 0.0

    def test_repeated_refunds_never_go_negative(self, engine):
        """Total reversal per line never exceeds its revenue."""
        record = order_record()
        reversed_total = 0.0
        for _ in range(4):
            result = engine.apply(record, refund_items((9001, 1)))
            reversed_total -= result.delta.sweet
            record = result.record

        assert reversed_total == 20.0
        assert record.line_items["9001"].remaining == 0.0
        assert record.sweet_revenue == 0.0

    def test_fully_refunded_line_is_unchanged(self, engine):
        record = engine.apply(order_record(), refund_items((9001, 2))).record

        result = engine.apply(record, refund_items((9001, 1)))

        assert not result.changed
        assert result.delta.is_zero

    @pytest.mark.parametrize("lines", [
        [{"line_item_id": 4242, "quantity": 1}],   # unknown line
        [{"line_item_id": 9001, "quantity": 0}],   # zero quantity
        [{"line_item_id": 9001, "quantity": -2}],  # negative quantity
        [{"line_item_id": None, "quantity": 1}],   # missing id
        [{"quantity": 1}],
        [],
    ])
    def test_skipped_lines(self, engine, lines):
        result = engine.apply(order_record(), lines)
        assert not result.changed

    def test_zero_quantity_line_is_skipped(self, engine):
        """Lines recorded with no units cannot be prorated."""
        record = OrderRecord("7", 5.0, 0.0, {"1": LineItemRecord(Side.SWEET, 0, 5.0, 5.0)})
        result = engine.apply(record, refund_items((1, 1)))
        assert not result.changed

    def test_input_record_is_not_mutated(self, engine):
        record = order_record()
        engine.apply(record, refund_items((9001, 1)))

        assert record.line_items["9001"].remaining == 20.0
        assert record.sweet_revenue == 20.0

    def test_string_line_item_ids_match(self, engine):
        result = engine.apply(order_record(), [{"line_item_id": "9002", "quantity": "2"}])
        assert result.delta.savoury == -6.0
