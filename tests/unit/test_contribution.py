"""
Tests for battle.contribution module.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from battle.contribution import ContributionCalculator, line_total
from battle.exceptions import ShopifyAPIError
from battle.models import Side

from conftest import SHOP_DOMAIN, make_line_item


def fixed_classifier(sides):
    """Classifier stub returning ``sides`` for whatever ids it is given."""
    classifier = MagicMock()
    classifier.looked_up = []

    async def classify_many(product_ids, shop_domain):
        ids = [str(pid) for pid in product_ids]
        classifier.looked_up.extend(ids)
        return {pid: sides.get(pid) for pid in ids}

    classifier.classify_many = AsyncMock(side_effect=classify_many)
    return classifier


class TestLineTotal:

    def test_price_times_quantity(self):
        assert line_total(make_line_item(1, 55, 2, "10.00"), 2) == 20.0

    def test_discount_is_subtracted(self):
        assert line_total(make_line_item(1, 55, 3, "4.00", discount="2.00"), 3) == 10.0

    def test_never_negative(self):
        assert line_total(make_line_item(1, 55, 1, "5.00", discount="9.00"), 1) == 0.0

    def test_shop_money_wins_over_plain_price(self):
        item = {
            "price": "99.00",
            "price_set": {"shop_money": {"amount": "12.50"}},
            "total_discount": "0.00",
        }
        assert line_total(item, 2) == 25.0

    def test_plain_fields_without_money_sets(self):
        assert line_total({"price": "1,000.00", "total_discount": "100"}, 1) == 900.0


class TestContributionCalculator:
    """Tests for ContributionCalculator.compute."""

    @pytest.mark.asyncio
    async def test_mixed_order(self, mixed_order):
        calculator = ContributionCalculator(
            fixed_classifier({"55": Side.SWEET, "67": Side.SAVOURY, "66": Side.SAVOURY})
        )

        contribution = await calculator.compute(mixed_order["line_items"], SHOP_DOMAIN)

        assert contribution.sweet_total == 10.0
        assert contribution.savoury_total == 15.5
        assert set(contribution.line_items) == {"9101", "9102"}
        assert contribution.line_items["9101"].original_quantity == 3
        assert contribution.line_items["9101"].remaining == 10.0

    @pytest.mark.asyncio
    async def test_zero_quantity_and_missing_product_are_not_looked_up(self):
        classifier = fixed_classifier({"55": Side.SWEET})
        calculator = ContributionCalculator(classifier)
        items = [
            make_line_item(1, 55, 0, "3.00"),
            make_line_item(2, None, 1, "3.00"),
            {"id": 3, "quantity": 1, "price": "3.00"},
        ]

        contribution = await calculator.compute(items, SHOP_DOMAIN)

        assert contribution.is_empty
        assert classifier.looked_up == []

    @pytest.mark.asyncio
    async def test_missing_line_id_falls_back_to_product(self):
        calculator = ContributionCalculator(fixed_classifier({"55": Side.SWEET}))
        item = make_line_item(0, 55, 1, "3.00")
        del item["id"]

        contribution = await calculator.compute([item, dict(item)], SHOP_DOMAIN)

        assert set(contribution.line_items) == {"product-55-0", "product-55-1"}
        assert contribution.sweet_total == 6.0

    @pytest.mark.asyncio
    async def test_empty_order(self):
        contribution = await ContributionCalculator(fixed_classifier({})).compute([], None)
        assert contribution.is_empty

    @pytest.mark.asyncio
    async def test_classification_failure_propagates(self, mixed_order):
        classifier = MagicMock()
        classifier.classify_many = AsyncMock(side_effect=ShopifyAPIError("Shopify GraphQL error"))

        with pytest.raises(ShopifyAPIError):
            await ContributionCalculator(classifier).compute(mixed_order["line_items"], SHOP_DOMAIN)
