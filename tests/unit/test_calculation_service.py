"""
Unit tests for the document calculator.
"""
from decimal import Decimal

import pytest

from invoicing.services.calculation_service import (
    calculate_totals, line_total, normalize_rate, round_money, to_decimal
)


def _item(quantity, unit_price, tax_rate):
    return {'quantity': quantity, 'unit_price': unit_price, 'tax_rate': tax_rate}


class TestCalculateTotals:
    """Tests for calculate_totals."""

    def test_mixed_rates(self):
        items = [_item(2, '100', 19), _item(1, '50', 7)]

        totals = calculate_totals(items).rounded()

        assert totals.subtotal == Decimal('250.00')
        assert totals.tax_amount == Decimal('41.50')
        assert totals.total == Decimal('291.50')
        assert totals.tax_groups == {Decimal('19'): Decimal('38.00'), Decimal('7'): Decimal('3.50')}

    def test_small_business_has_no_tax(self):
        items = [_item(2, '100', 19), _item(1, '50', 7)]

        totals = calculate_totals(items, is_small_business=True).rounded()

        assert totals.subtotal == Decimal('250.00')
        assert totals.tax_amount == Decimal('0.00')
        assert totals.total == Decimal('250.00')
        assert totals.tax_groups == {}

    def test_empty_items(self):
        totals = calculate_totals([]).rounded()

        assert totals.subtotal == Decimal('0.00')
        assert totals.tax_amount == Decimal('0.00')
        assert totals.total == Decimal('0.00')
        assert totals.tax_groups == {}

    def test_equal_rates_group_together(self):
        items = [_item(1, '10', 19), _item(1, '20', '19.00'), _item(1, '5', Decimal('19.0'))]

        totals = calculate_totals(items)

        assert list(totals.tax_groups.keys()) == [Decimal('19')]
        assert round_money(totals.tax_groups[Decimal('19')]) == Decimal('6.65')

    def test_groups_keep_first_seen_order(self):
        items = [_item(1, '10', 7), _item(1, '10', 19), _item(1, '10', 7)]

        totals = calculate_totals(items)

        assert list(totals.tax_groups.keys()) == [Decimal('7'), Decimal('19')]

    def test_negative_lines_reduce_totals(self):
        items = [_item(1, '100', 19), _item(1, '-20', 19)]

        totals = calculate_totals(items).rounded()

        assert totals.subtotal == Decimal('80.00')
        assert totals.tax_amount == Decimal('15.20')
        assert totals.total == Decimal('95.20')

    def test_rounding_happens_once(self):
        # 0.0735 tax per line: rounding per line would give 3 x 0.07 = 0.21
        items = [_item(1, '1.05', 7)] * 3

        totals = calculate_totals(items)

        assert totals.tax_amount == Decimal('0.2205')
        assert totals.rounded().tax_amount == Decimal('0.22')

    def test_rounded_groups_add_up_to_tax_amount(self):
        # 0.025 in each group: rounding both up would show 0.06 against a tax of 0.05
        items = [_item(1, '0.25', 10), _item(1, '0.50', 5)]

        totals = calculate_totals(items).rounded()

        assert totals.tax_amount == Decimal('0.05')
        assert sum(totals.tax_groups.values()) == totals.tax_amount
        assert totals.tax_groups == {Decimal('10'): Decimal('0.02'), Decimal('5'): Decimal('0.03')}

    def test_residual_cent_goes_to_largest_group(self):
        items = [_item(1, '0.25', 10), _item(1, '2.10', 5)]

        totals = calculate_totals(items).rounded()

        assert totals.tax_amount == Decimal('0.13')
        assert totals.tax_groups == {Decimal('10'): Decimal('0.03'), Decimal('5'): Decimal('0.10')}

    def test_total_equals_subtotal_plus_tax_after_rounding(self):
        items = [_item('3', '19.99', 19), _item('0.5', '12.345', 7)]

        totals = calculate_totals(items).rounded()

        assert totals.total == totals.subtotal + totals.tax_amount

    def test_accepts_objects_with_attributes(self):
        class Line:
            quantity = Decimal('2')
            unit_price = Decimal('12.50')
            tax_rate = Decimal('7')

        totals = calculate_totals([Line()]).rounded()

        assert totals.subtotal == Decimal('25.00')
        assert totals.tax_amount == Decimal('1.75')


class TestHelpers:
    """Tests for the number helpers."""

    def test_round_money_half_up(self):
        assert round_money('2.345') == Decimal('2.35')
        assert round_money('2.344') == Decimal('2.34')
        assert round_money('-2.345') == Decimal('-2.35')

    def test_to_decimal_blank_uses_default(self):
        assert to_decimal(None) == Decimal('0')
        assert to_decimal('', Decimal('1')) == Decimal('1')

    def test_to_decimal_rejects_garbage(self):
        with pytest.raises(ValueError):
            to_decimal('abc')

    def test_line_total_defaults_quantity_to_one(self):
        assert line_total(None, '9.99') == Decimal('9.99')

    def test_normalize_rate(self):
        assert normalize_rate('19.00') == Decimal('19')
        assert normalize_rate('7.50') == Decimal('7.5')
