"""
Unit tests for sale totals and interest.
"""
import pytest
from decimal import Decimal

from pos_ledger.exceptions import ValidationError
from pos_ledger.services.totals_service import apply_interest, compute_totals, normalize_items


class TestComputeTotals:
    """Tests for compute_totals."""

    def test_tax_applied_after_discount(self):
        """Two units at 100 with 10% tax."""
        totals = compute_totals([{'quantity': 2, 'unit_price': 100}], discount=0, tax=10)

        assert totals == {
            'subtotal': Decimal('200.00'),
            'discount': Decimal('0.00'),
            'tax': Decimal('20.00'),
            'total': Decimal('220.00'),
        }

    def test_total_identity_holds_with_rounding(self):
        items = [
            {'quantity': 3, 'unit_price': '19.99'},
            {'quantity': 1, 'unit_price': '0.35'},
        ]
        totals = compute_totals(items, discount='7.13', tax='12.5')

        assert totals['total'] == totals['subtotal'] - totals['discount'] + totals['tax']
        for value in totals.values():
            assert value == value.quantize(Decimal('0.01'))

    def test_order_of_items_does_not_matter(self):
        items = [
            {'quantity': 1, 'unit_price': '10.10'},
            {'quantity': 4, 'unit_price': '3.33'},
            {'quantity': 2, 'unit_price': '99.99'},
        ]
        assert compute_totals(items, 5, 7) == compute_totals(list(reversed(items)), 5, 7)

    def test_discount_capped_at_subtotal(self):
        totals = compute_totals([{'quantity': 1, 'unit_price': 50}], discount=80, tax=10)

        assert totals['discount'] == Decimal('50.00')
        assert totals['tax'] == Decimal('0.00')
        assert totals['total'] == Decimal('0.00')

    @pytest.mark.parametrize('tax', [-1, 101, '150'])
    def test_tax_out_of_range(self, tax):
        with pytest.raises(ValidationError):
            compute_totals([{'quantity': 1, 'unit_price': 10}], tax=tax)

    def test_negative_discount_rejected(self):
        with pytest.raises(ValidationError):
            compute_totals([{'quantity': 1, 'unit_price': 10}], discount=-5)

    def test_empty_items_rejected(self):
        with pytest.raises(ValidationError, match='at least one item'):
            compute_totals([])


class TestNormalizeItems:
    """Tests for cart line validation."""

    def test_line_subtotal_includes_line_discount(self):
        lines = normalize_items([{'product_id': 1, 'quantity': '3', 'unit_price': '10', 'discount': '5'}])

        assert lines[0]['quantity'] == 3
        assert lines[0]['subtotal'] == Decimal('25.00')

    @pytest.mark.parametrize('item', [
        {'quantity': 0, 'unit_price': 10},
        {'quantity': 1.5, 'unit_price': 10},
        {'quantity': 1, 'unit_price': 0},
        {'quantity': 1, 'unit_price': 'abc'},
        {'quantity': 1, 'unit_price': 10, 'discount': -1},
    ])
    def test_bad_lines_rejected(self, item):
        with pytest.raises(ValidationError):
            normalize_items([item])


class TestApplyInterest:
    """Tests for installment interest."""

    def test_interest_added_to_total(self):
        result = apply_interest(Decimal('300.00'), 10)

        assert result['interest_amount'] == Decimal('30.00')
        assert result['final_total'] == Decimal('330.00')

    def test_zero_rate_leaves_total(self):
        result = apply_interest(Decimal('300.00'), 0)

        assert result == {'interest_amount': Decimal('0.00'), 'final_total': Decimal('300.00')}

    def test_negative_rate_rejected(self):
        with pytest.raises(ValidationError):
            apply_interest(100, -2)
