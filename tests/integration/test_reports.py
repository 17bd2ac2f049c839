"""
Integration tests for the currency-bucketed sales report.
"""
import pytest
from decimal import Decimal

from pos_ledger.exceptions import ValidationError


@pytest.fixture
def sales(ledger, product, second_product, currencies, clock):
    """Two IQD sales, one USD sale and one cancelled IQD sale on 2024-01-15."""
    cash = ledger.create_sale({
        'items': [{'product_id': product.id, 'quantity': 2, 'unit_price': 100}],
        'paid_amount': 200,
    })
    installment = ledger.create_sale({
        'items': [{'product_id': second_product.id, 'quantity': 3, 'unit_price': 100}],
        'payment_type': 'installment',
    })
    usd = ledger.create_sale({
        'items': [{'product_id': product.id, 'quantity': 1, 'unit_price': 100}],
        'currency': 'USD',
        'paid_amount': 40,
    })
    cancelled = ledger.create_sale({
        'items': [{'product_id': second_product.id, 'quantity': 1, 'unit_price': 999}],
    })
    ledger.cancel_sale(cancelled.id)
    return {'cash': cash, 'installment': installment, 'usd': usd, 'cancelled': cancelled}


class TestSalesReport:

    def test_buckets_by_currency(self, ledger, sales):
        report = ledger.get_sales_report({'start_date': '2024-01-01', 'end_date': '2024-01-31'})

        assert report['count'] == 3
        assert report['count_iqd'] == 2
        assert report['count_usd'] == 1
        assert report['sales_iqd'] == Decimal('500.00')
        assert report['paid_iqd'] == Decimal('200.00')
        assert report['remaining_iqd'] == Decimal('300.00')
        assert report['avg_sale_iqd'] == Decimal('250.00')
        assert report['sales_usd'] == Decimal('100.00')
        assert report['remaining_usd'] == Decimal('60.00')

    def test_profit_uses_product_cost(self, ledger, sales):
        report = ledger.get_sales_report({})

        # IQD: 2 x (100 - 60) + 3 x (100 - 20); USD: 1 x (100 - 60)
        assert report['profit_iqd'] == Decimal('320.00')
        assert report['profit_usd'] == Decimal('40.00')

    def test_counts_by_type_and_status(self, ledger, sales):
        report = ledger.get_sales_report({})

        assert report['cash_sales'] == 2
        assert report['installment_sales'] == 1
        assert report['mixed_sales'] == 0
        assert report['completed_sales'] == 1
        assert report['pending_sales'] == 2
        assert report['by_currency']['IQD']['installment_sales'] == 1

    def test_currency_filter(self, ledger, sales):
        report = ledger.get_sales_report({'currency': 'USD'})

        assert list(report['by_currency']) == ['USD']
        assert report['count'] == 1
        assert report['sales_iqd'] == Decimal('0.00')
        assert report['count_iqd'] == 0

    def test_date_range_is_inclusive_by_day(self, ledger, sales):
        assert ledger.get_sales_report({'start_date': '2024-01-15', 'end_date': '2024-01-15'})['count'] == 3
        assert ledger.get_sales_report({'start_date': '2024-01-16'})['count'] == 0
        assert ledger.get_sales_report({'end_date': '2024-01-14'})['count'] == 0

    def test_overdue_installments_counted(self, ledger, sales, clock):
        assert ledger.get_sales_report({})['overdue_installments'] == 0

        clock.advance(days=61)

        assert ledger.get_sales_report({})['overdue_installments'] == 2

    def test_converted_totals(self, ledger, sales):
        report = ledger.get_sales_report({'target_currency': 'IQD'})

        assert report['target_currency'] == 'IQD'
        assert report['converted']['USD']['total_sales'] == Decimal('150000.00')
        assert report['converted']['IQD']['total_sales'] == Decimal('500.00')
        assert report['converted_totals']['total_sales'] == Decimal('150500.00')

    def test_empty_report(self, ledger):
        report = ledger.get_sales_report({})

        assert report['count'] == 0
        assert report['by_currency'] == {}
        assert report['sales_usd'] == Decimal('0.00')
        assert report['avg_sale_usd'] == Decimal('0.00')

    def test_inverted_range_rejected(self, ledger):
        with pytest.raises(ValidationError):
            ledger.get_sales_report({'start_date': '2024-02-01', 'end_date': '2024-01-01'})
