"""Sales report - currency-bucketed financial summary (read-only)."""
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from pos_ledger.exceptions import ValidationError
from pos_ledger.models import PaymentType, SaleStatus
from pos_ledger.services.currency_service import CurrencyConverter
from pos_ledger.utils.dates import day_bounds, parse_day
from pos_ledger.utils.clock import SystemClock
from pos_ledger.utils.money import ZERO, money

logger = logging.getLogger(__name__)

# Currencies with explicit fields in the flattened report
REPORT_CURRENCIES = ('USD', 'IQD')

DEFAULT_CURRENCY = 'USD'


def _empty_bucket() -> Dict[str, Any]:
    bucket = {
        'total_sales': ZERO,
        'total_paid': ZERO,
        'total_remaining': ZERO,
        'total_profit': ZERO,
        'count': 0,
    }
    for payment_type in PaymentType:
        bucket[f'{payment_type.value}_sales'] = 0
    for status in (SaleStatus.COMPLETED, SaleStatus.PENDING):
        bucket[f'{status.value}_sales'] = 0
    return bucket


class SalesReportAggregator:
    """
    Aggregates live sales inside a day range into per-currency buckets.

    Runs without ledger locks: it reads whatever was committed before the
    query started.
    """

    def __init__(self, repository, converter: Optional[CurrencyConverter] = None, clock=None):
        self.repository = repository
        self.converter = converter or CurrencyConverter(repository)
        self.clock = clock or SystemClock()

    def report(self, start_date=None, end_date=None, currency: Optional[str] = None,
               target_currency: Optional[str] = None) -> Dict[str, Any]:
        """
        Build the sales report.

        Args:
            start_date, end_date: inclusive day bounds (date, datetime or ISO string)
            currency: only include sales in this currency
            target_currency: also convert every bucket into this currency

        Returns:
            dict with by_currency buckets, flattened <metric>_usd / <metric>_iqd
            fields, currency-agnostic counts and overdue_installments
        """
        start = parse_day(start_date, 'start_date')
        end = parse_day(end_date, 'end_date')
        if start and end and start > end:
            raise ValidationError('start_date must not be after end_date')

        start_dt, end_dt = day_bounds(start, end)
        sales = self.repository.sales_between(start_dt, end_dt, currency)

        by_currency: Dict[str, Dict[str, Any]] = {}
        for sale in sales:
            bucket = by_currency.setdefault(sale.currency or DEFAULT_CURRENCY, _empty_bucket())
            bucket['total_sales'] += Decimal(sale.total or 0)
            bucket['total_paid'] += Decimal(sale.paid_amount or 0)
            bucket['total_remaining'] += Decimal(sale.remaining_amount or 0)
            bucket['count'] += 1
            bucket[f'{sale.payment_type.value}_sales'] += 1
            bucket[f'{sale.status.value}_sales'] += 1

        # Profit per unit: (unit price - product cost) * quantity
        for row in self.repository.items_with_cost([sale.id for sale in sales]):
            bucket = by_currency[row.currency or DEFAULT_CURRENCY]
            cost = Decimal(row.cost_price or 0)
            bucket['total_profit'] += (Decimal(row.unit_price) - cost) * row.quantity

        for bucket in by_currency.values():
            for field in ('total_sales', 'total_paid', 'total_remaining', 'total_profit'):
                bucket[field] = money(bucket[field])
            bucket['avg_sale'] = money(bucket['total_sales'] / bucket['count']) if bucket['count'] else ZERO

        today = self.clock.now().date()
        result: Dict[str, Any] = {
            'start_date': start,
            'end_date': end,
            'currency': currency,
            'by_currency': by_currency,
        }

        for code in REPORT_CURRENCIES:
            bucket = by_currency.get(code) or _empty_bucket()
            suffix = code.lower()
            result[f'sales_{suffix}'] = bucket['total_sales']
            result[f'paid_{suffix}'] = bucket['total_paid']
            result[f'remaining_{suffix}'] = bucket['total_remaining']
            result[f'profit_{suffix}'] = bucket['total_profit']
            result[f'avg_sale_{suffix}'] = bucket.get('avg_sale', ZERO)
            result[f'count_{suffix}'] = bucket['count']

        result['count'] = sum(b['count'] for b in by_currency.values())
        for key in [f'{p.value}_sales' for p in PaymentType] + ['completed_sales', 'pending_sales']:
            result[key] = sum(b[key] for b in by_currency.values())
        result['overdue_installments'] = self.repository.count_overdue_installments(today)

        if target_currency:
            converted = self.converter.convert_totals(by_currency, target_currency)
            result['target_currency'] = target_currency
            result['converted'] = converted
            result['converted_totals'] = {
                field: money(sum((b[field] for b in converted.values()), ZERO))
                for field in ('total_sales', 'total_paid', 'total_remaining', 'total_profit')
            }

        logger.debug(
            f"[REPORT] {start}..{end} currency={currency}: {result['count']} sale(s) "
            f"in {len(by_currency)} currency bucket(s)"
        )
        return result
