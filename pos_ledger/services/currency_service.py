"""
Currency Conversion Service

Resolves cross rates between currencies through the shared base-rate table:
every currency row stores its rate against the base, so
rate(A, B) = rate_to_base(B) / rate_to_base(A).
"""
from decimal import Decimal
from typing import Dict, Iterable, List

from pos_ledger.exceptions import NotFoundError, ValidationError
from pos_ledger.utils.money import format_money, money, rate as round_rate, to_decimal

# Report fields converted by convert_totals
CONVERTIBLE_TOTALS = ('total_sales', 'total_paid', 'total_remaining', 'total_profit', 'avg_sale')


class CurrencyConverter:
    """Pure lookup/arithmetic over the currency_rate table."""

    def __init__(self, repository):
        self.repository = repository

    def rate(self, from_currency: str, to_currency: str) -> Decimal:
        """
        Exchange rate between two currencies, rounded to 6 decimals.

        Raises:
            ValidationError: missing code or inactive currency
            NotFoundError: unknown currency
        """
        if not from_currency or not to_currency:
            raise ValidationError('Both from_currency and to_currency are required')

        if from_currency == to_currency:
            return Decimal('1')

        source = self.repository.get_currency(from_currency)
        target = self.repository.get_currency(to_currency)

        if not source:
            raise NotFoundError(f"Currency '{from_currency}'")
        if not target:
            raise NotFoundError(f"Currency '{to_currency}'")

        if not source.is_active or not target.is_active:
            raise ValidationError('One or both currencies are not active')

        return round_rate(Decimal(target.exchange_rate) / Decimal(source.exchange_rate))

    def convert(self, amount, from_currency: str, to_currency: str) -> Decimal:
        """Convert an amount, rounded to 2 decimals."""
        amount = self._non_negative(amount)
        return money(amount * self.rate(from_currency, to_currency))

    def convert_many(self, amounts: Iterable, from_currency: str, to_currency: str) -> List[Decimal]:
        """Batch conversion sharing one rate lookup."""
        amounts = [self._non_negative(a, 'All amounts') for a in amounts]
        conversion = self.rate(from_currency, to_currency)
        return [money(a * conversion) for a in amounts]

    def rates_relative_to(self, base_currency: str) -> Dict[str, Decimal]:
        """Rate of every active currency against base_currency."""
        return {
            currency.currency_code: self.rate(base_currency, currency.currency_code)
            for currency in self.repository.active_currencies()
        }

    def convert_totals(self, by_currency: Dict[str, dict], target_currency: str) -> Dict[str, dict]:
        """Convert per-currency report buckets into target_currency."""
        converted = {}
        for code, totals in by_currency.items():
            conversion = self.rate(code, target_currency)
            bucket = {
                'original_currency': code,
                'target_currency': target_currency,
                'exchange_rate': conversion,
                'count': totals.get('count', 0),
            }
            for field in CONVERTIBLE_TOTALS:
                bucket[field] = money(Decimal(totals.get(field, 0)) * conversion)
            converted[code] = bucket
        return converted

    def is_valid_currency(self, code: str) -> bool:
        currency = self.repository.get_currency(code)
        return bool(currency and currency.is_active)

    def active_currencies(self) -> List[dict]:
        return [currency.to_dict() for currency in self.repository.active_currencies()]

    def symbol(self, code: str) -> str:
        currency = self.repository.get_currency(code)
        return currency.symbol if currency else code

    def format_amount(self, amount, code: str) -> str:
        """Amount with the currency symbol, e.g. 'IQD 15,000.00'."""
        return format_money(amount, self.symbol(code))

    @staticmethod
    def _non_negative(amount, label: str = 'Amount') -> Decimal:
        try:
            value = to_decimal(amount, label)
        except ValueError:
            raise ValidationError(f'{label} must be a non-negative number')
        if value < 0:
            raise ValidationError(f'{label} must be a non-negative number')
        return value
