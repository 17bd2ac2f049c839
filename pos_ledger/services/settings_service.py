"""Currency settings read by the sale ledger."""
from dataclasses import dataclass
from decimal import Decimal

from pos_ledger.exceptions import ValidationError
from pos_ledger.utils.money import to_decimal

DEFAULT_CURRENCY_KEY = 'currency.default'
USD_RATE_KEY = 'currency.usd_rate'
IQD_RATE_KEY = 'currency.iqd_rate'

SUPPORTED_CURRENCIES = ('USD', 'IQD')


@dataclass(frozen=True)
class CurrencySettings:
    """Typed view of the stored currency defaults."""
    default_currency: str = 'IQD'
    usd_rate: Decimal = Decimal('1500')
    iqd_rate: Decimal = Decimal('1')

    def rate_for(self, currency: str) -> Decimal:
        """Stored exchange rate to record on a sale in the given currency."""
        return self.usd_rate if currency == 'USD' else self.iqd_rate


class SettingsProvider:
    """Reads (and validates writes of) the currency settings rows."""

    def __init__(self, repository):
        self.repository = repository

    def get_currency_settings(self) -> CurrencySettings:
        defaults = CurrencySettings()
        default_currency = self.repository.get_setting(DEFAULT_CURRENCY_KEY) or defaults.default_currency
        usd_rate = self._read_rate(USD_RATE_KEY, defaults.usd_rate)
        iqd_rate = self._read_rate(IQD_RATE_KEY, defaults.iqd_rate)
        return CurrencySettings(default_currency, usd_rate, iqd_rate)

    def _read_rate(self, key: str, default: Decimal) -> Decimal:
        raw = self.repository.get_setting(key)
        if raw is None:
            return default
        try:
            value = to_decimal(raw, key)
        except ValueError:
            raise ValidationError(f'Stored setting {key} is not a number: {raw!r}')
        if value <= 0:
            raise ValidationError(f'Stored setting {key} must be greater than zero')
        return value

    def save_currency_settings(self, default_currency=None, usd_rate=None, iqd_rate=None) -> CurrencySettings:
        """
        Validate and persist the three currency settings.

        Missing values fall back to the defaults (IQD, 1500, 1).

        Raises:
            ValidationError: unknown currency code or non-positive rate.
        """
        defaults = CurrencySettings()
        default_currency = default_currency or defaults.default_currency
        if default_currency not in SUPPORTED_CURRENCIES:
            raise ValidationError(
                f'Invalid currency. Must be one of: {", ".join(SUPPORTED_CURRENCIES)}'
            )

        rates = {}
        for key, value, fallback in (
            (USD_RATE_KEY, usd_rate, defaults.usd_rate),
            (IQD_RATE_KEY, iqd_rate, defaults.iqd_rate),
        ):
            if value is None:
                rates[key] = fallback
                continue
            try:
                parsed = to_decimal(value, key)
            except ValueError as e:
                raise ValidationError(str(e))
            if parsed <= 0:
                raise ValidationError(f'{key} must be a positive number')
            rates[key] = parsed

        self.repository.set_setting(DEFAULT_CURRENCY_KEY, default_currency)
        for key, value in rates.items():
            self.repository.set_setting(key, str(value))
        self.repository.commit()

        return self.get_currency_settings()
