"""Customer debt and lifetime purchase aggregates."""
import logging
from decimal import Decimal

from pos_ledger.exceptions import NotFoundError
from pos_ledger.models import Customer
from pos_ledger.utils.money import ZERO, money

logger = logging.getLogger(__name__)


class CustomerLedger:
    """
    Read-modify-write adjustments scoped to one customer row.

    Every method returns the delta actually applied (decreases are clamped
    so totals never go below zero), which is what a compensation must undo.
    """

    def __init__(self, repository):
        self.repository = repository

    def _customer(self, customer_id) -> Customer:
        customer = self.repository.get(Customer, customer_id, for_update=True)
        if not customer:
            raise NotFoundError(f'Customer with ID {customer_id}')
        return customer

    def increase_debt(self, customer_id, amount) -> Decimal:
        return self._adjust(customer_id, 'total_debt', money(amount))

    def decrease_debt(self, customer_id, amount) -> Decimal:
        return self._adjust(customer_id, 'total_debt', -money(amount))

    def increase_purchases(self, customer_id, amount) -> Decimal:
        return self._adjust(customer_id, 'total_purchases', money(amount))

    def decrease_purchases(self, customer_id, amount) -> Decimal:
        return self._adjust(customer_id, 'total_purchases', -money(amount))

    def _adjust(self, customer_id, field: str, delta: Decimal) -> Decimal:
        if delta == 0:
            return ZERO
        customer = self._customer(customer_id)
        current = Decimal(getattr(customer, field) or 0)
        new_value = max(ZERO, current + delta)
        setattr(customer, field, new_value)
        self.repository.flush()
        logger.debug(f"[CUSTOMER] {customer_id}.{field}: {current} -> {new_value}")
        return new_value - current

    def revert(self, customer_id, field: str, applied_delta: Decimal) -> None:
        """Undo a delta previously returned by one of the adjust methods."""
        self._adjust(customer_id, field, -applied_delta)
