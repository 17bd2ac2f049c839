"""
Installment schedule generation and allocation.

A schedule splits a sale's remaining balance into equal monthly shares.
Each share is rounded to 2 decimals independently, so the shares may differ
from the scheduled balance by up to one cent per installment.
"""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from pos_ledger.exceptions import ValidationError
from pos_ledger.models import Installment, InstallmentStatus, OPEN_STATUSES
from pos_ledger.utils.dates import add_months
from pos_ledger.utils.money import ZERO, money, to_decimal

logger = logging.getLogger(__name__)


def generate_schedule(
    sale_id: int,
    customer_id: Optional[int],
    remaining_amount,
    count: int,
    currency: str,
    start_date: date
) -> List[Installment]:
    """
    Build (unsaved) installments due 1..count months after start_date.

    Raises:
        ValidationError: count < 1 or nothing left to schedule
    """
    try:
        count = int(count)
    except (TypeError, ValueError):
        raise ValidationError('Installment count must be a whole number')
    if count < 1:
        raise ValidationError('Installment count must be at least 1')

    remaining_amount = to_decimal(remaining_amount, 'remaining_amount')
    if remaining_amount <= 0:
        raise ValidationError('Remaining amount must be greater than zero to schedule installments')

    share = money(remaining_amount / count)

    return [
        Installment(
            sale_id=sale_id,
            customer_id=customer_id,
            installment_number=number,
            due_amount=share,
            paid_amount=ZERO,
            remaining_amount=share,
            currency=currency,
            due_date=add_months(start_date, number),
            status=InstallmentStatus.PENDING,
        )
        for number in range(1, count + 1)
    ]


def apply_payment(installments: List[Installment], amount, now: datetime) -> List[Tuple[Installment, Decimal]]:
    """
    Greedily consume amount into open installments in sequence order.

    Paid and cancelled installments are skipped. An installment whose
    remaining amount reaches zero becomes paid with paid_date = today.

    Returns:
        (installment, allocated amount) pairs in allocation order
    """
    left = money(amount)
    allocations = []

    for installment in sorted(installments, key=lambda i: i.installment_number):
        if left <= 0:
            break
        if installment.status not in OPEN_STATUSES:
            continue

        remaining = Decimal(installment.remaining_amount)
        portion = min(left, remaining)
        if portion <= 0:
            continue

        installment.paid_amount = Decimal(installment.paid_amount) + portion
        installment.remaining_amount = remaining - portion
        if installment.remaining_amount <= 0:
            installment.status = InstallmentStatus.PAID
            installment.paid_date = now.date()
        installment.updated_at = now

        allocations.append((installment, portion))
        left -= portion

    if left > 0:
        logger.debug(f"[INSTALLMENT] {left} of the payment exceeded the open schedule")

    return allocations


def reverse_payment(installments: List[Installment], amount, now: datetime) -> List[Tuple[Installment, Decimal]]:
    """
    Give amount back to the most recently consumed installments.

    Walks the schedule from the last installment backwards, releasing paid
    money until amount is exhausted. Released installments return to pending.
    """
    left = money(amount)
    released = []

    for installment in sorted(installments, key=lambda i: i.installment_number, reverse=True):
        if left <= 0:
            break
        if installment.status == InstallmentStatus.CANCELLED:
            continue

        paid = Decimal(installment.paid_amount)
        portion = min(left, paid)
        if portion <= 0:
            continue

        installment.paid_amount = paid - portion
        installment.remaining_amount = Decimal(installment.remaining_amount) + portion
        installment.status = InstallmentStatus.PENDING
        installment.paid_date = None
        installment.updated_at = now

        released.append((installment, portion))
        left -= portion

    return released


def cancel_pending(installments: List[Installment], now: datetime) -> List[Tuple[Installment, InstallmentStatus]]:
    """Cancel every installment that is not already paid. Returns (installment, previous status)."""
    changed = []
    for installment in installments:
        if installment.status in OPEN_STATUSES:
            changed.append((installment, installment.status))
            installment.status = InstallmentStatus.CANCELLED
            installment.updated_at = now
    return changed


def restore_pending(installments: List[Installment], now: datetime) -> List[Tuple[Installment, InstallmentStatus]]:
    """Put cancelled installments back to pending. Returns (installment, previous status)."""
    changed = []
    for installment in installments:
        if installment.status == InstallmentStatus.CANCELLED:
            changed.append((installment, installment.status))
            installment.status = InstallmentStatus.PENDING
            installment.updated_at = now
    return changed


def reset_statuses(changes: List[Tuple[Installment, InstallmentStatus]]) -> None:
    """Compensation for cancel_pending/restore_pending."""
    for installment, previous in changes:
        installment.status = previous


def refresh_overdue(repository, today: date, now: Optional[datetime] = None) -> int:
    """
    Mark pending installments past their due date as overdue.

    Returns:
        number of installments updated
    """
    due = repository.due_installments(today)
    for installment in due:
        installment.status = InstallmentStatus.OVERDUE
        installment.updated_at = now or datetime.combine(today, datetime.min.time())
    repository.commit()

    if due:
        logger.info(f"[INSTALLMENT] Marked {len(due)} installment(s) overdue as of {today.isoformat()}")
    return len(due)
