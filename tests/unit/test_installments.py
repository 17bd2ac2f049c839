"""
Unit tests for installment schedule generation and allocation.
"""
import pytest
from datetime import date, datetime
from decimal import Decimal

from pos_ledger.exceptions import ValidationError
from pos_ledger.models import InstallmentStatus
from pos_ledger.services.installment_service import (
    apply_payment, cancel_pending, generate_schedule, reset_statuses, restore_pending, reverse_payment
)

NOW = datetime(2024, 1, 15, 10, 30)


def schedule(amount='300', count=3, start=date(2024, 1, 15)):
    return generate_schedule(1, None, Decimal(amount), count, 'IQD', start)


class TestGenerateSchedule:

    def test_equal_monthly_shares(self):
        installments = schedule('300', 3)

        assert [i.installment_number for i in installments] == [1, 2, 3]
        assert all(i.due_amount == Decimal('100.00') for i in installments)
        assert all(i.remaining_amount == Decimal('100.00') for i in installments)
        assert all(i.status == InstallmentStatus.PENDING for i in installments)
        assert [i.due_date for i in installments] == [
            date(2024, 2, 15), date(2024, 3, 15), date(2024, 4, 15)
        ]

    def test_shares_within_rounding_tolerance(self):
        installments = schedule('100', 3)
        total = sum(i.due_amount for i in installments)

        assert installments[0].due_amount == Decimal('33.33')
        assert abs(total - Decimal('100')) <= Decimal('0.01') * 3

    def test_month_end_start_date_is_clamped(self):
        installments = schedule('200', 2, start=date(2024, 1, 31))

        assert installments[0].due_date == date(2024, 2, 29)
        assert installments[1].due_date == date(2024, 3, 31)

    @pytest.mark.parametrize('count', [0, -1, 'x'])
    def test_invalid_count(self, count):
        with pytest.raises(ValidationError):
            schedule('300', count)

    def test_nothing_to_schedule(self):
        with pytest.raises(ValidationError):
            schedule('0', 3)


class TestApplyPayment:

    def test_greedy_allocation_in_sequence(self):
        installments = schedule('300', 3)

        allocations = apply_payment(installments, Decimal('150'), NOW)

        assert [(a[0].installment_number, a[1]) for a in allocations] == [
            (1, Decimal('100.00')), (2, Decimal('50.00'))
        ]
        assert installments[0].status == InstallmentStatus.PAID
        assert installments[0].paid_date == NOW.date()
        assert installments[1].status == InstallmentStatus.PENDING
        assert installments[1].remaining_amount == Decimal('50.00')
        assert installments[2].paid_amount == Decimal('0.00')

    def test_skips_paid_and_cancelled(self):
        installments = schedule('300', 3)
        installments[0].status = InstallmentStatus.CANCELLED
        apply_payment(installments, Decimal('100'), NOW)

        assert installments[0].paid_amount == Decimal('0.00')
        assert installments[1].status == InstallmentStatus.PAID

    def test_overdue_installments_are_payable(self):
        installments = schedule('300', 3)
        installments[0].status = InstallmentStatus.OVERDUE

        apply_payment(installments, Decimal('100'), NOW)

        assert installments[0].status == InstallmentStatus.PAID

    def test_excess_is_ignored(self):
        installments = schedule('300', 3)

        allocations = apply_payment(installments, Decimal('1000'), NOW)

        assert sum(a[1] for a in allocations) == Decimal('300.00')


class TestReversePayment:

    def test_releases_latest_installments_first(self):
        installments = schedule('300', 3)
        apply_payment(installments, Decimal('150'), NOW)

        released = reverse_payment(installments, Decimal('80'), NOW)

        assert [(r[0].installment_number, r[1]) for r in released] == [
            (2, Decimal('50.00')), (1, Decimal('30.00'))
        ]
        assert installments[0].status == InstallmentStatus.PENDING
        assert installments[0].paid_date is None
        assert installments[0].remaining_amount == Decimal('30.00')
        assert installments[1].remaining_amount == Decimal('100.00')


class TestCancelRestore:

    def test_cancel_keeps_paid_installments(self):
        installments = schedule('300', 3)
        apply_payment(installments, Decimal('100'), NOW)
        installments[1].status = InstallmentStatus.OVERDUE

        changes = cancel_pending(installments, NOW)

        assert [c[1] for c in changes] == [InstallmentStatus.OVERDUE, InstallmentStatus.PENDING]
        assert installments[0].status == InstallmentStatus.PAID
        assert installments[1].status == InstallmentStatus.CANCELLED
        assert installments[2].status == InstallmentStatus.CANCELLED

    def test_restore_and_reset(self):
        installments = schedule('300', 3)
        cancel_pending(installments, NOW)

        changes = restore_pending(installments, NOW)
        assert all(i.status == InstallmentStatus.PENDING for i in installments)

        reset_statuses(changes)
        assert all(i.status == InstallmentStatus.CANCELLED for i in installments)
