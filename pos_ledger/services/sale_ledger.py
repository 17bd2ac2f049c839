"""
Sale Ledger - create, pay, cancel, restore and purge sales.

The ledger is the only component allowed to change a sale's status. Every
mutation runs under the locks of the sale/products it touches and inside a
Saga, so stock, customer balances, payments and installments either all move
together or are compensated before the error reaches the caller.

State machine:
    pending -> completed          (remaining reaches 0 through a payment)
    pending/completed -> cancelled (cancel_sale)
    cancelled -> pending/completed (restore_sale)
"""
import logging
import secrets
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError

from pos_ledger.exceptions import ConflictError, NotFoundError, ValidationError
from pos_ledger.models import (
    Customer, Payment, PaymentType, Sale, SaleItem, SaleStatus, status_for_remaining
)
from pos_ledger.services import installment_service
from pos_ledger.services.currency_service import CurrencyConverter
from pos_ledger.services.customer_ledger import CustomerLedger
from pos_ledger.services.inventory_service import InventoryAdjuster, StockDirection
from pos_ledger.services.locking import LockManager, product_key, sale_key
from pos_ledger.services.report_service import SalesReportAggregator
from pos_ledger.services.saga import Saga
from pos_ledger.services.settings_service import SUPPORTED_CURRENCIES, SettingsProvider
from pos_ledger.services.totals_service import apply_interest, compute_totals, normalize_items
from pos_ledger.utils.clock import SystemClock
from pos_ledger.utils.dates import day_bounds, parse_day
from pos_ledger.utils.money import ZERO, money, rate as round_rate, to_decimal

logger = logging.getLogger(__name__)

SALE_AMOUNT_FIELDS = ('paid_amount', 'remaining_amount', 'status', 'updated_at')
INSTALLMENT_FIELDS = ('paid_amount', 'remaining_amount', 'status', 'paid_date', 'updated_at')
INVOICE_ATTEMPTS = 5
MAX_PAGE_SIZE = 200


def _snapshot(obj, fields) -> Dict[str, Any]:
    return {field: getattr(obj, field) for field in fields}


def _restore(obj, snapshot: Dict[str, Any]) -> None:
    for field, value in snapshot.items():
        setattr(obj, field, value)


def _or_default(value, default):
    """Fall back only when a filter is missing or blank; 0 stays 0."""
    return default if value in (None, '') else value


class SaleLedger:
    """Orchestrates the sale lifecycle over an injected repository."""

    def __init__(
        self,
        repository,
        settings: Optional[SettingsProvider] = None,
        clock=None,
        locks: Optional[LockManager] = None,
        default_installment_count: int = 3,
        invoice_prefix: str = 'INV'
    ):
        self.repository = repository
        self.settings = settings or SettingsProvider(repository)
        self.clock = clock or SystemClock()
        self.locks = locks or LockManager()
        self.default_installment_count = default_installment_count
        self.invoice_prefix = invoice_prefix

        self.converter = CurrencyConverter(repository)
        self.inventory = InventoryAdjuster(repository)
        self.customers = CustomerLedger(repository)
        self.reports = SalesReportAggregator(repository, self.converter, self.clock)

    # =====================================================
    # CREATE
    # =====================================================

    def create_sale(self, sale_data: Dict[str, Any], actor_id: Optional[int] = None) -> Sale:
        """
        Create a sale with its items, initial payment and installment schedule.

        sale_data keys:
            items: [{product_id, quantity, unit_price, discount?}] (required)
            customer_id, discount, tax, payment_type ('cash' | 'installment' | 'mixed'),
            paid_amount, payment_method, interest_rate, installment_count,
            currency, exchange_rate, notes

        Raises:
            ValidationError: empty cart, bad amounts, insufficient stock, bad currency
            NotFoundError: unknown product or customer
            ConflictError: invoice number collision
        """
        items = sale_data.get('items') or []
        totals = compute_totals(items, sale_data.get('discount', 0), sale_data.get('tax', 0))
        lines = normalize_items(items)
        for index, line in enumerate(lines, start=1):
            if line['product_id'] is None:
                raise ValidationError(f'Item {index}: product_id is required')

        payment_type = self._payment_type(sale_data.get('payment_type'))
        currency, exchange_rate = self._resolve_currency(sale_data)

        interest_rate = ZERO
        interest = {'interest_amount': ZERO, 'final_total': totals['total']}
        if payment_type.bears_installments:
            interest = apply_interest(totals['total'], sale_data.get('interest_rate') or 0)
            interest_rate = money(sale_data.get('interest_rate') or 0)
        final_total = interest['final_total']

        paid_amount = self._amount(sale_data.get('paid_amount') or 0, 'paid_amount', allow_zero=True)
        # Tendered cash above the total is change, not credit
        paid_amount = min(paid_amount, final_total)
        remaining_amount = final_total - paid_amount

        installment_count = sale_data.get('installment_count') or self.default_installment_count
        schedule_needed = payment_type.bears_installments and remaining_amount > 0

        customer_id = sale_data.get('customer_id')
        if customer_id is not None and not self.repository.get(Customer, customer_id):
            raise NotFoundError(f'Customer with ID {customer_id}')

        keys = [product_key(line['product_id']) for line in lines]
        with self.locks.hold(keys):
            with Saga(self.repository, 'create_sale') as saga:
                products = self.inventory.reserve(lines)
                now = self.clock.now()

                sale = Sale(
                    invoice_number=self._generate_invoice_number(now),
                    customer_id=customer_id,
                    subtotal=totals['subtotal'],
                    discount=totals['discount'],
                    tax=totals['tax'],
                    interest_rate=interest_rate,
                    interest_amount=interest['interest_amount'],
                    total=final_total,
                    currency=currency,
                    exchange_rate=exchange_rate,
                    payment_type=payment_type,
                    paid_amount=paid_amount,
                    remaining_amount=remaining_amount,
                    status=status_for_remaining(remaining_amount),
                    notes=sale_data.get('notes'),
                    created_by=actor_id,
                    created_at=now,
                    updated_at=now,
                )
                try:
                    self.repository.add(sale)
                except IntegrityError:
                    self.repository.rollback()
                    raise ConflictError(f'Invoice number {sale.invoice_number} already exists')
                saga.record('delete sale', lambda: self.repository.delete(sale))

                applied = self.inventory.commit(lines, StockDirection.CONSUME)
                saga.record('restore stock', lambda: self.inventory.revert(applied, StockDirection.CONSUME))

                for line in lines:
                    sale.items.append(SaleItem(
                        product_id=line['product_id'],
                        product_name=products[line['product_id']].name,
                        quantity=line['quantity'],
                        unit_price=line['unit_price'],
                        discount=line['discount'],
                        subtotal=line['subtotal'],
                    ))

                if paid_amount > 0:
                    sale.payments.append(Payment(
                        customer_id=customer_id,
                        amount=paid_amount,
                        currency=currency,
                        exchange_rate=exchange_rate,
                        payment_method=sale_data.get('payment_method') or 'cash',
                        created_by=actor_id,
                        paid_at=now,
                    ))

                if schedule_needed:
                    sale.installments.extend(installment_service.generate_schedule(
                        sale.id, customer_id, remaining_amount, installment_count, currency, now.date()
                    ))
                self.repository.flush()

                if customer_id is not None and remaining_amount > 0:
                    self._charge_customer(saga, customer_id, remaining_amount, final_total)

        logger.info(
            f"[LEDGER] Sale {sale.invoice_number} created: total={final_total} {currency}, "
            f"paid={paid_amount}, remaining={remaining_amount}, items={len(lines)}, actor={actor_id}"
        )
        return sale

    # =====================================================
    # PAYMENTS
    # =====================================================

    def add_payment(self, sale_id: int, payment_data: Dict[str, Any], actor_id: Optional[int] = None) -> Sale:
        """
        Apply a payment to a sale's remaining balance.

        The applied amount is clamped to the remaining balance. A payment in
        another currency is converted into the sale currency first.

        Raises:
            NotFoundError: unknown sale
            ValidationError: cancelled sale, fully paid sale, non-positive amount
        """
        with self.locks.hold([sale_key(sale_id)]):
            sale = self._load_sale(sale_id, for_update=True)

            if sale.is_cancelled:
                raise ValidationError('Cannot add payment to cancelled sale')
            if sale.remaining_amount <= 0:
                raise ValidationError('Sale is already fully paid')

            amount = self._amount(payment_data.get('amount'), 'Payment amount')
            tendered_currency = payment_data.get('currency') or sale.currency
            if tendered_currency != sale.currency:
                amount = self.converter.convert(amount, tendered_currency, sale.currency)
                exchange_rate = self.converter.rate(tendered_currency, sale.currency)
            else:
                exchange_rate = sale.exchange_rate
                if payment_data.get('exchange_rate') not in (None, ''):
                    exchange_rate = self._rate(payment_data['exchange_rate'])

            applied = min(amount, Decimal(sale.remaining_amount))
            if applied <= 0:
                raise ValidationError('Payment amount must be greater than zero')

            with Saga(self.repository, 'add_payment') as saga:
                now = self.clock.now()

                payment = Payment(
                    customer_id=sale.customer_id,
                    amount=applied,
                    currency=tendered_currency,
                    exchange_rate=exchange_rate,
                    payment_method=payment_data.get('payment_method') or 'cash',
                    notes=payment_data.get('notes'),
                    created_by=actor_id,
                    paid_at=now,
                )
                sale.payments.append(payment)
                self.repository.flush()
                saga.record('delete payment', lambda: self._detach_payment(sale, payment))

                before = _snapshot(sale, SALE_AMOUNT_FIELDS)
                sale.paid_amount = Decimal(sale.paid_amount) + applied
                sale.remaining_amount = Decimal(sale.remaining_amount) - applied
                sale.status = status_for_remaining(sale.remaining_amount)
                sale.updated_at = now
                self.repository.flush()
                saga.record('restore sale amounts', lambda: self._restore_flush(sale, before))

                if sale.customer_id is not None:
                    delta = self.customers.decrease_debt(sale.customer_id, applied)
                    saga.record('restore customer debt',
                                lambda: self.customers.revert(sale.customer_id, 'total_debt', delta))

                self._allocate(saga, sale, applied, now, installment_service.apply_payment)

        logger.info(
            f"[LEDGER] Payment of {applied} applied to sale {sale.invoice_number}: "
            f"remaining={sale.remaining_amount}, status={sale.status.value}, actor={actor_id}"
        )
        return sale

    def remove_payment(self, sale_id: int, payment_id: int, actor_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Reverse a payment: delete it, give the amount back to the sale balance,
        the customer debt and the installments it was allocated to.

        The sale always ends up pending afterwards.

        Raises:
            NotFoundError: unknown sale, or payment not belonging to it
            ValidationError: sale is cancelled
        """
        with self.locks.hold([sale_key(sale_id)]):
            sale = self._load_sale(sale_id, for_update=True)
            payment = self.repository.get(Payment, payment_id)
            if not payment or payment.sale_id != sale.id:
                raise NotFoundError('Payment')
            if sale.is_cancelled:
                raise ValidationError('Cannot remove a payment from a cancelled sale')

            amount = Decimal(payment.amount)
            removed = payment.to_dict()

            with Saga(self.repository, 'remove_payment') as saga:
                now = self.clock.now()

                before = _snapshot(sale, SALE_AMOUNT_FIELDS)
                sale.paid_amount = Decimal(sale.paid_amount) - amount
                sale.remaining_amount = Decimal(sale.remaining_amount) + amount
                sale.status = SaleStatus.PENDING
                sale.updated_at = now
                self.repository.flush()
                saga.record('restore sale amounts', lambda: self._restore_flush(sale, before))

                if sale.customer_id is not None:
                    delta = self.customers.increase_debt(sale.customer_id, amount)
                    saga.record('restore customer debt',
                                lambda: self.customers.revert(sale.customer_id, 'total_debt', delta))

                self._allocate(saga, sale, amount, now, installment_service.reverse_payment)

                self._detach_payment(sale, payment)

        logger.info(
            f"[LEDGER] Payment {payment_id} ({amount}) removed from sale {sale.invoice_number}, actor={actor_id}"
        )
        return removed

    # =====================================================
    # CANCEL / RESTORE / PURGE
    # =====================================================

    def cancel_sale(self, sale_id: int, actor_id: Optional[int] = None) -> Sale:
        """
        Cancel a live sale: return its stock, take its balance and total off
        the customer, cancel unpaid installments.

        Raises:
            NotFoundError: unknown sale
            ValidationError: sale already cancelled
        """
        with self._sale_locks(sale_id):
            sale = self._load_sale(sale_id, for_update=True)
            if sale.is_cancelled:
                raise ValidationError('Sale is already cancelled')

            with Saga(self.repository, 'cancel_sale') as saga:
                self._apply_cancel(saga, sale)

        logger.info(f"[LEDGER] Sale {sale.invoice_number} cancelled, actor={actor_id}")
        return sale

    def restore_sale(self, sale_id: int, actor_id: Optional[int] = None) -> Sale:
        """
        Exact inverse of cancel_sale.

        Raises:
            NotFoundError: unknown sale or product
            ValidationError: sale not cancelled, or stock no longer sufficient
        """
        with self._sale_locks(sale_id):
            sale = self._load_sale(sale_id, for_update=True)
            if not sale.is_cancelled:
                raise ValidationError('Only cancelled sales can be restored')

            with Saga(self.repository, 'restore_sale') as saga:
                now = self.clock.now()

                self.inventory.reserve(sale.items)
                applied = self.inventory.commit(sale.items, StockDirection.CONSUME)
                saga.record('return stock', lambda: self.inventory.revert(applied, StockDirection.CONSUME))

                if sale.customer_id is not None and sale.remaining_amount > 0:
                    self._charge_customer(saga, sale.customer_id, sale.remaining_amount, sale.total)

                changes = installment_service.restore_pending(sale.installments, now)
                saga.record('re-cancel installments', lambda: installment_service.reset_statuses(changes))

                before = _snapshot(sale, ('status', 'updated_at'))
                sale.status = status_for_remaining(sale.remaining_amount)
                sale.updated_at = now
                self.repository.flush()
                saga.record('restore sale status', lambda: self._restore_flush(sale, before))

        logger.info(f"[LEDGER] Sale {sale.invoice_number} restored as {sale.status.value}, actor={actor_id}")
        return sale

    def purge_sale(self, sale_id: int, actor_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Hard-delete a sale with its items, payments and installments.

        A live sale is cancelled first so stock and customer totals are
        returned before the rows disappear.
        """
        with self._sale_locks(sale_id):
            sale = self._load_sale(sale_id, for_update=True)
            snapshot = sale.to_dict(embed=True)

            with Saga(self.repository, 'purge_sale') as saga:
                if not sale.is_cancelled:
                    self._apply_cancel(saga, sale)
                self.repository.delete(sale)

        logger.info(f"[LEDGER] Sale {snapshot['invoice_number']} purged, actor={actor_id}")
        return snapshot

    # =====================================================
    # READS
    # =====================================================

    def get_sale(self, sale_id: int) -> Dict[str, Any]:
        """Sale with its items, payments and installments embedded."""
        return self._load_sale(sale_id).to_dict(embed=True)

    def list_sales(self, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Paginated sales, newest first.

        filters: page, limit, status, start_date, end_date, customer_id, currency
        """
        filters = filters or {}
        try:
            page = int(_or_default(filters.get('page'), 1))
            limit = int(_or_default(filters.get('limit'), 10))
        except (TypeError, ValueError):
            raise ValidationError('page and limit must be whole numbers')
        if page < 1 or limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f'page must be >= 1 and limit between 1 and {MAX_PAGE_SIZE}')

        status = filters.get('status')
        if status and status not in {s.value for s in SaleStatus}:
            raise ValidationError(f'Unknown sale status: {status}')

        start, end = day_bounds(
            parse_day(filters.get('start_date'), 'start_date'),
            parse_day(filters.get('end_date'), 'end_date')
        )

        sales, total = self.repository.query_sales(
            status=status,
            start=start,
            end=end,
            customer_id=filters.get('customer_id'),
            currency=filters.get('currency'),
            offset=(page - 1) * limit,
            limit=limit
        )

        return {
            'data': [sale.to_dict() for sale in sales],
            'meta': {
                'total': total,
                'page': page,
                'limit': limit,
                'total_pages': (total + limit - 1) // limit,
            },
        }

    def get_sales_report(self, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Currency-bucketed sales summary.

        filters: start_date, end_date, currency, target_currency
        """
        filters = filters or {}
        return self.reports.report(
            start_date=filters.get('start_date'),
            end_date=filters.get('end_date'),
            currency=filters.get('currency'),
            target_currency=filters.get('target_currency'),
        )

    def refresh_overdue_installments(self, today=None) -> int:
        """Flag pending installments past due as overdue. Returns how many changed."""
        now = self.clock.now()
        today = parse_day(today, 'today') or now.date()
        return installment_service.refresh_overdue(self.repository, today, now)

    # =====================================================
    # PRIVATE HELPERS
    # =====================================================

    def _load_sale(self, sale_id: int, for_update: bool = False) -> Sale:
        sale = self.repository.get(Sale, sale_id, for_update=for_update)
        if not sale:
            raise NotFoundError('Sale')
        return sale

    def _sale_locks(self, sale_id: int):
        """Locks for the sale and every product on it."""
        sale = self._load_sale(sale_id)
        keys = [sale_key(sale.id)] + [product_key(item.product_id) for item in sale.items
                                      if item.product_id is not None]
        return self.locks.hold(keys)

    def _apply_cancel(self, saga: Saga, sale: Sale) -> None:
        now = self.clock.now()

        applied = self.inventory.commit(sale.items, StockDirection.RESTORE)
        saga.record('take stock back', lambda: self.inventory.revert(applied, StockDirection.RESTORE))

        if sale.customer_id is not None and sale.remaining_amount > 0:
            customer_id = sale.customer_id
            debt = self.customers.decrease_debt(customer_id, sale.remaining_amount)
            saga.record('restore customer debt', lambda: self.customers.revert(customer_id, 'total_debt', debt))
            purchases = self.customers.decrease_purchases(customer_id, sale.total)
            saga.record('restore customer purchases',
                        lambda: self.customers.revert(customer_id, 'total_purchases', purchases))

        changes = installment_service.cancel_pending(sale.installments, now)
        saga.record('reopen installments', lambda: installment_service.reset_statuses(changes))

        before = _snapshot(sale, ('status', 'updated_at'))
        sale.status = SaleStatus.CANCELLED
        sale.updated_at = now
        self.repository.flush()
        saga.record('restore sale status', lambda: self._restore_flush(sale, before))

    def _charge_customer(self, saga: Saga, customer_id, remaining_amount, total) -> None:
        debt = self.customers.increase_debt(customer_id, remaining_amount)
        saga.record('restore customer debt', lambda: self.customers.revert(customer_id, 'total_debt', debt))
        purchases = self.customers.increase_purchases(customer_id, total)
        saga.record('restore customer purchases',
                    lambda: self.customers.revert(customer_id, 'total_purchases', purchases))

    def _allocate(self, saga: Saga, sale: Sale, amount: Decimal, now: datetime, allocator) -> None:
        """Run an installment allocator with a snapshot-based compensation."""
        installments = list(sale.installments)
        if not installments:
            return
        before = [(inst, _snapshot(inst, INSTALLMENT_FIELDS)) for inst in installments]
        allocator(installments, amount, now)
        self.repository.flush()
        saga.record('restore installments', lambda: self._restore_installments(before))

    def _restore_installments(self, before) -> None:
        for installment, snapshot in before:
            _restore(installment, snapshot)
        self.repository.flush()

    def _restore_flush(self, obj, snapshot: Dict[str, Any]) -> None:
        _restore(obj, snapshot)
        self.repository.flush()

    def _detach_payment(self, sale: Sale, payment: Payment) -> None:
        # delete-orphan cascade removes the row on flush
        if payment in sale.payments:
            sale.payments.remove(payment)
        self.repository.flush()

    def _payment_type(self, value) -> PaymentType:
        try:
            return PaymentType(value or PaymentType.CASH.value)
        except ValueError:
            allowed = ', '.join(p.value for p in PaymentType)
            raise ValidationError(f'Invalid payment type {value!r}. Must be one of: {allowed}')

    def _resolve_currency(self, sale_data: Dict[str, Any]):
        """
        Currency of the sale and its rate in units of the default currency.

        The rate comes from the caller, else from the currency table, else
        from the stored usd/iqd settings when the table does not know the
        currency.
        """
        settings = self.settings.get_currency_settings()
        currency = (sale_data.get('currency') or settings.default_currency).upper()

        if sale_data.get('exchange_rate') not in (None, ''):
            return currency, self._rate(sale_data['exchange_rate'])

        try:
            return currency, self.converter.rate(currency, settings.default_currency)
        except NotFoundError:
            if currency not in SUPPORTED_CURRENCIES:
                raise ValidationError(f'Unknown currency: {currency}')
            logger.debug(f"[LEDGER] No rate table entry for {currency}, using stored settings")
            return currency, settings.rate_for(currency)

    @staticmethod
    def _amount(value, field: str, allow_zero: bool = False) -> Decimal:
        try:
            amount = to_decimal(value, field)
        except ValueError:
            raise ValidationError(f'{field} must be a number')
        if amount < 0 and allow_zero:
            raise ValidationError(f'{field} cannot be negative')
        if amount <= 0 and not allow_zero:
            raise ValidationError(f'{field} must be greater than zero')
        return money(amount)

    @staticmethod
    def _rate(value) -> Decimal:
        try:
            exchange_rate = to_decimal(value, 'exchange_rate')
        except ValueError:
            raise ValidationError('exchange_rate must be a number')
        if exchange_rate <= 0:
            raise ValidationError('exchange_rate must be greater than zero')
        return round_rate(exchange_rate)

    def _generate_invoice_number(self, now: datetime) -> str:
        """INV-<epoch millis>-<3 random digits>, retried on collision."""
        for _ in range(INVOICE_ATTEMPTS):
            candidate = f"{self.invoice_prefix}-{int(now.timestamp() * 1000)}-{secrets.randbelow(1000):03d}"
            if not self.repository.find_sale_by_invoice(candidate):
                return candidate
        raise ConflictError('Could not generate a unique invoice number')
