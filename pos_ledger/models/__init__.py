"""Models package - exports all SQLAlchemy models."""
from pos_ledger.models.customer import Customer
from pos_ledger.models.product import Product
from pos_ledger.models.currency_rate import CurrencyRate
from pos_ledger.models.setting import Setting
from pos_ledger.models.sale import Sale, SaleStatus, PaymentType, status_for_remaining
from pos_ledger.models.sale_item import SaleItem
from pos_ledger.models.payment import Payment
from pos_ledger.models.installment import Installment, InstallmentStatus, OPEN_STATUSES

__all__ = [
    'Customer', 'Product', 'CurrencyRate', 'Setting',
    'Sale', 'SaleStatus', 'PaymentType', 'status_for_remaining',
    'SaleItem', 'Payment',
    'Installment', 'InstallmentStatus', 'OPEN_STATUSES',
]
