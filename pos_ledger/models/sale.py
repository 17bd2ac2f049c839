"""Sale model."""
from sqlalchemy import Column, BigInteger, Integer, String, Text, Numeric, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.ext.hybrid import hybrid_property
from pos_ledger.database import Base
import enum


class SaleStatus(str, enum.Enum):
    """Sale status enum."""
    PENDING = 'pending'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class PaymentType(str, enum.Enum):
    """How the sale is settled."""
    CASH = 'cash'
    INSTALLMENT = 'installment'
    MIXED = 'mixed'

    @property
    def bears_installments(self):
        return self in (PaymentType.INSTALLMENT, PaymentType.MIXED)


def status_for_remaining(remaining_amount) -> SaleStatus:
    """A live sale is completed once nothing is owed on it."""
    return SaleStatus.COMPLETED if remaining_amount <= 0 else SaleStatus.PENDING


class Sale(Base):
    """Sale (point-of-sale transaction)."""

    __tablename__ = 'sale'

    id = Column(Integer, primary_key=True, autoincrement=True)
    invoice_number = Column(String(64), unique=True, nullable=False, index=True)
    customer_id = Column(BigInteger, ForeignKey('customer.id'), nullable=True)

    subtotal = Column(Numeric(12, 2), nullable=False)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    tax = Column(Numeric(12, 2), nullable=False, default=0)
    interest_rate = Column(Numeric(7, 2), nullable=False, default=0)
    interest_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False)

    currency = Column(String(3), nullable=False)
    exchange_rate = Column(Numeric(18, 6), nullable=False, default=1)

    payment_type = Column(Enum(PaymentType, name='payment_type'), nullable=False)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    remaining_amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(Enum(SaleStatus, name='sale_status'), nullable=False, default=SaleStatus.PENDING)

    notes = Column(Text, nullable=True)
    created_by = Column(BigInteger, nullable=True)
    created_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, nullable=False)

    # Relationships
    customer = relationship('Customer', back_populates='sales')
    items = relationship('SaleItem', back_populates='sale', cascade='all, delete-orphan',
                         order_by='SaleItem.id')
    payments = relationship('Payment', back_populates='sale', cascade='all, delete-orphan',
                            order_by='Payment.id')
    installments = relationship('Installment', back_populates='sale', cascade='all, delete-orphan',
                                order_by='Installment.installment_number')

    @hybrid_property
    def is_cancelled(self):
        return self.status == SaleStatus.CANCELLED

    def to_dict(self, embed=False):
        data = {
            'id': self.id,
            'invoice_number': self.invoice_number,
            'customer_id': self.customer_id,
            'customer_name': self.customer.name if self.customer else None,
            'subtotal': self.subtotal,
            'discount': self.discount,
            'tax': self.tax,
            'interest_rate': self.interest_rate,
            'interest_amount': self.interest_amount,
            'total': self.total,
            'currency': self.currency,
            'exchange_rate': self.exchange_rate,
            'payment_type': self.payment_type.value,
            'paid_amount': self.paid_amount,
            'remaining_amount': self.remaining_amount,
            'status': self.status.value,
            'notes': self.notes,
            'created_by': self.created_by,
            'created_at': self.created_at,
        }
        if embed:
            data['items'] = [item.to_dict() for item in self.items]
            data['payments'] = [payment.to_dict() for payment in self.payments]
            data['installments'] = [inst.to_dict() for inst in self.installments]
        return data

    def __repr__(self):
        return f"<Sale(id={self.id}, invoice={self.invoice_number}, total={self.total}, status={self.status.value})>"
