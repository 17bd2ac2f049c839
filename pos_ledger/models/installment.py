"""Installment model."""
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, Date, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from pos_ledger.database import Base
import enum


class InstallmentStatus(str, enum.Enum):
    """Installment status enum."""
    PENDING = 'pending'
    PAID = 'paid'
    OVERDUE = 'overdue'
    CANCELLED = 'cancelled'


# Statuses that still expect money
OPEN_STATUSES = (InstallmentStatus.PENDING, InstallmentStatus.OVERDUE)


class Installment(Base):
    """Installment - one scheduled partial payment of a sale's remaining balance."""

    __tablename__ = 'installment'

    id = Column(Integer, primary_key=True, autoincrement=True)
    sale_id = Column(Integer, ForeignKey('sale.id', ondelete='CASCADE'), nullable=False, index=True)
    customer_id = Column(BigInteger, ForeignKey('customer.id'), nullable=True)
    installment_number = Column(Integer, nullable=False)

    due_amount = Column(Numeric(12, 2), nullable=False)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    remaining_amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)

    due_date = Column(Date, nullable=False, index=True)
    paid_date = Column(Date, nullable=True)
    status = Column(Enum(InstallmentStatus, name='installment_status'), nullable=False,
                    default=InstallmentStatus.PENDING)
    updated_at = Column(DateTime, nullable=True)

    # Relationships
    sale = relationship('Sale', back_populates='installments')

    def to_dict(self):
        return {
            'id': self.id,
            'sale_id': self.sale_id,
            'customer_id': self.customer_id,
            'installment_number': self.installment_number,
            'due_amount': self.due_amount,
            'paid_amount': self.paid_amount,
            'remaining_amount': self.remaining_amount,
            'currency': self.currency,
            'due_date': self.due_date,
            'paid_date': self.paid_date,
            'status': self.status.value,
        }

    def __repr__(self):
        return (f"<Installment(id={self.id}, sale_id={self.sale_id}, "
                f"number={self.installment_number}, status={self.status.value})>")
