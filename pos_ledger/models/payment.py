"""Payment model."""
from sqlalchemy import Column, BigInteger, Integer, String, Text, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from pos_ledger.database import Base


class Payment(Base):
    """
    Payment - one amount applied to a sale.

    The sum of a sale's payments always equals the sale's paid_amount.
    """

    __tablename__ = 'payment'

    id = Column(Integer, primary_key=True, autoincrement=True)
    sale_id = Column(Integer, ForeignKey('sale.id', ondelete='CASCADE'), nullable=False, index=True)
    customer_id = Column(BigInteger, ForeignKey('customer.id'), nullable=True)

    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    exchange_rate = Column(Numeric(18, 6), nullable=False, default=1)
    payment_method = Column(String(20), nullable=False, default='cash')  # cash, card, bank_transfer
    notes = Column(Text, nullable=True)
    created_by = Column(BigInteger, nullable=True)
    paid_at = Column(DateTime, nullable=False)

    # Relationships
    sale = relationship('Sale', back_populates='payments')

    def to_dict(self):
        return {
            'id': self.id,
            'sale_id': self.sale_id,
            'customer_id': self.customer_id,
            'amount': self.amount,
            'currency': self.currency,
            'exchange_rate': self.exchange_rate,
            'payment_method': self.payment_method,
            'notes': self.notes,
            'created_by': self.created_by,
            'paid_at': self.paid_at,
        }

    def __repr__(self):
        return f"<Payment(id={self.id}, sale_id={self.sale_id}, method={self.payment_method}, amount={self.amount})>"
