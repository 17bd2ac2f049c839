"""Customer model."""
from sqlalchemy import Column, BigInteger, Integer, String, Text, Numeric, Boolean
from sqlalchemy.orm import relationship
from pos_ledger.database import Base


class Customer(Base):
    """Customer with aggregate debt and lifetime purchases kept by the sale ledger."""

    __tablename__ = 'customer'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    total_debt = Column(Numeric(14, 2), nullable=False, default=0)
    total_purchases = Column(Numeric(14, 2), nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)

    # Relationships
    sales = relationship('Sale', back_populates='customer')

    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.name}', total_debt={self.total_debt})>"
