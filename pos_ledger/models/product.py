"""Product model."""
from sqlalchemy import Column, BigInteger, Integer, String, Boolean, Numeric
from pos_ledger.database import Base


class Product(Base):
    """Product model. Stock is an integer count that this ledger never drives below zero."""

    __tablename__ = 'product'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    sku = Column(String, nullable=True, unique=True)
    name = Column(String, nullable=False)
    cost_price = Column(Numeric(12, 2), nullable=False, default=0)
    selling_price = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default='USD')
    stock = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)

    @property
    def is_low_stock(self):
        return self.stock <= self.min_stock

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock})>"
