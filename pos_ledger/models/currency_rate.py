"""Currency rate model."""
from sqlalchemy import Column, Integer, String, Boolean, Numeric, DateTime
from pos_ledger.database import Base


class CurrencyRate(Base):
    """
    Currency and its rate relative to the shared base currency.

    At most one row has is_base set; its exchange_rate is 1.
    """

    __tablename__ = 'currency_rate'

    id = Column(Integer, primary_key=True, autoincrement=True)
    currency_code = Column(String(3), nullable=False, unique=True)
    currency_name = Column(String(64), nullable=False)
    symbol = Column(String(8), nullable=False)
    exchange_rate = Column(Numeric(18, 6), nullable=False)
    is_base = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, nullable=True)

    def to_dict(self):
        return {
            'code': self.currency_code,
            'name': self.currency_name,
            'symbol': self.symbol,
            'exchange_rate': self.exchange_rate,
            'is_base': self.is_base,
        }

    def __repr__(self):
        return f"<CurrencyRate(code={self.currency_code}, rate={self.exchange_rate}, base={self.is_base})>"
