"""Setting model (key/value)."""
from sqlalchemy import Column, Integer, String, Text
from pos_ledger.database import Base


class Setting(Base):
    """Untyped key/value setting row."""

    __tablename__ = 'setting'

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(100), nullable=False, unique=True)
    value = Column(Text, nullable=False)
    description = Column(Text, nullable=True)

    def __repr__(self):
        return f"<Setting(key={self.key}, value={self.value})>"
