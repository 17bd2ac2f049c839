"""
Repository over a SQLAlchemy session.

The ledger services only talk to this interface; every write is flushed
immediately so later reads in the same operation observe it.
"""
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from pos_ledger.models import (
    CurrencyRate, Installment, InstallmentStatus, OPEN_STATUSES,
    Product, Sale, SaleItem, SaleStatus, Setting
)


class Repository(Protocol):
    """Persistence contract consumed by the sale ledger."""

    def get(self, model, obj_id, for_update: bool = False): ...
    def get_many(self, model, ids: Iterable, for_update: bool = False) -> Dict: ...
    def add(self, obj): ...
    def delete(self, obj) -> None: ...
    def flush(self) -> None: ...
    def find_sale_by_invoice(self, invoice_number: str) -> Optional[Sale]: ...
    def query_sales(self, **filters) -> Tuple[List[Sale], int]: ...
    def sales_between(self, start, end, currency: Optional[str] = None) -> List[Sale]: ...
    def items_with_cost(self, sale_ids: List[int]): ...
    def count_overdue_installments(self, today: date) -> int: ...
    def due_installments(self, today: date) -> List[Installment]: ...
    def get_currency(self, code: str) -> Optional[CurrencyRate]: ...
    def active_currencies(self) -> List[CurrencyRate]: ...
    def base_currency(self) -> Optional[CurrencyRate]: ...
    def get_setting(self, key: str) -> Optional[str]: ...
    def set_setting(self, key: str, value: str) -> None: ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...


class SqlAlchemyRepository:
    """Repository backed by a SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    # =====================================================
    # GENERIC
    # =====================================================

    def get(self, model, obj_id, for_update: bool = False):
        query = self.session.query(model).filter(model.id == obj_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    def get_many(self, model, ids: Iterable, for_update: bool = False) -> Dict:
        ids = list(ids)
        if not ids:
            return {}
        query = self.session.query(model).filter(model.id.in_(ids)).order_by(model.id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return {obj.id: obj for obj in query.all()}

    def add(self, obj):
        self.session.add(obj)
        self.session.flush()
        return obj

    def delete(self, obj) -> None:
        self.session.delete(obj)
        self.session.flush()

    def flush(self) -> None:
        self.session.flush()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    # =====================================================
    # SALES
    # =====================================================

    def find_sale_by_invoice(self, invoice_number: str) -> Optional[Sale]:
        return self.session.query(Sale).filter_by(invoice_number=invoice_number).first()

    def query_sales(
        self,
        status: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        customer_id: Optional[int] = None,
        currency: Optional[str] = None,
        offset: int = 0,
        limit: Optional[int] = None
    ) -> Tuple[List[Sale], int]:
        """Filtered, newest-first page of sales plus the unpaged count."""
        query = self.session.query(Sale)

        if status:
            query = query.filter(Sale.status == SaleStatus(status))
        if start:
            query = query.filter(Sale.created_at >= start)
        if end:
            query = query.filter(Sale.created_at <= end)
        if customer_id:
            query = query.filter(Sale.customer_id == customer_id)
        if currency:
            query = query.filter(Sale.currency == currency)

        total = query.count()
        query = query.order_by(Sale.created_at.desc(), Sale.id.desc()).offset(offset)
        if limit:
            query = query.limit(limit)
        return query.all(), total

    def sales_between(
        self,
        start: Optional[datetime],
        end: Optional[datetime],
        currency: Optional[str] = None
    ) -> List[Sale]:
        """Live (pending or completed) sales created inside [start, end]; None leaves a side open."""
        query = self.session.query(Sale).filter(
            Sale.status.in_([SaleStatus.COMPLETED, SaleStatus.PENDING])
        )
        if start:
            query = query.filter(Sale.created_at >= start)
        if end:
            query = query.filter(Sale.created_at <= end)
        if currency:
            query = query.filter(Sale.currency == currency)
        return query.order_by(Sale.id).all()

    def items_with_cost(self, sale_ids: List[int]):
        """Sale items joined with their product's cost and the sale currency."""
        if not sale_ids:
            return []
        return (
            self.session.query(
                SaleItem.sale_id,
                SaleItem.quantity,
                SaleItem.unit_price,
                Product.cost_price.label('cost_price'),
                Sale.currency.label('currency')
            )
            .outerjoin(Product, SaleItem.product_id == Product.id)
            .join(Sale, SaleItem.sale_id == Sale.id)
            .filter(SaleItem.sale_id.in_(sale_ids))
            .all()
        )

    # =====================================================
    # INSTALLMENTS
    # =====================================================

    def count_overdue_installments(self, today: date) -> int:
        return self.session.query(func.count(Installment.id)).filter(
            Installment.status.in_(OPEN_STATUSES),
            Installment.due_date < today
        ).scalar() or 0

    def due_installments(self, today: date) -> List[Installment]:
        """Pending installments whose due date has passed."""
        return (
            self.session.query(Installment)
            .filter(
                Installment.status == InstallmentStatus.PENDING,
                Installment.due_date < today
            )
            .order_by(Installment.due_date, Installment.id)
            .all()
        )

    # =====================================================
    # CURRENCIES & SETTINGS
    # =====================================================

    def get_currency(self, code: str) -> Optional[CurrencyRate]:
        return self.session.query(CurrencyRate).filter_by(currency_code=code).first()

    def active_currencies(self) -> List[CurrencyRate]:
        return (
            self.session.query(CurrencyRate)
            .filter(CurrencyRate.is_active.is_(True))
            .order_by(CurrencyRate.currency_code)
            .all()
        )

    def base_currency(self) -> Optional[CurrencyRate]:
        return self.session.query(CurrencyRate).filter(CurrencyRate.is_base.is_(True)).first()

    def get_setting(self, key: str) -> Optional[str]:
        row = self.session.query(Setting).filter_by(key=key).first()
        return row.value if row else None

    def set_setting(self, key: str, value: str) -> None:
        row = self.session.query(Setting).filter_by(key=key).first()
        if row:
            row.value = value
        else:
            self.session.add(Setting(key=key, value=value))
        self.session.flush()
