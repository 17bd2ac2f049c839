import pytest
from datetime import datetime
from decimal import Decimal

from pos_ledger import create_app
from pos_ledger.database import get_engine, get_session
from pos_ledger.models import CurrencyRate, Customer, Product
from pos_ledger.repository import SqlAlchemyRepository
from pos_ledger.services.locking import LockManager
from pos_ledger.services.sale_ledger import SaleLedger
from pos_ledger.utils.clock import FixedClock


@pytest.fixture(scope='function')
def app():
    """Create application instance with a fresh in-memory database."""
    app = create_app('config.TestConfig')
    with app.app_context():
        yield app
        get_session().remove()
        get_engine().dispose()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session for the current thread."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def repository(session):
    return SqlAlchemyRepository(session)


@pytest.fixture(scope='function')
def clock():
    """Clock frozen at 2024-01-15 10:30."""
    return FixedClock(datetime(2024, 1, 15, 10, 30))


@pytest.fixture(scope='function')
def locks():
    return LockManager(timeout=2.0)


@pytest.fixture(scope='function')
def ledger(repository, clock, locks):
    """Sale ledger over the test database with a frozen clock."""
    return SaleLedger(repository, clock=clock, locks=locks)


@pytest.fixture(scope='function')
def currencies(session):
    """USD as base (1), IQD at 1500 per USD, EUR present but inactive."""
    rows = [
        CurrencyRate(currency_code='USD', currency_name='US Dollar', symbol='$',
                     exchange_rate=Decimal('1'), is_base=True, is_active=True),
        CurrencyRate(currency_code='IQD', currency_name='Iraqi Dinar', symbol='IQD',
                     exchange_rate=Decimal('1500'), is_base=False, is_active=True),
        CurrencyRate(currency_code='EUR', currency_name='Euro', symbol='EUR',
                     exchange_rate=Decimal('0.92'), is_base=False, is_active=False),
    ]
    session.add_all(rows)
    session.commit()
    return {row.currency_code: row for row in rows}


@pytest.fixture(scope='function')
def product(session):
    """Product with 10 units in stock, cost 60."""
    product = Product(
        sku='SKU-001',
        name='Test Product',
        cost_price=Decimal('60.00'),
        selling_price=Decimal('100.00'),
        stock=10,
        min_stock=2,
        active=True
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def second_product(session):
    """Second product with 20 units in stock, cost 20."""
    product = Product(
        sku='SKU-002',
        name='Second Product',
        cost_price=Decimal('20.00'),
        selling_price=Decimal('50.00'),
        stock=20,
        min_stock=0,
        active=True
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def customer(session):
    """Customer with no debt and no purchases."""
    customer = Customer(
        name='Test Customer',
        phone='+964 750 000 0000',
        total_debt=Decimal('0'),
        total_purchases=Decimal('0'),
        active=True
    )
    session.add(customer)
    session.commit()
    return customer
