"""Configuration module for the POS ledger application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    DEBUG = os.getenv('FLASK_DEBUG', '0') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Database
    # Priority: DATABASE_URL > DB_* > local SQLite file
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        DB_HOST = os.getenv('DB_HOST')
        if DB_HOST:
            DB_PORT = os.getenv('DB_PORT', '5432')
            DB_NAME = os.getenv('DB_NAME', 'pos')
            DB_USER = os.getenv('DB_USER', 'pos')
            DB_PASSWORD = os.getenv('DB_PASSWORD', 'pos')
            DATABASE_URL = (
                f"postgresql://{DB_USER}:{DB_PASSWORD}"
                f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
            )
        else:
            DATABASE_URL = 'sqlite:///pos_ledger.db'

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', '0') == '1'

    # Ledger locking
    # Seconds a ledger operation waits for its sale/product locks before failing
    LEDGER_LOCK_TIMEOUT = float(os.getenv('LEDGER_LOCK_TIMEOUT', '10'))
    # Serialize every mutation behind one lock instead of per-row locks
    LEDGER_GLOBAL_LOCK = os.getenv('LEDGER_GLOBAL_LOCK', 'false').lower() == 'true'

    # Sales defaults
    DEFAULT_INSTALLMENT_COUNT = int(os.getenv('DEFAULT_INSTALLMENT_COUNT', '3'))
    INVOICE_PREFIX = os.getenv('INVOICE_PREFIX', 'INV')


class TestConfig(Config):
    """Configuration used by the test suite (in-memory SQLite)."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ECHO = False
    LEDGER_LOCK_TIMEOUT = 2.0
    LOG_LEVEL = 'DEBUG'
