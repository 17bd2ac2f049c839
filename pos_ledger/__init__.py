"""Flask application factory for the POS sale ledger."""
import logging

from flask import Flask, current_app, jsonify

from pos_ledger.database import create_all, get_session, init_db
from pos_ledger.exceptions import LedgerError
from pos_ledger.repository import SqlAlchemyRepository
from pos_ledger.services.locking import LockManager

LOCKS_KEY = 'pos_ledger.locks'


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    # Initialize database
    engine = init_db(app)
    create_all(engine)

    # One lock registry per process, shared by every request and CLI command
    app.extensions[LOCKS_KEY] = LockManager(
        timeout=app.config.get('LEDGER_LOCK_TIMEOUT', 10.0),
        global_lock=app.config.get('LEDGER_GLOBAL_LOCK', False)
    )

    @app.errorhandler(LedgerError)
    def handle_ledger_error(error):
        """Handle ledger exceptions raised inside a request."""
        app.logger.warning(f"LedgerError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    # Register CLI commands
    from pos_ledger.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(
        f"POS ledger ready: db={engine.url.get_backend_name()}, "
        f"global_lock={app.config.get('LEDGER_GLOBAL_LOCK', False)}"
    )
    return app


def get_locks() -> LockManager:
    """Process-wide lock registry of the current application."""
    return current_app.extensions[LOCKS_KEY]


def get_sale_ledger(session=None, clock=None):
    """Build a SaleLedger bound to the current app's session and locks."""
    from pos_ledger.services.sale_ledger import SaleLedger

    repository = SqlAlchemyRepository(session or get_session())
    return SaleLedger(
        repository,
        clock=clock,
        locks=get_locks(),
        default_installment_count=current_app.config.get('DEFAULT_INSTALLMENT_COUNT', 3),
        invoice_prefix=current_app.config.get('INVOICE_PREFIX', 'INV'),
    )
