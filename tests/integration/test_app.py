"""
Integration tests for the Flask application wiring and CLI commands.
"""
from decimal import Decimal

from pos_ledger import get_locks, get_sale_ledger
from pos_ledger.exceptions import NotFoundError
from pos_ledger.models import CurrencyRate
from pos_ledger.services.sale_ledger import SaleLedger


class TestAppFactory:

    def test_sale_ledger_uses_app_config(self, app):
        app.config['INVOICE_PREFIX'] = 'POS'
        app.config['DEFAULT_INSTALLMENT_COUNT'] = 6

        ledger = get_sale_ledger()

        assert isinstance(ledger, SaleLedger)
        assert ledger.locks is get_locks()
        assert ledger.invoice_prefix == 'POS'
        assert ledger.default_installment_count == 6

    def test_ledger_errors_become_json(self, app, client):
        @app.route('/sales/<int:sale_id>')
        def show_sale(sale_id):
            raise NotFoundError('Sale')

        response = client.get('/sales/5')

        assert response.status_code == 404
        assert response.get_json() == {'message': 'Sale not found', 'kind': 'not_found', 'status': 'error'}


class TestCliCommands:

    def test_init_db(self, app):
        result = app.test_cli_runner().invoke(args=['init-db'])

        assert result.exit_code == 0
        assert 'Database tables created' in result.output

    def test_seed_currencies_is_idempotent(self, app, session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=['seed-currencies'])
        second = runner.invoke(args=['seed-currencies'])

        assert '2 currency row(s) created' in first.output
        assert '0 currency row(s) created' in second.output
        base = session.query(CurrencyRate).filter_by(is_base=True).one()
        assert base.currency_code == 'USD'
        assert session.query(CurrencyRate).filter_by(currency_code='IQD').one().exchange_rate == Decimal('1500')

    def test_currency_settings(self, app, repository):
        runner = app.test_cli_runner()

        result = runner.invoke(args=['currency-settings', '--default', 'USD', '--usd-rate', '1', '--iqd-rate', '0.0007'])

        assert result.exit_code == 0
        assert repository.get_setting('currency.default') == 'USD'

        rejected = runner.invoke(args=['currency-settings', '--default', 'EUR', '--usd-rate', '1', '--iqd-rate', '1'])
        assert rejected.exit_code != 0
        assert 'Invalid currency' in rejected.output

    def test_mark_overdue(self, app, ledger, product):
        # Ledger clock is frozen in January 2024, the command uses the wall clock
        ledger.create_sale({
            'items': [{'product_id': product.id, 'quantity': 3, 'unit_price': 100}],
            'payment_type': 'installment',
        })

        result = app.test_cli_runner().invoke(args=['mark-overdue'])

        assert result.exit_code == 0
        assert '3 installment(s) marked overdue' in result.output

    def test_sales_report(self, app, ledger, product, currencies):
        ledger.create_sale({
            'items': [{'product_id': product.id, 'quantity': 2, 'unit_price': 750}],
            'paid_amount': 1500,
        })

        result = app.test_cli_runner().invoke(args=[
            'sales-report', '--start', '2024-01-01', '--end', '2024-01-31', '--to', 'USD'
        ])

        assert result.exit_code == 0
        assert 'Sales: 1' in result.output
        assert '[IQD] sales=IQD 1,500.00' in result.output
        assert '[total in USD] sales=$ 1.00' in result.output

    def test_sales_report_bad_range(self, app):
        result = app.test_cli_runner().invoke(args=['sales-report', '--start', '2024-02-01', '--end', '2024-01-01'])

        assert result.exit_code != 0
        assert 'start_date must not be after end_date' in result.output
