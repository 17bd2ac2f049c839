"""
Flask CLI commands for ledger maintenance.

Commands:
- flask init-db: Create all tables
- flask seed-currencies: Insert the USD/IQD rate rows if missing
- flask currency-settings: Store default currency and USD/IQD rates
- flask mark-overdue: Flag pending installments past their due date
- flask sales-report: Print the sales summary for a date range
"""
from datetime import datetime
from decimal import Decimal

import click

from pos_ledger.database import create_all, get_engine, get_session
from pos_ledger.exceptions import LedgerError
from pos_ledger.models import CurrencyRate
from pos_ledger.repository import SqlAlchemyRepository
from pos_ledger.services.settings_service import SettingsProvider

DEFAULT_CURRENCIES = (
    # code, name, symbol, rate against base, is_base
    ('USD', 'US Dollar', '$', Decimal('1'), True),
    ('IQD', 'Iraqi Dinar', 'IQD', Decimal('1500'), False),
)


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create every ledger table."""
        create_all(get_engine())
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('seed-currencies')
    def seed_currencies():
        """Insert the default currency rows that are not there yet."""
        session = get_session()
        repository = SqlAlchemyRepository(session)

        has_base = repository.base_currency() is not None
        created = 0
        try:
            for code, name, symbol, exchange_rate, is_base in DEFAULT_CURRENCIES:
                if repository.get_currency(code):
                    continue
                session.add(CurrencyRate(
                    currency_code=code,
                    currency_name=name,
                    symbol=symbol,
                    exchange_rate=exchange_rate,
                    is_base=is_base and not has_base,
                    is_active=True,
                    updated_at=datetime.utcnow(),
                ))
                created += 1
            session.commit()
        except Exception as e:
            session.rollback()
            click.echo(click.style(f'Error seeding currencies: {e}', fg='red'))
            raise click.Abort()

        click.echo(f'{created} currency row(s) created.')

    @app.cli.command('currency-settings')
    @click.option('--default', 'default_currency', required=True, help='Default sale currency (USD or IQD)')
    @click.option('--usd-rate', required=True, help='Value of 1 USD in the default currency')
    @click.option('--iqd-rate', required=True, help='Value of 1 IQD in the default currency')
    def currency_settings(default_currency, usd_rate, iqd_rate):
        """Store the currency settings used when a sale omits currency or rate."""
        provider = SettingsProvider(SqlAlchemyRepository(get_session()))
        try:
            saved = provider.save_currency_settings(default_currency, usd_rate, iqd_rate)
        except LedgerError as e:
            click.echo(click.style(f'Error: {e.message}', fg='red'))
            raise click.Abort()

        click.echo(
            f'Default currency {saved.default_currency}, '
            f'USD rate {saved.usd_rate}, IQD rate {saved.iqd_rate}'
        )

    @app.cli.command('mark-overdue')
    def mark_overdue():
        """Flag pending installments whose due date has passed."""
        from pos_ledger import get_sale_ledger

        count = get_sale_ledger().refresh_overdue_installments()
        click.echo(f'{count} installment(s) marked overdue.')

    @app.cli.command('sales-report')
    @click.option('--start', 'start_date', default=None, help='First day (YYYY-MM-DD)')
    @click.option('--end', 'end_date', default=None, help='Last day (YYYY-MM-DD)')
    @click.option('--currency', default=None, help='Only sales in this currency')
    @click.option('--to', 'target_currency', default=None, help='Also convert totals into this currency')
    def sales_report(start_date, end_date, currency, target_currency):
        """Print sales, paid, remaining and profit per currency."""
        from pos_ledger import get_sale_ledger

        ledger = get_sale_ledger()
        try:
            report = ledger.get_sales_report({
                'start_date': start_date,
                'end_date': end_date,
                'currency': currency,
                'target_currency': target_currency,
            })
        except LedgerError as e:
            click.echo(click.style(f'Error: {e.message}', fg='red'))
            raise click.Abort()

        converter = ledger.converter
        click.echo(f"Sales: {report['count']} (overdue installments: {report['overdue_installments']})")
        for code, bucket in sorted(report['by_currency'].items()):
            click.echo(
                f"  [{code}] sales={converter.format_amount(bucket['total_sales'], code)} "
                f"paid={converter.format_amount(bucket['total_paid'], code)} "
                f"remaining={converter.format_amount(bucket['total_remaining'], code)} "
                f"profit={converter.format_amount(bucket['total_profit'], code)} "
                f"count={bucket['count']}"
            )
        if target_currency:
            totals = report['converted_totals']
            click.echo(
                f"  [total in {target_currency}] "
                f"sales={converter.format_amount(totals['total_sales'], target_currency)} "
                f"profit={converter.format_amount(totals['total_profit'], target_currency)}"
            )
