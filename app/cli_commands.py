"""
Flask CLI commands for storefront maintenance.

Commands:
- flask init-db: Create all tables
- flask backfill-order-discounts: Fill discount data of older orders from Stripe
"""

import time

import click
from sqlalchemy.exc import SQLAlchemyError

from app.database import create_all, get_session
from app.exceptions import PaymentProviderError


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create database tables."""
        create_all()
        click.echo(click.style('✅ Database tables created.', fg='green'))

    @app.cli.command('backfill-order-discounts')
    @click.option('--dry-run', is_flag=True, help="Report what would change without writing")
    @click.option('--delay', default=0.1, show_default=True, help='Seconds to wait between Stripe calls')
    def backfill_order_discounts(dry_run, delay):
        """Fill discount_cents / promotion code of orders created before discounts were recorded."""
        from app.services.order_service import backfill_order_discount, orders_missing_discount_data
        from app.services.stripe_client import get_stripe_client

        stripe_client = get_stripe_client()
        if stripe_client is None:
            click.echo(click.style('❌ STRIPE_SECRET_KEY is required.', fg='red'))
            raise SystemExit(1)

        session = get_session()
        orders = orders_missing_discount_data(session)
        click.echo(f'Checking {len(orders)} order(s){" (dry run)" if dry_run else ""}...')

        updated = skipped = errors = 0
        for order in orders:
            try:
                if backfill_order_discount(session, order, stripe_client, dry_run=dry_run):
                    updated += 1
                    click.echo(f'   Order {order.id}: discount found')
                else:
                    skipped += 1
            except PaymentProviderError as e:
                errors += 1
                click.echo(click.style(f"   Order {order.id}: {e.message}", fg="yellow"))
            except ValueError as e:
                errors += 1
                click.echo(click.style(f"   Order {order.id}: {e}", fg="yellow"))
            time.sleep(delay)

        if not dry_run:
            try:
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                click.echo(click.style(f'❌ Failed to save changes: {e}', fg='red'))
                raise SystemExit(1)

        click.echo(click.style(
            f'\n✅ Backfill complete: {updated} updated, {skipped} without discount, {errors} error(s)',
            fg='green', bold=True
        ))
        if dry_run:
            click.echo('💡 DRY RUN - no changes were written.')
