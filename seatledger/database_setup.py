import json
import logging

import click
from flask import current_app
from sqlalchemy import inspect as sql_inspect, text

from seatledger import db

logger = logging.getLogger(__name__)


def check_database_connection():
    """Check if database connection is working"""
    try:
        db.session.execute(text('SELECT 1'))
        return True
    except Exception:
        logger.exception('Database connection failed.')
        return False


def get_existing_tables():
    """Get list of existing tables in the database"""
    return sql_inspect(db.engine).get_table_names()


def initialize_database():
    """Create any ledger tables that do not exist yet."""
    logger.info('Initializing database setup...')

    with current_app.app_context():
        if not check_database_connection():
            logger.error('Database connection failed. Check DATABASE_URL.')
            return False

        existing_tables = set(get_existing_tables())
        missing = [t for t in db.metadata.tables if t not in existing_tables]

        if missing:
            logger.info('Creating %d missing tables: %s', len(missing), ', '.join(sorted(missing)))
            db.create_all()
        else:
            logger.info('All model tables exist in the database.')

    return True


# Flask CLI commands registration
def register_db_commands(app):
    """Register database and scheduler commands with Flask CLI"""

    @app.cli.command('init-db')
    def init_db_command():
        """Initializes the database with tables."""
        initialize_database()
        click.echo('Database initialized.')

    @app.cli.command('reset-db')
    @click.confirmation_option(prompt='This will delete all data. Are you sure?')
    def reset_db_command():
        """Drops all tables and re-initializes the database."""
        db.drop_all()
        initialize_database()
        click.echo('Database has been reset.')

    @app.cli.command('renew-subscriptions')
    @click.option('--date', 'run_date', type=click.DateTime(formats=['%Y-%m-%d']), default=None,
                  help='Treat this day as today (YYYY-MM-DD).')
    def renew_subscriptions_command(run_date):
        """Runs the autopay sweep once (schedule this daily, e.g. from cron)."""
        from seatledger.tasks import run_autopay_sweep

        report = run_autopay_sweep(today=run_date.date() if run_date else None)
        click.echo(json.dumps(report.to_dict(), indent=2))
