"""
Flask CLI commands. `sweep-expired` is the scheduler entry point.
"""

import click

from escrow_service.extensions import db
from escrow_service.services import build_services


def register_commands(app):

    @app.cli.command("init-db")
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo("Database initialized")

    @app.cli.command("sweep-expired")
    def sweep_expired():
        """Expire overdue escrows and refund their buyers."""
        services = build_services(db.session, default_period_days=app.config["ESCROW_PERIOD_DAYS"])
        count = services.sweeper.sweep_expired()
        click.echo(f"Processed {count} expired escrows")
