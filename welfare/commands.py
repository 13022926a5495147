# welfare/commands.py
from __future__ import annotations

from datetime import date

import click
from flask import Flask

from .services.rbac import seed_system_roles
from .services.recurring_payments import compute_overdue_statuses
from .services.scope import normalize_all_admin_scopes


def register_commands(app: Flask) -> None:
    @app.cli.command("sweep-overdue")
    @click.option(
        "--today",
        type=click.DateTime(formats=["%Y-%m-%d"]),
        default=None,
        help="Evaluate as of this date (YYYY-MM-DD). Defaults to today (UTC).",
    )
    def sweep_overdue(today):
        """Promote installments to due/overdue. Safe to run from cron."""
        as_of: date | None = today.date() if today else None
        result = compute_overdue_statuses(today=as_of)
        click.echo(f"Updated {result['updated_count']} payment(s).")

    @app.cli.command("normalize-scopes")
    def normalize_scopes():
        """Copy legacy single-region admin scopes into the region list."""
        changed = normalize_all_admin_scopes()
        click.echo(f"Normalised {changed} user(s).")

    @app.cli.command("seed-rbac")
    def seed_rbac():
        """Create the permission catalogue and system roles."""
        created = seed_system_roles()
        click.echo(f"Created {created['permissions']} permission(s), {created['roles']} role(s).")
