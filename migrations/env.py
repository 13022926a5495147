# migrations/env.py
"""
Alembic environment for the welfare schema.

`flask db upgrade` runs inside the app and uses its engine. Plain `alembic`
(cron hosts, CI) has no app, so it reads DATABASE_URL and the model metadata.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.config import fileConfig

from alembic import context
from flask import current_app, has_app_context
from sqlalchemy import create_engine

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from welfare.extensions import db  # noqa: E402
from welfare.settings import _normalize_db_url  # noqa: E402
import welfare.models  # noqa: E402,F401  registers the tables

config = context.config
if config.config_file_name:
    fileConfig(config.config_file_name, disable_existing_loggers=False)
logger = logging.getLogger("alembic.env")

IN_APP = has_app_context()


def _database_url() -> str:
    if IN_APP:
        return current_app.extensions["migrate"].db.engine.url.render_as_string(hide_password=False)
    url = _normalize_db_url(os.getenv("DATABASE_URL"))
    if not url:
        raise RuntimeError("DATABASE_URL is not set; run through `flask db` or export it.")
    return url


def _configure_args() -> dict:
    args = dict(current_app.extensions["migrate"].configure_args) if IN_APP else {}
    args.setdefault("compare_type", True)
    args.setdefault("process_revision_directives", _skip_empty_revisions)
    return args


def _skip_empty_revisions(ctx, revision, directives):
    if getattr(config.cmd_opts, "autogenerate", False) and directives[0].upgrade_ops.is_empty():
        directives[:] = []
        logger.info("No changes in schema detected.")


def run_migrations_offline():
    context.configure(
        url=_database_url(),
        target_metadata=db.metadata,
        literal_binds=True,
        **_configure_args(),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    engine = current_app.extensions["migrate"].db.engine if IN_APP else create_engine(_database_url())
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=db.metadata, **_configure_args())
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
