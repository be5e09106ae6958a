"""
splitmint/migrations/env.py — Alembic environment.

The database URL comes from the same config classes the app uses, picked by
FLASK_ENV (development when unset). `FLASK_ENV=testing alembic upgrade head`
migrates TEST_DATABASE_URL instead of DATABASE_URL.

Run from the repository root so alembic.ini's prepend_sys_path makes the
`splitmint` package importable.
"""

from __future__ import annotations

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

# splitmint.config loads the .env files on import.
from splitmint.config import ActiveConfig
from splitmint.app.extensions import db
from splitmint.app.models import expense, group, participant, split  # noqa: F401

target_metadata = db.metadata

db_url = ActiveConfig.SQLALCHEMY_DATABASE_URI
if not db_url:
    raise RuntimeError("No database URL configured; set DATABASE_URL.")

config = context.config
config.set_main_option("sqlalchemy.url", db_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def run_migrations_offline() -> None:
    """Emits SQL to stdout instead of running it (alembic upgrade --sql)."""
    context.configure(
        url=db_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
