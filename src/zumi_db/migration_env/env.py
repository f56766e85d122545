"""Alembic environment used by `zumi_db.migrations.run_migrations`."""

from __future__ import annotations

from alembic import context

# Alembic Config object; `run_migrations` passes the open connection in its attributes.
config = context.config


def run_migrations_online() -> None:
    """Runs the migrations on the connection handed over by the caller."""
    connection = config.attributes["connection"]
    context.configure(connection=connection, target_metadata=None)

    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    raise RuntimeError("offline (--sql) migrations are not supported")

run_migrations_online()
