"""
Applying Pending Alembic Migrations.

A migration source is a directory with a ``versions/`` sub-directory holding
ordered Alembic revision scripts, each defining ``upgrade()`` and
``downgrade()``. The source needs no ``env.py`` or ``alembic.ini`` of its own:
the environment shipped in ``migration_env/`` is used for every source, and it
runs the revisions on a connection taken from the pool being created, so the
migrations apply to exactly the database the pool points at.
"""

from __future__ import annotations

import os
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import Engine

from .logger import log_event

MigrationSource = str | os.PathLike[str]

ENV_DIR = Path(__file__).parent / "migration_env"


def _ini_value(path: Path) -> str:
    # Config values go through ConfigParser interpolation.
    return str(path).replace("%", "%%")


def _build_config(versions: Path) -> Config:
    config = Config()
    config.set_main_option("script_location", _ini_value(ENV_DIR))
    config.set_main_option("version_locations", _ini_value(versions))
    config.set_main_option("path_separator", "os")
    config.set_main_option("version_path_separator", "os")
    return config


def run_migrations(engine: Engine, source: MigrationSource) -> tuple[str, ...]:
    """
    Upgrades the database behind `engine` to the newest revision in `source`.

    All pending revisions run in one transaction; an error rolls them all back.

    Args:
        engine: The engine whose database is migrated.
        source: The migration directory (containing ``versions/``).

    Returns:
        tuple[str, ...]: The head revision(s) after the upgrade; empty for an
            empty source.

    Raises:
        FileNotFoundError: If `source` has no ``versions/`` directory.
        alembic.util.CommandError: If the revision graph is invalid.
        sqlalchemy.exc.SQLAlchemyError: If a migration statement fails.
    """
    location = Path(source)
    versions = location / "versions"
    if not versions.is_dir():
        raise FileNotFoundError(f"migration source {location} has no versions/ directory")

    config = _build_config(versions)
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        command.upgrade(config, "heads")

    heads = tuple(ScriptDirectory.from_config(config).get_heads())
    log_event("INFO", "migrations_applied", source=str(location), heads=list(heads))
    return heads
