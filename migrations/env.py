"""
Alembic migrations environment for groupgate.

Supports:
- PostgreSQL (production)
- SQLite (development)
"""

from __future__ import annotations

import os
import sys
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

# Ensure groupgate package is importable
repo_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, os.path.join(repo_root, "src"))

# Keep groupgate.database from building its default engine
os.environ["ALEMBIC_RUNNING"] = "true"

from groupgate.database import import_all_models  # noqa: E402
from groupgate.models.base import Base  # noqa: E402

import_all_models()

# Alembic Config object
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_database_url() -> str:
    """Get database URL from environment or config."""
    # Priority: environment variable > alembic.ini
    url = os.getenv("GROUPGATE_DATABASE_URL")
    if url:
        return url

    config_url = config.get_main_option("sqlalchemy.url", "sqlite:///groupgate_dev.db")
    if config_url.startswith("driver://"):
        return "sqlite:///groupgate_dev.db"
    return config_url


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode (emit SQL without a DBAPI connection)."""
    url = get_database_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against a live connection."""
    configuration = config.get_section(config.config_ini_section, {})
    configuration["sqlalchemy.url"] = get_database_url()

    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
