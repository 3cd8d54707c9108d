"""Alembic environment for the LearnSphere schema.

Migrations are raw SQL (no SQLAlchemy models), so there is no target metadata.
learnsphere.db.database sets sqlalchemy.url when upgrading at startup; the
alembic CLI falls back to DATABASE_URL / DATABASE_PATH from the environment.
"""

import os
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import engine_from_config, pool

load_dotenv(Path(__file__).resolve().parents[1] / ".env")

config = context.config


def _database_url() -> str:
    url = os.getenv("DATABASE_URL", "")
    if url.startswith("postgresql://"):
        return url
    return f"sqlite:///{os.getenv('DATABASE_PATH', 'learnsphere.db')}"


if not config.get_main_option("sqlalchemy.url"):
    config.set_main_option("sqlalchemy.url", _database_url())

# Startup upgrades run inside the app and keep its logging setup
if config.config_file_name is not None and not config.attributes.get("skip_logging_config"):
    fileConfig(config.config_file_name, disable_existing_loggers=False)

URL = config.get_main_option("sqlalchemy.url")
# SQLite cannot ALTER most columns in place
BATCH = URL.startswith("sqlite")


def run_migrations_offline() -> None:
    context.configure(
        url=URL,
        target_metadata=None,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=BATCH,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=None, render_as_batch=BATCH)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
