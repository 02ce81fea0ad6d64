"""
env.py — Alembic environment for TourCompanion

The database URL comes from tourcompanion settings (DATABASE_URL), never from
alembic.ini. Importing tourcompanion.models registers every table on
Base.metadata for autogenerate.

Called by: alembic CLI
Depends on: tourcompanion.config, tourcompanion.models
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from tourcompanion.config import Settings
from tourcompanion.models import Base

config = context.config
config.set_main_option("sqlalchemy.url", Settings().database_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _configure(**kwargs) -> None:
    context.configure(target_metadata=target_metadata, **kwargs)
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    # Emit SQL to stdout instead of executing it
    _configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
else:
    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        _configure(connection=connection)
