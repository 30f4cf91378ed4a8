"""
Alembic environment for the order pipeline schema.

The target URL always comes from application settings (``APP_DATABASE_URL``)
and is converted to the asyncpg driver; online migrations run through an
async engine with one transaction per revision.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from garment_orders.core.config import get_settings
from garment_orders.core.logging import get_logger
from garment_orders.database.connection import convert_database_url_to_async

# Registers every table with Base.metadata
from garment_orders.database.models import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = get_logger(__name__)
target_metadata = Base.metadata

migration_url = convert_database_url_to_async(get_settings().database_url)
config.set_main_option("sqlalchemy.url", migration_url)


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL for the pending revisions without connecting."""
    logger.info("Generating migration SQL", driver=migration_url.split("://")[0])
    _configure(
        url=migration_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_with_connection(connection: Connection) -> None:
    _configure(connection=connection, transaction_per_migration=True)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """Apply pending revisions through a short-lived async engine."""
    section = config.get_section(config.config_ini_section, {})
    engine = async_engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_with_connection)
    except Exception as e:
        logger.error(
            "Migration failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise
    finally:
        await engine.dispose()
    logger.info("Migrations applied")


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
