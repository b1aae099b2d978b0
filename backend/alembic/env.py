"""
Alembic environment for EventTria.

Runs migrations through the async engine against the same URL the
application uses, and keeps Supabase-managed schemas out of autogenerate.
"""

import asyncio
import os
import sys
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import create_async_engine
from alembic import context

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlmodel import SQLModel

from app.infrastructure.db import models  # noqa: F401  (registers tables)
from app.infrastructure.db.database import resolve_database_url

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = SQLModel.metadata

MANAGED_SCHEMAS = {"auth", "storage", "realtime", "extensions", "graphql", "graphql_public"}
MANAGED_TABLES = {"schema_migrations", "buckets", "objects", "users", "identities", "sessions"}


def include_object(object, name, type_, reflected, compare_to):
    if type_ != "table":
        return True
    if name in MANAGED_TABLES:
        return False
    return getattr(object, "schema", None) not in MANAGED_SCHEMAS


def run_migrations_offline() -> None:
    """Emit SQL without connecting."""
    context.configure(
        url=resolve_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        include_object=include_object,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        include_object=include_object,
        compare_type=True,
        compare_server_default=True,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(resolve_database_url(), poolclass=pool.NullPool)

    async with engine.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
