"""
Alembic environment for the lifecycle schema.

Migrations run through the synchronous driver (DATABASE_URL_SYNC); the
application itself only ever uses the async engine.
"""

from logging.config import fileConfig
from sqlalchemy import create_engine, pool
from alembic import context

from app.core.config import get_settings
from app.db.base import Base
import app.models  # noqa: F401 - registers every table on Base.metadata

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

database_url = get_settings().DATABASE_URL_SYNC
options = {
    "target_metadata": Base.metadata,
    "compare_type": True,
    # SQLite cannot ALTER constraints in place
    "render_as_batch": database_url.startswith("sqlite"),
}


def run_offline() -> None:
    """Emit SQL without a connection (alembic upgrade --sql)."""
    context.configure(url=database_url, literal_binds=True, dialect_opts={"paramstyle": "named"}, **options)
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    engine = create_engine(database_url, poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, **options)
        with context.begin_transaction():
            context.run_migrations()
    engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
