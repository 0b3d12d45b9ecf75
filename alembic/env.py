from logging.config import fileConfig

from sqlalchemy import create_engine, pool
from alembic import context

from hms_ledger.core.config import get_settings
from hms_ledger.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# hms_ledger.models imports every model, so the metadata is complete.
target_metadata = Base.metadata

# The ledger shares a database with the rest of the HMS; keep its
# revision history in its own table.
VERSION_TABLE = "ledger_alembic_version"

settings = get_settings()


def _context_options(url: str) -> dict:
    return {
        "target_metadata": target_metadata,
        "version_table": VERSION_TABLE,
        "compare_type": True,
        # SQLite can't ALTER constraints in place (local runs and tests).
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Emit the ledger DDL as SQL without connecting."""
    url = settings.database_url
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_context_options(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = settings.database_url
    connectable = create_engine(url, future=True, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, **_context_options(url))

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
