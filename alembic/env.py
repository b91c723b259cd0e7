from logging.config import fileConfig

from sqlalchemy import create_engine, pool
from alembic import context

from medrecords.core.config import get_settings
from medrecords.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Every table the row stores touch is registered on Base.metadata
target_metadata = Base.metadata

settings = get_settings()


def get_url() -> str:
    """
    Migrate the same database the SQL row store talks to (DATABASE_URL),
    never a URL from alembic.ini.
    """
    return settings.database_url


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting."""
    url = get_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=_is_sqlite(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = get_url()
    connectable = create_engine(url, future=True, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            # sqlite cannot ALTER most columns in place
            render_as_batch=_is_sqlite(url),
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
