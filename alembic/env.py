from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine

from orbit.config import settings

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _sync_url(url: str) -> str:
    """Migrations run on sync sqlalchemy; strip asyncpg-specific URL forms."""
    if url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://"):]
    if url.startswith("postgresql+asyncpg://"):
        return "postgresql://" + url[len("postgresql+asyncpg://"):]
    return url


# `alembic -x url=...` wins over DATABASE_URL
url = _sync_url(context.get_x_argument(as_dictionary=True).get("url") or settings.DATABASE_URL)
config.set_main_option("sqlalchemy.url", url.replace("%", "%%"))


def run_migrations_offline() -> None:
    context.configure(url=url, target_metadata=None, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    if not url:
        raise RuntimeError("DATABASE_URL (or -x url=...) is required to run event store migrations")
    engine = create_engine(url)
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=None)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
