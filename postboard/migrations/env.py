from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from postboard.app import create_app
from postboard.migrate import database_url
from postboard.models import db

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

# target metadata for autogenerate
target_metadata = db.metadata


def resolve_url() -> str:
    url = config.get_main_option('sqlalchemy.url')
    if not url:
        url = database_url(create_app({'AUTO_MIGRATE': False}))
        config.set_main_option('sqlalchemy.url', url.replace('%', '%%'))
    return url


def do_run_migrations(connection):
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline():
    context.configure(
        url=resolve_url(),
        target_metadata=target_metadata,
        literal_binds=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connection = config.attributes.get('connection')
    if connection is not None:
        do_run_migrations(connection)
        return

    resolve_url()
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix='sqlalchemy.',
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        do_run_migrations(connection)


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
