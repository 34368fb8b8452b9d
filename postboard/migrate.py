from typing import Optional

from alembic import command
from alembic.config import Config
from flask import Flask

from .models import db

SCRIPT_LOCATION : str = 'postboard:migrations'


def alembic_config(url: Optional[str] = None) -> Config:
    '''Alembic config for the bundled migrations.

    Without a url, migrations/env.py falls back to the database the app
    itself is configured with.
    '''
    config = Config()
    config.set_main_option('script_location', SCRIPT_LOCATION)
    if url:
        # configparser interpolation
        config.set_main_option('sqlalchemy.url', url.replace('%', '%%'))
    return config


def database_url(app: Flask) -> str:
    '''The database URL as Flask-SQLAlchemy resolved it (sqlite paths land in the instance folder).'''
    with app.app_context():
        return db.engine.url.render_as_string(hide_password=False)


def upgrade_database(app: Flask, revision: str = 'head') -> None:
    with app.app_context():
        config = alembic_config(database_url(app))
        # run on the app's own engine so in-memory sqlite sees the same tables
        with db.engine.begin() as connection:
            config.attributes['connection'] = connection
            command.upgrade(config, revision)
