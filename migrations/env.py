from logging.config import fileConfig

from alembic import context
from flask import current_app
from sqlalchemy import create_engine, pool

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _target_metadata():
    return current_app.extensions["migrate"].db.metadata


def _get_url():
    try:
        # URL efektif dari engine Flask (sudah lewat resolver DSN)
        return str(current_app.extensions["migrate"].db.engine.url)
    except (KeyError, RuntimeError):
        # dipanggil tanpa app context
        from koperasi.config_db import load_env_once, resolve_database_uri

        load_env_once()
        return resolve_database_uri()


def run_migrations_offline():
    context.configure(
        url=_get_url(),
        target_metadata=_target_metadata(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = create_engine(_get_url(), poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=_target_metadata(),
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
