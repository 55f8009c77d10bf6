#migrations/env.py
from logging.config import fileConfig
import os
import sys

from alembic import context

# ---- Asegurar que podamos importar el paquete "sala_cliente" ----
# (asume que "migrations" está en la raíz del proyecto junto a "sala_cliente/")
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Engine real del proyecto; importar los modelos registra las tablas en Base.metadata
from sala_cliente.db import engine, Base
from sala_cliente import models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """
    Modo 'offline': emite el SQL con la URL del engine real, sin conectarse.
    """
    context.configure(
        url=str(engine.url),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """
    Modo 'online': ejecuta contra la BD usando el Engine de sala_cliente.db.
    En SQLite usa batch mode para poder alterar tablas.
    """
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            compare_server_default=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
