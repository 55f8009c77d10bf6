# sala_cliente/db.py
# =================================================================================
# 🗄️ CONFIGURACIÓN Y CONEXIÓN A LA BASE DE DATOS
# ---------------------------------------------------------------------------------
# Centraliza la conexión SQLAlchemy. PostgreSQL en producción y SQLite en
# desarrollo/tests. Cada request recibe su propia sesión vía get_db().
# =================================================================================

import os
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from loguru import logger

# --- URL de la Base de Datos ---
DATABASE_URL = os.getenv("DATABASE_URL", "").strip()

# Motor exigido cuando falta la URL ('postgres' aborta, cualquier otro valor permite SQLite).
FORCE_DB = os.getenv("FORCE_DB", "postgres").strip().lower()

# Placeholder de plataforma sin resolver → se trata como vacío.
if DATABASE_URL.startswith("${{") and DATABASE_URL.endswith("}}"):
    logger.warning("DATABASE_URL parece un placeholder sin resolver: {}", DATABASE_URL)
    DATABASE_URL = ""

if not DATABASE_URL:
    if FORCE_DB == "postgres":
        raise RuntimeError(
            "FATAL: DATABASE_URL no está disponible y FORCE_DB=postgres. "
            "Se aborta para evitar un fallback accidental a SQLite en producción."
        )
    logger.warning("DATABASE_URL está vacía. Usando fallback a SQLite local.")
    project_root = os.path.abspath(os.path.join(os.path.dirname(os.path.abspath(__file__)), ".."))
    DATABASE_URL = f"sqlite:///{os.path.join(project_root, 'sala_cliente.db')}"

# Heroku/Railway exponen 'postgres://', SQLAlchemy 2 solo acepta 'postgresql://'.
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# --- Engine ---
if DATABASE_URL.startswith("sqlite"):
    logger.info("DB in use → SQLite")
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        pool_pre_ping=True,
    )

    # SQLite no aplica ON DELETE CASCADE/SET NULL sin este pragma.
    @event.listens_for(engine, "connect")
    def _sqlite_fk_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
else:
    logger.info("DB in use → PostgreSQL (o no-SQLite)")
    engine = create_engine(DATABASE_URL, pool_pre_ping=True)

# --- Fábrica de Sesiones y Base Declarativa ---
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """Dependencia de FastAPI para inyectar una sesión de BD por petición."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# =================================================================================
# 🔎 UTILIDAD: LOGUEAR LA BASE DE DATOS EN STARTUP
# =================================================================================
def log_db_path_on_startup() -> None:
    """Escribe en los logs qué motor de base de datos se está utilizando al arrancar."""
    url = engine.url
    logger.info("DB driver in use → {}", url.drivername)
    if url.drivername.startswith("sqlite"):
        db_file = url.database
        abs_path = os.path.abspath(db_file) if db_file else "<memory>"
        logger.info("DB path → {} (abs={})", db_file, abs_path)
