# create_db.py

# =================================================================================
# 🏗️ SCRIPT DE CREACIÓN DE LA BASE DE DATOS (desarrollo local)
# ---------------------------------------------------------------------------------
# Crea todas las tablas de sala_cliente.models sin pasar por Alembic.
# Si SEED_SUPERADMIN_EMAIL y SEED_SUPERADMIN_PASSWORD están definidas, crea
# además un despacho "Plataforma" con ese usuario como super_admin.
# En producción el esquema se gestiona con `alembic upgrade head`.
# =================================================================================

import os

from dotenv import load_dotenv

load_dotenv()

from sala_cliente.db import engine, Base, SessionLocal
# Importar los modelos los registra en Base.metadata.
from sala_cliente import models
from sala_cliente.auth import get_password_hash
from sala_cliente.crud import accounts_crud


def create_database_tables():
    """
    Crea todas las tablas en la base de datos que están asociadas con `Base`.
    """
    print("Creando tablas en la base de datos...")
    Base.metadata.create_all(bind=engine)
    print("✔️ Base de datos y tablas creadas correctamente.")


def seed_super_admin():
    email = os.getenv("SEED_SUPERADMIN_EMAIL", "").strip().lower()
    password = os.getenv("SEED_SUPERADMIN_PASSWORD", "")
    if not email or not password:
        return

    db = SessionLocal()
    try:
        if accounts_crud.get_by_email(db, email) is not None:
            print(f"ℹ️ El super admin {email} ya existe; no se modifica.")
            return
        org = models.Organization(name="Plataforma", slug=accounts_crud.unique_slug(db, "Plataforma"))
        db.add(org)
        db.flush()
        profile = models.Profile(
            email=email,
            password_hash=get_password_hash(password),
            full_name=os.getenv("SEED_SUPERADMIN_NAME", "Super Admin"),
            organization_id=org.id,
            role=models.UserRole.super_admin,
            status=models.UserStatus.active,
            onboarding_completed=True,
        )
        db.add(profile)
        db.flush()
        org.owner_id = profile.id
        db.commit()
        print(f"✔️ Super admin {email} creado.")
    finally:
        db.close()


if __name__ == "__main__":
    create_database_tables()
    seed_super_admin()
