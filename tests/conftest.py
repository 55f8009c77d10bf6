"""
Fixtures pytest para la API de Sala Cliente.

El entorno (BD SQLite en archivo temporal, DRY_RUN, almacenamiento temporal y
rate limits desactivados) se fija ANTES de importar la app, porque db.py lee
DATABASE_URL al importarse.
"""
import os
import tempfile
from urllib.parse import parse_qs, urlparse

_TMP = tempfile.mkdtemp(prefix="sala_cliente_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["FORCE_DB"] = "sqlite"
os.environ["DRY_RUN"] = "1"
os.environ["STORAGE_DIR"] = os.path.join(_TMP, "storage")
os.environ["APP_URL"] = "http://testserver-app"
for _prefix in ("LOGIN_RL", "REGISTER_RL", "PORTAL_RL"):
    os.environ[f"{_prefix}_MAX"] = "0"

import pytest
from fastapi.testclient import TestClient

from sala_cliente import models, rate_limit, storage
from sala_cliente.db import Base, SessionLocal, engine
from sala_cliente.main import app

PASSWORD = "Password123!"


@pytest.fixture(autouse=True)
def fresh_db():
    """Esquema limpio y cubos de rate limit vacíos en cada test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    rate_limit.reset()
    yield
    rate_limit.reset()


@pytest.fixture
def api():
    """Cliente HTTP de test."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db():
    """Sesión directa para preparar o comprobar datos."""
    session = SessionLocal()
    yield session
    session.close()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register_firm(api, email="admin@despacho.mx", firm_name="Despacho Pérez", full_name="Ana Pérez") -> dict:
    r = api.post(
        "/api/auth/register",
        json={"email": email, "password": PASSWORD, "firm_name": firm_name, "full_name": full_name},
    )
    assert r.status_code == 201, r.text
    body = r.json()
    body["headers"] = bearer(body["access_token"])
    body["email"] = email
    return body


def invite_and_register(api, admin_headers, email, role="lawyer", full_name="Luis Gómez") -> dict:
    r = api.post("/api/invitations", json={"email": email, "role": role}, headers=admin_headers)
    assert r.status_code == 201, r.text
    token = parse_qs(urlparse(r.json()["invitation_url"]).query)["token"][0]
    r = api.post(
        "/api/auth/register-with-invitation",
        json={"token": token, "email": email, "password": PASSWORD, "full_name": full_name},
    )
    assert r.status_code == 201, r.text
    body = r.json()
    body["headers"] = bearer(body["access_token"])
    body["email"] = email
    return body


@pytest.fixture
def admin(api):
    """Admin de un despacho recién registrado."""
    return register_firm(api)


@pytest.fixture
def lawyer(api, admin):
    """Abogado del mismo despacho, dado de alta por invitación."""
    return invite_and_register(api, admin["headers"], "abogado@despacho.mx")


def create_sala(api, headers, **overrides) -> dict:
    payload = {
        "client_name": "María López",
        "client_email": "Maria.Lopez@Example.com",
        "case_name": "Divorcio López",
        "required_documents": [],
        "send_email": False,
    }
    payload.update(overrides)
    r = api.post("/api/clients", json=payload, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


@pytest.fixture
def sala(api, lawyer):
    """Sala del abogado con dos documentos requeridos."""
    return create_sala(api, lawyer["headers"], required_documents=["INE/IFE", "CURP"])


def set_status(db, user_id: str, status: models.UserStatus) -> None:
    profile = db.get(models.Profile, user_id)
    profile.status = status
    db.commit()


def stored_files(prefix: str) -> list:
    """Archivos guardados bajo un prefijo de clave del almacén."""
    root = storage.resolve(prefix)
    if not root.exists():
        return []
    return [p for p in root.rglob("*") if p.is_file()]
