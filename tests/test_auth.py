"""
Tests de autenticación y registro.

Cubre: hash de contraseñas, JWT, registro público de despacho, login JSON y
OAuth2, /me, cuentas suspendidas o pendientes, rate limit de login.
"""
from sala_cliente import auth, models
from sala_cliente.auth import get_password_hash, verify_password

from conftest import PASSWORD, bearer, register_firm, set_status


def test_password_hashing():
    """Test: Hash y verificación de passwords."""
    hashed = get_password_hash("secreto_123")

    assert hashed != "secreto_123"
    assert verify_password("secreto_123", hashed)
    assert not verify_password("otra", hashed)


def test_access_token_roundtrip_carries_claims():
    """Test: El JWT lleva sub, org, role y type=access."""
    token = auth.create_access_token(subject="user-1", extra={"org": "org-1", "role": "lawyer"})
    payload = auth.verify_access_token(token)

    assert payload["sub"] == "user-1"
    assert payload["org"] == "org-1"
    assert payload["role"] == "lawyer"
    assert payload["type"] == "access"


def test_verify_access_token_rejects_garbage():
    """Test: Token inválido → None."""
    assert auth.verify_access_token("no-es-un-jwt") is None


def test_link_tokens_are_64_hex_chars():
    """Test: Tokens de enlace de 64 caracteres hex y distintos."""
    a, b = auth.generate_link_token(), auth.generate_link_token()

    assert len(a) == 64
    int(a, 16)
    assert a != b


def test_register_creates_firm_and_admin(api, db):
    """Test: Registro público crea organización y usuario admin activo."""
    body = register_firm(api, email="Nueva@Firma.mx", firm_name="Firma Nueva")

    assert body["message"]
    profile = db.get(models.Profile, body["user_id"])
    assert profile.email == "nueva@firma.mx"
    assert profile.role == models.UserRole.admin
    assert profile.status == models.UserStatus.active
    org = db.get(models.Organization, body["organization_id"])
    assert org.slug == "firma-nueva"
    assert org.owner_id == profile.id

    actions = [a.action for a in db.query(models.AuditLog).all()]
    assert actions == ["user_registered"]


def test_register_same_firm_name_gets_unique_slug(api, db):
    """Test: Dos despachos con el mismo nombre → slugs distintos."""
    a = register_firm(api, email="a@x.mx", firm_name="Despacho Uno")
    b = register_firm(api, email="b@x.mx", firm_name="Despacho Uno")

    slugs = {db.get(models.Organization, a["organization_id"]).slug, db.get(models.Organization, b["organization_id"]).slug}
    assert len(slugs) == 2


def test_register_duplicate_email_conflict(api):
    """Test: Email ya registrado (sin importar mayúsculas) → 409."""
    register_firm(api, email="dup@x.mx")
    r = api.post(
        "/api/auth/register",
        json={"email": "DUP@x.mx", "password": PASSWORD, "firm_name": "Otro", "full_name": "Otra Persona"},
    )

    assert r.status_code == 409
    assert r.json()["code"] == "EMAIL_TAKEN"


def test_register_short_password_is_422(api):
    """Test: Contraseña corta → 422 de validación."""
    r = api.post(
        "/api/auth/register",
        json={"email": "x@x.mx", "password": "corta", "firm_name": "Despacho", "full_name": "Persona"},
    )
    assert r.status_code == 422


def test_register_rejects_short_phone(api):
    """Test: Teléfono con menos de 10 dígitos → 422."""
    r = api.post(
        "/api/auth/register",
        json={"email": "x@x.mx", "password": PASSWORD, "firm_name": "Despacho", "full_name": "Persona", "phone": "123"},
    )
    assert r.status_code == 422


def test_login_and_me(api, admin):
    """Test: Login JSON devuelve token válido para /me con organización."""
    r = api.post("/api/auth/login", json={"email": admin["email"].upper(), "password": PASSWORD})
    assert r.status_code == 200
    token = r.json()["access_token"]

    me = api.get("/api/auth/me", headers=bearer(token))
    assert me.status_code == 200
    data = me.json()
    assert data["email"] == admin["email"]
    assert data["role"] == "admin"
    assert data["organization"]["id"] == admin["organization_id"]
    assert data["last_login_at"] is not None


def test_login_form_token_endpoint(api, admin):
    """Test: /token acepta el formulario OAuth2 (username = email)."""
    r = api.post("/api/auth/token", data={"username": admin["email"], "password": PASSWORD})
    assert r.status_code == 200
    assert r.json()["token_type"] == "bearer"


def test_login_wrong_password(api, admin):
    """Test: Contraseña incorrecta → 401 con mensaje neutro."""
    r = api.post("/api/auth/login", json={"email": admin["email"], "password": "incorrecta"})
    assert r.status_code == 401


def test_me_requires_token(api):
    """Test: /me sin token → 401."""
    assert api.get("/api/auth/me").status_code == 401
    assert api.get("/api/auth/me", headers=bearer("basura")).status_code == 401


def test_suspended_account_blocked(api, db, lawyer):
    """Test: Cuenta suspendida → 403 ACCOUNT_SUSPENDED en login y con token previo."""
    set_status(db, lawyer["user_id"], models.UserStatus.suspended)

    r = api.post("/api/auth/login", json={"email": lawyer["email"], "password": PASSWORD})
    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "ACCOUNT_SUSPENDED"

    r = api.get("/api/auth/me", headers=lawyer["headers"])
    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "ACCOUNT_SUSPENDED"


def test_pending_account_blocked(api, db, lawyer):
    """Test: Cuenta pendiente de aprobación → 403 ACCOUNT_PENDING."""
    set_status(db, lawyer["user_id"], models.UserStatus.pending)

    r = api.post("/api/auth/login", json={"email": lawyer["email"], "password": PASSWORD})
    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "ACCOUNT_PENDING"


def test_login_rate_limited(api, admin, monkeypatch):
    """Test: Superado el límite de intentos → 429 con Retry-After."""
    monkeypatch.setenv("LOGIN_RL_MAX", "2")
    monkeypatch.setenv("LOGIN_RL_WINDOW", "60")

    for _ in range(2):
        api.post("/api/auth/login", json={"email": admin["email"], "password": "mala"})
    r = api.post("/api/auth/login", json={"email": admin["email"], "password": PASSWORD})

    assert r.status_code == 429
    assert int(r.headers["Retry-After"]) >= 1
