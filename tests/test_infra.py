"""
Tests de piezas de soporte: rate limit, almacenamiento, catálogos, health y
registro de envíos de email.
"""
import pytest

from sala_cliente import mailer, models, rate_limit, storage


def test_rate_limit_window(monkeypatch):
    """Test: N intentos por ventana; luego deniega con Retry-After positivo."""
    clock = [1000.0]
    monkeypatch.setattr(rate_limit, "_now", lambda: clock[0])

    assert rate_limit.is_allowed("k", 2, 60)
    assert rate_limit.is_allowed("k", 2, 60)
    assert not rate_limit.is_allowed("k", 2, 60)
    assert rate_limit.retry_after("k", 60) >= 1

    clock[0] += 61
    assert rate_limit.is_allowed("k", 2, 60)


def test_rate_limit_disabled_with_zero():
    """Test: max_req=0 → sin límite."""
    assert all(rate_limit.is_allowed("libre", 0, 60) for _ in range(50))


def test_rate_limit_env_defaults(monkeypatch):
    """Test: Valores inválidos en env → defaults."""
    monkeypatch.setenv("X_RL_MAX", "muchos")
    assert rate_limit.get_limits_from_env("X_RL", 5, 30) == (5, 30)

# =================================================================================
# 📦 Almacenamiento
# =================================================================================

@pytest.mark.parametrize("key", ["../fuera.txt", "/etc/passwd", "contracts/../../x", ""])
def test_storage_rejects_escaping_keys(key):
    """Test: Claves absolutas o con '..' → StorageError."""
    with pytest.raises(storage.StorageError):
        storage.resolve(key)


def test_storage_save_exists_delete():
    """Test: Guardar, comprobar y borrar una clave."""
    key = storage.save_bytes(storage.contract_key("u1", "pdf"), b"hola")

    assert key.startswith("contracts/u1/") and key.endswith(".pdf")
    assert storage.exists(key)
    assert storage.delete(key) is True
    assert not storage.exists(key)
    assert storage.delete(key) is False


def test_storage_document_key_sanitizes_type():
    """Test: El tipo de documento no introduce subcarpetas."""
    key = storage.document_key("u1", "c1", "RFC/Constancia de Situación Fiscal", "pdf")
    assert key.startswith("client-documents/u1/c1/RFC-Constancia_de_Situación_Fiscal_")
    assert key.count("/") == 3


def test_asset_url_roundtrip():
    """Test: Solo las URLs del bucket firm-assets se traducen a clave."""
    key = storage.logo_key("u1", "png")
    assert storage.key_from_asset_url(storage.public_asset_url(key)) == key
    assert storage.key_from_asset_url("https://cdn.example.com/logo.png") is None
    assert storage.key_from_asset_url(None) is None

# =================================================================================
# 🧭 Catálogos y health
# =================================================================================

def test_meta_options(api):
    """Test: Catálogos para el panel."""
    r = api.get("/api/meta/options")
    assert r.status_code == 200
    data = r.json()
    assert "INE/IFE" in data["common_documents"]
    assert data["expiration_days"] == [3, 7, 14, 30]
    assert data["invitation_roles"] == ["lawyer", "collaborator"]
    assert set(data["themes"]) == {"light", "dark"}


def test_health(api):
    """Test: /health responde ok."""
    assert api.get("/health").json() == {"status": "ok"}

# =================================================================================
# ✉️ Registro de envíos
# =================================================================================

def test_notify_records_provider_exception(db):
    """Test: Si el envío lanza, la notificación queda failed con el mensaje."""
    def boom():
        raise RuntimeError("SMTP caído")

    notification = mailer.notify(db, type="invitation", recipient_email="x@x.mx", send=boom)
    db.commit()

    assert notification.status == models.NotificationStatus.failed
    assert "SMTP caído" in notification.error_message
    assert notification.failed_at is not None


def test_notify_records_success(db):
    """Test: Envío correcto → sent con sent_at."""
    notification = mailer.notify(db, type="invitation", recipient_email="x@x.mx", send=lambda: True)
    db.commit()

    assert notification.status == models.NotificationStatus.sent
    assert notification.sent_at is not None


def test_dry_run_send_succeeds():
    """Test: Con DRY_RUN=1 el envío se simula y devuelve True."""
    assert mailer.send_email_html("x@x.mx", "Asunto", "<p>Hola</p>") is True
