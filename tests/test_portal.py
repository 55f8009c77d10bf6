"""
Tests del portal público del cliente (enlace mágico).

Flujo: GET estado → consent → sign → documents → answers → complete.
"""
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sala_cliente import models, storage

from conftest import create_sala, stored_files


def _pdf(name="doc.pdf", content=b"%PDF-1.4 doc"):
    return {"file": (name, content, "application/pdf")}


def _questionnaire(api, headers, questions=("¿Fecha del matrimonio?", "¿Hay hijos menores?")):
    r = api.post(
        "/api/templates/questionnaires",
        json={"name": "Divorcio", "questions": list(questions)},
        headers=headers,
    )
    return r.json()


def _contract(api, headers):
    r = api.post(
        "/api/templates/contracts",
        data={"name": "Contrato de servicios"},
        files=_pdf("contrato.pdf", b"%PDF-1.4 contrato"),
        headers=headers,
    )
    return r.json()

# =================================================================================
# 👀 Estado del asistente
# =================================================================================

def test_view_portal_with_branding_and_steps(api, db, lawyer, sala):
    """Test: GET del portal → datos de la sala, pasos, branding y conteo de accesos."""
    token = sala["link"]["token"]

    r = api.get(f"/api/portal/{token}")
    assert r.status_code == 200
    view = r.json()
    assert view["client_name"] == "María López"
    assert view["status"] == "pending"
    assert view["steps"] == ["consent", "documents", "complete"]
    assert view["required_documents"] == ["INE/IFE", "CURP"]
    assert view["uploaded_document_types"] == []
    assert view["contract"] is None
    assert view["consent_accepted"] is False
    assert view["branding"]["firm_name"] == "Despacho Pérez"
    assert view["branding"]["lawyer_name"] == "Luis Gómez"

    api.get(f"/api/portal/{token}")
    link = db.get(models.ClientLink, sala["link"]["id"])
    assert link.access_count == 2
    assert link.last_accessed_at is not None


def test_actions_do_not_count_as_access(api, db, sala):
    """Test: Solo la vista del portal incrementa access_count."""
    token = sala["link"]["token"]
    api.post(f"/api/portal/{token}/consent", json={"accepted": True})

    assert db.get(models.ClientLink, sala["link"]["id"]).access_count == 0


def test_unknown_token_is_404(api):
    """Test: Token inexistente → 404 con reason=invalid."""
    r = api.get("/api/portal/" + "0" * 64)
    assert r.status_code == 404
    assert r.json()["reason"] == "invalid"


def test_expired_token_is_410(api, db, sala):
    """Test: Enlace caducado → 410 con reason=expired, también en acciones."""
    link = db.get(models.ClientLink, sala["link"]["id"])
    link.expires_at = datetime.utcnow() - timedelta(seconds=1)
    db.commit()

    r = api.get(f"/api/portal/{sala['link']['token']}")
    assert r.status_code == 410
    assert r.json()["reason"] == "expired"
    assert r.json()["code"] == "LINK_EXPIRED"

    r = api.post(f"/api/portal/{sala['link']['token']}/consent", json={"accepted": True})
    assert r.status_code == 410


def test_portal_rate_limited(api, sala, monkeypatch):
    """Test: Demasiadas vistas desde la misma IP → 429."""
    monkeypatch.setenv("PORTAL_RL_MAX", "1")
    token = sala["link"]["token"]

    assert api.get(f"/api/portal/{token}").status_code == 200
    assert api.get(f"/api/portal/{token}").status_code == 429

# =================================================================================
# ✅ Consentimiento y firma
# =================================================================================

def test_consent_must_be_accepted(api, sala):
    """Test: accepted=false → 400."""
    r = api.post(f"/api/portal/{sala['link']['token']}/consent", json={"accepted": False})
    assert r.status_code == 400


def test_consent_is_idempotent(api, db, sala):
    """Test: Aceptar dos veces audita una sola vez."""
    token = sala["link"]["token"]
    for _ in range(2):
        assert api.post(f"/api/portal/{token}/consent", json={"accepted": True}).status_code == 200

    assert db.query(models.AuditLog).filter_by(action="consent_accepted").count() == 1
    assert db.get(models.Client, sala["id"]).consent_accepted_at is not None


def test_sign_stores_hash_and_ip(api, db, lawyer):
    """Test: Firma → SHA-256 de la firma, IP del cliente y auditoría sin user_id."""
    contract = _contract(api, lawyer["headers"])
    sala = create_sala(api, lawyer["headers"], contract_template_id=contract["id"])
    token = sala["link"]["token"]

    view = api.get(f"/api/portal/{token}").json()
    assert view["contract"]["download_url"] == f"/api/portal/{token}/contract"
    assert api.get(view["contract"]["download_url"]).content == b"%PDF-1.4 contrato"

    r = api.post(
        f"/api/portal/{token}/sign",
        json={"signature_data": "data:image/png;base64,AAAA", "signed_name": "María López"},
        headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"},
    )
    assert r.status_code == 200

    client = db.get(models.Client, sala["id"])
    assert len(client.signature_hash) == 64
    assert client.signature_ip == "203.0.113.9"
    assert client.signed_name == "María López"

    entry = db.query(models.AuditLog).filter_by(action="signature_completed").one()
    assert entry.user_id is None
    assert entry.ip_address == "203.0.113.9"


def test_contract_download_without_contract_is_404(api, sala):
    """Test: Sala sin contrato → 404 en /contract."""
    assert api.get(f"/api/portal/{sala['link']['token']}/contract").status_code == 404

# =================================================================================
# 📎 Documentos
# =================================================================================

def test_upload_required_document(api, db, sala, lawyer):
    """Test: Subida → clave client-documents/{user}/{sala}/ y tipo marcado como subido."""
    token = sala["link"]["token"]
    r = api.post(f"/api/portal/{token}/documents", data={"document_type": "CURP"}, files=_pdf())
    assert r.status_code == 201
    assert r.json()["file_name"] == "doc.pdf"

    key = db.get(models.ClientDocument, r.json()["id"]).file_url
    assert key.startswith(f"client-documents/{lawyer['user_id']}/{sala['id']}/CURP_")
    assert storage.exists(key)

    assert api.get(f"/api/portal/{token}").json()["uploaded_document_types"] == ["CURP"]
    assert db.query(models.AuditLog).filter_by(action="document_uploaded").count() == 1


def test_upload_rejects_unrequested_type(api, sala):
    """Test: Tipo fuera de la lista solicitada → 400."""
    r = api.post(f"/api/portal/{sala['link']['token']}/documents", data={"document_type": "RFC"}, files=_pdf())
    assert r.status_code == 400
    assert r.json()["code"] == "DOCUMENT_TYPE_NOT_REQUIRED"


def test_upload_rejects_bad_extension_and_size(api, sala, monkeypatch):
    """Test: Extensión no admitida → 400; por encima de MAX_UPLOAD_MB → 413."""
    token = sala["link"]["token"]
    r = api.post(f"/api/portal/{token}/documents", data={"document_type": "CURP"}, files=_pdf("doc.txt"))
    assert r.status_code == 400

    monkeypatch.setenv("MAX_UPLOAD_MB", "0.001")
    r = api.post(f"/api/portal/{token}/documents", data={"document_type": "CURP"}, files=_pdf(content=b"x" * 2048))
    assert r.status_code == 413

# =================================================================================
# 📝 Cuestionario
# =================================================================================

def test_answers_replace_previous(api, db, lawyer):
    """Test: Enviar respuestas reemplaza las anteriores y se ven en el portal."""
    q = _questionnaire(api, lawyer["headers"])
    sala = create_sala(api, lawyer["headers"], questionnaire_template_id=q["id"])
    token = sala["link"]["token"]
    q1, q2 = (x["id"] for x in q["questions"])

    r = api.post(
        f"/api/portal/{token}/answers",
        json={"answers": [{"question_id": q1, "answer_text": "2015"}, {"question_id": q2, "answer_text": "Sí"}]},
    )
    assert r.status_code == 200
    assert {a["question_text"] for a in r.json()} == {"¿Fecha del matrimonio?", "¿Hay hijos menores?"}

    r = api.post(f"/api/portal/{token}/answers", json={"answers": [{"question_id": q1, "answer_text": "2016"}]})
    assert r.status_code == 200

    assert db.query(models.ClientAnswer).filter_by(client_id=sala["id"]).count() == 1
    view = api.get(f"/api/portal/{token}").json()
    assert view["answers"] == {q1: "2016"}
    assert "questionnaire" in view["steps"]


def test_empty_answers_is_noop(api, db, sala):
    """Test: Lista vacía → [] sin auditoría."""
    r = api.post(f"/api/portal/{sala['link']['token']}/answers", json={"answers": []})
    assert r.status_code == 200
    assert r.json() == []
    assert db.query(models.AuditLog).filter_by(action="questionnaire_completed").count() == 0


def test_answers_validate_questions(api, lawyer):
    """Test: Pregunta ajena o repetida → 400."""
    q = _questionnaire(api, lawyer["headers"])
    sala = create_sala(api, lawyer["headers"], questionnaire_template_id=q["id"])
    token = sala["link"]["token"]
    q1 = q["questions"][0]["id"]

    r = api.post(f"/api/portal/{token}/answers", json={"answers": [{"question_id": "otra", "answer_text": "x"}]})
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_QUESTION"

    dup = [{"question_id": q1, "answer_text": "a"}, {"question_id": q1, "answer_text": "b"}]
    r = api.post(f"/api/portal/{token}/answers", json={"answers": dup})
    assert r.status_code == 400
    assert r.json()["code"] == "DUPLICATE_QUESTION"

# =================================================================================
# 🏁 Completar
# =================================================================================

def test_complete_reports_missing_steps(api, sala):
    """Test: Completar sin consentimiento ni documentos → 409 INCOMPLETE con lo que falta."""
    r = api.post(f"/api/portal/{sala['link']['token']}/complete")
    assert r.status_code == 409
    body = r.json()
    assert body["code"] == "INCOMPLETE"
    assert body["missing"] == ["consent", "document:INE/IFE", "document:CURP"]


def test_complete_full_flow(api, db, lawyer, sala):
    """Test: Flujo completo → completed, enlace de un solo uso y aviso al abogado."""
    token = sala["link"]["token"]
    assert api.post(f"/api/portal/{token}/consent", json={"accepted": True}).status_code == 200
    for doc_type in ("INE/IFE", "CURP"):
        r = api.post(f"/api/portal/{token}/documents", data={"document_type": doc_type}, files=_pdf())
        assert r.status_code == 201

    r = api.post(f"/api/portal/{token}/complete")
    assert r.status_code == 200
    assert r.json()["success"] is True

    client = db.get(models.Client, sala["id"])
    assert client.status == models.ClientStatus.completed
    assert client.completed_at is not None
    assert client.link_used is True

    notification = db.query(models.EmailNotification).filter_by(type="sala_completed").one()
    assert notification.recipient_email == lawyer["email"]
    assert db.query(models.AuditLog).filter_by(action="portal_completed").count() == 1

    r = api.get(f"/api/portal/{token}")
    assert r.status_code == 410
    assert r.json()["reason"] == "revoked"

    stats = api.get("/api/clients/stats", headers=lawyer["headers"]).json()
    assert stats["completed"] == 1


def test_complete_requires_signature_when_contract(api, lawyer):
    """Test: Sala con contrato sin firmar → 409 con 'signature' entre lo que falta."""
    contract = _contract(api, lawyer["headers"])
    sala = create_sala(api, lawyer["headers"], contract_template_id=contract["id"])
    token = sala["link"]["token"]
    api.post(f"/api/portal/{token}/consent", json={"accepted": True})

    r = api.post(f"/api/portal/{token}/complete")
    assert r.status_code == 409
    assert r.json()["missing"] == ["signature"]


@pytest.mark.parametrize("method", ["flush", "commit"])
def test_document_file_removed_when_db_fails(api, db, lawyer, sala, monkeypatch, method):
    """Test: Fallo al registrar el documento (INSERT o commit) → sin archivo en almacenamiento."""
    def _fail(self, *args, **kwargs):
        raise SQLAlchemyError("BD no disponible")

    monkeypatch.setattr(Session, method, _fail)
    with pytest.raises(SQLAlchemyError):
        api.post(f"/api/portal/{sala['link']['token']}/documents", data={"document_type": "CURP"}, files=_pdf())
    monkeypatch.undo()

    assert stored_files(f"client-documents/{lawyer['user_id']}/{sala['id']}") == []
    assert db.query(models.ClientDocument).count() == 0
