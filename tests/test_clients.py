"""
Tests de salas de cliente (vista del abogado).

Valida endpoints:
- POST/GET /api/clients, GET /api/clients/stats
- GET/PATCH/DELETE /api/clients/{id}
- /api/clients/{id}/links, /documents, /answers, /activity
"""
from datetime import datetime, timedelta

from sala_cliente import models, storage

from conftest import create_sala, invite_and_register, register_firm


def test_create_sala_issues_link(api, db, lawyer):
    """Test: Crear sala → pending, email en minúsculas y enlace activo de 64 hex."""
    sala = create_sala(api, lawyer["headers"], expiration_days=14, required_documents=[" CURP ", "CURP", ""])

    assert sala["status"] == "pending"
    assert sala["client_email"] == "maria.lopez@example.com"
    assert sala["required_documents"] == ["CURP"]
    link = sala["link"]
    assert len(link["token"]) == 64
    assert link["url"] == f"http://testserver-app/sala/{link['token']}"
    assert link["active"] is True
    expires = datetime.fromisoformat(link["expires_at"])
    assert timedelta(days=13, hours=23) < expires - datetime.utcnow() <= timedelta(days=14)

    assert db.query(models.AuditLog).filter_by(action="client_created", client_id=sala["id"]).count() == 1
    assert db.query(models.EmailNotification).count() == 0


def test_create_sala_sends_email_when_requested(api, db, lawyer):
    """Test: send_email=true deja una notificación sala_link enviada."""
    sala = create_sala(api, lawyer["headers"], send_email=True)

    notification = db.query(models.EmailNotification).one()
    assert notification.type == "sala_link"
    assert notification.client_id == sala["id"]
    assert notification.recipient_email == "maria.lopez@example.com"
    assert notification.status == models.NotificationStatus.sent


def test_create_sala_failed_email_is_recorded(api, db, lawyer, monkeypatch):
    """Test: Si el proveedor falla, la sala se crea igual y el envío queda como failed."""
    from sala_cliente import mailer

    monkeypatch.setattr(mailer, "send_email_html", lambda *a, **k: False)
    create_sala(api, lawyer["headers"], send_email=True)

    notification = db.query(models.EmailNotification).one()
    assert notification.status == models.NotificationStatus.failed
    assert notification.error_message


def test_create_sala_rejects_foreign_template(api, admin, lawyer):
    """Test: Plantilla de otro usuario → 404."""
    r = api.post(
        "/api/templates/questionnaires",
        json={"name": "Del admin", "questions": ["¿Algo?"]},
        headers=admin["headers"],
    )
    template_id = r.json()["id"]

    r = api.post(
        "/api/clients",
        json={
            "client_name": "Cliente",
            "client_email": "c@x.mx",
            "case_name": "Caso",
            "questionnaire_template_id": template_id,
        },
        headers=lawyer["headers"],
    )
    assert r.status_code == 404
    assert r.json()["code"] == "TEMPLATE_NOT_FOUND"


def test_create_sala_validates_expiration_days(api, lawyer):
    """Test: expiration_days fuera de 1..90 → 422."""
    r = api.post(
        "/api/clients",
        json={"client_name": "Cliente", "client_email": "c@x.mx", "case_name": "Caso", "expiration_days": 0},
        headers=lawyer["headers"],
    )
    assert r.status_code == 422


def test_list_sorted_filtered_and_paginated(api, lawyer):
    """Test: Listado con búsqueda, filtro por estado, orden y páginas."""
    create_sala(api, lawyer["headers"], client_name="Beatriz Ruiz", client_email="b@x.mx", case_name="Herencia")
    create_sala(api, lawyer["headers"], client_name="Alberto Díaz", client_email="a@x.mx", case_name="Laboral")
    create_sala(api, lawyer["headers"], client_name="Carla Soto", client_email="c@x.mx", case_name="Herencia Soto")

    r = api.get(
        "/api/clients",
        params={"order_by": "client_name", "direction": "asc", "page_size": 2},
        headers=lawyer["headers"],
    )
    page = r.json()
    assert page["count"] == 3
    assert page["total_pages"] == 2
    assert [c["client_name"] for c in page["data"]] == ["Alberto Díaz", "Beatriz Ruiz"]

    r = api.get("/api/clients", params={"search": "herencia"}, headers=lawyer["headers"])
    assert r.json()["count"] == 2

    r = api.get("/api/clients", params={"status": "completed"}, headers=lawyer["headers"])
    assert r.json()["count"] == 0

    r = api.get("/api/clients", params={"page_size": 101}, headers=lawyer["headers"])
    assert r.status_code == 422


def test_visibility_by_role_and_tenant(api, admin, lawyer):
    """Test: Abogado ve lo suyo, admin todo el despacho, otro despacho nada (404)."""
    mine = create_sala(api, lawyer["headers"])
    colleague = invite_and_register(api, admin["headers"], "colega@despacho.mx")
    theirs = create_sala(api, colleague["headers"], client_email="z@x.mx")

    assert api.get("/api/clients", headers=lawyer["headers"]).json()["count"] == 1
    assert api.get(f"/api/clients/{theirs['id']}", headers=lawyer["headers"]).status_code == 404
    assert api.get("/api/clients", headers=admin["headers"]).json()["count"] == 2
    assert api.get(f"/api/clients/{mine['id']}", headers=admin["headers"]).status_code == 200

    other = register_firm(api, email="otro@firma.mx", firm_name="Otra Firma")
    r = api.get(f"/api/clients/{mine['id']}", headers=other["headers"])
    assert r.status_code == 404
    assert r.json()["code"] == "CLIENT_NOT_FOUND"


def test_dashboard_stats(api, lawyer):
    """Test: Métricas del panel con salas recientes."""
    for i in range(6):
        create_sala(api, lawyer["headers"], client_email=f"c{i}@x.mx")

    r = api.get("/api/clients/stats", headers=lawyer["headers"])
    assert r.status_code == 200
    stats = r.json()
    assert (stats["total"], stats["pending"], stats["completed"]) == (6, 6, 0)
    assert len(stats["recent"]) == 5


def test_detail_and_update(api, db, sala, lawyer):
    """Test: Detalle con enlace activo; PATCH audita solo campos cambiados."""
    r = api.get(f"/api/clients/{sala['id']}", headers=lawyer["headers"])
    detail = r.json()
    assert detail["active_link"]["token"] == sala["link"]["token"]
    assert detail["documents"] == [] and detail["answers"] == []

    r = api.patch(
        f"/api/clients/{sala['id']}",
        json={"case_name": "Divorcio López (apelación)", "client_name": "María López"},
        headers=lawyer["headers"],
    )
    assert r.status_code == 200
    assert r.json()["case_name"] == "Divorcio López (apelación)"

    entry = db.query(models.AuditLog).filter_by(action="client_updated").one()
    assert entry.details == {"fields": ["case_name"]}


def test_completed_sala_locks_configuration(api, db, sala, lawyer):
    """Test: Sala completada → no se cambian documentos requeridos (409)."""
    client = db.get(models.Client, sala["id"])
    client.status = models.ClientStatus.completed
    db.commit()

    r = api.patch(f"/api/clients/{sala['id']}", json={"required_documents": ["RFC"]}, headers=lawyer["headers"])
    assert r.status_code == 409
    assert r.json()["code"] == "CLIENT_COMPLETED"

    r = api.post(f"/api/clients/{sala['id']}/links", json={}, headers=lawyer["headers"])
    assert r.status_code == 409


def test_soft_delete_hides_sala_and_kills_link(api, db, sala, lawyer):
    """Test: Borrado lógico → 404 en detalle y enlace inválido en el portal."""
    r = api.delete(f"/api/clients/{sala['id']}", headers=lawyer["headers"])
    assert r.status_code == 200

    assert api.get(f"/api/clients/{sala['id']}", headers=lawyer["headers"]).status_code == 404
    assert db.get(models.Client, sala["id"]).deleted_at is not None
    assert api.get(f"/api/portal/{sala['link']['token']}").status_code == 404


def test_generate_link_revokes_previous(api, db, sala, lawyer):
    """Test: Nuevo enlace → el anterior queda revocado; solo uno activo."""
    r = api.post(f"/api/clients/{sala['id']}/links", json={"expires_in_hours": 24}, headers=lawyer["headers"])
    assert r.status_code == 201
    new_link = r.json()
    assert new_link["token"] != sala["link"]["token"]

    links = api.get(f"/api/clients/{sala['id']}/links", headers=lawyer["headers"]).json()
    assert len(links) == 2
    assert [l["active"] for l in links].count(True) == 1

    r = api.get(f"/api/portal/{sala['link']['token']}")
    assert r.status_code == 410
    assert r.json()["reason"] == "revoked"
    assert api.get(f"/api/portal/{new_link['token']}").status_code == 200


def test_revoke_link(api, sala, lawyer):
    """Test: Revocar el enlace activo → portal 410."""
    r = api.post(f"/api/clients/{sala['id']}/links/{sala['link']['id']}/revoke", headers=lawyer["headers"])
    assert r.status_code == 200
    assert r.json()["active"] is False
    assert api.get(f"/api/portal/{sala['link']['token']}").status_code == 410

    r = api.post(f"/api/clients/{sala['id']}/links/no-existe/revoke", headers=lawyer["headers"])
    assert r.status_code == 404


def test_documents_download_and_delete(api, db, sala, lawyer):
    """Test: Documento subido por el cliente → descarga y borrado (archivo incluido)."""
    token = sala["link"]["token"]
    files = {"file": ("ine.pdf", b"%PDF-1.4 ine", "application/pdf")}
    r = api.post(f"/api/portal/{token}/documents", data={"document_type": "INE/IFE"}, files=files)
    assert r.status_code == 201
    doc_id = r.json()["id"]

    docs = api.get(f"/api/clients/{sala['id']}/documents", headers=lawyer["headers"]).json()
    assert [d["document_type"] for d in docs] == ["INE/IFE"]

    r = api.get(f"/api/clients/{sala['id']}/documents/{doc_id}/download", headers=lawyer["headers"])
    assert r.status_code == 200
    assert r.content == b"%PDF-1.4 ine"

    key = db.get(models.ClientDocument, doc_id).file_url
    r = api.delete(f"/api/clients/{sala['id']}/documents/{doc_id}", headers=lawyer["headers"])
    assert r.status_code == 200
    assert not storage.exists(key)
    assert api.get(f"/api/clients/{sala['id']}/documents", headers=lawyer["headers"]).json() == []


def test_activity_lists_sala_audit(api, sala, lawyer):
    """Test: Actividad de la sala incluye creación y acciones del portal."""
    api.post(f"/api/portal/{sala['link']['token']}/consent", json={"accepted": True})

    r = api.get(f"/api/clients/{sala['id']}/activity", headers=lawyer["headers"])
    assert r.status_code == 200
    actions = {e["action"] for e in r.json()}
    assert {"client_created", "consent_accepted"} <= actions


def test_update_rejects_null_required_fields(api, db, sala, lawyer):
    """Test: null explícito en un campo obligatorio → 422 y la sala no cambia."""
    for field in ("client_name", "client_email", "case_name", "expiration_days", "required_documents"):
        r = api.patch(f"/api/clients/{sala['id']}", json={field: None}, headers=lawyer["headers"])
        assert r.status_code == 422, field

    assert db.get(models.Client, sala["id"]).client_name == "María López"


def test_update_strips_names(api, sala, lawyer):
    """Test: PATCH recorta nombre y caso igual que el alta."""
    r = api.patch(
        f"/api/clients/{sala['id']}",
        json={"client_name": "  María L.  ", "case_name": "  Custodia  "},
        headers=lawyer["headers"],
    )
    assert r.status_code == 200
    assert (r.json()["client_name"], r.json()["case_name"]) == ("María L.", "Custodia")


def test_list_rejects_unknown_order_by(api, lawyer):
    """Test: Columna de orden fuera de la lista → 422."""
    r = api.get("/api/clients", params={"order_by": "password_hash"}, headers=lawyer["headers"])
    assert r.status_code == 422
