# sala_cliente/crud/clients_crud.py
# =================================================================================
# 🚪 CRUD de Salas (clients) y de sus enlaces mágicos (client_links)
# ---------------------------------------------------------------------------------
# Visibilidad: abogados y colaboradores ven sus propias salas; admin y
# super_admin ven todas las del despacho. Las salas con deleted_at no existen
# para nadie. Una sala tiene como máximo un enlace activo a la vez.
# =================================================================================

import math
import os
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from sala_cliente import auth, models, storage
from sala_cliente.core.errors import ConflictError, NotFoundError
from sala_cliente.models import ADMIN_ROLES, ClientStatus

APP_URL = os.getenv("APP_URL", "http://localhost:3000").rstrip("/")

SORTABLE_COLUMNS = {
    "created_at": models.Client.created_at,
    "client_name": models.Client.client_name,
    "case_name": models.Client.case_name,
    "status": models.Client.status,
    "completed_at": models.Client.completed_at,
}

# ---------------------------------------------------------------------------------
# 🔗 Enlaces
# ---------------------------------------------------------------------------------

def sala_url(token: str) -> str:
    return f"{APP_URL}/sala/{token}"


def link_is_active(link: models.ClientLink, now: Optional[datetime] = None) -> bool:
    now = now or datetime.utcnow()
    return link.revoked_at is None and link.expires_at >= now


def active_link(client: models.Client) -> Optional[models.ClientLink]:
    now = datetime.utcnow()
    for link in client.links:
        if link_is_active(link, now):
            return link
    return None


def revoke_active_links(db: Session, client_id: str) -> int:
    """Revoca todos los enlaces no revocados de la sala. Devuelve cuántos."""
    now = datetime.utcnow()
    links = (
        db.query(models.ClientLink)
        .filter(models.ClientLink.client_id == client_id, models.ClientLink.revoked_at.is_(None))
        .all()
    )
    for link in links:
        link.revoked_at = now
    return len(links)


def issue_link(db: Session, client: models.Client, expires_at: datetime) -> models.ClientLink:
    """Revoca los enlaces vigentes y crea uno nuevo."""
    revoked = revoke_active_links(db, client.id)
    link = models.ClientLink(
        client_id=client.id,
        magic_link_token=auth.generate_link_token(),
        expires_at=expires_at,
        access_count=0,
    )
    db.add(link)
    db.flush()
    db.refresh(client)
    logger.info("Enlace emitido para sala {} (revocados previos={})", client.id, revoked)
    return link


def revoke_link(db: Session, client: models.Client, link_id: str) -> models.ClientLink:
    link = (
        db.query(models.ClientLink)
        .filter(models.ClientLink.id == link_id, models.ClientLink.client_id == client.id)
        .first()
    )
    if link is None:
        raise NotFoundError("LINK_NOT_FOUND", "Enlace no encontrado")
    if link.revoked_at is None:
        link.revoked_at = datetime.utcnow()
    return link

# ---------------------------------------------------------------------------------
# 🔎 Visibilidad
# ---------------------------------------------------------------------------------

def visible_query(db: Session, actor: models.Profile):
    query = db.query(models.Client).filter(
        models.Client.deleted_at.is_(None),
        models.Client.organization_id == actor.organization_id,
    )
    if actor.role not in ADMIN_ROLES:
        query = query.filter(models.Client.user_id == actor.id)
    return query


def get_visible(db: Session, actor: models.Profile, client_id: str) -> models.Client:
    client = visible_query(db, actor).filter(models.Client.id == client_id).first()
    if client is None:
        raise NotFoundError("CLIENT_NOT_FOUND", "Sala no encontrada")
    return client


def _owned_template(db: Session, model, template_id: Optional[str], user_id: str):
    if template_id is None:
        return None
    template = db.query(model).filter(model.id == template_id, model.user_id == user_id).first()
    if template is None:
        raise NotFoundError("TEMPLATE_NOT_FOUND", "Plantilla no encontrada")
    return template

# ---------------------------------------------------------------------------------
# ✨ Operaciones sobre salas
# ---------------------------------------------------------------------------------

def create(
    db: Session,
    actor: models.Profile,
    *,
    client_name: str,
    client_email: str,
    case_name: str,
    contract_template_id: Optional[str] = None,
    questionnaire_template_id: Optional[str] = None,
    required_documents: Optional[List[str]] = None,
    custom_message: Optional[str] = None,
    expiration_days: int = 7,
) -> Tuple[models.Client, models.ClientLink]:
    _owned_template(db, models.ContractTemplate, contract_template_id, actor.id)
    _owned_template(db, models.QuestionnaireTemplate, questionnaire_template_id, actor.id)

    client = models.Client(
        user_id=actor.id,
        organization_id=actor.organization_id,
        client_name=client_name,
        client_email=client_email.strip().lower(),
        case_name=case_name,
        contract_template_id=contract_template_id,
        questionnaire_template_id=questionnaire_template_id,
        required_documents=list(required_documents or []),
        custom_message=custom_message,
        expiration_days=expiration_days,
        status=ClientStatus.pending,
    )
    db.add(client)
    db.flush()
    link = issue_link(db, client, datetime.utcnow() + timedelta(days=expiration_days))
    return client, link


def list_page(
    db: Session,
    actor: models.Profile,
    *,
    page: int = 1,
    page_size: int = 10,
    order_by: str = "created_at",
    direction: str = "desc",
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> Dict[str, Any]:
    query = visible_query(db, actor)
    if status:
        query = query.filter(models.Client.status == ClientStatus(status))
    if search and search.strip():
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            or_(
                func.lower(models.Client.client_name).like(pattern),
                func.lower(models.Client.client_email).like(pattern),
                func.lower(models.Client.case_name).like(pattern),
            )
        )
    count = query.count()
    column = SORTABLE_COLUMNS.get(order_by, models.Client.created_at)
    query = query.order_by(column.asc() if direction == "asc" else column.desc())
    rows = query.offset((page - 1) * page_size).limit(page_size).all()
    return {
        "data": rows,
        "count": count,
        "page": page,
        "page_size": page_size,
        "total_pages": math.ceil(count / page_size) if count else 0,
    }


def update(db: Session, client: models.Client, data: Dict[str, Any]) -> Dict[str, Any]:
    """Actualización parcial. Devuelve los campos cambiados para auditoría."""
    locked = {"contract_template_id", "questionnaire_template_id", "required_documents"}
    if client.status == ClientStatus.completed and locked & set(data):
        raise ConflictError("CLIENT_COMPLETED", "La sala ya fue completada; no se puede cambiar su configuración")

    if "contract_template_id" in data:
        _owned_template(db, models.ContractTemplate, data["contract_template_id"], client.user_id)
    if "questionnaire_template_id" in data:
        _owned_template(db, models.QuestionnaireTemplate, data["questionnaire_template_id"], client.user_id)

    changed: Dict[str, Any] = {}
    for field, value in data.items():
        if getattr(client, field) != value:
            setattr(client, field, value)
            changed[field] = value
    return changed


def soft_delete(db: Session, client: models.Client) -> None:
    client.deleted_at = datetime.utcnow()
    revoke_active_links(db, client.id)


def dashboard_stats(db: Session, actor: models.Profile) -> Dict[str, Any]:
    base = visible_query(db, actor)
    return {
        "total": base.count(),
        "pending": base.filter(models.Client.status == ClientStatus.pending).count(),
        "completed": base.filter(models.Client.status == ClientStatus.completed).count(),
        "recent": base.order_by(models.Client.created_at.desc()).limit(5).all(),
    }

# ---------------------------------------------------------------------------------
# 📎 Documentos y respuestas (vista del abogado)
# ---------------------------------------------------------------------------------

def get_document(db: Session, client: models.Client, document_id: str) -> models.ClientDocument:
    doc = (
        db.query(models.ClientDocument)
        .filter(models.ClientDocument.id == document_id, models.ClientDocument.client_id == client.id)
        .first()
    )
    if doc is None:
        raise NotFoundError("DOCUMENT_NOT_FOUND", "Documento no encontrado")
    return doc


def delete_document(db: Session, doc: models.ClientDocument) -> None:
    storage.delete(doc.file_url)
    db.delete(doc)


def answers_for(db: Session, client_id: str) -> List[models.ClientAnswer]:
    return (
        db.query(models.ClientAnswer)
        .filter(models.ClientAnswer.client_id == client_id)
        .order_by(models.ClientAnswer.created_at.asc())
        .all()
    )
