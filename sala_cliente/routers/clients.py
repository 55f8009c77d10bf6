# sala_cliente/routers/clients.py
# =================================================================================
# 🚪 SALAS DE CLIENTE (vista del abogado)
# ---------------------------------------------------------------------------------
# - Alta de sala + primer enlace mágico (+ email opcional al cliente)
# - Listado paginado con búsqueda, orden y filtro por estado; métricas del panel
# - Detalle, edición, borrado lógico
# - Enlaces: generar (revoca el anterior), listar, revocar
# - Documentos subidos por el cliente: listar, descargar, eliminar
# - Respuestas del cuestionario y actividad de auditoría de la sala
# =================================================================================

from datetime import datetime, timedelta
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import FileResponse
from loguru import logger
from sqlalchemy.orm import Session

from sala_cliente import mailer, models, schemas, storage
from sala_cliente.core.errors import ConflictError
from sala_cliente.core.security import get_current_user
from sala_cliente.crud import audit_crud, clients_crud, portal_crud
from sala_cliente.db import get_db
from sala_cliente.models import ClientStatus
from sala_cliente.routers.admin import audit_out

router = APIRouter(prefix="/api/clients", tags=["clients"])

# =================================================================================
# 🧰 Serialización
# =================================================================================
def link_out(link: models.ClientLink) -> schemas.LinkOut:
    return schemas.LinkOut(
        id=link.id,
        token=link.magic_link_token,
        url=clients_crud.sala_url(link.magic_link_token),
        expires_at=link.expires_at,
        revoked_at=link.revoked_at,
        access_count=link.access_count or 0,
        last_accessed_at=link.last_accessed_at,
        created_at=link.created_at,
        active=clients_crud.link_is_active(link),
    )


def answer_out(answer: models.ClientAnswer) -> schemas.AnswerOut:
    return schemas.AnswerOut(
        id=answer.id,
        question_id=answer.question_id,
        question_text=answer.question.question_text if answer.question else None,
        answer_text=answer.answer_text,
        created_at=answer.created_at,
    )


def _detail(db: Session, client: models.Client) -> schemas.ClientDetail:
    base = schemas.ClientOut.model_validate(client).model_dump()
    link = clients_crud.active_link(client)
    return schemas.ClientDetail(
        **base,
        signature_hash=client.signature_hash,
        signature_ip=client.signature_ip,
        contract_template_name=client.contract_template.name if client.contract_template else None,
        questionnaire_template_name=client.questionnaire_template.name if client.questionnaire_template else None,
        active_link=link_out(link) if link else None,
        documents=[schemas.DocumentOut.model_validate(d) for d in client.documents],
        questions=[schemas.QuestionOut.model_validate(q) for q in portal_crud.questions_for(client)],
        answers=[answer_out(a) for a in clients_crud.answers_for(db, client.id)],
    )


def _send_link_email(db: Session, client: models.Client, link: models.ClientLink, actor: models.Profile) -> None:
    """Envía (o simula) el enlace al cliente y deja la notificación registrada."""
    owner = client.owner or actor
    firm_name = owner.firm_name or (owner.organization.name if owner.organization else owner.full_name)
    url = clients_crud.sala_url(link.magic_link_token)
    mailer.notify(
        db,
        type="sala_link",
        recipient_email=client.client_email,
        organization_id=client.organization_id,
        client_id=client.id,
        send=lambda: mailer.send_sala_link_email(
            client.client_email, client.client_name, firm_name, client.case_name,
            url, link.expires_at, client.custom_message,
        ),
    )

# =================================================================================
# ✨ Alta y listado
# =================================================================================
@router.post("", response_model=schemas.ClientCreated, status_code=status.HTTP_201_CREATED)
def create_client(
    payload: schemas.ClientCreate,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
):
    """Crea la sala en estado pending con su primer enlace (vence en expiration_days)."""
    data = payload.model_dump(exclude={"send_email"})
    client, link = clients_crud.create(db, current_user, **data)

    if payload.send_email:
        _send_link_email(db, client, link, current_user)

    audit_crud.log_action(
        db,
        action="client_created",
        organization_id=client.organization_id,
        user_id=current_user.id,
        client_id=client.id,
        resource_type="client",
        resource_id=client.id,
        details={"client_email": client.client_email, "case_name": client.case_name, "email_sent": payload.send_email},
    )
    db.commit()
    db.refresh(client)
    db.refresh(link)
    logger.info("Sala {} creada por {}", client.id, current_user.id)

    base = schemas.ClientOut.model_validate(client).model_dump()
    return schemas.ClientCreated(**base, link=link_out(link))


@router.get("", response_model=schemas.ClientPage)
def list_clients(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100),
    order_by: Literal["created_at", "client_name", "case_name", "status", "completed_at"] = Query(default="created_at"),
    direction: Literal["asc", "desc"] = Query(default="desc"),
    status_filter: Optional[Literal["pending", "completed"]] = Query(default=None, alias="status"),
    search: Optional[str] = Query(default=None, max_length=160),
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
):
    result = clients_crud.list_page(
        db,
        current_user,
        page=page,
        page_size=page_size,
        order_by=order_by,
        direction=direction,
        status=status_filter,
        search=search,
    )
    result["data"] = [schemas.ClientOut.model_validate(c) for c in result["data"]]
    return schemas.ClientPage(**result)


@router.get("/stats", response_model=schemas.DashboardStats)
def client_stats(db: Session = Depends(get_db), current_user: models.Profile = Depends(get_current_user)):
    stats = clients_crud.dashboard_stats(db, current_user)
    stats["recent"] = [schemas.ClientOut.model_validate(c) for c in stats["recent"]]
    return schemas.DashboardStats(**stats)

# =================================================================================
# 🔎 Detalle, edición y borrado
# =================================================================================
@router.get("/{client_id}", response_model=schemas.ClientDetail)
def get_client(client_id: str, db: Session = Depends(get_db), current_user: models.Profile = Depends(get_current_user)):
    client = clients_crud.get_visible(db, current_user, client_id)
    return _detail(db, client)


@router.patch("/{client_id}", response_model=schemas.ClientDetail)
def update_client(
    client_id: str,
    payload: schemas.ClientUpdate,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
):
    client = clients_crud.get_visible(db, current_user, client_id)
    changed = clients_crud.update(db, client, payload.model_dump(exclude_unset=True))
    if changed:
        audit_crud.log_action(
            db,
            action="client_updated",
            organization_id=client.organization_id,
            user_id=current_user.id,
            client_id=client.id,
            resource_type="client",
            resource_id=client.id,
            details={"fields": sorted(changed)},
        )
        db.commit()
        db.refresh(client)
    return _detail(db, client)


@router.delete("/{client_id}", response_model=schemas.PortalActionResult)
def delete_client(client_id: str, db: Session = Depends(get_db), current_user: models.Profile = Depends(get_current_user)):
    """Borrado lógico: la sala desaparece de listados y sus enlaces dejan de servir."""
    client = clients_crud.get_visible(db, current_user, client_id)
    clients_crud.soft_delete(db, client)
    audit_crud.log_action(
        db,
        action="client_deleted",
        organization_id=client.organization_id,
        user_id=current_user.id,
        client_id=client.id,
        resource_type="client",
        resource_id=client.id,
        details={"client_name": client.client_name},
    )
    db.commit()
    return schemas.PortalActionResult(message="Sala eliminada")

# =================================================================================
# 🔗 Enlaces mágicos
# =================================================================================
@router.post("/{client_id}/links", response_model=schemas.LinkOut, status_code=status.HTTP_201_CREATED)
def generate_link(
    client_id: str,
    payload: schemas.GenerateLinkRequest,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
):
    """Emite un enlace nuevo; el anterior queda revocado."""
    client = clients_crud.get_visible(db, current_user, client_id)
    if client.status == ClientStatus.completed:
        raise ConflictError("CLIENT_COMPLETED", "La sala ya fue completada")

    expires_at = datetime.utcnow() + timedelta(hours=payload.expires_in_hours)
    link = clients_crud.issue_link(db, client, expires_at)
    if payload.send_email:
        _send_link_email(db, client, link, current_user)

    audit_crud.log_action(
        db,
        action="link_generated",
        organization_id=client.organization_id,
        user_id=current_user.id,
        client_id=client.id,
        resource_type="client_link",
        resource_id=link.id,
        details={"expires_in_hours": payload.expires_in_hours, "email_sent": payload.send_email},
    )
    db.commit()
    db.refresh(link)
    return link_out(link)


@router.get("/{client_id}/links", response_model=List[schemas.LinkOut])
def list_links(client_id: str, db: Session = Depends(get_db), current_user: models.Profile = Depends(get_current_user)):
    client = clients_crud.get_visible(db, current_user, client_id)
    return [link_out(link) for link in client.links]


@router.post("/{client_id}/links/{link_id}/revoke", response_model=schemas.LinkOut)
def revoke_link(
    client_id: str,
    link_id: str,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
):
    client = clients_crud.get_visible(db, current_user, client_id)
    link = clients_crud.revoke_link(db, client, link_id)
    audit_crud.log_action(
        db,
        action="link_revoked",
        organization_id=client.organization_id,
        user_id=current_user.id,
        client_id=client.id,
        resource_type="client_link",
        resource_id=link.id,
    )
    db.commit()
    db.refresh(link)
    return link_out(link)

# =================================================================================
# 📎 Documentos
# =================================================================================
@router.get("/{client_id}/documents", response_model=List[schemas.DocumentOut])
def list_documents(client_id: str, db: Session = Depends(get_db), current_user: models.Profile = Depends(get_current_user)):
    client = clients_crud.get_visible(db, current_user, client_id)
    return [schemas.DocumentOut.model_validate(d) for d in client.documents]


@router.get("/{client_id}/documents/{document_id}/download")
def download_document(
    client_id: str,
    document_id: str,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
):
    client = clients_crud.get_visible(db, current_user, client_id)
    doc = clients_crud.get_document(db, client, document_id)
    if not storage.exists(doc.file_url):
        logger.error("Documento {} sin archivo en almacenamiento ({})", doc.id, doc.file_url)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Archivo no encontrado")
    return FileResponse(
        storage.resolve(doc.file_url),
        media_type=doc.content_type or "application/octet-stream",
        filename=doc.file_name or doc.file_url.rsplit("/", 1)[-1],
    )


@router.delete("/{client_id}/documents/{document_id}", response_model=schemas.PortalActionResult)
def delete_document(
    client_id: str,
    document_id: str,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
):
    client = clients_crud.get_visible(db, current_user, client_id)
    doc = clients_crud.get_document(db, client, document_id)
    details = {"document_type": doc.document_type, "file_name": doc.file_name}
    clients_crud.delete_document(db, doc)
    audit_crud.log_action(
        db,
        action="document_deleted",
        organization_id=client.organization_id,
        user_id=current_user.id,
        client_id=client.id,
        resource_type="client_document",
        resource_id=document_id,
        details=details,
    )
    db.commit()
    return schemas.PortalActionResult(message="Documento eliminado")

# =================================================================================
# 📝 Respuestas y actividad
# =================================================================================
@router.get("/{client_id}/answers", response_model=List[schemas.AnswerOut])
def list_answers(client_id: str, db: Session = Depends(get_db), current_user: models.Profile = Depends(get_current_user)):
    client = clients_crud.get_visible(db, current_user, client_id)
    return [answer_out(a) for a in clients_crud.answers_for(db, client.id)]


@router.get("/{client_id}/activity", response_model=List[schemas.AuditLogOut])
def client_activity(client_id: str, db: Session = Depends(get_db), current_user: models.Profile = Depends(get_current_user)):
    client = clients_crud.get_visible(db, current_user, client_id)
    return [audit_out(entry) for entry in audit_crud.list_for_client(db, client.id)]
