# sala_cliente/crud/portal_crud.py                                            # Ruta del archivo dentro del proyecto.

# =================================================================================
# 🧭 CRUD del Portal del cliente (flujo del enlace mágico)
# - validate_link(): resuelve el token → sala, con motivo si no es utilizable.
# - consent / sign / submit_answers / upload_document / complete.
# - El orden de los pasos es: consent → documents → questionnaire → complete.
# =================================================================================

import hashlib                                  # SHA-256 de la firma.
from dataclasses import dataclass               # Resultado de la validación.
from datetime import datetime                   # Sellos de tiempo.
from typing import Dict, List, Optional         # Tipado.

from loguru import logger                       # Trazas internas.
from sqlalchemy.exc import SQLAlchemyError      # Fallo del INSERT de documento.
from sqlalchemy.orm import Session              # Sesión de BD.

from sala_cliente import models, storage
from sala_cliente.core.errors import ConflictError, GoneError, NotFoundError, SalaError
from sala_cliente.crud import clients_crud
from sala_cliente.models import ClientStatus

INVALID_MESSAGE = "Enlace inválido"
REVOKED_MESSAGE = "Este enlace ha sido revocado"
EXPIRED_MESSAGE = "Este enlace ha expirado"

# ---------------------------------------------------------------------------------
# 🔎 Validación del enlace
# ---------------------------------------------------------------------------------

@dataclass
class LinkValidation:
    valid: bool
    expired: bool = False
    revoked: bool = False
    link: Optional[models.ClientLink] = None
    client: Optional[models.Client] = None

    @property
    def reason(self) -> Optional[str]:
        if self.valid:
            return None
        if self.revoked:
            return "revoked"
        if self.expired:
            return "expired"
        return "invalid"


def validate_link(db: Session, token: str, *, track_access: bool = False) -> LinkValidation:
    """
    Resuelve el token en orden: inexistente (o sala borrada) → revocado → expirado.
    Con track_access=True incrementa access_count y sella last_accessed_at.
    """
    if not token:
        return LinkValidation(valid=False)
    link = (
        db.query(models.ClientLink)
        .filter(models.ClientLink.magic_link_token == token.strip())
        .first()
    )
    if link is None or link.client is None or link.client.deleted_at is not None:
        return LinkValidation(valid=False)
    if link.revoked_at is not None:
        return LinkValidation(valid=False, revoked=True, link=link, client=link.client)
    now = datetime.utcnow()
    if link.expires_at < now:
        return LinkValidation(valid=False, expired=True, link=link, client=link.client)

    if track_access:
        link.access_count = (link.access_count or 0) + 1
        link.last_accessed_at = now
        db.commit()
    return LinkValidation(valid=True, link=link, client=link.client)


def require_valid(db: Session, token: str, *, track_access: bool = False) -> LinkValidation:
    """validate_link() que lanza NotFoundError (404) o GoneError (410) si no sirve."""
    result = validate_link(db, token, track_access=track_access)
    if result.valid:
        return result
    if result.revoked:
        raise GoneError("LINK_REVOKED", REVOKED_MESSAGE, extra={"reason": "revoked"})
    if result.expired:
        raise GoneError("LINK_EXPIRED", EXPIRED_MESSAGE, extra={"reason": "expired"})
    raise NotFoundError("INVALID_LINK", INVALID_MESSAGE, extra={"reason": "invalid"})

# ---------------------------------------------------------------------------------
# 🧩 Estado del flujo
# ---------------------------------------------------------------------------------

def questions_for(client: models.Client) -> List[models.Question]:
    if client.questionnaire_template is None:
        return []
    return list(client.questionnaire_template.questions)


def steps_for(client: models.Client) -> List[str]:
    steps = ["consent"]
    if client.required_documents:
        steps.append("documents")
    if questions_for(client):
        steps.append("questionnaire")
    steps.append("complete")
    return steps


def uploaded_types(client: models.Client) -> List[str]:
    seen: List[str] = []
    for doc in client.documents:
        if doc.document_type not in seen:
            seen.append(doc.document_type)
    return seen


def missing_requirements(client: models.Client) -> List[str]:
    missing: List[str] = []
    if client.consent_accepted_at is None:
        missing.append("consent")
    if client.contract_template_id and not client.signature_hash:
        missing.append("signature")
    uploaded = set(uploaded_types(client))
    for doc_type in client.required_documents or []:
        if doc_type not in uploaded:
            missing.append(f"document:{doc_type}")
    answered = {a.question_id for a in client.answers}
    for question in questions_for(client):
        if question.id not in answered:
            missing.append(f"question:{question.id}")
    return missing


def _require_pending(client: models.Client) -> None:
    if client.status != ClientStatus.pending:
        raise ConflictError("CLIENT_COMPLETED", "Esta sala ya fue completada")

# ---------------------------------------------------------------------------------
# ✍️ Acciones del cliente
# ---------------------------------------------------------------------------------

def accept_consent(client: models.Client) -> bool:
    """Devuelve True si el consentimiento se registró ahora (False si ya existía)."""
    _require_pending(client)
    if client.consent_accepted_at is not None:
        return False
    client.consent_accepted_at = datetime.utcnow()
    return True


def signature_hash(signature_data: str) -> str:
    return hashlib.sha256(signature_data.encode("utf-8")).hexdigest()


def sign(client: models.Client, *, signature_data: str, signed_name: str, ip: str) -> None:
    _require_pending(client)
    client.signature_data = signature_data
    client.signature_hash = signature_hash(signature_data)
    client.signature_ip = ip
    client.signature_timestamp = datetime.utcnow()
    client.signed_name = signed_name


def submit_answers(db: Session, client: models.Client, answers: List[Dict[str, str]]) -> List[models.ClientAnswer]:
    """Reemplaza todas las respuestas de la sala. Lista vacía → no hace nada."""
    if not answers:
        return []
    _require_pending(client)

    valid_ids = {q.id for q in questions_for(client)}
    seen = set()
    for item in answers:
        qid = item["question_id"]
        if qid not in valid_ids:
            raise SalaError("INVALID_QUESTION", "La pregunta no pertenece al cuestionario de esta sala")
        if qid in seen:
            raise SalaError("DUPLICATE_QUESTION", "Pregunta respondida más de una vez")
        seen.add(qid)

    db.query(models.ClientAnswer).filter(models.ClientAnswer.client_id == client.id).delete(
        synchronize_session=False
    )
    rows = [
        models.ClientAnswer(client_id=client.id, question_id=item["question_id"], answer_text=item["answer_text"])
        for item in answers
    ]
    db.add_all(rows)
    db.flush()
    db.expire(client, ["answers"])
    return rows


def upload_document(
    db: Session,
    client: models.Client,
    *,
    document_type: str,
    file_name: str,
    content_type: Optional[str],
    data: bytes,
    ext: str,
) -> models.ClientDocument:
    _require_pending(client)
    document_type = document_type.strip()
    if not document_type:
        raise SalaError("DOCUMENT_TYPE_REQUIRED", "Indica el tipo de documento")
    if client.required_documents and document_type not in client.required_documents:
        raise SalaError("DOCUMENT_TYPE_NOT_REQUIRED", "Este documento no está entre los solicitados")

    key = storage.save_bytes(storage.document_key(client.user_id, client.id, document_type, ext), data)
    try:
        doc = models.ClientDocument(
            client_id=client.id,
            document_type=document_type,
            file_url=key,
            file_name=file_name,
            file_size_bytes=len(data),
            content_type=content_type,
        )
        db.add(doc)
        db.flush()
    except SQLAlchemyError:
        db.rollback()
        storage.delete(key)
        logger.exception("Error registrando documento; archivo {} eliminado", key)
        raise
    return doc


def complete(db: Session, client: models.Client) -> None:
    _require_pending(client)
    missing = missing_requirements(client)
    if missing:
        raise ConflictError("INCOMPLETE", "Faltan pasos por completar", extra={"missing": missing})
    now = datetime.utcnow()
    client.status = ClientStatus.completed
    client.completed_at = now
    client.link_used = True
    clients_crud.revoke_active_links(db, client.id)
