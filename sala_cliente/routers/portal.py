# sala_cliente/routers/portal.py                                                  # Router público del portal del cliente.

# =================================================================================
# 🧭 PORTAL DEL CLIENTE (enlace mágico, sin login)
# ---------------------------------------------------------------------------------
# La identidad sale SIEMPRE del token de la ruta: /api/portal/{token}/...
# - Token inexistente → 404, revocado o caducado → 410 con {reason}.
# - Flujo: consent → (firma) → documents → questionnaire → complete.
# - Completar revoca el enlace (uso único) y avisa al abogado por email.
# =================================================================================

from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import FileResponse
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sala_cliente import mailer, models, rate_limit, schemas, storage
from sala_cliente.crud import audit_crud, portal_crud
from sala_cliente.db import get_db
from sala_cliente.routers.clients import answer_out
from sala_cliente.utils.request_meta import client_ip
from sala_cliente.utils.uploads import DOCUMENT_EXTENSIONS, read_upload

router = APIRouter(prefix="/api/portal", tags=["portal"])

# =================================================================================
# 🧰 Helpers
# =================================================================================
def _audit(db: Session, client: models.Client, action: str, request: Request, details=None) -> None:
    audit_crud.log_action(                                                         # Sin user_id: actúa el cliente.
        db,
        action=action,
        organization_id=client.organization_id,
        client_id=client.id,
        resource_type="client",
        resource_id=client.id,
        details=details,
        ip_address=client_ip(request),
    )

def _branding(client: models.Client) -> schemas.PortalBranding:
    owner = client.owner
    org = owner.organization if owner else None
    return schemas.PortalBranding(
        firm_name=(owner.firm_name if owner and owner.firm_name else (org.name if org else None)),
        firm_logo_url=(owner.firm_logo_url if owner and owner.firm_logo_url else (org.logo_url if org else None)),
        calendar_link=owner.calendar_link if owner else None,
        lawyer_name=owner.full_name if owner else None,
        primary_color=org.primary_color if org else None,
        secondary_color=org.secondary_color if org else None,
    )

# =================================================================================
# 👀 GET /api/portal/{token}: Estado completo del asistente
# =================================================================================
@router.get("/{token}", response_model=schemas.PortalView)
def view_portal(token: str, request: Request, db: Session = Depends(get_db)):
    rate_limit.enforce(f"portal:{client_ip(request)}", "PORTAL_RL", 60, 60)        # Frena el barrido de tokens.
    result = portal_crud.require_valid(db, token, track_access=True)               # Cuenta el acceso.
    client, link = result.client, result.link

    contract = None
    if client.contract_template is not None:
        contract = schemas.PortalContract(
            name=client.contract_template.name,
            download_url=f"/api/portal/{token}/contract",
        )

    return schemas.PortalView(
        client_id=client.id,
        client_name=client.client_name,
        case_name=client.case_name,
        custom_message=client.custom_message,
        status=client.status,
        required_documents=list(client.required_documents or []),
        uploaded_document_types=portal_crud.uploaded_types(client),
        contract=contract,
        questions=[schemas.QuestionOut.model_validate(q) for q in portal_crud.questions_for(client)],
        answers={a.question_id: a.answer_text for a in client.answers},
        consent_accepted=client.consent_accepted_at is not None,
        signed=bool(client.signature_hash),
        steps=portal_crud.steps_for(client),
        expires_at=link.expires_at,
        branding=_branding(client),
    )

# =================================================================================
# 📄 GET /api/portal/{token}/contract: Descarga del contrato
# =================================================================================
@router.get("/{token}/contract")
def download_contract(token: str, db: Session = Depends(get_db)):
    client = portal_crud.require_valid(db, token).client
    template = client.contract_template
    if template is None or not storage.exists(template.file_url):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Esta sala no tiene contrato")
    ext = storage.file_extension(template.file_url)
    return FileResponse(storage.resolve(template.file_url), filename=f"{template.name}.{ext}")

# =================================================================================
# ✅ POST /api/portal/{token}/consent
# =================================================================================
@router.post("/{token}/consent", response_model=schemas.PortalActionResult)
def accept_consent(token: str, payload: schemas.ConsentRequest, request: Request, db: Session = Depends(get_db)):
    if not payload.accepted:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Debes aceptar el aviso de privacidad")
    client = portal_crud.require_valid(db, token).client
    if portal_crud.accept_consent(client):                                         # Idempotente: solo audita la primera vez.
        _audit(db, client, "consent_accepted", request)
        db.commit()
    return schemas.PortalActionResult(message="Consentimiento registrado")

# =================================================================================
# ✍️ POST /api/portal/{token}/sign
# =================================================================================
@router.post("/{token}/sign", response_model=schemas.PortalActionResult)
def sign_contract(token: str, payload: schemas.SignRequest, request: Request, db: Session = Depends(get_db)):
    client = portal_crud.require_valid(db, token).client
    ip = client_ip(request)
    portal_crud.sign(client, signature_data=payload.signature_data, signed_name=payload.signed_name, ip=ip)
    _audit(db, client, "signature_completed", request, {"signed_name": payload.signed_name, "ip": ip})
    db.commit()
    logger.info("Sala {} firmada desde {}", client.id, ip)
    return schemas.PortalActionResult(message="Firma registrada")

# =================================================================================
# 📝 POST /api/portal/{token}/answers
# =================================================================================
@router.post("/{token}/answers", response_model=List[schemas.AnswerOut])
def submit_answers(token: str, payload: schemas.AnswersSubmit, request: Request, db: Session = Depends(get_db)):
    client = portal_crud.require_valid(db, token).client
    if not payload.answers:                                                        # Lista vacía → nada que guardar.
        return []
    rows = portal_crud.submit_answers(db, client, [a.model_dump() for a in payload.answers])
    _audit(db, client, "questionnaire_completed", request, {"answers_count": len(rows)})
    db.commit()
    for row in rows:
        db.refresh(row)
    return [answer_out(row) for row in rows]

# =================================================================================
# 📎 POST /api/portal/{token}/documents
# =================================================================================
@router.post("/{token}/documents", response_model=schemas.DocumentOut, status_code=status.HTTP_201_CREATED)
def upload_document(
    token: str,
    request: Request,
    document_type: str = Form(...),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
):
    client = portal_crud.require_valid(db, token).client
    data, ext = read_upload(file, DOCUMENT_EXTENSIONS)                              # 400 / 413 según el caso.
    doc = portal_crud.upload_document(
        db,
        client,
        document_type=document_type,
        file_name=file.filename,
        content_type=file.content_type,
        data=data,
        ext=ext,
    )
    _audit(db, client, "document_uploaded", request,
           {"file_name": doc.file_name, "document_type": doc.document_type, "file_size": doc.file_size_bytes})
    key = doc.file_url
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        storage.delete(key)                                                        # Sin fila no debe quedar archivo.
        logger.exception("Error confirmando documento de sala {}; archivo {} eliminado", client.id, key)
        raise
    db.refresh(doc)
    return doc

# =================================================================================
# 🏁 POST /api/portal/{token}/complete
# =================================================================================
@router.post("/{token}/complete", response_model=schemas.PortalActionResult)
def complete_portal(token: str, request: Request, db: Session = Depends(get_db)):
    client = portal_crud.require_valid(db, token).client
    portal_crud.complete(db, client)                                               # 409 INCOMPLETE con lo que falta.
    _audit(db, client, "portal_completed", request)

    owner = client.owner
    if owner is not None:                                                          # Aviso al abogado responsable.
        mailer.notify(
            db,
            type="sala_completed",
            recipient_email=owner.email,
            organization_id=client.organization_id,
            client_id=client.id,
            send=lambda: mailer.send_sala_completed_email(
                owner.email, owner.full_name, client.client_name, client.case_name
            ),
        )
    db.commit()
    logger.info("Sala {} completada", client.id)
    return schemas.PortalActionResult(message="¡Listo! Tu información fue enviada a tu abogado")
