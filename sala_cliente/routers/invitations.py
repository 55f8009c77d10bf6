# sala_cliente/routers/invitations.py
# =============================================================================
# ✉️ Invitaciones al despacho (solo admin / super_admin)
# - POST /api/invitations               → crea y envía por email
# - GET  /api/invitations               → lista con filtros de estado
# - POST /api/invitations/{id}/revoke   → revoca
# - POST /api/invitations/{id}/resend   → token nuevo + 7 días + reenvío
# =============================================================================

import os
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from sala_cliente import mailer, models, schemas
from sala_cliente.core.security import require_admin
from sala_cliente.crud import audit_crud, invitations_crud
from sala_cliente.db import get_db

router = APIRouter(prefix="/api/invitations", tags=["invitations"])

APP_URL = os.getenv("APP_URL", "http://localhost:3000").rstrip("/")


def invitation_url(token: str) -> str:
    return f"{APP_URL}/register-invite?token={token}"


def to_out(inv: models.Invitation, with_url: bool = False) -> schemas.InvitationOut:
    out = schemas.InvitationOut.model_validate(
        {
            **{c: getattr(inv, c) for c in (
                "id", "email", "role", "organization_id", "invited_by", "invited_email_match_required",
                "expires_at", "accepted_at", "revoked_at", "created_at",
            )},
            "state": invitations_crud.invitation_state(inv),
        }
    )
    if with_url:
        out.invitation_url = invitation_url(inv.invitation_token)
    return out


def _send(db: Session, inv: models.Invitation, inviter: models.Profile) -> None:
    """Envía (o simula) el email de invitación y registra la notificación."""
    url = invitation_url(inv.invitation_token)
    org_name = inv.organization.name if inv.organization else ""
    mailer.notify(
        db,
        type="invitation",
        recipient_email=inv.email,
        organization_id=inv.organization_id,
        send=lambda: mailer.send_invitation_email(
            inv.email, org_name, inviter.full_name, inv.role.value, url, inv.expires_at
        ),
    )


@router.post("", response_model=schemas.InvitationOut, status_code=status.HTTP_201_CREATED)
def create_invitation(
    payload: schemas.InvitationCreate,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_admin),
):
    inv = invitations_crud.create(
        db,
        inviter=admin,
        email=payload.email,
        role=payload.role,
        expires_in_days=payload.expires_in_days,
        email_match_required=payload.email_match_required,
    )
    db.refresh(inv)
    _send(db, inv, admin)
    audit_crud.log_action(
        db,
        action="invitation_created",
        organization_id=admin.organization_id,
        user_id=admin.id,
        resource_type="invitation",
        resource_id=inv.id,
        details={"email": inv.email, "role": inv.role.value, "expires_in_days": payload.expires_in_days},
    )
    db.commit()
    db.refresh(inv)
    return to_out(inv, with_url=True)


@router.get("", response_model=List[schemas.InvitationOut])
def list_invitations(
    include_accepted: bool = False,
    include_revoked: bool = False,
    include_expired: bool = False,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_admin),
):
    rows = invitations_crud.list_for_org(
        db,
        admin.organization_id,
        include_accepted=include_accepted,
        include_revoked=include_revoked,
        include_expired=include_expired,
    )
    return [to_out(inv) for inv in rows]


@router.post("/{invitation_id}/revoke", response_model=schemas.InvitationOut)
def revoke_invitation(
    invitation_id: str,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_admin),
):
    inv = invitations_crud.revoke(db, admin, invitation_id)
    audit_crud.log_action(
        db,
        action="invitation_revoked",
        organization_id=inv.organization_id,
        user_id=admin.id,
        resource_type="invitation",
        resource_id=inv.id,
        details={"email": inv.email},
    )
    db.commit()
    db.refresh(inv)
    return to_out(inv)


@router.post("/{invitation_id}/resend", response_model=schemas.InvitationOut)
def resend_invitation(
    invitation_id: str,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_admin),
):
    inv = invitations_crud.resend(db, admin, invitation_id)
    _send(db, inv, admin)
    audit_crud.log_action(
        db,
        action="invitation_resent",
        organization_id=inv.organization_id,
        user_id=admin.id,
        resource_type="invitation",
        resource_id=inv.id,
        details={"email": inv.email},
    )
    db.commit()
    db.refresh(inv)
    return to_out(inv, with_url=True)
