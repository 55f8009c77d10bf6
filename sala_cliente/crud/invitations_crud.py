# sala_cliente/crud/invitations_crud.py                                       # Ruta del archivo dentro del proyecto.

# =================================================================================
# ✉️ CRUD de Invitaciones al despacho
# - create / list / revoke / resend, siempre acotados a la organización.
# - invitation_state(): pending | accepted | revoked | expired.
# - get_usable_by_token(): el filtro que usan validate-invitation y el registro.
# =================================================================================

from datetime import datetime, timedelta    # Timestamps de expiración.
from typing import List, Optional           # Tipado.

from loguru import logger                   # Trazas internas.
from sqlalchemy import func                 # lower() para comparar emails.
from sqlalchemy.orm import Session          # Sesión de BD.

from sala_cliente import auth, models
from sala_cliente.core.errors import ConflictError, ForbiddenError, GoneError, NotFoundError
from sala_cliente.utils.request_meta import mask_email

RESEND_EXPIRY_DAYS = 7                      # Vigencia de una invitación reenviada.

# ---------------------------------------------------------------------------------
# 🔎 Estado y búsquedas
# ---------------------------------------------------------------------------------

def invitation_state(inv: models.Invitation, now: Optional[datetime] = None) -> str:
    """Estado derivado de los timestamps. Aceptada gana a revocada, revocada a expirada."""
    now = now or datetime.utcnow()
    if inv.accepted_at is not None:
        return "accepted"
    if inv.revoked_at is not None:
        return "revoked"
    if inv.expires_at < now:
        return "expired"
    return "pending"


def get_by_token(db: Session, token: str) -> Optional[models.Invitation]:
    if not token:
        return None
    return (
        db.query(models.Invitation)
        .filter(models.Invitation.invitation_token == token.strip())
        .first()
    )


def get_usable_by_token(db: Session, token: str) -> models.Invitation:
    """Devuelve la invitación si se puede usar; NotFoundError/GoneError en otro caso."""
    inv = get_by_token(db, token)
    if inv is None:
        raise NotFoundError("INVITATION_NOT_FOUND", "Invitación no encontrada")
    state = invitation_state(inv)
    if state == "expired":
        raise GoneError("INVITATION_EXPIRED", "Esta invitación ha expirado")
    if state == "accepted":
        raise GoneError("INVITATION_ACCEPTED", "Esta invitación ya fue utilizada")
    if state == "revoked":
        raise GoneError("INVITATION_REVOKED", "Esta invitación ha sido revocada")
    return inv


def _active_for_email(
    db: Session, organization_id: str, email: str, exclude_id: Optional[str] = None
) -> Optional[models.Invitation]:
    now = datetime.utcnow()
    query = (
        db.query(models.Invitation)
        .filter(
            models.Invitation.organization_id == organization_id,
            func.lower(models.Invitation.email) == email.lower(),
            models.Invitation.accepted_at.is_(None),
            models.Invitation.revoked_at.is_(None),
            models.Invitation.expires_at >= now,
        )
    )
    if exclude_id is not None:
        query = query.filter(models.Invitation.id != exclude_id)
    return query.first()

# ---------------------------------------------------------------------------------
# ✨ Operaciones
# ---------------------------------------------------------------------------------

def create(
    db: Session,
    *,
    inviter: models.Profile,
    email: str,
    role: str,
    expires_in_days: int = 7,
    email_match_required: bool = True,
) -> models.Invitation:
    email = email.strip().lower()

    member = (
        db.query(models.Profile)
        .filter(
            models.Profile.organization_id == inviter.organization_id,
            func.lower(models.Profile.email) == email,
        )
        .first()
    )
    if member is not None:
        raise ConflictError("ALREADY_MEMBER", "Este usuario ya pertenece a la organización")
    if _active_for_email(db, inviter.organization_id, email) is not None:
        raise ConflictError("INVITATION_EXISTS", "Ya existe una invitación activa para este email")

    inv = models.Invitation(
        organization_id=inviter.organization_id,
        email=email,
        role=models.UserRole(role),
        invited_by=inviter.id,
        invitation_token=auth.generate_link_token(),
        invited_email_match_required=email_match_required,
        expires_at=datetime.utcnow() + timedelta(days=expires_in_days),
    )
    db.add(inv)
    db.flush()
    logger.info("Invitación creada para {} (org={}, role={})", mask_email(email), inv.organization_id, role)
    return inv


def list_for_org(
    db: Session,
    organization_id: str,
    *,
    include_accepted: bool = False,
    include_revoked: bool = False,
    include_expired: bool = False,
) -> List[models.Invitation]:
    query = db.query(models.Invitation).filter(models.Invitation.organization_id == organization_id)
    if not include_accepted:
        query = query.filter(models.Invitation.accepted_at.is_(None))
    if not include_revoked:
        query = query.filter(models.Invitation.revoked_at.is_(None))
    if not include_expired:
        # Las aceptadas no caducan a efectos del listado.
        query = query.filter(
            (models.Invitation.expires_at >= datetime.utcnow()) | models.Invitation.accepted_at.isnot(None)
        )
    return query.order_by(models.Invitation.created_at.desc()).all()


def _get_for_actor(db: Session, actor: models.Profile, invitation_id: str) -> models.Invitation:
    inv = db.get(models.Invitation, invitation_id)
    if inv is None:
        raise NotFoundError("INVITATION_NOT_FOUND", "Invitación no encontrada")
    if inv.organization_id != actor.organization_id and actor.role != models.UserRole.super_admin:
        raise ForbiddenError("FORBIDDEN", "No tienes permisos para revocar esta invitación")
    return inv


def revoke(db: Session, actor: models.Profile, invitation_id: str) -> models.Invitation:
    inv = _get_for_actor(db, actor, invitation_id)
    if inv.accepted_at is not None:
        raise ConflictError("INVITATION_ACCEPTED", "La invitación ya fue aceptada")
    if inv.revoked_at is None:
        inv.revoked_at = datetime.utcnow()
    return inv


def resend(db: Session, actor: models.Profile, invitation_id: str) -> models.Invitation:
    """Nuevo token, 7 días más y sin revocación. No aplica a invitaciones aceptadas."""
    inv = _get_for_actor(db, actor, invitation_id)
    if inv.accepted_at is not None:
        raise ConflictError("INVITATION_ACCEPTED", "La invitación ya fue aceptada")
    if _active_for_email(db, inv.organization_id, inv.email, exclude_id=inv.id) is not None:
        raise ConflictError("INVITATION_EXISTS", "Ya existe una invitación activa para este email")
    inv.invitation_token = auth.generate_link_token()
    inv.expires_at = datetime.utcnow() + timedelta(days=RESEND_EXPIRY_DAYS)
    inv.revoked_at = None
    return inv


def mark_accepted(inv: models.Invitation) -> None:
    inv.accepted_at = datetime.utcnow()
