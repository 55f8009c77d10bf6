# sala_cliente/crud/accounts_crud.py                                          # Ruta del archivo dentro del proyecto.

# =================================================================================
# 👩‍⚖️ CRUD de cuentas: despachos (organizations) y usuarios (profiles)
# - Registro público (crea despacho + admin) y registro por invitación.
# - Autenticación por email/contraseña.
# - Gestión de usuarios y del despacho desde el panel de administración.
# =================================================================================

import re                                   # Limpieza de slugs.
import unicodedata                          # Eliminación de acentos en slugs.
from datetime import datetime               # Sellos de aprobación/login.
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from sqlalchemy import func
from sqlalchemy.orm import Session

from sala_cliente import auth, models
from sala_cliente.core.errors import ConflictError, ForbiddenError, NotFoundError, SalaError
from sala_cliente.crud import invitations_crud
from sala_cliente.models import UserRole, UserStatus
from sala_cliente.utils.request_meta import mask_email

# ---------------------------------------------------------------------------------
# 🛠️ Helpers
# ---------------------------------------------------------------------------------

def slugify(text: str) -> str:
    """'Despacho Pérez & Asociados' → 'despacho-perez-asociados'."""
    txt = unicodedata.normalize("NFKD", (text or "").strip())
    txt = "".join(ch for ch in txt if not unicodedata.combining(ch))
    txt = re.sub(r"[^a-zA-Z0-9]+", "-", txt).strip("-").lower()
    return txt or "despacho"


def unique_slug(db: Session, name: str) -> str:
    """Slug libre: base, base-1, base-2, ..."""
    base = slugify(name)
    slug, n = base, 0
    while db.query(models.Organization.id).filter(models.Organization.slug == slug).first() is not None:
        n += 1
        slug = f"{base}-{n}"
    return slug


def get_by_email(db: Session, email: str) -> Optional[models.Profile]:
    if not email:
        return None
    norm = email.strip().lower()
    return db.query(models.Profile).filter(func.lower(models.Profile.email) == norm).first()


def _ensure_email_free(db: Session, email: str) -> None:
    if get_by_email(db, email) is not None:
        raise ConflictError("EMAIL_TAKEN", "Ya existe una cuenta con este email")

# ---------------------------------------------------------------------------------
# 📝 Registro
# ---------------------------------------------------------------------------------

def register_firm(
    db: Session,
    *,
    email: str,
    password: str,
    firm_name: str,
    full_name: str,
    license_number: Optional[str] = None,
    phone: Optional[str] = None,
) -> Tuple[models.Profile, models.Organization]:
    """Alta pública: siempre crea un despacho nuevo con el usuario como admin."""
    _ensure_email_free(db, email)

    org = models.Organization(
        name=firm_name,
        slug=unique_slug(db, firm_name),
        subscription_plan=models.SubscriptionPlan.free,
    )
    db.add(org)
    db.flush()

    profile = models.Profile(
        email=email.strip().lower(),
        password_hash=auth.get_password_hash(password),
        full_name=full_name,
        firm_name=firm_name,
        license_number=license_number,
        phone=phone,
        organization_id=org.id,
        role=UserRole.admin,
        status=UserStatus.active,
    )
    db.add(profile)
    db.flush()
    org.owner_id = profile.id

    logger.info("Registro de despacho '{}' por {}", org.slug, mask_email(profile.email))
    return profile, org


def register_with_invitation(
    db: Session,
    *,
    token: str,
    email: str,
    password: str,
    full_name: str,
    phone: Optional[str] = None,
    license_number: Optional[str] = None,
) -> Tuple[models.Profile, models.Invitation]:
    inv = invitations_crud.get_usable_by_token(db, token)

    if inv.invited_email_match_required and inv.email.lower() != email.strip().lower():
        raise SalaError("EMAIL_MISMATCH", "El email no coincide con el de la invitación")
    _ensure_email_free(db, email)

    profile = models.Profile(
        email=email.strip().lower(),
        password_hash=auth.get_password_hash(password),
        full_name=full_name,
        phone=phone,
        license_number=license_number,
        firm_name=inv.organization.name if inv.organization else None,
        organization_id=inv.organization_id,
        role=inv.role,
        status=UserStatus.active,
        approved_by=inv.invited_by,
        approved_at=datetime.utcnow(),
    )
    db.add(profile)
    invitations_crud.mark_accepted(inv)
    db.flush()

    logger.info("Invitación aceptada por {} (org={})", mask_email(profile.email), inv.organization_id)
    return profile, inv

# ---------------------------------------------------------------------------------
# 🔐 Login
# ---------------------------------------------------------------------------------

def authenticate(db: Session, email: str, password: str) -> Optional[models.Profile]:
    """Perfil si email y contraseña coinciden; None en cualquier otro caso."""
    profile = get_by_email(db, email)
    if profile is None or not auth.verify_password(password, profile.password_hash):
        return None
    return profile


def mark_login(db: Session, profile: models.Profile) -> None:
    profile.last_login_at = datetime.utcnow()
    db.commit()

# ---------------------------------------------------------------------------------
# 🙋 Perfil propio
# ---------------------------------------------------------------------------------

def update_profile(db: Session, profile: models.Profile, data: Dict[str, Any]) -> models.Profile:
    for field, value in data.items():
        setattr(profile, field, value)
    db.commit()
    db.refresh(profile)
    return profile

# ---------------------------------------------------------------------------------
# 👑 Usuarios del despacho
# ---------------------------------------------------------------------------------

def _clients_count_query(db: Session):
    return (
        db.query(models.Client.user_id, func.count(models.Client.id).label("n"))
        .filter(models.Client.deleted_at.is_(None))
        .group_by(models.Client.user_id)
        .subquery()
    )


def list_org_users(db: Session, organization_id: str) -> List[Tuple[models.Profile, int]]:
    counts = _clients_count_query(db)
    rows = (
        db.query(models.Profile, func.coalesce(counts.c.n, 0))
        .outerjoin(counts, counts.c.user_id == models.Profile.id)
        .filter(models.Profile.organization_id == organization_id)
        .order_by(models.Profile.created_at.desc())
        .all()
    )
    return [(profile, int(n)) for profile, n in rows]


def clients_count(db: Session, user_id: str) -> int:
    return (
        db.query(func.count(models.Client.id))
        .filter(models.Client.user_id == user_id, models.Client.deleted_at.is_(None))
        .scalar()
        or 0
    )


def get_user_in_scope(db: Session, actor: models.Profile, user_id: str) -> models.Profile:
    user = db.get(models.Profile, user_id)
    if user is None:
        raise NotFoundError("USER_NOT_FOUND", "Usuario no encontrado")
    if actor.role != UserRole.super_admin and user.organization_id != actor.organization_id:
        raise NotFoundError("USER_NOT_FOUND", "Usuario no encontrado")
    return user


def admin_update_user(
    db: Session,
    actor: models.Profile,
    target: models.Profile,
    *,
    status: Optional[str] = None,
    role: Optional[str] = None,
) -> Dict[str, Any]:
    """Aplica cambios de estado/rol y devuelve {campo: [antes, después]} para auditoría."""
    if target.id == actor.id:
        raise SalaError("SELF_UPDATE", "No puedes cambiar tu propio estado o rol")
    if role == UserRole.super_admin.value and actor.role != UserRole.super_admin:
        raise ForbiddenError("FORBIDDEN", "Solo un super administrador puede asignar ese rol")
    if target.role == UserRole.super_admin and actor.role != UserRole.super_admin:
        raise ForbiddenError("FORBIDDEN", "No puedes modificar a un super administrador")

    changes: Dict[str, Any] = {}
    if status is not None and status != target.status.value:
        changes["status"] = [target.status.value, status]
        target.status = UserStatus(status)
        if target.status == UserStatus.active:
            target.approved_at = datetime.utcnow()
            target.approved_by = actor.id
    if role is not None and role != target.role.value:
        changes["role"] = [target.role.value, role]
        target.role = UserRole(role)
    return changes

# ---------------------------------------------------------------------------------
# 🏢 Despacho
# ---------------------------------------------------------------------------------

def get_organization(db: Session, organization_id: Optional[str]) -> models.Organization:
    org = db.get(models.Organization, organization_id) if organization_id else None
    if org is None:
        raise NotFoundError("ORGANIZATION_NOT_FOUND", "Organización no encontrada")
    return org


def organization_stats(db: Session, organization_id: str) -> Dict[str, Any]:
    users_count = (
        db.query(func.count(models.Profile.id))
        .filter(models.Profile.organization_id == organization_id)
        .scalar()
    )
    lawyers_count = (
        db.query(func.count(models.Profile.id))
        .filter(models.Profile.organization_id == organization_id, models.Profile.role == UserRole.lawyer)
        .scalar()
    )
    clients_total = (
        db.query(func.count(models.Client.id))
        .filter(models.Client.organization_id == organization_id, models.Client.deleted_at.is_(None))
        .scalar()
    )
    documents_count, storage_bytes = (
        db.query(func.count(models.ClientDocument.id), func.coalesce(func.sum(models.ClientDocument.file_size_bytes), 0))
        .join(models.Client, models.Client.id == models.ClientDocument.client_id)
        .filter(models.Client.organization_id == organization_id)
        .one()
    )
    return {
        "users_count": users_count or 0,
        "lawyers_count": lawyers_count or 0,
        "clients_count": clients_total or 0,
        "documents_count": documents_count or 0,
        "storage_used_mb": round((storage_bytes or 0) / (1024 * 1024), 2),
    }


def update_organization(db: Session, org: models.Organization, data: Dict[str, Any]) -> models.Organization:
    for field, value in data.items():
        setattr(org, field, value)
    return org
