# sala_cliente/routers/admin.py
# =============================================================================
# 👑 Panel de administración del despacho (admin / super_admin)
# - Usuarios: listado con nº de salas, detalle, cambio de estado y rol
# - Organización: datos + métricas, edición de marca y facturación
# - Auditoría paginada e invitaciones en todos sus estados
# =============================================================================

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from sala_cliente import models, schemas
from sala_cliente.core.security import require_admin
from sala_cliente.crud import accounts_crud, audit_crud, invitations_crud
from sala_cliente.db import get_db
from sala_cliente.routers.invitations import to_out as invitation_out

router = APIRouter(prefix="/api/admin", tags=["admin"])

# ------------------------------ Helpers locales -------------------------------

def _user_out(user: models.Profile, clients_count: int) -> schemas.UserAdminOut:
    out = schemas.UserAdminOut.model_validate(user)
    out.clients_count = clients_count
    out.approved_by = user.approved_by
    return out


def audit_out(entry: models.AuditLog) -> schemas.AuditLogOut:
    out = schemas.AuditLogOut.model_validate(entry)
    out.user_email = entry.user.email if entry.user else None
    return out

# --------------------------------- Usuarios -----------------------------------

@router.get("/users", response_model=List[schemas.UserAdminOut])
def list_users(db: Session = Depends(get_db), admin: models.Profile = Depends(require_admin)):
    return [_user_out(user, n) for user, n in accounts_crud.list_org_users(db, admin.organization_id)]


@router.get("/users/{user_id}", response_model=schemas.UserAdminOut)
def get_user(user_id: str, db: Session = Depends(get_db), admin: models.Profile = Depends(require_admin)):
    user = accounts_crud.get_user_in_scope(db, admin, user_id)
    return _user_out(user, accounts_crud.clients_count(db, user.id))


@router.patch("/users/{user_id}", response_model=schemas.UserAdminOut)
def update_user(
    user_id: str,
    payload: schemas.UserAdminUpdate,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_admin),
):
    """
    Cambia estado (active/suspended/pending) y/o rol.
    - Pasar a active registra approved_at/approved_by.
    - Nadie puede cambiarse a sí mismo; solo super_admin concede super_admin.
    """
    user = accounts_crud.get_user_in_scope(db, admin, user_id)
    changes = accounts_crud.admin_update_user(db, admin, user, status=payload.status, role=payload.role)
    if changes:
        audit_crud.log_action(
            db,
            action="user_updated",
            organization_id=user.organization_id,
            user_id=admin.id,
            resource_type="profile",
            resource_id=user.id,
            details=changes,
        )
        db.commit()
        db.refresh(user)
    return _user_out(user, accounts_crud.clients_count(db, user.id))

# ------------------------------- Organización ---------------------------------

def _org_with_stats(db: Session, org: models.Organization) -> schemas.OrganizationWithStats:
    base = schemas.OrganizationOut.model_validate(org).model_dump()
    return schemas.OrganizationWithStats(**base, stats=accounts_crud.organization_stats(db, org.id))


@router.get("/organization", response_model=schemas.OrganizationWithStats)
def get_organization(db: Session = Depends(get_db), admin: models.Profile = Depends(require_admin)):
    org = accounts_crud.get_organization(db, admin.organization_id)
    return _org_with_stats(db, org)


@router.patch("/organization", response_model=schemas.OrganizationWithStats)
def update_organization(
    payload: schemas.OrganizationUpdate,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_admin),
):
    org = accounts_crud.get_organization(db, admin.organization_id)
    data = payload.model_dump(exclude_unset=True)
    if data:
        accounts_crud.update_organization(db, org, data)
        audit_crud.log_action(
            db,
            action="organization_updated",
            organization_id=org.id,
            user_id=admin.id,
            resource_type="organization",
            resource_id=org.id,
            details={"fields": sorted(data)},
        )
        db.commit()
        db.refresh(org)
    return _org_with_stats(db, org)

# -------------------------------- Auditoría -----------------------------------

@router.get("/audit-logs", response_model=schemas.AuditLogPage)
def list_audit_logs(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    action: Optional[str] = None,
    client_id: Optional[str] = None,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(require_admin),
):
    rows, total = audit_crud.list_for_org(
        db, admin.organization_id, limit=limit, offset=offset, action=action, client_id=client_id
    )
    return schemas.AuditLogPage(logs=[audit_out(r) for r in rows], total=total, limit=limit, offset=offset)

# ------------------------------- Invitaciones ---------------------------------

@router.get("/invitations", response_model=List[schemas.InvitationOut])
def list_all_invitations(db: Session = Depends(get_db), admin: models.Profile = Depends(require_admin)):
    rows = invitations_crud.list_for_org(
        db, admin.organization_id, include_accepted=True, include_revoked=True, include_expired=True
    )
    return [invitation_out(inv) for inv in rows]
