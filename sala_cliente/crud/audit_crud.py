# sala_cliente/crud/audit_crud.py
# =================================================================================
# 🧾 CRUD de auditoría
# ---------------------------------------------------------------------------------
# Cada acción que cambia estado deja una fila en audit_logs dentro de la misma
# transacción que la acción. Las acciones del portal no tienen user_id.
# =================================================================================

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from sala_cliente import models


def log_action(
    db: Session,
    *,
    action: str,
    organization_id: Optional[str],
    user_id: Optional[str] = None,
    client_id: Optional[str] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    commit: bool = False,
) -> models.AuditLog:
    entry = models.AuditLog(
        organization_id=organization_id,
        user_id=user_id,
        client_id=client_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details or {},
        ip_address=ip_address,
    )
    db.add(entry)
    if commit:
        db.commit()
    return entry


def list_for_org(
    db: Session,
    organization_id: str,
    *,
    limit: int = 50,
    offset: int = 0,
    action: Optional[str] = None,
    client_id: Optional[str] = None,
) -> Tuple[List[models.AuditLog], int]:
    """Página de logs del despacho (más recientes primero) y total sin paginar."""
    query = db.query(models.AuditLog).filter(models.AuditLog.organization_id == organization_id)
    if action:
        query = query.filter(models.AuditLog.action == action)
    if client_id:
        query = query.filter(models.AuditLog.client_id == client_id)
    total = query.count()
    rows = query.order_by(models.AuditLog.created_at.desc()).offset(offset).limit(limit).all()
    return rows, total


def list_for_client(db: Session, client_id: str) -> List[models.AuditLog]:
    return (
        db.query(models.AuditLog)
        .filter(models.AuditLog.client_id == client_id)
        .order_by(models.AuditLog.created_at.desc())
        .all()
    )
