# sala_cliente/core/security.py
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from loguru import logger
from sqlalchemy.orm import Session

from sala_cliente import auth, models
from sala_cliente.db import get_db
from sala_cliente.models import ADMIN_ROLES, UserRole, UserStatus

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> models.Profile:
    """Perfil autenticado por JWT. Bloquea cuentas suspendidas o pendientes."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="No se pudieron validar las credenciales",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = auth.verify_access_token(token)
    if payload is None or not payload.get("sub"):
        raise credentials_exception

    user = db.get(models.Profile, payload["sub"])
    if user is None:
        raise credentials_exception

    if user.status in (UserStatus.suspended, UserStatus.deleted):
        logger.warning("Acceso bloqueado para cuenta {} (status={})", user.id, user.status.value)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "ACCOUNT_SUSPENDED", "message": "Tu cuenta está suspendida. Contacta al administrador."},
        )
    if user.status == UserStatus.pending:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "ACCOUNT_PENDING", "message": "Tu cuenta está pendiente de aprobación."},
        )
    return user


def require_roles(*roles: UserRole):
    """Fábrica de dependencias: exige que el usuario tenga uno de los roles dados."""

    def _checker(user: models.Profile = Depends(get_current_user)) -> models.Profile:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No tienes permisos para realizar esta acción",
            )
        return user

    return _checker


require_admin = require_roles(*ADMIN_ROLES)
