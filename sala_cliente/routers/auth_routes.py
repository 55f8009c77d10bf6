# sala_cliente/routers/auth_routes.py                                              # Router de autenticación y registro.

# =================================================================================
# 🔑 ROUTER DE AUTENTICACIÓN Y REGISTRO
# ---------------------------------------------------------------------------------
# - Registro público: crea despacho + usuario admin.                              # /register
# - Registro por invitación y validación previa del token.                       # /register-with-invitation, /validate-invitation
# - Login JSON y login OAuth2 (formulario, usado por /docs).                      # /login, /token
# - Perfil de la sesión actual.                                                   # /me
# - Rate-limit por IP en login y registro.
# =================================================================================

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status      # Utilidades de FastAPI.
from fastapi.security import OAuth2PasswordRequestForm                             # Formulario username/password de OAuth2.
from loguru import logger                                                          # Logger.
from sqlalchemy.orm import Session                                                 # Sesión de BD.

from sala_cliente import auth, models, schemas, rate_limit                         # Módulos internos.
from sala_cliente.core.security import get_current_user                            # Dependencia de sesión.
from sala_cliente.crud import accounts_crud, audit_crud, invitations_crud          # Capa de datos.
from sala_cliente.db import get_db                                                 # Sesión por request.
from sala_cliente.models import UserStatus                                         # Estados de cuenta.
from sala_cliente.utils.request_meta import client_ip, mask_email                  # IP real y emails enmascarados.

router = APIRouter(prefix="/api/auth", tags=["auth"])                              # Prefijo común /api/auth.

INVALID_CREDENTIALS = "Email o contraseña incorrectos"                             # Mensaje neutro (no revela cuál falló).

# =================================================================================
# 🧰 Helpers
# =================================================================================
def _issue_token(profile: models.Profile) -> str:                                  # JWT con org y rol como claims extra.
    return auth.create_access_token(
        subject=profile.id,
        extra={"org": profile.organization_id, "role": profile.role.value},
    )

def _login(db: Session, request: Request, email: str, password: str) -> dict:     # Lógica compartida por /login y /token.
    ip = client_ip(request)                                                        # IP real del cliente.
    rate_limit.enforce(f"login:{ip}", "LOGIN_RL", 5, 60)                           # Límite por IP.
    rate_limit.enforce(f"login-email:{email.strip().lower()}", "LOGIN_RL", 5, 60)  # Límite por cuenta.

    profile = accounts_crud.authenticate(db, email, password)                      # None si no coincide.
    if profile is None:
        logger.info("Login fallido para {} ip={}", mask_email(email), ip)          # Auditoría en logs.
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_CREDENTIALS,
            headers={"WWW-Authenticate": "Bearer"},
        )

    if profile.status in (UserStatus.suspended, UserStatus.deleted):              # Cuenta bloqueada → página de suspensión.
        logger.warning("Login de cuenta suspendida {} ip={}", mask_email(profile.email), ip)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "ACCOUNT_SUSPENDED", "message": "Tu cuenta está suspendida. Contacta al administrador."},
        )
    if profile.status == UserStatus.pending:                                       # Falta aprobación de un admin.
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "ACCOUNT_PENDING", "message": "Tu cuenta está pendiente de aprobación."},
        )

    accounts_crud.mark_login(db, profile)                                          # Sella last_login_at.
    logger.info("Login correcto para {} ip={}", mask_email(profile.email), ip)
    return {"access_token": _issue_token(profile), "token_type": "bearer"}

# =================================================================================
# 📝 POST /api/auth/register: Alta pública de despacho
# =================================================================================
@router.post("/register", response_model=schemas.RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: schemas.RegisterRequest,                                              # Datos del formulario de registro.
    request: Request,                                                              # Para IP y rate-limit.
    db: Session = Depends(get_db),
):
    """Crea un despacho nuevo (slug único) y su primer usuario con rol admin."""
    ip = client_ip(request)
    rate_limit.enforce(f"register:{ip}", "REGISTER_RL", 5, 3600)                   # Límite de altas por IP.

    profile, org = accounts_crud.register_firm(                                    # Lanza ConflictError si el email existe.
        db,
        email=payload.email,
        password=payload.password,
        firm_name=payload.firm_name,
        full_name=payload.full_name,
        license_number=payload.license_number,
        phone=payload.phone,
    )
    audit_crud.log_action(                                                         # Traza de auditoría.
        db,
        action="user_registered",
        organization_id=org.id,
        user_id=profile.id,
        resource_type="organization",
        resource_id=org.id,
        details={"firm_name": org.name, "slug": org.slug},
        ip_address=ip,
    )
    db.commit()                                                                    # Despacho + perfil + auditoría en una transacción.

    return schemas.RegisterResponse(
        user_id=profile.id,
        organization_id=org.id,
        access_token=_issue_token(profile),
        message="Cuenta creada correctamente",
    )

# =================================================================================
# 🔎 GET /api/auth/validate-invitation?token=...
# =================================================================================
@router.get("/validate-invitation", response_model=schemas.InvitationValidation)
def validate_invitation(
    token: str | None = Query(default=None),                                       # Token recibido en el enlace.
    db: Session = Depends(get_db),
):
    """400 sin token, 404 si no existe, 410 si caducó, ya se usó o fue revocada."""
    if not token or not token.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Token de invitación requerido")

    inv = invitations_crud.get_usable_by_token(db, token)                          # NotFoundError / GoneError.
    org = inv.organization
    return schemas.InvitationValidation(
        email=inv.email,
        role=inv.role,
        organization_name=org.name if org else "",
        organization_logo=org.logo_url if org else None,
    )

# =================================================================================
# ✉️ POST /api/auth/register-with-invitation
# =================================================================================
@router.post("/register-with-invitation", response_model=schemas.RegisterResponse, status_code=status.HTTP_201_CREATED)
def register_with_invitation(
    payload: schemas.RegisterWithInvitationRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Crea el usuario dentro del despacho que invitó, con el rol de la invitación."""
    ip = client_ip(request)
    rate_limit.enforce(f"register:{ip}", "REGISTER_RL", 5, 3600)

    profile, inv = accounts_crud.register_with_invitation(
        db,
        token=payload.token,
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
        phone=payload.phone,
        license_number=payload.license_number,
    )
    audit_crud.log_action(
        db,
        action="invitation_accepted",
        organization_id=inv.organization_id,
        user_id=profile.id,
        resource_type="invitation",
        resource_id=inv.id,
        details={"email": profile.email, "role": profile.role.value},
        ip_address=ip,
    )
    db.commit()

    return schemas.RegisterResponse(
        user_id=profile.id,
        organization_id=inv.organization_id,
        access_token=_issue_token(profile),
        message="Cuenta creada correctamente",
    )

# =================================================================================
# 🚪 LOGIN
# =================================================================================
@router.post("/login", response_model=schemas.Token)
def login(payload: schemas.LoginRequest, request: Request, db: Session = Depends(get_db)):
    """Login JSON con email y contraseña."""
    return _login(db, request, payload.email, payload.password)

@router.post("/token", response_model=schemas.Token, include_in_schema=False)
def login_form(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),                              # username = email.
    db: Session = Depends(get_db),
):
    return _login(db, request, form_data.username, form_data.password)

# =================================================================================
# 🙋 GET /api/auth/me
# =================================================================================
@router.get("/me", response_model=schemas.MeResponse)
def me(current_user: models.Profile = Depends(get_current_user)):
    return schemas.MeResponse.model_validate(current_user)
