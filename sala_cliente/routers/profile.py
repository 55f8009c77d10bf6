# sala_cliente/routers/profile.py
# =================================================================================
# 🙋 Perfil del usuario y preferencias
# - GET/PATCH /api/profile
# - POST /api/profile/logo (logo del despacho mostrado en el portal)
# - POST /api/preferences/theme
# - GET /api/assets/firm-assets/... (público, lo usa el portal)
# =================================================================================

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import FileResponse
from loguru import logger
from sqlalchemy.orm import Session

from sala_cliente import models, schemas, storage
from sala_cliente.core.security import get_current_user
from sala_cliente.crud import accounts_crud, audit_crud
from sala_cliente.db import get_db
from sala_cliente.models import ThemeMode
from sala_cliente.utils.uploads import LOGO_EXTENSIONS, read_upload

router = APIRouter(prefix="/api", tags=["profile"])


@router.get("/profile", response_model=schemas.ProfileOut)
def get_profile(current_user: models.Profile = Depends(get_current_user)):
    return current_user


@router.patch("/profile", response_model=schemas.ProfileOut)
def update_profile(
    payload: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
):
    data = payload.model_dump(exclude_unset=True)
    if not data:
        return current_user
    audit_crud.log_action(
        db,
        action="profile_updated",
        organization_id=current_user.organization_id,
        user_id=current_user.id,
        resource_type="profile",
        resource_id=current_user.id,
        details={"fields": sorted(data)},
    )
    return accounts_crud.update_profile(db, current_user, data)


@router.post("/profile/logo", response_model=schemas.ProfileOut)
def upload_logo(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
):
    data, ext = read_upload(file, LOGO_EXTENSIONS)
    previous = storage.key_from_asset_url(current_user.firm_logo_url)
    key = storage.save_bytes(storage.logo_key(current_user.id, ext), data)

    current_user.firm_logo_url = storage.public_asset_url(key)
    audit_crud.log_action(
        db,
        action="logo_uploaded",
        organization_id=current_user.organization_id,
        user_id=current_user.id,
        resource_type="profile",
        resource_id=current_user.id,
        details={"file_size": len(data)},
    )
    db.commit()
    db.refresh(current_user)

    if previous and previous != key:
        storage.delete(previous)
    logger.info("Logo actualizado para perfil {}", current_user.id)
    return current_user


@router.post("/preferences/theme", response_model=schemas.ThemeResponse)
def set_theme(
    payload: schemas.ThemeUpdate,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
):
    if payload.theme not in (ThemeMode.light.value, ThemeMode.dark.value):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Tema inválido")
    current_user.theme_mode = ThemeMode(payload.theme)
    db.commit()
    return schemas.ThemeResponse(theme=current_user.theme_mode)


@router.get("/assets/{key:path}", include_in_schema=False)
def get_firm_asset(key: str):
    """Sirve logos del despacho. Solo el bucket firm-assets es público."""
    if not key.startswith(storage.ASSETS_BUCKET + "/"):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recurso no encontrado")
    try:
        path = storage.resolve(key)
    except storage.StorageError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recurso no encontrado")
    if not path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recurso no encontrado")
    return FileResponse(path)
