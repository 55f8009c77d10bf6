# sala_cliente/storage.py
# =================================================================================
# 📦 ALMACENAMIENTO DE ARCHIVOS
# ---------------------------------------------------------------------------------
# Almacén de objetos sobre el sistema de archivos local. Las claves son rutas
# relativas con prefijo de "bucket":
#   client-documents/{user_id}/{client_id}/{tipo}_{ts}.{ext}
#   contracts/{user_id}/{ts}.{ext}
#   firm-assets/{user_id}/logo_{ts}.{ext}
# La BD guarda solo la clave; la descarga pasa siempre por la API.
# =================================================================================

import os
import time
from pathlib import Path, PurePosixPath

from loguru import logger

DOCUMENTS_BUCKET = "client-documents"
CONTRACTS_BUCKET = "contracts"
ASSETS_BUCKET = "firm-assets"


class StorageError(Exception):
    """Clave inválida o archivo inexistente."""


def _root() -> Path:
    # Se lee en cada llamada para que los tests puedan apuntar a un tmp dir.
    return Path(os.getenv("STORAGE_DIR", "./storage")).resolve()


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


def file_extension(filename: str | None) -> str:
    """Extensión en minúsculas sin el punto ('' si no hay)."""
    if not filename or "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].strip().lower()


# --- Claves por bucket ---
def document_key(user_id: str, client_id: str, document_type: str, ext: str) -> str:
    safe_type = "_".join(document_type.split()).replace("/", "-")
    return f"{DOCUMENTS_BUCKET}/{user_id}/{client_id}/{safe_type}_{_timestamp_ms()}.{ext}"


def contract_key(user_id: str, ext: str) -> str:
    return f"{CONTRACTS_BUCKET}/{user_id}/{_timestamp_ms()}.{ext}"


def logo_key(user_id: str, ext: str) -> str:
    return f"{ASSETS_BUCKET}/{user_id}/logo_{_timestamp_ms()}.{ext}"


# --- Operaciones ---
def resolve(key: str) -> Path:
    """Ruta absoluta de la clave dentro del almacén. Rechaza rutas absolutas y '..'."""
    pure = PurePosixPath(key)
    if not key or pure.is_absolute() or ".." in pure.parts:
        raise StorageError(f"Clave de almacenamiento inválida: {key!r}")
    root = _root()
    path = (root / pure).resolve()
    if root != path and root not in path.parents:
        raise StorageError(f"Clave fuera del almacén: {key!r}")
    return path


def save_bytes(key: str, data: bytes) -> str:
    path = resolve(key)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    logger.info("Storage → guardado {} ({} bytes)", key, len(data))
    return key


def exists(key: str) -> bool:
    try:
        return resolve(key).is_file()
    except StorageError:
        return False


def delete(key: str) -> bool:
    """Borra la clave si existe. Devuelve True si había archivo."""
    path = resolve(key)
    if not path.is_file():
        return False
    path.unlink()
    logger.info("Storage → eliminado {}", key)
    return True


# --- URLs públicas (solo bucket de recursos del despacho) ---
ASSETS_URL_PREFIX = "/api/assets/"


def public_asset_url(key: str) -> str:
    return ASSETS_URL_PREFIX + key


def key_from_asset_url(url: str | None) -> str | None:
    """Inverso de public_asset_url; None si la URL es externa."""
    if not url or not url.startswith(ASSETS_URL_PREFIX + ASSETS_BUCKET + "/"):
        return None
    return url[len(ASSETS_URL_PREFIX):]
