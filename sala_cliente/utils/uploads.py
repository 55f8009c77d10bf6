# sala_cliente/utils/uploads.py  # Lectura y validación de archivos subidos (multipart).

import os
from typing import Iterable, Tuple

from fastapi import HTTPException, UploadFile, status

from sala_cliente.storage import file_extension

DOCUMENT_EXTENSIONS = ("pdf", "jpg", "jpeg", "png")
CONTRACT_EXTENSIONS = ("pdf", "doc", "docx")
LOGO_EXTENSIONS = ("png", "jpg", "jpeg", "webp", "svg")


def max_upload_bytes() -> int:
    try:
        mb = float(os.getenv("MAX_UPLOAD_MB", "10"))
    except ValueError:
        mb = 10.0
    return int(mb * 1024 * 1024)


def read_upload(file: UploadFile, allowed_extensions: Iterable[str]) -> Tuple[bytes, str]:
    """Devuelve (contenido, extensión). 400 si el tipo no se admite o está vacío, 413 si excede el límite."""
    allowed = tuple(allowed_extensions)
    ext = file_extension(file.filename)
    if ext not in allowed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Tipo de archivo no permitido. Formatos aceptados: {', '.join(allowed)}",
        )
    limit = max_upload_bytes()
    data = file.file.read(limit + 1)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El archivo está vacío")
    if len(data) > limit:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"El archivo supera el máximo de {limit // (1024 * 1024)} MB",
        )
    return data, ext
