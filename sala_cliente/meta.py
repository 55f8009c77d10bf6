# sala_cliente/meta.py  # Router de catálogos para el frontend.

from typing import Any, Dict  # Tipado de la respuesta.

from fastapi import APIRouter  # Enrutador simple, sin auth.

from sala_cliente.models import ThemeMode
from sala_cliente.utils.uploads import DOCUMENT_EXTENSIONS, max_upload_bytes

router = APIRouter(prefix="/api/meta", tags=["meta"])

COMMON_DOCUMENTS = [
    "INE/IFE",
    "Comprobante de domicilio",
    "CURP",
    "RFC/Constancia de Situación Fiscal",
    "Acta de nacimiento",
    "Estado de cuenta bancario",
]
EXPIRATION_DAYS = [3, 7, 14, 30]
INVITATION_ROLES = ["lawyer", "collaborator"]


@router.get("/options")
def get_meta_options() -> Dict[str, Any]:
    """
    Catálogos que usa el panel al crear salas e invitaciones.
    Los roles y temas van como códigos; el frontend pone la etiqueta.
    """
    return {
        "common_documents": COMMON_DOCUMENTS,
        "expiration_days": EXPIRATION_DAYS,
        "invitation_roles": INVITATION_ROLES,
        "themes": [t.value for t in ThemeMode],
        "allowed_document_extensions": list(DOCUMENT_EXTENSIONS),
        "max_upload_mb": max_upload_bytes() // (1024 * 1024),
    }
