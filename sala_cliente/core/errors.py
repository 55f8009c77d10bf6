# sala_cliente/core/errors.py
"""
Excepciones de negocio de Sala Cliente.

La capa CRUD lanza SalaError (o una subclase) cuando una regla de negocio
impide la operación. main.py registra un handler que la convierte en una
respuesta JSON {"detail": ..., "code": ...} con el status_code indicado.
"""
from typing import Any, Dict, Optional


class SalaError(Exception):
    """Excepción base con código estable para el frontend."""

    status_code = 400

    def __init__(
        self,
        code: str,
        message: str,
        status_code: Optional[int] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "code": self.code}
        body.update(self.extra)
        return body


class NotFoundError(SalaError):
    status_code = 404


class ForbiddenError(SalaError):
    status_code = 403


class ConflictError(SalaError):
    status_code = 409


class GoneError(SalaError):
    """Token caducado, revocado o ya utilizado."""

    status_code = 410
