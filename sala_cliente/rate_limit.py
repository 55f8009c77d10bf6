# sala_cliente/rate_limit.py                                                 # Ruta del archivo.

# =================================================================================
# 🚦 Rate limit ligero en memoria
# ---------------------------------------------------------------------------------
# - Ventana deslizante en memoria por clave (IP + ruta, email, token).
# - Pensado para un único proceso uvicorn.
# - Con varias instancias hay que moverlo a Redis o al reverse-proxy.
# =================================================================================

import os                                              # Variables de entorno (.env).
import time                                            # Timestamps con time.time().
from collections import deque                          # Cola eficiente para pops por la izquierda.
from typing import Dict, Tuple                         # Tipado.

from fastapi import HTTPException, status              # Para la respuesta 429.
from loguru import logger                              # Logger para trazas.

# Estructura en memoria: clave → deque de timestamps (segundos)
_BUCKETS: Dict[str, deque] = {}


def _now() -> float:                                   # Tiempo actual en segundos.
    return time.time()


def is_allowed(key: str, max_req: int, window_s: int) -> bool:
    """Devuelve True si la acción está permitida para 'key' según (max_req/window_s)."""
    if max_req <= 0:                                    # Límite 0 o negativo → sin rate limit.
        return True

    bucket = _BUCKETS.setdefault(key, deque())         # Obtiene o crea el cubo de la clave.
    now = _now()

    cutoff = now - window_s                            # Purga lo que quedó fuera de la ventana.
    while bucket and bucket[0] <= cutoff:
        bucket.popleft()

    if len(bucket) >= max_req:                         # Ventana llena → deniega.
        logger.warning("Rate limit hit for key='{}' ({}/{} in {}s)", key, len(bucket), max_req, window_s)
        return False

    bucket.append(now)                                 # Registra el intento actual.
    return True


def retry_after(key: str, window_s: int) -> int:       # Segundos hasta que se libere el intento más antiguo.
    bucket = _BUCKETS.get(key)
    if not bucket:
        return 0
    return max(1, int(bucket[0] + window_s - _now()) + 1)


def get_limits_from_env(prefix: str, default_max: int, default_window: int) -> Tuple[int, int]:
    """Lee {prefix}_MAX y {prefix}_WINDOW (segundos) desde env; aplica defaults si faltan o son inválidos."""
    try:
        max_req = int(os.getenv(f"{prefix}_MAX", str(default_max)))
        window = int(os.getenv(f"{prefix}_WINDOW", str(default_window)))
    except ValueError:
        max_req, window = default_max, default_window
    return max_req, window


def enforce(key: str, prefix: str, default_max: int, default_window: int) -> None:
    """Lanza 429 con Retry-After si la clave superó su límite."""
    max_req, window = get_limits_from_env(prefix, default_max, default_window)
    if not is_allowed(key, max_req, window):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Demasiados intentos. Inténtalo de nuevo en unos minutos.",
            headers={"Retry-After": str(retry_after(key, window))},
        )


def reset() -> None:                                   # Limpia todos los cubos (tests y recargas).
    _BUCKETS.clear()
