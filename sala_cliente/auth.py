# sala_cliente/auth.py  # Módulo de autenticación: contraseñas, JWT y tokens de enlace.

# =================================================================================
# 🔐 MÓDULO DE AUTENTICACIÓN                                                       # Propósito del módulo.
# ---------------------------------------------------------------------------------
# - Hash y verificación de contraseñas con passlib (CryptContext).                 # Contraseñas.
# - JWT de sesión (type=access) firmados con python-jose.                          # Sesión.
# - Tokens aleatorios para enlaces mágicos de sala e invitaciones.                 # Enlaces.
# =================================================================================

# 🐍 Importaciones
import os                                                     # Acceso a variables de entorno (.env).
import secrets                                                # Fuente criptográfica para tokens de enlace.
from datetime import datetime, timedelta                      # Manejo de tiempos de emisión/expiración.
from typing import Dict, Any, Optional                        # Tipos para anotar parámetros y retornos.
from jose import jwt, JWTError                                # Implementación de JWT (python-jose).
from passlib.context import CryptContext                      # Hash de contraseñas.

# ⚙️ Configuración de seguridad (desde .env con defaults de desarrollo)
SECRET_KEY = os.getenv("SECRET_KEY", "dev_secret")            # Clave para firmar JWT (usa valor real en producción).
ALGORITHM = os.getenv("ALGORITHM", "HS256")                   # Algoritmo de firmado (HS256 por defecto).
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "720"))  # Expiración access (minutos).
LINK_TOKEN_BYTES = 32                                         # 32 bytes → 64 caracteres hex.

# 🔒 Validación mínima de config crítica
if not SECRET_KEY:                                            # Si queda vacío por error de despliegue...
    raise ValueError("SECRET_KEY no está configurado.")       # Falla rápido con mensaje claro.
if not ALGORITHM:                                             # Si no hay algoritmo...
    raise ValueError("ALGORITHM no está configurado.")        # Falla rápido con mensaje claro.

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")  # Contexto de hashing.

# 🕒 Helpers internos de tiempo
def _utcnow() -> datetime:                                    # Hora UTC actual (naive, igual que en la BD).
    return datetime.utcnow()

# 🧰 Helper interno: firmar payload como JWT
def _encode(payload: Dict[str, Any]) -> str:                   # Encapsula la firma del token.
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)

# =================================================================================
# 🔑 CONTRASEÑAS
# =================================================================================

def get_password_hash(password: str) -> str:                  # Genera el hash para guardar en BD.
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: str) -> bool:  # Compara texto plano vs hash.
    if not hashed_password:                                   # Perfiles sin hash nunca autentican.
        return False
    return pwd_context.verify(plain_password, hashed_password)

# =================================================================================
# ✨ TOKENS
# =================================================================================

def create_access_token(                                      # Crea el JWT de sesión.
    *,
    subject: str,                                             # ID del perfil.
    extra: Optional[Dict[str, Any]] = None                    # Claims extra (org, role).
) -> str:
    """Crea un token de acceso (tipo 'access') para el perfil indicado."""
    now = _utcnow()                                           # Hora de emisión.
    exp = now + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES) # Expiración.
    payload: Dict[str, Any] = {
        "sub": subject,                                       # 'sub' identifica al perfil.
        "type": "access",                                     # Tipo de token.
        "iat": int(now.timestamp()),                          # Issued at (segundos).
        "exp": int(exp.timestamp()),                          # Expiration (segundos).
    }
    if extra:                                                 # Claims adicionales...
        payload.update(extra)                                 # ...se inyectan al payload.
    return _encode(payload)                                   # Firma y devuelve el JWT.

def generate_link_token() -> str:                             # Token opaco para enlaces de sala e invitaciones.
    """Devuelve 32 bytes aleatorios en hexadecimal."""
    return secrets.token_hex(LINK_TOKEN_BYTES)

# =================================================================================
# 🔎 DECODIFICACIÓN/VERIFICACIÓN
# =================================================================================

def decode_access_token(token: str) -> Dict[str, Any]:        # Decodifica y valida un access token.
    """Decodifica un token y verifica que sea de tipo 'access'. Lanza JWTError/ValueError si no es válido."""
    data = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])  # Valida firma y expiración.
    if data.get("type") != "access":                          # Comprueba claim de tipo.
        raise ValueError("Invalid token type for access token")
    return data

def verify_access_token(token: str) -> dict | None:           # Variante tolerante para dependencias.
    """
    Verifica la validez de un token de sesión.
    Devuelve el payload si es válido o None si la validación falla.
    """
    try:
        return decode_access_token(token)                     # Firma + expiración + tipo.
    except (JWTError, ValueError):                            # Token manipulado, caducado o de otro tipo...
        return None                                           # ...se trata como ausente.
