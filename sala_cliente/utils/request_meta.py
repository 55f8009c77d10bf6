# sala_cliente/utils/request_meta.py  # Helpers de request y de logs compartidos por los routers.

from fastapi import Request  # Request de Starlette/FastAPI.


def client_ip(request: Request) -> str:                 # IP real del cliente detrás de proxy.
    """Primera IP de X-Forwarded-For, luego X-Real-IP, luego el socket; 'unknown' si nada."""
    xff = request.headers.get("x-forwarded-for")        # Cabecera estándar de proxies.
    if xff:
        first = xff.split(",")[0].strip()               # La primera es la del cliente original.
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")          # Cabecera de NGINX.
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:          # Conexión directa.
        return request.client.host
    return "unknown"


def mask_email(addr: str | None) -> str:                # Enmascara emails en logs.
    if not addr:
        return "<no-email>"
    addr = addr.strip()
    if "@" not in addr or len(addr) < 3:
        return addr[:2] + "***"
    name, dom = addr.split("@", 1)
    return name[:2] + "***@" + dom
