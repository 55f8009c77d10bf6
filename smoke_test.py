# smoke_test.py  # Verificación rápida end-to-end contra una API ya levantada (uvicorn).

import os                               # Variables de entorno (URL base).
import time                             # Timestamps únicos por corrida.
from typing import Any, Dict, Optional  # Tipado.
import requests                         # Cliente HTTP.

# -------------------------------
# ⚙️ Configuración (por entorno)
# -------------------------------
BASE_URL = os.getenv("SMOKE_BASE_URL", "http://127.0.0.1:8000").rstrip("/")  # URL base del backend.
DRY_RUN = os.getenv("DRY_RUN", "1") == "1"                                   # Solo informativo.

# -------------------------------
# 📦 Datos de prueba dinámicos
# -------------------------------
NOW = int(time.time())                                             # Unicidad por corrida.
LAWYER_EMAIL = f"smoke.{NOW}@example.com"                          # Email del abogado de prueba.
LAWYER_PASSWORD = "SmokeTest123!"
CLIENT_EMAIL = f"cliente.{NOW}@example.com"

JSON_HEADERS = {"Content-Type": "application/json"}

# -------------------------------
# 🧰 Utilidades de apoyo
# -------------------------------
def get(path: str, headers: Optional[Dict[str, str]] = None) -> requests.Response:
    return requests.get(f"{BASE_URL}{path}", headers=headers or {}, timeout=10)

def post(path: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> requests.Response:
    return requests.post(f"{BASE_URL}{path}", headers={**JSON_HEADERS, **(headers or {})}, json=payload, timeout=15)

def pretty(ok: bool) -> str:
    return "✅" if ok else "❌"

def fail(step: str, r: requests.Response) -> None:
    print(f"   • {step} failed: {r.status_code} {r.text[:300]}")

# -------------------------------
# Pasos
# -------------------------------
def check_health() -> bool:
    r = get("/health")
    return r.status_code == 200 and r.json().get("status") == "ok"

def check_register() -> Optional[str]:
    r = post("/api/auth/register", {
        "email": LAWYER_EMAIL,
        "password": LAWYER_PASSWORD,
        "firm_name": f"Despacho Smoke {NOW}",
        "full_name": "Abogada Smoke",
    })
    if r.status_code != 201:
        fail("Register", r)
        return None
    return r.json()["access_token"]

def check_create_sala(token: str) -> Optional[str]:
    r = post("/api/clients", {
        "client_name": "Cliente Smoke",
        "client_email": CLIENT_EMAIL,
        "case_name": "Caso de prueba",
        "required_documents": [],
        "send_email": False,
    }, headers={"Authorization": f"Bearer {token}"})
    if r.status_code != 201:
        fail("Create sala", r)
        return None
    return r.json()["link"]["token"]

def check_portal_flow(magic_token: str) -> bool:
    r = get(f"/api/portal/{magic_token}")
    if r.status_code != 200:
        fail("Portal view", r)
        return False
    r = post(f"/api/portal/{magic_token}/consent", {"accepted": True})
    if r.status_code != 200:
        fail("Consent", r)
        return False
    r = post(f"/api/portal/{magic_token}/complete", {})
    if r.status_code != 200:
        fail("Complete", r)
        return False
    # Uso único: el enlace ya no sirve.
    r = get(f"/api/portal/{magic_token}")
    return r.status_code == 410

# -------------------------------
# 🏁 Orquestación
# -------------------------------
def run() -> int:
    print("=== Smoke Test for Sala Cliente API ===")
    print(f"BASE_URL = {BASE_URL}")
    print(f"DRY_RUN  = {DRY_RUN}")

    ok1 = check_health();   print(f"[1/4] Health: {pretty(ok1)}")
    if not ok1: return 1

    token = check_register(); print(f"[2/4] Register: {pretty(bool(token))}")
    if not token: return 1

    magic = check_create_sala(token); print(f"[3/4] Create sala: {pretty(bool(magic))}")
    if not magic: return 1

    ok4 = check_portal_flow(magic); print(f"[4/4] Portal flow: {pretty(ok4)}")
    if not ok4: return 1

    print("🎉 Smoke test PASSED – backend core flows look healthy.")
    return 0

if __name__ == "__main__":
    raise SystemExit(run())
