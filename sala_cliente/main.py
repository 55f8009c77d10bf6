# sala_cliente/main.py                                                                         # Punto de entrada de la API.

# ================================================================
# 🧱 MODO MANTENIMIENTO (Control temporal desde variable de entorno)
# ================================================================

import os

# Con MAINTENANCE_MODE=1 se levanta una app mínima que responde 503 a todo
if os.getenv("MAINTENANCE_MODE") == "1":
    from fastapi import FastAPI
    from fastapi.responses import JSONResponse
    from loguru import logger

    app = FastAPI(title="Sala Cliente (mantenimiento)")

    @app.api_route("/{path:path}", methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"])
    async def maintenance_page(path: str):
        """Responde a cualquier ruta y método con un mensaje neutro de mantenimiento."""
        return JSONResponse(
            status_code=503,
            content={
                "status": "offline",
                "message": "🛠️ Sala Cliente está en mantenimiento. Vuelve más tarde."
            }
        )

    logger.warning("🚧 API arrancada en MODO MANTENIMIENTO. Los endpoints reales están desactivados.")
else:
    # =================================================================================         # Separador visual de sección.
    # 🧠 NÚCLEO DE LA APLICACIÓN API (FastAPI)
    # ---------------------------------------------------------------------------------
    # - Carga .env y deja trazas de arranque                                                     # Configuración.
    # - Configura CORS desde CORS_ORIGINS                                                        # Orígenes del frontend.
    # - Traduce SalaError a JSON {detail, code}                                                  # Errores de negocio.
    # - Registra routers: auth, profile, invitations, admin, clients, templates, portal, meta
    # =================================================================================

    from pathlib import Path                                                                    # Rutas de archivos.

    from dotenv import load_dotenv                                                              # Variables desde .env.
    from fastapi import FastAPI, Request                                                        # App y request para el handler.
    from fastapi.middleware.cors import CORSMiddleware                                          # Middleware CORS.
    from fastapi.responses import JSONResponse                                                  # Respuesta del handler de errores.
    from loguru import logger                                                                   # Trazas de arranque.

    env_path = Path('.') / '.env'                                                               # .env en el directorio actual.
    load_dotenv(dotenv_path=env_path)                                                           # Carga variables (sin pisar las existentes).

    logger.info(
        "[BOOT] DRY_RUN={} | EMAIL_PROVIDER={} | EMAIL_FROM={} | SG_KEY_SET={} | APP_URL={}",
        os.getenv("DRY_RUN"),
        os.getenv("EMAIL_PROVIDER", "sendgrid"),
        os.getenv("EMAIL_FROM"),
        "yes" if os.getenv("SENDGRID_API_KEY") else "no",
        os.getenv("APP_URL"),
    )

    from sala_cliente import meta                                                               # Catálogos para el frontend.
    from sala_cliente.core.errors import SalaError                                              # Excepción de negocio.
    from sala_cliente.db import log_db_path_on_startup                                          # Traza de la BD real.
    from sala_cliente.routers import (                                                          # Routers de la API.
        admin,
        auth_routes,
        clients,
        invitations,
        portal,
        profile,
        templates,
    )

    app = FastAPI(
        title="Sala Cliente API",                                                               # Título en /docs.
        description="Onboarding de clientes para despachos: salas, enlaces mágicos, firma y documentos",
        version="1.0.0",
    )

    _origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_origins,                                                                 # Lista separada por comas en env.
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SalaError)
    async def _sala_error_handler(request: Request, exc: SalaError) -> JSONResponse:            # Regla de negocio → JSON con código estable.
        logger.info("SalaError {} {} → {} {}", request.method, request.url.path, exc.status_code, exc.code)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # El esquema lo gestiona Alembic (alembic upgrade head); aquí no se llama a create_all.

    @app.on_event("startup")
    def _startup_db_trace() -> None:
        log_db_path_on_startup()                                                                # Imprime la URL efectiva de la BD.

    @app.get("/health", tags=["meta"])
    def health() -> dict:                                                                        # Sonda para el balanceador.
        return {"status": "ok"}

    app.include_router(auth_routes.router)
    app.include_router(profile.router)
    app.include_router(invitations.router)
    app.include_router(admin.router)
    app.include_router(clients.router)
    app.include_router(templates.router)
    app.include_router(portal.router)
    app.include_router(meta.router)
