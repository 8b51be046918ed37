import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.careplan.api.v1.routes_notes import router as notes_router_v1
from src.careplan.api.v1.routes_reminders import router as reminders_router_v1
from src.careplan.api.v1.routes_system import router as system_router_v1
from src.careplan.api.v1.routes_users import router as users_router_v1
from src.careplan.config import settings
from src.careplan.dependencies import get_encryption_codec, get_reminder_dispatcher
from src.careplan.infra.db.bootstrap import init_sql_repositories

logger = logging.getLogger("careplan")

app = FastAPI(title="Care Plan Reminders API")


@app.on_event("startup")
async def on_startup() -> None:
    """Application startup hook.

    Switches to SQL repositories when configured, builds the encryption codec
    so that a missing ENCRYPTION_KEY fails the boot instead of the first note
    submission, and starts the reminder dispatcher.
    """

    init_sql_repositories()
    get_encryption_codec()

    if settings.dispatcher_enabled:
        get_reminder_dispatcher().start()
    else:
        logger.info("Reminder dispatcher disabled by configuration")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await get_reminder_dispatcher().stop()


# CORS configuration – permissive by default for development. Tighten via
# CORS_ALLOW_ORIGINS in production deployments.
allow_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["system"])
async def health_check() -> dict:
    """Basic liveness probe for the API root."""
    return {"status": "ok"}


# Versioned API routers
app.include_router(system_router_v1, prefix="/api/v1")
app.include_router(users_router_v1, prefix="/api/v1")
app.include_router(notes_router_v1, prefix="/api/v1")
app.include_router(reminders_router_v1, prefix="/api/v1")
