from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from verlic.config import settings
from verlic.database import get_db, init_db
from verlic.logging_config import get_logger, setup_logging
from verlic.routers import authorized, instances, messages, metrics, webhook, webhook_logs
from verlic.routers import settings as settings_router
from verlic.services.cache_service import close_redis_client
from verlic.services.health_service import get_env_status, log_env_warnings

setup_logging(settings.log_level)
logger = get_logger("main")

app = FastAPI(
    title="Verlic Console API",
    description="WhatsApp AI auto-reply console backed by the Evolution gateway",
    version="0.1.0",
    debug=settings.debug,
)

cors_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook.router)
app.include_router(instances.router)
app.include_router(authorized.router)
app.include_router(messages.router)
app.include_router(metrics.router)
app.include_router(settings_router.router)
app.include_router(webhook_logs.router)


@app.on_event("startup")
async def on_startup() -> None:
    log_env_warnings()
    if settings.auto_create_tables:
        init_db()
        logger.info("Database tables ensured")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await close_redis_client()


@app.get("/health")
async def health():
    return {"status": "ok", "env": get_env_status()}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {"status": "ok"}
