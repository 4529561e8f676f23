from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from retailpos.api.health import router as health_router
from retailpos.api.routes_bills import router as bills_router
from retailpos.api.routes_catalogue import router as catalogue_router
from retailpos.api.routes_return_sessions import registry
from retailpos.api.routes_return_sessions import router as return_sessions_router
from retailpos.api.routes_returns import router as returns_router
from retailpos.api.routes_settings import router as settings_router
from retailpos.config import settings
from retailpos.db import init_db
from retailpos.utils.logging import get_logger

log = get_logger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup
    init_db()

    # idle return sessions are dropped from memory; nothing was persisted for them
    scheduler = BackgroundScheduler()

    def sweep_job():
        try:
            registry.purge_idle()
        except Exception:
            log.exception("return session sweep failed")

    scheduler.add_job(
        sweep_job,
        "interval",
        seconds=settings.SESSION_SWEEP_INTERVAL_SECONDS,
        id="sweep_return_sessions",
    )
    scheduler.start()
    log.info("started; database %s", settings.DATABASE_URL)

    try:
        yield
    finally:
        scheduler.shutdown(wait=False)


app = FastAPI(title="Retail POS - Returns & Exchanges", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router, prefix="/api", tags=["health"])

app.include_router(catalogue_router, prefix="/api/products", tags=["catalogue"])

app.include_router(bills_router, prefix="/api/bills", tags=["bills"])

app.include_router(returns_router)

app.include_router(return_sessions_router)

app.include_router(settings_router)
