from fastapi import APIRouter
from sqlalchemy import text

from retailpos.db import engine
from retailpos.utils.logging import get_logger

log = get_logger("health")

router = APIRouter()


@router.get("/health", tags=["health"])
def health():
    db_ok = False
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            db_ok = True
    except Exception:
        log.exception("database health check failed")

    return {"status": "ok" if db_ok else "degraded", "db": db_ok}
