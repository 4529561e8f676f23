import importlib
import os

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from retailpos.config import settings
from retailpos.utils.logging import get_logger

log = get_logger("db")

DATABASE_URL = settings.DATABASE_URL
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, future=True, echo=False, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# model modules imported before create_all so metadata is populated
MODEL_MODULES = [
    "retailpos.models.product",
    "retailpos.models.bill",
    "retailpos.models.return_transaction",
    "retailpos.models.shop_setting",
    "retailpos.models.idempotency",
]


def init_db(reset: bool = None):
    """
    Initialize DB schema.

    Behavior:
      - ``reset=True`` (or RESET_DB env var / setting) drops and recreates every table.
      - Otherwise existing tables are left in place and missing ones created.
    """
    if reset is None:
        reset = settings.RESET_DB or os.environ.get("RESET_DB", "false").lower() in (
            "1",
            "true",
            "yes",
        )

    for mod in MODEL_MODULES:
        importlib.import_module(mod)

    if reset:
        log.info("Resetting database %s", DATABASE_URL)
        Base.metadata.drop_all(bind=engine)

    Base.metadata.create_all(bind=engine)
    log.debug("Database initialized (%d tables)", len(Base.metadata.tables))


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
