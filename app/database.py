"""MSYNC — Metrics Database Engine.

The service database is read-only from MSYNC's side: PostgreSQL sessions are
opened with ``default_transaction_read_only`` and a statement timeout, and
no tables are ever created.
"""

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError
from sqlmodel import Session, create_engine

from app.config import settings
from app.core.logging import get_logger

logger = get_logger("database")

db_url = settings.effective_database_url


def _mask_url(url: str) -> str:
    """Connection URL with the password hidden, for logs and /debug/db."""
    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return "<unparseable database url>"


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"echo": False, "connect_args": {"check_same_thread": False}}
    options = (
        "-c default_transaction_read_only=on "
        f"-c statement_timeout={settings.db_statement_timeout_ms}"
    )
    return {
        "echo": False,
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 5,
        "pool_recycle": 300,
        "connect_args": {"options": options},
    }


if db_url.startswith("sqlite"):
    logger.info("📦 Metrics backend: SQLite (aggregate queries expect PostgreSQL)")
else:
    logger.info(f"🐘 Metrics backend: PostgreSQL at {_mask_url(db_url)} (read-only)")

engine = create_engine(db_url, **_engine_kwargs(db_url))


def test_connection() -> bool:
    """SELECT 1 against the metrics database."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("✅ Metrics database reachable")
        return True
    except Exception as e:
        logger.error(f"❌ Metrics database unreachable — {e}")
        return False


def session_factory() -> Session:
    return Session(engine)
