import logging
import os
import time
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from .database import SessionLocal
from .routes import include_modular_routers

logger = logging.getLogger(__name__)

app = FastAPI(title="Stellr Matching API")
include_modular_routers(app)

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


MIGRATION_LOCK_KEY = "stellr-schema-migrations"


def migrations_dir() -> Path:
    configured = os.getenv("MIGRATIONS_DIR", "").strip()
    path = Path(configured) if configured else Path(__file__).resolve().parents[1] / "migrations"
    if not path.is_dir():
        raise FileNotFoundError(f"Migrations directory not found: {path}")
    return path


def run_migrations(directory: Path | None = None) -> list[str]:
    """Apply each *.sql file once, in name order; returns the names applied now.

    Every file runs in its own transaction together with its schema_migrations row, under
    an advisory lock so parallel workers starting up apply nothing twice.
    """
    directory = directory or migrations_dir()
    files = sorted(f for f in directory.iterdir() if f.is_file() and f.suffix == ".sql")
    applied: list[str] = []
    with SessionLocal() as db:
        db.execute(
            text(
                """
                CREATE TABLE IF NOT EXISTS schema_migrations (
                  filename TEXT PRIMARY KEY,
                  applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
                """
            )
        )
        db.commit()
        for path in files:
            db.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": MIGRATION_LOCK_KEY})
            done = db.execute(
                text("SELECT 1 FROM schema_migrations WHERE filename = :name"), {"name": path.name}
            ).first()
            if done:
                db.rollback()
                continue
            try:
                db.execute(text(path.read_text(encoding="utf-8")))
                db.execute(text("INSERT INTO schema_migrations (filename) VALUES (:name)"), {"name": path.name})
                db.commit()
            except Exception:
                db.rollback()
                logger.exception("[migrations] %s failed", path.name)
                raise
            applied.append(path.name)
            logger.info("[migrations] applied %s", path.name)
    return applied


def wait_for_db(max_attempts: int = 20, delay_seconds: float = 1.5) -> None:
    for attempt in range(1, max_attempts + 1):
        try:
            with SessionLocal() as db:
                db.execute(text("SELECT 1"))
            return
        except OperationalError:
            if attempt == max_attempts:
                raise
            logger.warning("[startup] database not reachable (attempt %s/%s)", attempt, max_attempts)
            time.sleep(delay_seconds)


@app.on_event("startup")
def on_startup() -> None:
    wait_for_db()
    run_migrations()


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
