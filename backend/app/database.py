from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from app.core.config import settings
import os
import logging

logger = logging.getLogger(__name__)


def _database_url() -> str:
    # Test runs get a private in-memory database regardless of .env
    if os.getenv("PYTEST_RUN") == "1":
        return "sqlite:///:memory:"
    return settings.SQLALCHEMY_DATABASE_URL


def _engine_options(url: str) -> dict:
    options = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False, "timeout": 15}
        if url.endswith(":memory:"):
            # One shared connection so every session sees the same in-memory DB
            options["poolclass"] = StaticPool
        return options
    options.update(
        pool_size=int(os.getenv("DB_POOL_SIZE") or 5),
        max_overflow=int(os.getenv("DB_MAX_OVERFLOW") or 5),
        pool_recycle=int(os.getenv("DB_POOL_RECYCLE") or 300),
        # A sync run holds its session for the whole batch; fail fast if the pool is drained.
        pool_timeout=float(os.getenv("DB_POOL_TIMEOUT") or 5.0),
    )
    return options


SQLALCHEMY_DATABASE_URL = _database_url()
engine = create_engine(SQLALCHEMY_DATABASE_URL, **_engine_options(SQLALCHEMY_DATABASE_URL))
logger.info("Calendar database engine: %s", engine.dialect.name)

if engine.dialect.name == "sqlite":

    @event.listens_for(engine, "connect")
    def _sqlite_pragmas(dbapi_connection, connection_record):  # type: ignore[no-redef]
        cursor = dbapi_connection.cursor()
        try:
            # Event listings should not block behind a sync run writing rows
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA busy_timeout=30000;")
        finally:
            cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


# Dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

