"""
Database engine and session management for the audits table.

The audit store shares the application's database; DATABASE_URL selects it
and a local SQLite file is used when it is unset.
"""
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

DEFAULT_DATABASE_URL = "sqlite:///./audits.db"


def database_url() -> str:
    """Configured URL, with the legacy postgres:// scheme accepted."""
    url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def engine_options(url: str) -> dict:
    # SQLite connections are handed across FastAPI's worker threads
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}


SQLALCHEMY_DATABASE_URL = database_url()
engine = create_engine(SQLALCHEMY_DATABASE_URL, **engine_options(SQLALCHEMY_DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Shared by the audits table and every tracked record model
Base = declarative_base()


def get_db():
    """Request-scoped session for the audit API."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
