# src/storage/database.py
from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    """Project-wide SQLAlchemy declarative base."""
    pass


def _is_sqlite_memory(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/") in ("sqlite:", "sqlite:/", "sqlite://"))


def create_db_engine(database_url: str, *, echo: bool = False) -> Engine:
    """
    Sync engine for the given URL.

    In-memory SQLite shares a single connection across threads so every
    session (and the admission thread pool) sees the same database.
    """
    if _is_sqlite_memory(database_url):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


def create_schema(engine: Engine) -> None:
    """Create all tables (idempotent). Migrations are out of scope."""
    from src.storage import models  # noqa: F401  (register mappers)

    Base.metadata.create_all(engine)
