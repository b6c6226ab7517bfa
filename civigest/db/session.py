from __future__ import annotations

from collections.abc import Generator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from civigest.db.filters import bind_scope
from civigest.settings import get_settings


_settings = get_settings()

engine = create_engine(
    _settings.resolved_db_url(),
    connect_args={"check_same_thread": False} if _settings.resolved_db_url().startswith("sqlite") else {},
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Main DB dependency.

    When the security dependency has already decided the caller's scope, it is
    bound to the session so every ORM select on a tenant-scoped model is
    filtered (see `civigest/db/filters.py`).
    """

    db = SessionLocal()
    try:
        scope = getattr(getattr(request, "state", None), "scope", None)
        if scope is not None:
            bind_scope(db, scope)
        yield db
    finally:
        db.close()
