from __future__ import annotations

from collections.abc import Callable

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


SessionFactory = Callable[[], Session]


def create_sqlalchemy_engine(database_url: str) -> Engine:
    return create_engine(database_url, future=True)


def create_sqlalchemy_session_factory(engine_or_url: Engine | str) -> SessionFactory:
    """Create a factory producing SQLAlchemy sessions bound to one engine.

    Accepts either an existing engine (so table creation and repositories
    share a connection pool) or a database URL.
    """

    engine = create_sqlalchemy_engine(engine_or_url) if isinstance(engine_or_url, str) else engine_or_url
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, class_=Session)

    def _factory() -> Session:  # pragma: no cover - thin wrapper
        return SessionLocal()

    return _factory
