from __future__ import annotations

from contextlib import contextmanager
from collections.abc import Generator

from flask import Flask, current_app, g
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


def engine_options(db_url: str) -> dict[str, object]:
    """Pool settings per backend. Shared by the app and the ops scripts."""
    options: dict[str, object] = {"future": True, "pool_pre_ping": True}
    if db_url.startswith("postgres"):
        options.update(pool_recycle=1800, pool_size=5, max_overflow=10, pool_timeout=30)
    return options


def build_engine(db_url: str) -> Engine:
    engine = create_engine(db_url, **engine_options(db_url))
    if engine.dialect.name == "sqlite":
        # ON DELETE SET NULL (products.department_id) needs foreign keys enabled per connection.
        @event.listens_for(engine, "connect")
        def _sqlite_fk_pragma(dbapi_connection, connection_record):  # type: ignore[no-redef]
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def make_sessionmaker(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False)


def init_db(app: Flask) -> None:
    engine = build_engine(app.config["DATABASE_URL"])
    app.extensions["sqlalchemy_engine"] = engine
    app.extensions["sqlalchemy_sessionmaker"] = make_sessionmaker(engine)
    app.logger.debug("Database engine ready (dialect=%s)", engine.dialect.name)


def db_session() -> Session:
    """
    Request-scoped session, created on first use and closed on teardown.
    """
    s: Session | None = getattr(g, "db_session", None)
    if s is None:
        s = current_app.extensions["sqlalchemy_sessionmaker"]()
        g.db_session = s
    return s


def teardown_db_session(exc: BaseException | None) -> None:
    s: Session | None = g.pop("db_session", None)
    if s is None:
        return
    try:
        if exc is not None:
            s.rollback()
    finally:
        s.close()


@contextmanager
def session_scope(app: Flask) -> Generator[Session, None, None]:
    """
    Session outside a request (scripts, tests): commits on success, rolls back on error.
    """
    s: Session = app.extensions["sqlalchemy_sessionmaker"]()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
