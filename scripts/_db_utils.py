from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy.orm import Session

from app.portal.db import build_engine, make_sessionmaker

DEFAULT_DATABASE_URL = "sqlite:///portal.db"


def database_url(explicit: str | None = None) -> str:
    return (explicit or os.environ.get("DATABASE_URL") or DEFAULT_DATABASE_URL).strip()


@contextmanager
def script_session(db_url: str | None = None) -> Generator[Session, None, None]:
    """Standalone session for CLI scripts; the engine is disposed on exit."""
    engine = build_engine(database_url(db_url))
    s = make_sessionmaker(engine)()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()
