"""
Release phase: migrate the schema, check it, seed roles and the admin user.

Refuses to run without DATABASE_URL, and refuses SQLite when ENV=production.
Seeding is idempotent and never overwrites an existing admin password.

Usage:
  python scripts/release.py [--revision head] [--no-seed]
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy import inspect  # noqa: E402

REQUIRED_TABLES = ("users", "roles", "permissions", "audit_events", "departments", "products")


def _database_url() -> str:
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("Missing required environment variable DATABASE_URL.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to release against SQLite with ENV=production; point DATABASE_URL at Postgres.")
    return db_url


def migrate(db_url: str, revision: str = "head") -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, revision)


def missing_tables(db_url: str) -> list[str]:
    from app.portal.db import build_engine

    engine = build_engine(db_url)
    try:
        present = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    return [t for t in REQUIRED_TABLES if t not in present]


def run_release(*, revision: str = "head", seed: bool = True) -> None:
    db_url = _database_url()
    print(f"=== Portal release: migrating to {revision} ===", flush=True)
    migrate(db_url, revision)

    missing = missing_tables(db_url)
    if missing and revision == "head":
        raise RuntimeError(f"Schema is missing tables after upgrade: {', '.join(missing)}")

    if seed:
        from scripts import init_db

        print("Seeding permissions, roles and admin user...", flush=True)
        init_db.seed_only(database_url=db_url)
    print("=== Portal release done ===", flush=True)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--revision", default="head", help="Alembic target revision")
    parser.add_argument("--no-seed", action="store_true", help="Skip role/admin seeding")
    args = parser.parse_args()
    run_release(revision=args.revision, seed=not args.no_seed)


if __name__ == "__main__":
    main()
