"""
Seed permissions, roles and the admin user (idempotent).

Usage:
  python scripts/init_db.py
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.portal.constants import PERMISSIONS, VIEWER_PERMISSIONS  # noqa: E402
from app.portal.models import Permission, Role, User  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402


def seed_roles(s: Session) -> dict[str, Role]:
    """Ensure every permission plus the admin/viewer roles exist. Returns roles by key."""
    perms: dict[str, Permission] = {}
    for key, name in PERMISSIONS:
        p = s.query(Permission).filter(Permission.key == key).one_or_none()
        if not p:
            p = Permission(key=key, name=name)
            s.add(p)
        perms[key] = p

    roles: dict[str, Role] = {}
    for role_key, role_name, keys in (
        ("admin", "Administrator", set(perms)),
        ("viewer", "Viewer", set(VIEWER_PERMISSIONS)),
    ):
        role = s.query(Role).filter(Role.key == role_key).one_or_none()
        if not role:
            role = Role(key=role_key, name=role_name)
            s.add(role)
        for key in sorted(keys):
            if perms[key] not in role.permissions:
                role.permissions.append(perms[key])
        roles[role_key] = role
    return roles


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions/roles/admin user in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@portal.local").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    with script_session(database_url) as s:
        roles = seed_roles(s)
        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            user = User(email=admin_email, password_hash=generate_password_hash(admin_password), is_active=True)
            s.add(user)
        if roles["admin"] not in user.roles:
            user.roles.append(roles["admin"])

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
