#!/usr/bin/env python3
"""Create a dashboard user or attach a role to an existing one (idempotent).

Usage:
  python scripts/create_user.py --email staff@portal.local --password secret --role viewer
"""

import argparse
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.portal.models import Role, User  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--email", required=True, help="User email")
    parser.add_argument("--password", help="Password for a new user (existing passwords are never changed)")
    parser.add_argument("--role", default="viewer", choices=("admin", "viewer"))
    parser.add_argument("--locale", choices=("en", "fil"), help="Initial locale preference")
    args = parser.parse_args()

    email = args.email.strip().lower()
    with script_session() as s:
        role = s.query(Role).filter(Role.key == args.role).one_or_none()
        if not role:
            print(f"Role {args.role!r} not found. Run python scripts/init_db.py first.")
            sys.exit(1)

        user = s.query(User).filter(User.email == email).one_or_none()
        if not user:
            if not args.password:
                print("--password is required when creating a user.")
                sys.exit(1)
            user = User(email=email, password_hash=generate_password_hash(args.password), is_active=True, locale=args.locale)
            s.add(user)
            print(f"Created user {email}")
        if role in (user.roles or []):
            print(f"User already has role {args.role}: {email}")
            return
        user.roles.append(role)
        print(f"Role {args.role} attached to {email}")


if __name__ == "__main__":
    main()
