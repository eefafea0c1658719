"""
Central constants for the portal.
"""
from __future__ import annotations

# (key, display name). Seeded by scripts/init_db.py; the "admin" role gets all of them.
PERMISSIONS: tuple[tuple[str, str], ...] = (
    ("admin.view", "Admin: view dashboard"),
    ("departments.view", "Departments: view"),
    ("departments.edit", "Departments: create, update, delete"),
    ("products.view", "Products: view"),
    ("products.edit", "Products: create, update, delete"),
)

# Read-only staff role.
VIEWER_PERMISSIONS = frozenset({"admin.view", "departments.view", "products.view"})
