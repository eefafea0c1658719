"""
Feature modules live under this package.

Each module owns its model, service and admin blueprint, while reusing the
platform primitives (auth, RBAC, audit, listing, envelope, DB session).
"""
