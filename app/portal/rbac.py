from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g, jsonify, redirect, request, url_for

from app.portal.models import User


def user_has_permission(user: User | None, permission_key: str) -> bool:
    return user is not None and user.has_permission(permission_key)


def wants_json() -> bool:
    """Dashboard API calls get JSON errors instead of redirects/HTML pages."""
    return "/api/" in request.path or request.is_json


def _login_redirect():
    if wants_json():
        return jsonify({"message": "Unauthenticated."}), 401
    nxt = request.full_path or request.path
    # Avoid trailing '?' from full_path when there is no query string.
    if nxt.endswith("?"):
        nxt = nxt[:-1]
    return redirect(url_for("auth.login_get", next=nxt))


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user: User | None = getattr(g, "current_user", None)
        if not user or not user.is_active:
            return _login_redirect()
        return fn(*args, **kwargs)

    return wrapped


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            # Unauthenticated → redirect to login (UX + reduces confusion).
            if not user or not user.is_active:
                return _login_redirect()
            # Authenticated but unauthorized → 403
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator
