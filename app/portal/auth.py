from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for
from werkzeug.security import check_password_hash

from app.portal.audit import record_event
from app.portal.db import db_session
from app.portal.models import User

bp = Blueprint("auth", __name__)


class LoginThrottle:
    """In-process sliding window of failed-or-pending login attempts per client IP."""

    def __init__(self, limit: int = 5, window_seconds: int = 300):
        self.limit = limit
        self.window = timedelta(seconds=window_seconds)
        self._attempts: dict[str, list[datetime]] = defaultdict(list)

    def blocked(self, ip: str) -> bool:
        cutoff = datetime.utcnow() - self.window
        self._attempts[ip] = [t for t in self._attempts[ip] if t > cutoff]
        return len(self._attempts[ip]) >= self.limit

    def record(self, ip: str) -> None:
        self._attempts[ip].append(datetime.utcnow())

    def reset(self, ip: str) -> None:
        self._attempts.pop(ip, None)


throttle = LoginThrottle()


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = None
    if request.path.startswith(("/static/", "/health", "/healthz")):
        return

    user_id = session.get("user_id")
    if not user_id:
        return

    try:
        user = db_session().get(User, int(user_id))
    except Exception as e:
        current_app.logger.error("load_current_user DB error (clearing session): %s", e)
        session.pop("user_id", None)
        return
    if not user or not user.is_active:
        session.pop("user_id", None)
        return
    g.current_user = user


def _safe_next(nxt: str) -> str | None:
    # Only local paths, to avoid open redirects.
    if nxt.startswith("/") and not nxt.startswith("//"):
        return nxt
    return None


@bp.get("/login")
def login_get():
    if getattr(g, "current_user", None):
        return redirect(url_for("admin.index"))
    nxt = (request.args.get("next") or "").strip()
    return render_template("auth/login.html", next=nxt)


@bp.post("/login")
def login_post():
    from app.portal.locale import LOCALE_COOKIE

    email = (request.form.get("email") or "").strip().lower()
    password = request.form.get("password") or ""
    nxt = (request.form.get("next") or "").strip()
    ip = request.remote_addr or "unknown"

    if throttle.blocked(ip):
        flash("Too many login attempts. Please wait 5 minutes.", "danger")
        return redirect(url_for("auth.login_get"))
    throttle.record(ip)

    s = db_session()
    user = s.query(User).filter(User.email == email).one_or_none()
    if not user or not user.is_active or not check_password_hash(user.password_hash, password):
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=email,
            reason="Invalid credentials",
            metadata={"email": email},
        )
        s.commit()
        current_app.logger.warning("Failed login email=%s request_id=%s", email, g.request_id)
        flash("Invalid credentials.", "danger")
        return redirect(url_for("auth.login_get", next=nxt) if nxt else url_for("auth.login_get"))

    session.clear()
    session["user_id"] = user.id
    throttle.reset(ip)

    # A locale picked before signing in becomes the user's preference if they have none yet.
    cookie_locale = (request.cookies.get(LOCALE_COOKIE) or "").strip().lower()
    if not user.locale and cookie_locale in current_app.config["SUPPORTED_LOCALES"]:
        user.locale = cookie_locale

    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    return redirect(_safe_next(nxt) or url_for("admin.index"))


@bp.get("/logout")
def logout():
    user = getattr(g, "current_user", None)
    if user:
        s = db_session()
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    session.clear()
    return redirect(url_for("routes.index"))
