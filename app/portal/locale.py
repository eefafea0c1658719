"""
Per-request locale.

The active locale is resolved once per request (user preference, then the
`locale` cookie, then the configured default) and stored on `g.locale`; nothing
module-global is mutated. Templates receive it through a context processor.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping

from flask import Blueprint, current_app, flash, g, redirect, request, url_for
from flask.typing import ResponseReturnValue

from app.portal.db import db_session
from app.portal.models import User
from app.portal.rbac import require_login

LOCALE_COOKIE = "locale"
LOCALE_COOKIE_MAX_AGE = 60 * 60 * 24 * 365  # one year

bp = Blueprint("locale", __name__)


def resolve_locale(
    user: User | None,
    cookie_value: str | None,
    default: str,
    supported: Iterable[str],
) -> str:
    supported = tuple(supported)
    for candidate in (getattr(user, "locale", None), cookie_value):
        value = (candidate or "").strip().lower()
        if value and value in supported:
            return value
    return default


def load_request_locale() -> None:
    """before_request hook; must run after load_current_user()."""
    g.locale = resolve_locale(
        getattr(g, "current_user", None),
        request.cookies.get(LOCALE_COOKIE),
        current_app.config["DEFAULT_LOCALE"],
        current_app.config["SUPPORTED_LOCALES"],
    )


def current_locale() -> str:
    return getattr(g, "locale", None) or current_app.config["DEFAULT_LOCALE"]


def _redirect_back() -> ResponseReturnValue:
    referrer = request.referrer
    if referrer and referrer.startswith(request.host_url):
        return redirect(referrer)
    return redirect(url_for("routes.index"))


@bp.post("/settings/locale")
@require_login
def update_locale():
    supported = current_app.config["SUPPORTED_LOCALES"]
    data = request.get_json(silent=True) if request.is_json else request.form
    raw = data.get("locale") if isinstance(data, Mapping) else None
    value = raw.strip().lower() if isinstance(raw, str) else ""
    if value not in supported:
        flash(f"The selected locale is invalid. Choose one of: {', '.join(supported)}.", "danger")
        return _redirect_back()

    user: User | None = getattr(g, "current_user", None)
    if user is not None:
        s = db_session()
        user.locale = value
        s.add(user)
        s.commit()
        current_app.logger.info("Locale preference updated user_id=%s locale=%s", user.id, value)

    g.locale = value
    response = current_app.make_response(_redirect_back())
    response.set_cookie(
        LOCALE_COOKIE,
        value,
        max_age=LOCALE_COOKIE_MAX_AGE,
        httponly=True,
        samesite="Lax",
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
    )
    return response


# Interface strings for the public site and dashboard chrome.
MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "home": "Home",
        "about": "About",
        "services": "Services",
        "contact": "Contact",
        "dashboard": "Dashboard",
        "departments": "Departments",
        "products": "Products",
        "audit": "Audit trail",
        "login": "Log in",
        "logout": "Log out",
        "language": "Language",
        "search": "Search",
        "per_page": "Per page",
        "hero_title": "Serving our community with excellence",
        "hero_subtitle": "Programs, services and people working together.",
        "footer_rights": "All rights reserved.",
    },
    "fil": {
        "home": "Tahanan",
        "about": "Tungkol",
        "services": "Serbisyo",
        "contact": "Makipag-ugnayan",
        "dashboard": "Dashboard",
        "departments": "Mga Departamento",
        "products": "Mga Produkto",
        "audit": "Talaan ng Audit",
        "login": "Mag-log in",
        "logout": "Mag-log out",
        "language": "Wika",
        "search": "Maghanap",
        "per_page": "Bawat pahina",
        "hero_title": "Naglilingkod sa aming komunidad nang may kahusayan",
        "hero_subtitle": "Mga programa, serbisyo at taong nagtutulungan.",
        "footer_rights": "Nakalaan ang lahat ng karapatan.",
    },
}


def translate(key: str, locale: str | None = None) -> str:
    """Look up an interface string; falls back to English, then to the key itself."""
    loc = locale or current_locale()
    return MESSAGES.get(loc, {}).get(key) or MESSAGES["en"].get(key) or key
