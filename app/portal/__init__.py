import logging
from datetime import timedelta

from flask import Flask, g, jsonify, redirect, render_template, request, session, url_for
from dotenv import load_dotenv

from app.portal.config import load_config
from app.portal.db import init_db, teardown_db_session
from app.portal.errors import PortalError
from app.portal.auth import bp as auth_bp, load_current_user
from app.portal.routes import bp as routes_bp
from app.portal.locale import bp as locale_bp, current_locale, load_request_locale, translate
from app.portal.admin import bp as admin_bp
from app.portal.modules.departments.admin import bp as departments_bp
from app.portal.modules.products.admin import bp as products_bp

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    app.logger.setLevel(app.config["LOG_LEVEL"])

    from app.portal.rbac import user_has_permission, wants_json
    from app.portal.security import ensure_csrf_token, validate_csrf

    @app.context_processor
    def _inject_globals() -> dict:
        def has_perm(key: str) -> bool:
            return user_has_permission(getattr(g, "current_user", None), key)

        return {
            "csrf_token": ensure_csrf_token(),
            "has_perm": has_perm,
            "locale": current_locale(),
            "supported_locales": app.config["SUPPORTED_LOCALES"],
            "current_user": getattr(g, "current_user", None),
            "t": translate,
        }

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    app.register_blueprint(routes_bp)
    app.register_blueprint(locale_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(departments_bp, url_prefix="/admin")
    app.register_blueprint(products_bp, url_prefix="/admin")

    # Order matters: the user is needed to resolve the locale and by the CSRF guard.
    app.before_request(load_current_user)
    app.before_request(load_request_locale)

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Allow safe auth endpoints to pass through (login/logout)
            if (request.endpoint or "").startswith("auth."):
                return None
            # Anonymous writes are rejected by the RBAC layer (401 / login redirect).
            if getattr(g, "current_user", None) is None:
                return None
            if not validate_csrf(request):
                if wants_json():
                    return jsonify({"message": "CSRF token missing or invalid."}), 400
                return render_template("errors/400.html", message="CSRF token missing or invalid."), 400
        return None

    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(PortalError)
    def _portal_error(e: PortalError):  # type: ignore[no-redef]
        if e.status_code >= 500:
            app.logger.error("%s (request_id=%s): %s", type(e).__name__, getattr(g, "request_id", None), e.message)
        return jsonify({"message": e.message}), e.status_code

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        # Raw exception text stays in the logs, never in the response.
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        if wants_json():
            return jsonify({"message": GENERIC_ERROR_MESSAGE}), 500
        return render_template("errors/500.html"), 500

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        if wants_json():
            return jsonify({"message": "Not found."}), 404
        return render_template("errors/404.html"), 404

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        missing = getattr(g, "missing_permission", None)
        if missing:
            app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        if wants_json():
            return jsonify({"message": "This action is unauthorized."}), 403
        return render_template("errors/403.html", missing_permission=missing), 403

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        if wants_json():
            return jsonify({"message": "Request body too large."}), 413
        referrer = request.referrer
        if referrer and referrer.startswith(request.host_url):
            return redirect(referrer), 302
        return redirect(url_for("routes.index")), 302

    logger.info("create_app() complete; app ready to serve (env=%s)", env or "development")

    return app
