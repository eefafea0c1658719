from flask import Blueprint, current_app, g, render_template, request
from sqlalchemy import func, select

from app.portal.db import db_session
from app.portal.envelope import envelope_response
from app.portal.listing import list_page, parse_page_request
from app.portal.models import AuditEvent
from app.portal.modules.departments.models import Department
from app.portal.modules.products.models import Product
from app.portal.rbac import require_permission
from app.portal.search import SearchConfig

bp = Blueprint("admin", __name__)

AUDIT_SEARCH = SearchConfig(fields=("action", "actor_user_email", "entity_type", "entity_id"))


def _serialize_event(ev: AuditEvent) -> dict:
    return {
        "id": ev.id,
        "created_at": ev.created_at.isoformat(sep=" ", timespec="seconds"),
        "actor_user_email": ev.actor_user_email,
        "action": ev.action,
        "entity_type": ev.entity_type,
        "entity_id": ev.entity_id,
    }


@bp.get("/")
@require_permission("admin.view")
def index():
    s = db_session()
    counts = {
        "departments": s.scalar(select(func.count()).select_from(Department)) or 0,
        "products": s.scalar(select(func.count()).select_from(Product)) or 0,
    }
    return render_template("admin/index.html", counts=counts)


@bp.get("/me")
@require_permission("admin.view")
def me():
    user = getattr(g, "current_user", None)
    return render_template("admin/me.html", user=user, role_keys=user.role_keys, perm_keys=sorted(user.permission_keys))


@bp.get("/audit")
@require_permission("admin.view")
def audit_index():
    return render_template(
        "admin/audit/list.html",
        endpoint="/admin/api/audit",
        default_per_page=current_app.config["DEFAULT_PER_PAGE"],
    )


@bp.get("/api/audit")
@require_permission("admin.view")
def audit_list():
    """Audit trail through the same search/paginate protocol as the resource tables."""
    req = parse_page_request(
        request.args,
        default_per_page=current_app.config["DEFAULT_PER_PAGE"],
        max_per_page=current_app.config["MAX_PER_PAGE"],
    )
    result = list_page(db_session(), AuditEvent, AUDIT_SEARCH, req)
    return envelope_response(result.to_payload(_serialize_event))
