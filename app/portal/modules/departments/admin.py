from __future__ import annotations

from flask import Blueprint, current_app, g, render_template, request

from app.portal.db import db_session
from app.portal.envelope import envelope_response
from app.portal.errors import ValidationFault
from app.portal.listing import list_page, parse_page_request
from app.portal.models import User
from app.portal.modules.departments.models import Department
from app.portal.modules.departments.service import (
    DEPARTMENT_SEARCH,
    delete_department,
    get_department,
    save_department,
    serialize_department,
    validate_department_payload,
)
from app.portal.rbac import require_permission
from app.portal.utils import parse_optional_id

bp = Blueprint("departments", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _payload() -> dict:
    if not request.is_json:
        return request.form.to_dict()
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationFault("The given data was invalid.")
    return data


# ---------- Page ----------
@bp.get("/departments")
@require_permission("departments.view")
def departments_index():
    return render_template(
        "admin/departments/list.html",
        endpoint="/admin/api/departments",
        default_per_page=current_app.config["DEFAULT_PER_PAGE"],
    )


# ---------- API: list ----------
@bp.get("/api/departments")
@require_permission("departments.view")
def departments_list():
    s = db_session()
    req = parse_page_request(
        request.args,
        default_per_page=current_app.config["DEFAULT_PER_PAGE"],
        max_per_page=current_app.config["MAX_PER_PAGE"],
    )
    result = list_page(s, Department, DEPARTMENT_SEARCH, req)
    return envelope_response(result.to_payload(serialize_department))


# ---------- API: create / update ----------
@bp.post("/api/departments")
@require_permission("departments.edit")
def departments_store():
    s = db_session()
    u = _current_user()
    payload = _payload()

    error = validate_department_payload(payload)
    if error:
        raise ValidationFault(error)
    try:
        department_id = parse_optional_id(payload.get("department_id"))
    except ValueError:
        raise ValidationFault("The department id field must be an integer.")

    department, created = save_department(s, department_id, payload, u)
    s.commit()

    message = "Department Saved Successfully!" if created else "Department Updated Successfully!"
    return envelope_response({"message": message, "department": serialize_department(department)})


# ---------- API: fetch one (edit form) ----------
@bp.get("/api/departments/<int:department_id>")
@require_permission("departments.view")
def departments_show(department_id: int):
    s = db_session()
    return envelope_response(serialize_department(get_department(s, department_id)))


# ---------- API: delete ----------
@bp.delete("/api/departments/<int:department_id>")
@require_permission("departments.edit")
def departments_destroy(department_id: int):
    s = db_session()
    u = _current_user()
    deleted_id = delete_department(s, department_id, u)
    s.commit()
    return envelope_response({"message": "Department Deleted Successfully!", "deleted_id": deleted_id})
