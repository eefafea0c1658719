from __future__ import annotations

from flask import Blueprint, current_app, g, render_template, request

from app.portal.db import db_session
from app.portal.envelope import envelope_response
from app.portal.errors import ValidationFault
from app.portal.listing import list_page, parse_page_request
from app.portal.models import User
from app.portal.modules.departments.models import Department
from app.portal.modules.products.models import Product
from app.portal.modules.products.service import (
    PRODUCT_SEARCH,
    delete_product,
    get_product,
    save_product,
    serialize_product,
    validate_product_payload,
)
from app.portal.rbac import require_permission
from app.portal.utils import parse_optional_id

bp = Blueprint("products", __name__)


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
@bp.get("/products")
@require_permission("products.view")
def products_index():
    s = db_session()
    departments = s.query(Department).order_by(Department.name.asc()).all()
    return render_template(
        "admin/products/list.html",
        endpoint="/admin/api/products",
        default_per_page=current_app.config["DEFAULT_PER_PAGE"],
        departments=departments,
    )


# ---------- API: list ----------
@bp.get("/api/products")
@require_permission("products.view")
def products_list():
    s = db_session()
    req = parse_page_request(
        request.args,
        default_per_page=current_app.config["DEFAULT_PER_PAGE"],
        max_per_page=current_app.config["MAX_PER_PAGE"],
    )
    result = list_page(s, Product, PRODUCT_SEARCH, req)
    return envelope_response(result.to_payload(serialize_product))


# ---------- API: create / update ----------
@bp.post("/api/products")
@require_permission("products.edit")
def products_store():
    s = db_session()
    u = _current_user()
    payload = _payload()

    error = validate_product_payload(s, payload)
    if error:
        raise ValidationFault(error)
    try:
        product_id = parse_optional_id(payload.get("product_id"))
    except ValueError:
        raise ValidationFault("The product id field must be an integer.")

    product, created = save_product(s, product_id, payload, u)
    s.commit()

    message = "Product Saved Successfully!" if created else "Product Updated Successfully!"
    return envelope_response({"message": message, "product": serialize_product(product)})


# ---------- API: fetch one (edit form) ----------
@bp.get("/api/products/<int:product_id>")
@require_permission("products.view")
def products_show(product_id: int):
    s = db_session()
    return envelope_response(serialize_product(get_product(s, product_id)))


# ---------- API: delete ----------
@bp.delete("/api/products/<int:product_id>")
@require_permission("products.edit")
def products_destroy(product_id: int):
    s = db_session()
    u = _current_user()
    deleted_id = delete_product(s, product_id, u)
    s.commit()
    return envelope_response({"message": "Product Deleted Successfully!", "deleted_id": deleted_id})
