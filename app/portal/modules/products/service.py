from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.portal.audit import apply_changes, record_event
from app.portal.errors import NotFoundFault
from app.portal.search import SearchConfig
from app.portal.utils import parse_optional_id, validate_string_field

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.portal.models import User
    from app.portal.modules.products.models import Product


PRODUCT_SEARCH = SearchConfig.from_mapping(
    {
        "fields": ["name", "sku"],
        "relationships": {"department": ["name"]},
    }
)


def serialize_product(p: "Product") -> dict[str, Any]:
    return {
        "id": p.id,
        "name": p.name,
        "sku": p.sku,
        "department_id": p.department_id,
        "department_name": p.department.name if p.department else None,
    }


def validate_product_payload(s: "Session", payload: dict) -> str | None:
    """Validate product create/update payload. Returns the first error message, if any."""
    from app.portal.modules.departments.models import Department

    for key, required, max_length in (("name", True, 255), ("sku", False, 64)):
        error = validate_string_field(payload, key, required=required, max_length=max_length)
        if error:
            return error

    try:
        department_id = parse_optional_id(payload.get("department_id"))
    except ValueError:
        return "The department id field must be an integer."
    if department_id is not None and s.get(Department, department_id) is None:
        return "The selected department id is invalid."
    return None


def get_product(s: "Session", product_id: int) -> "Product":
    from app.portal.modules.products.models import Product

    product = s.get(Product, product_id)
    if product is None:
        raise NotFoundFault(f"Product {product_id} not found.")
    return product


def save_product(s: "Session", product_id: int | None, payload: dict, user: "User | None") -> tuple["Product", bool]:
    """
    Upsert by id, same contract as save_department(). Payload must already be validated.
    Returns (product, created).
    """
    from app.portal.modules.products.models import Product

    now = datetime.utcnow()
    fields = {
        "name": payload["name"].strip(),
        "sku": (payload.get("sku") or "").strip() or None,
        "department_id": parse_optional_id(payload.get("department_id")),
    }
    product = s.get(Product, product_id) if product_id is not None else None

    if product is None:
        product = Product(
            **fields,
            created_at=now,
            updated_at=now,
            created_by_user_id=user.id if user else None,
            updated_by_user_id=user.id if user else None,
        )
        s.add(product)
        s.flush()
        s.refresh(product, attribute_names=["department"])
        record_event(
            s,
            actor=user,
            action="product.create",
            entity_type="Product",
            entity_id=str(product.id),
            metadata=fields,
        )
        return product, True

    changes = apply_changes(product, fields)
    product.updated_at = now
    product.updated_by_user_id = user.id if user else None
    s.flush()
    s.refresh(product, attribute_names=["department"])
    record_event(
        s,
        actor=user,
        action="product.update",
        entity_type="Product",
        entity_id=str(product.id),
        metadata=changes or None,
    )
    return product, False


def delete_product(s: "Session", product_id: int, user: "User | None") -> int:
    product = get_product(s, product_id)
    name = product.name
    s.delete(product)
    s.flush()
    record_event(
        s,
        actor=user,
        action="product.delete",
        entity_type="Product",
        entity_id=str(product_id),
        metadata={"name": name},
    )
    return product_id
