from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.portal.audit import apply_changes, record_event
from app.portal.errors import NotFoundFault
from app.portal.search import SearchConfig
from app.portal.utils import validate_string_field

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.portal.models import User
    from app.portal.modules.departments.models import Department


DEPARTMENT_SEARCH = SearchConfig.from_mapping(
    {
        "fields": ["name"],
        "relations": {"products": {"fields": ["name", "sku"]}},
    }
)


def serialize_department(d: "Department") -> dict[str, Any]:
    return {"id": d.id, "name": d.name}


def validate_department_payload(payload: dict) -> str | None:
    """Validate department create/update payload. Returns the first error message, if any."""
    return validate_string_field(payload, "name", required=True, max_length=255)


def get_department(s: "Session", department_id: int) -> "Department":
    from app.portal.modules.departments.models import Department

    department = s.get(Department, department_id)
    if department is None:
        raise NotFoundFault(f"Department {department_id} not found.")
    return department


def save_department(
    s: "Session", department_id: int | None, payload: dict, user: "User | None"
) -> tuple["Department", bool]:
    """
    Upsert by id: overwrite an existing department, otherwise create a new one.
    Unknown ids create a fresh row (the id is never taken from the client).
    Returns (department, created).
    """
    from app.portal.modules.departments.models import Department

    now = datetime.utcnow()
    name = payload["name"].strip()
    department = s.get(Department, department_id) if department_id is not None else None

    if department is None:
        department = Department(
            name=name,
            created_at=now,
            updated_at=now,
            created_by_user_id=user.id if user else None,
            updated_by_user_id=user.id if user else None,
        )
        s.add(department)
        s.flush()
        record_event(
            s,
            actor=user,
            action="department.create",
            entity_type="Department",
            entity_id=str(department.id),
            metadata={"name": department.name},
        )
        return department, True

    changes = apply_changes(department, {"name": name})
    department.updated_at = now
    department.updated_by_user_id = user.id if user else None
    record_event(
        s,
        actor=user,
        action="department.update",
        entity_type="Department",
        entity_id=str(department.id),
        metadata=changes or None,
    )
    return department, False


def delete_department(s: "Session", department_id: int, user: "User | None") -> int:
    department = get_department(s, department_id)
    name = department.name
    s.delete(department)
    s.flush()
    record_event(
        s,
        actor=user,
        action="department.delete",
        entity_type="Department",
        entity_id=str(department_id),
        metadata={"name": name},
    )
    return department_id
