"""
Append-only audit trail.

Every department/product mutation and every login attempt writes one
AuditEvent in the caller's transaction; nothing here commits.
"""
from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.portal.models import AuditEvent, User


def apply_changes(obj: Any, values: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    """Set attributes on `obj`; return {field: {"old", "new"}} for those that changed."""
    changes: dict[str, dict[str, Any]] = {}
    for key, new in values.items():
        old = getattr(obj, key)
        if old != new:
            changes[key] = {"old": old, "new": new}
            setattr(obj, key, new)
    return changes


def record_event(
    s: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    in_request = has_request_context()
    if request_id is None and in_request:
        request_id = getattr(g, "request_id", None)

    ev = AuditEvent(
        request_id=request_id,
        client_ip=request.remote_addr if in_request else None,
        actor_user_id=actor.id if actor else None,
        actor_user_email=actor.email if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
    )
    s.add(ev)
    return ev
