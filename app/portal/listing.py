"""
Generic search + paginate query for list-managed resources.

Every dashboard table talks to the same protocol:

    GET <collection>?page=<int>&per_page=<int>&search=<str>
      -> {"data": [...], "recordsTotal": int, "recordsFiltered": int}

Rows are ordered newest first (id DESC). recordsFiltered always equals
recordsTotal; there is no second filtering stage.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.portal.errors import ServiceUnavailable, ValidationFault
from app.portal.search import SearchConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    per_page: int = 10
    search: str = ""

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


@dataclass(frozen=True)
class PageResult:
    records: list[Any]
    total: int
    filtered: int
    request: PageRequest

    @property
    def total_pages(self) -> int:
        return (self.total + self.request.per_page - 1) // self.request.per_page

    def to_payload(self, serialize: Callable[[Any], dict[str, Any]]) -> dict[str, Any]:
        return {
            "data": [serialize(r) for r in self.records],
            "recordsTotal": self.total,
            "recordsFiltered": self.filtered,
        }


def _positive_int(args: Mapping[str, Any], key: str, default: int) -> int:
    raw = args.get(key)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = int(str(raw).strip())
    except ValueError:
        raise ValidationFault(f"The {key} field must be an integer.")
    if value < 1:
        raise ValidationFault(f"The {key} field must be at least 1.")
    return value


def parse_page_request(args: Mapping[str, Any], *, default_per_page: int = 10, max_per_page: int = 100) -> PageRequest:
    """Read page/per_page/search from a query-string mapping, applying defaults."""
    page = _positive_int(args, "page", 1)
    per_page = _positive_int(args, "per_page", default_per_page)
    if per_page > max_per_page:
        raise ValidationFault(f"The per_page field must not be greater than {max_per_page}.")
    # Passed through as typed; surrounding spaces are part of the term.
    search = str(args.get("search") or "")
    return PageRequest(page=page, per_page=per_page, search=search)


def list_page(s: Session, model: type, search_config: SearchConfig | None, req: PageRequest) -> PageResult:
    """
    Filter, count and slice `model` rows for one table page.

    Read-only. Database errors surface as ServiceUnavailable so callers can
    tell "storage is down" apart from an ordinary empty page.
    """
    stmt = select(model)
    if req.search and search_config is not None:
        predicate = search_config.predicate(model, req.search)
        if predicate is not None:
            stmt = stmt.where(predicate)

    try:
        total = s.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0
        records = list(
            s.scalars(stmt.order_by(model.id.desc()).offset(req.offset).limit(req.per_page)).all()
        )
    except SQLAlchemyError as e:
        logger.exception("list_page failed for %s (search=%r page=%s)", model.__name__, req.search, req.page)
        raise ServiceUnavailable(f"Unable to load {model.__tablename__} right now. Please try again.") from e

    return PageResult(records=records, total=total, filtered=total, request=req)
