"""
Client side of the table listing protocol.

ListingClient speaks HTTP to one collection endpoint (list / get / save / delete)
and unwraps response envelopes. TableController owns the visible table state
(page, per_page, search, records, total) and keeps it mirrored in a location
string, so reloading or sharing the URL reproduces the same view.

    client = ListingClient("https://portal.example", "/admin/api/departments", headers=auth)
    table = TableController(client.list_page, location="/admin/departments?page=2")
    table.load()
    table.search_for("eng")
"""
from __future__ import annotations

import json
import logging
import math
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from app.portal.envelope import EnvelopeError, decode_envelope
from app.portal.errors import NotFoundFault, PortalError, TransportFault, ValidationFault

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListingClient:
    base_url: str
    endpoint: str
    headers: dict[str, str] = field(default_factory=dict)
    timeout_seconds: int = 30
    opener: urllib.request.OpenerDirector | None = None

    def _url(self, suffix: str = "", params: dict[str, Any] | None = None) -> str:
        url = self.base_url.rstrip("/") + "/" + self.endpoint.strip("/") + suffix
        if params:
            url += "?" + urllib.parse.urlencode({k: v for k, v in params.items() if v is not None})
        return url

    def request_json(self, method: str, suffix: str = "", *, params: dict[str, Any] | None = None, body: Any = None) -> Any:
        url = self._url(suffix, params)
        data = json.dumps(body).encode("utf-8") if body is not None else None
        req = urllib.request.Request(url, data=data, method=method)
        req.add_header("Accept", "application/json")
        if data is not None:
            req.add_header("Content-Type", "application/json")
        for k, v in self.headers.items():
            req.add_header(k, v)

        open_ = self.opener.open if self.opener else urllib.request.urlopen
        try:
            with open_(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as e:
            raise _fault_from_http_error(e) from e
        except (urllib.error.URLError, OSError) as e:
            raise TransportFault(f"Failed to reach {url}: {e}") from e

        try:
            return decode_envelope(json.loads(raw.decode("utf-8")))
        except (UnicodeDecodeError, json.JSONDecodeError, EnvelopeError) as e:
            raise TransportFault(f"Invalid response from {url}") from e

    def list_page(self, page: int, per_page: int, search: str) -> dict[str, Any]:
        payload = self.request_json("GET", params={"page": page, "per_page": per_page, "search": search})
        if not isinstance(payload, dict):
            raise TransportFault("Invalid listing payload.")
        return payload

    def get(self, record_id: int) -> dict[str, Any]:
        return self.request_json("GET", f"/{int(record_id)}")

    def save(self, fields: dict[str, Any]) -> dict[str, Any]:
        return self.request_json("POST", body=fields)

    def delete(self, record_id: int) -> dict[str, Any]:
        return self.request_json("DELETE", f"/{int(record_id)}")


def _fault_from_http_error(e: urllib.error.HTTPError) -> PortalError:
    try:
        body = json.loads(e.read().decode("utf-8", errors="ignore") or "{}")
    except (json.JSONDecodeError, OSError):
        body = {}
    message = body.get("message") if isinstance(body, dict) else None
    if e.code == 422:
        return ValidationFault(message)
    if e.code == 404:
        return NotFoundFault(message)
    return TransportFault(message or f"HTTP {e.code} from server.")


FetchPage = Callable[[int, int, str], dict[str, Any]]
Notify = Callable[[str, str], None]


def _log_notify(title: str, message: str) -> None:
    logger.error("%s: %s", title, message)


def _parse_positive(raw: str | None, default: int) -> int:
    try:
        value = int(raw) if raw is not None else default
    except ValueError:
        return default
    return value if value >= 1 else default


class TableController:
    """
    Pagination/search state for one table, mirrored into `location`.

    Calls are synchronous: each interaction issues at most one fetch and the
    state is only replaced once that fetch has fully succeeded.
    """

    def __init__(
        self,
        fetch: FetchPage,
        *,
        location: str = "/",
        default_per_page: int = 10,
        notify: Notify | None = None,
    ):
        self.fetch = fetch
        self.default_per_page = default_per_page
        self.notify = notify or _log_notify

        parts = urllib.parse.urlsplit(location)
        self._path = parts.path or "/"
        query = urllib.parse.parse_qs(parts.query)
        self.location = location

        self.page = _parse_positive((query.get("page") or [None])[0], 1)
        self.per_page = _parse_positive((query.get("per_page") or [None])[0], default_per_page)
        self.search = (query.get("search") or [""])[0]
        self.records: list[dict[str, Any]] = []
        self.total = 0
        self.is_loading = False

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.per_page) if self.per_page else 0

    def canonical_location(self, page: int, search: str, per_page: int) -> str:
        """Minimal bookmarkable URL: defaults are left out."""
        params: list[tuple[str, str]] = []
        if page > 1:
            params.append(("page", str(page)))
        if search:
            params.append(("search", search))
        if per_page != self.default_per_page:
            params.append(("per_page", str(per_page)))
        query = urllib.parse.urlencode(params)
        return f"{self._path}?{query}" if query else self._path

    def _fetch(self, page: int, search: str, per_page: int) -> bool:
        self.is_loading = True
        try:
            payload = self.fetch(page, per_page, search)
            records = list(payload.get("data") or [])
            total = int(payload.get("recordsTotal") or 0)
        except (PortalError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Table fetch failed (page=%s search=%r per_page=%s): %s", page, search, per_page, e)
            message = e.message if isinstance(e, PortalError) else "Failed to fetch data"
            self.notify("Error", message)
            return False
        finally:
            self.is_loading = False

        self.page, self.search, self.per_page = page, search, per_page
        self.records, self.total = records, total
        # Replace, not push: no new history entry per fetch.
        self.location = self.canonical_location(page, search, per_page)
        return True

    def load(self) -> bool:
        return self._fetch(self.page, self.search, self.per_page)

    def search_for(self, term: str) -> bool:
        return self._fetch(1, term, self.per_page)

    def set_per_page(self, per_page: int) -> bool:
        if per_page < 1:
            return False
        return self._fetch(1, self.search, per_page)

    def go_to_page(self, page: int) -> bool:
        if page < 1 or page > self.total_pages:
            return False
        return self._fetch(page, self.search, self.per_page)

    def refresh(self) -> bool:
        """
        Refetch the current view after a save/delete. If the current page emptied
        out (e.g. its last row was deleted) step back to the new last page.
        """
        if not self._fetch(self.page, self.search, self.per_page):
            return False
        if not self.records and self.total > 0 and self.page > 1:
            return self._fetch(self.total_pages, self.search, self.per_page)
        return True
