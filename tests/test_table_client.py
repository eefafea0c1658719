import io
import json
import urllib.error
import urllib.parse

import pytest
from werkzeug.security import generate_password_hash

from app.portal import create_app
from app.portal.auth import throttle
from app.portal.db import session_scope
from app.portal.envelope import decode_envelope, encode_payload
from app.portal.errors import NotFoundFault, TransportFault, ValidationFault
from app.portal.models import Base, User
from app.portal.table_client import ListingClient, TableController
from scripts.init_db import seed_roles

CSRF_TOKEN = "test-csrf-token"
CSRF = {"X-CSRF-Token": CSRF_TOKEN}


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    for k in ("DEFAULT_PER_PAGE", "MAX_PER_PAGE", "ENVELOPE_ENCODING"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        roles = seed_roles(s)
        u = User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        u.roles.append(roles["admin"])
        s.add(u)

    throttle.reset("127.0.0.1")
    return app.test_client()


def _login(client):
    r = client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"}, follow_redirects=False)
    assert r.status_code == 302
    with client.session_transaction() as sess:
        sess["csrf_token"] = CSRF_TOKEN


class FakeServer:
    """In-memory stand-in for a listing endpoint: newest first, name substring search."""

    def __init__(self, names):
        self.rows = [{"id": i, "name": n} for i, n in enumerate(names, start=1)]
        self.calls = []

    def fetch(self, page, per_page, search):
        self.calls.append((page, per_page, search))
        rows = [r for r in reversed(self.rows) if search.casefold() in r["name"].casefold()]
        start = (page - 1) * per_page
        return {"data": rows[start : start + per_page], "recordsTotal": len(rows), "recordsFiltered": len(rows)}

    def delete(self, record_id):
        self.rows = [r for r in self.rows if r["id"] != record_id]


def _server(n=12):
    return FakeServer([f"Dept {i:02d}" for i in range(1, n + 1)])


def test_location_round_trips_byte_for_byte():
    server = FakeServer([f"Engineering {i}" for i in range(80)])
    table = TableController(server.fetch, location="/admin/departments?page=3&search=eng&per_page=25")
    assert (table.page, table.search, table.per_page) == (3, "eng", 25)

    assert table.load()
    assert server.calls == [(3, 25, "eng")]
    assert table.location == "/admin/departments?page=3&search=eng&per_page=25"


def test_defaults_are_left_out_of_location():
    table = TableController(_server().fetch, location="/admin/departments?page=1&per_page=10")
    table.load()
    assert table.location == "/admin/departments"


def test_bad_query_values_fall_back_to_defaults():
    table = TableController(_server().fetch, location="/admin/departments?page=zero&per_page=-3")
    assert (table.page, table.per_page) == (1, 10)


def test_search_resets_to_first_page():
    server = _server()
    table = TableController(server.fetch, location="/admin/departments?page=2")
    table.load()
    assert table.search_for("dept 1")
    assert table.page == 1
    assert [r["name"] for r in table.records] == ["Dept 12", "Dept 11", "Dept 10"]
    assert table.location == "/admin/departments?search=dept+1"


def test_per_page_change_resets_to_first_page():
    table = TableController(_server().fetch, location="/admin/departments?page=2")
    table.load()
    assert table.set_per_page(25)
    assert (table.page, table.per_page) == (1, 25)
    assert len(table.records) == 12
    assert table.location == "/admin/departments?per_page=25"
    assert not table.set_per_page(0)


def test_go_to_page_out_of_range_is_noop():
    server = _server()
    table = TableController(server.fetch, location="/admin/departments")
    table.load()
    assert table.total_pages == 2

    calls = len(server.calls)
    assert not table.go_to_page(0)
    assert not table.go_to_page(3)
    assert len(server.calls) == calls

    assert table.go_to_page(2)
    assert [r["name"] for r in table.records] == ["Dept 02", "Dept 01"]
    assert table.location == "/admin/departments?page=2"


def test_failed_fetch_keeps_state_and_notifies():
    server = _server()
    notices = []
    table = TableController(server.fetch, location="/admin/departments", notify=lambda t, m: notices.append((t, m)))
    table.load()
    before = (table.page, table.records, table.total, table.location)

    def broken(page, per_page, search):
        raise TransportFault("Failed to reach server")

    table.fetch = broken
    assert not table.go_to_page(2)
    assert notices == [("Error", "Failed to reach server")]
    assert (table.page, table.records, table.total, table.location) == before
    assert table.is_loading is False


def test_malformed_payload_is_reported_as_failure():
    notices = []
    table = TableController(lambda p, pp, s: {"recordsTotal": "many"}, notify=lambda t, m: notices.append(m))
    assert not table.load()
    assert notices == ["Failed to fetch data"]


def test_refresh_steps_back_when_last_page_empties():
    server = _server(12)
    table = TableController(server.fetch, location="/admin/departments?page=2")
    table.load()
    assert [r["id"] for r in table.records] == [2, 1]

    server.delete(2)
    server.delete(1)
    assert table.refresh()
    assert table.page == 1
    assert table.total == 10
    assert len(table.records) == 10
    assert table.location == "/admin/departments"


def test_refresh_keeps_position_while_page_has_rows():
    server = _server(12)
    table = TableController(server.fetch, location="/admin/departments?page=2")
    table.load()

    server.delete(2)
    assert table.refresh()
    assert table.page == 2
    assert [r["id"] for r in table.records] == [1]
    assert table.total == 11
    assert table.location == "/admin/departments?page=2"


def test_refresh_on_empty_table_stays_on_page_one():
    server = _server(1)
    table = TableController(server.fetch, location="/admin/departments")
    table.load()
    server.delete(1)
    assert table.refresh()
    assert (table.page, table.total, table.records) == (1, 0, [])


class FakeOpener:
    def __init__(self, status=200, body=None):
        self.status = status
        self.body = body
        self.requests = []

    def open(self, req, timeout=None):
        self.requests.append(req)
        raw = json.dumps(self.body).encode("utf-8")
        if self.status >= 400:
            raise urllib.error.HTTPError(req.full_url, self.status, "error", {}, io.BytesIO(raw))
        return io.BytesIO(raw)


def _client(opener):
    return ListingClient("https://portal.example/", "/admin/api/departments", headers={"X-CSRF-Token": "t"}, opener=opener)


def test_client_list_page_unwraps_envelope():
    payload = {"data": [{"id": 1, "name": "Engineering"}], "recordsTotal": 1, "recordsFiltered": 1}
    opener = FakeOpener(body=encode_payload(payload))
    assert _client(opener).list_page(2, 25, "eng") == payload

    req = opener.requests[0]
    parts = urllib.parse.urlsplit(req.full_url)
    assert parts.path == "/admin/api/departments"
    assert urllib.parse.parse_qs(parts.query) == {"page": ["2"], "per_page": ["25"], "search": ["eng"]}
    assert req.get_header("X-csrf-token") == "t"


def test_client_save_posts_json():
    opener = FakeOpener(body=encode_payload({"message": "Department Saved Successfully!"}))
    assert _client(opener).save({"name": "Finance"})["message"] == "Department Saved Successfully!"
    req = opener.requests[0]
    assert req.get_method() == "POST"
    assert json.loads(req.data) == {"name": "Finance"}


def test_client_delete_hits_record_url():
    opener = FakeOpener(body=encode_payload({"message": "Department Deleted Successfully!", "deleted_id": 4}))
    assert _client(opener).delete(4)["deleted_id"] == 4
    assert opener.requests[0].full_url == "https://portal.example/admin/api/departments/4"
    assert opener.requests[0].get_method() == "DELETE"


@pytest.mark.parametrize(
    "status,exc_type",
    [(422, ValidationFault), (404, NotFoundFault), (503, TransportFault)],
)
def test_client_maps_http_errors(status, exc_type):
    opener = FakeOpener(status=status, body={"message": "The name field is required."})
    with pytest.raises(exc_type) as exc:
        _client(opener).save({})
    assert exc.value.message == "The name field is required."


def test_client_rejects_garbage_body():
    opener = FakeOpener(body={"encoded": "%%%"})
    with pytest.raises(TransportFault):
        _client(opener).get(1)


def test_client_against_live_app(client):
    """The controller drives the real endpoint through the Flask test client."""
    _login(client)
    for i in range(1, 13):
        client.post("/admin/api/departments", json={"name": f"Dept {i:02d}"}, headers=CSRF)

    def fetch(page, per_page, search):
        r = client.get("/admin/api/departments", query_string={"page": page, "per_page": per_page, "search": search})
        return decode_envelope(r.json)

    table = TableController(fetch, location="/admin/departments?page=2")
    assert table.load()
    ids = [r["id"] for r in table.records]
    assert len(ids) == 2

    for record_id in ids:
        client.delete(f"/admin/api/departments/{record_id}", headers=CSRF)
    assert table.refresh()
    assert table.page == 1
    assert table.total == 10
    assert table.location == "/admin/departments"
