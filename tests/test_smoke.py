import pytest
from werkzeug.security import generate_password_hash

from app.portal import create_app
from app.portal.auth import throttle
from app.portal.db import session_scope
from app.portal.envelope import decode_envelope
from app.portal.models import Base, User
from scripts.init_db import seed_roles


CSRF_TOKEN = "test-csrf-token"
CSRF = {"X-CSRF-Token": CSRF_TOKEN}


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    for k in ("DEFAULT_LOCALE", "SUPPORTED_LOCALES", "DEFAULT_PER_PAGE", "MAX_PER_PAGE", "ENVELOPE_ENCODING"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        roles = seed_roles(s)
        admin = User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        admin.roles.append(roles["admin"])
        viewer = User(email="viewer@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        viewer.roles.append(roles["viewer"])
        s.add_all([admin, viewer])

    throttle.reset("127.0.0.1")
    return app.test_client()


def _login(client, email="admin@example.com"):
    """Log in and pin a known CSRF token in the session."""
    r = client.post("/auth/login", data={"email": email, "password": "pw"}, follow_redirects=False)
    assert r.status_code == 302
    with client.session_transaction() as sess:
        sess["csrf_token"] = CSRF_TOKEN



def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_healthz_plain_text(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_landing_page_renders_for_anonymous(client):
    r = client.get("/")
    assert r.status_code == 200
    assert b'<html lang="en">' in r.data
    assert b"Serving our community" in r.data


def test_login_and_admin_access(client):
    # Anonymous should be sent to login
    r = client.get("/admin/")
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]

    _login(client)

    r = client.get("/admin/")
    assert r.status_code == 200
    assert b"Departments" in r.data


def test_invalid_login_is_rejected(client):
    r = client.post("/auth/login", data={"email": "admin@example.com", "password": "nope"}, follow_redirects=True)
    assert r.status_code == 200
    assert b"Invalid credentials." in r.data

    r = client.get("/admin/")
    assert r.status_code == 302


def test_login_redirects_to_local_next_only(client):
    r = client.post(
        "/auth/login",
        data={"email": "admin@example.com", "password": "pw", "next": "//evil.example/x"},
        follow_redirects=False,
    )
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/admin/")


def test_logout_clears_session(client):
    _login(client)
    r = client.get("/auth/logout")
    assert r.status_code == 302
    r = client.get("/admin/")
    assert r.status_code == 302


def test_viewer_can_view_but_not_edit(client):
    _login(client, "viewer@example.com")
    assert client.get("/admin/departments").status_code == 200

    r = client.post("/admin/api/departments", json={"name": "Finance"}, headers=CSRF)
    assert r.status_code == 403
    assert r.json["message"] == "This action is unauthorized."


def test_unknown_api_route_returns_json_404(client):
    _login(client)
    r = client.get("/admin/api/nothing-here")
    assert r.status_code == 404
    assert r.json["message"] == "Not found."


def test_login_throttle_blocks_after_repeated_attempts(client):
    for _ in range(5):
        client.post("/auth/login", data={"email": "admin@example.com", "password": "nope"})
    r = client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"}, follow_redirects=True)
    assert b"Too many login attempts" in r.data


def test_audit_listing_records_logins(client):
    _login(client)
    r = client.get("/admin/api/audit", query_string={"search": "auth.login"})
    assert r.status_code == 200
    body = decode_envelope(r.json)
    assert body["recordsTotal"] >= 1
    assert body["data"][0]["actor_user_email"] == "admin@example.com"


def test_me_page_lists_viewer_permissions(client):
    _login(client, "viewer@example.com")
    r = client.get("/admin/me")
    assert r.status_code == 200
    assert b"departments.view" in r.data
    assert b"departments.edit" not in r.data
