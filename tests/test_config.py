import pytest

from app.portal import create_app
from app.portal.config import load_config


def test_defaults(monkeypatch):
    for k in ("DEFAULT_LOCALE", "SUPPORTED_LOCALES", "DEFAULT_PER_PAGE", "MAX_PER_PAGE", "ENVELOPE_ENCODING", "ENV"):
        monkeypatch.delenv(k, raising=False)
    cfg = load_config()
    assert cfg["DEFAULT_LOCALE"] == "en"
    assert cfg["SUPPORTED_LOCALES"] == ("en", "fil")
    assert cfg["DEFAULT_PER_PAGE"] == 10
    assert cfg["MAX_PER_PAGE"] == 100
    assert cfg["ENVELOPE_ENCODING"] == "base64"
    assert cfg["SESSION_COOKIE_SECURE"] is False


@pytest.mark.parametrize(
    "name,value",
    [
        ("ENVELOPE_ENCODING", "xml"),
        ("DEFAULT_LOCALE", "de"),
        ("DEFAULT_PER_PAGE", "0"),
        ("MAX_PER_PAGE", "five"),
    ],
)
def test_invalid_settings_fail_fast(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(RuntimeError):
        load_config()


def test_production_requires_postgres_and_secret(monkeypatch, tmp_path):
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("SECRET_KEY", "a-real-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'prod.db'}")
    with pytest.raises(RuntimeError, match="Postgres"):
        create_app()

    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@localhost/portal")
    monkeypatch.setenv("SECRET_KEY", "change-me")
    with pytest.raises(RuntimeError, match="SECRET_KEY"):
        create_app()
