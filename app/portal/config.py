import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    default_locale: str
    supported_locales: tuple[str, ...]

    default_per_page: int
    max_per_page: int
    envelope_encoding: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise RuntimeError(f"{name} must be an integer (got {raw!r}).") from e


def load_settings() -> Settings:
    supported = tuple(
        loc.strip().lower() for loc in _getenv("SUPPORTED_LOCALES", "en,fil").split(",") if loc.strip()
    )
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///portal.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        default_locale=_getenv("DEFAULT_LOCALE", "en").lower(),
        supported_locales=supported or ("en",),
        default_per_page=_getenv_int("DEFAULT_PER_PAGE", 10),
        max_per_page=_getenv_int("MAX_PER_PAGE", 100),
        envelope_encoding=_getenv("ENVELOPE_ENCODING", "base64").lower(),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    if s.envelope_encoding not in ("base64", "json"):
        raise RuntimeError("ENVELOPE_ENCODING must be 'base64' or 'json'.")
    if s.default_locale not in s.supported_locales:
        raise RuntimeError(f"DEFAULT_LOCALE {s.default_locale!r} is not in SUPPORTED_LOCALES.")
    if s.default_per_page < 1 or s.max_per_page < s.default_per_page:
        raise RuntimeError("DEFAULT_PER_PAGE must be >= 1 and <= MAX_PER_PAGE.")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "DEFAULT_LOCALE": s.default_locale,
        "SUPPORTED_LOCALES": s.supported_locales,
        "DEFAULT_PER_PAGE": s.default_per_page,
        "MAX_PER_PAGE": s.max_per_page,
        "ENVELOPE_ENCODING": s.envelope_encoding,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # JSON bodies only; no uploads
        "MAX_CONTENT_LENGTH": 1 * 1024 * 1024,
    }
