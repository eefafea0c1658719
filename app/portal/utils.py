from __future__ import annotations

from typing import Any


def validate_string_field(
    payload: dict[str, Any],
    key: str,
    *,
    required: bool = False,
    max_length: int | None = None,
) -> str | None:
    """Return the first failing rule's message for one string field, or None."""
    label = key.replace("_", " ")
    value = payload.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        return f"The {label} field is required." if required else None
    if not isinstance(value, str):
        return f"The {label} field must be a string."
    if max_length is not None and len(value.strip()) > max_length:
        return f"The {label} field must not be greater than {max_length} characters."
    return None


def parse_optional_id(value: Any) -> int | None:
    """Parse an optional record id from JSON/form input. Blank -> None; junk -> ValueError."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("id must be an integer")
    if isinstance(value, int):
        return value
    s = str(value).strip()
    if not s or s.lower() in ("null", "none"):
        return None
    return int(s)
