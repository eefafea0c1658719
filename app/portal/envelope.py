"""
Response envelope shared by the dashboard API and the table client.

With ENVELOPE_ENCODING=base64 (default) payloads travel as
{"encoded": base64(json(payload))}, which is what existing table clients expect.
This is obfuscation, not security. ENVELOPE_ENCODING=json sends the payload as-is.
"""
from __future__ import annotations

import base64
import binascii
import json
from typing import Any

from flask import Response, current_app, jsonify


class EnvelopeError(ValueError):
    pass


def encode_payload(payload: Any, encoding: str = "base64") -> Any:
    if encoding == "json":
        return payload
    # ASCII-only JSON (\uXXXX escapes) so byte-per-char decoders such as atob() agree.
    raw = json.dumps(payload, separators=(",", ":")).encode("ascii")
    return {"encoded": base64.b64encode(raw).decode("ascii")}


def decode_envelope(body: Any) -> Any:
    """Unwrap an envelope; bodies without an `encoded` key are returned unchanged."""
    if not isinstance(body, dict) or "encoded" not in body:
        return body
    try:
        raw = base64.b64decode(body["encoded"], validate=True)
        return json.loads(raw.decode("utf-8"))
    except (binascii.Error, TypeError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise EnvelopeError(f"Malformed response envelope: {e}") from e


def envelope_response(payload: Any, status: int = 200) -> tuple[Response, int]:
    encoding = current_app.config.get("ENVELOPE_ENCODING", "base64")
    return jsonify(encode_payload(payload, encoding)), status
