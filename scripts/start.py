#!/usr/bin/env python3
"""
Container entrypoint: release phase, then exec gunicorn serving app.wsgi:app.

Environment:
  PORT              listen port (default 8080)
  WEB_CONCURRENCY   gunicorn workers (default 2)
  GUNICORN_TIMEOUT  worker timeout in seconds (default 60)
  SKIP_RELEASE      "1" to skip migrations/seeding (e.g. when a separate job runs them)
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _int_env(name: str, default: int, *, low: int = 1, high: int | None = None) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        value = low - 1
    if value < low or (high is not None and value > high):
        print(f"ERROR: invalid {name}={raw!r}", flush=True)
        sys.exit(1)
    return value


def gunicorn_argv() -> list[str]:
    port = _int_env("PORT", 8080, high=65535)
    workers = _int_env("WEB_CONCURRENCY", 2)
    timeout = _int_env("GUNICORN_TIMEOUT", 60)
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", str(workers),
        "--timeout", str(timeout),
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    argv = gunicorn_argv()

    if (os.environ.get("SKIP_RELEASE") or "").strip() != "1":
        from scripts.release import run_release

        try:
            run_release()
        except Exception as e:
            print(f"Release failed: {e}", flush=True)
            sys.exit(1)

    print(f"=== Starting {' '.join(argv)} ===", flush=True)
    # exec: gunicorn replaces this process and receives signals directly
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
