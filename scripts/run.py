#!/usr/bin/env python3
"""
Start the GeoVault Locker API under Uvicorn.

Locker settings are validated before the server starts, so a bad
LOCKOUT_THRESHOLD or BCRYPT_ROUNDS fails here instead of on the first
request. Reload is only used with a single worker.
"""

import os
import sys

import uvicorn

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.append(PROJECT_ROOT)

from core.config import LockerSettings  # noqa: E402


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "t")


def main() -> int:
    try:
        settings = LockerSettings.from_env()
    except ValueError as e:
        print(f"❌ Invalid locker configuration: {e}")
        return 1

    host = os.getenv("APP_HOST", "127.0.0.1")
    port = int(os.getenv("APP_PORT", "8000"))
    workers = max(1, int(os.getenv("APP_WORKERS", "1")))
    reload = _flag("APP_RELOAD", "True") and workers == 1
    log_level = os.getenv("APP_LOG_LEVEL", "info")

    print(
        f"🔐 Lockout after {settings.lockout_threshold} failed PINs "
        f"for {settings.lock_window_seconds}s"
    )
    print(f"🚀 GeoVault API on {host}:{port} (workers={workers}, reload={reload})")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        workers=workers,
        reload=reload,
        reload_dirs=[PROJECT_ROOT] if reload else None,
        log_level=log_level,
        app_dir=PROJECT_ROOT,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
