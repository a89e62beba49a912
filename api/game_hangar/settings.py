"""Centralized environment-driven settings.

Keep this module lightweight: stdlib only, no app imports, to avoid circular deps.
Nothing here connects to anything; required variables are checked by
``require_env`` during startup, not at import time.
"""

from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def require_env(*names: str) -> dict[str, str]:
    """
    Return the values of the given environment variables.

    Raises:
        RuntimeError: If any of them is missing or empty.
    """
    missing = [name for name in names if not os.getenv(name)]
    if missing:
        raise RuntimeError(
            f"Missing required environment variables: {', '.join(missing)}"
        )
    return {name: os.environ[name] for name in names}


HOST: str = os.getenv("HOST", "0.0.0.0")
PORT: int = _int_env("PORT", 8080)

API_PREFIX = "/game-hangar/v1"

# Migrations
PSQL_MIGRATE_DATABASE: bool = _bool_env("PSQL_MIGRATE_DATABASE", True)
PSQL_MIGRATE_ROOT_DIR: str | None = os.getenv("PSQL_MIGRATE_ROOT_DIR") or None
PSQL_MIGRATE_VERSION_TABLE: str = os.getenv("PSQL_MIGRATE_VERSION_TABLE", "schema_version")
PSQL_MIGRATE_EXPECTED_VERSION: int | None = (
    _int_env("PSQL_MIGRATE_EXPECTED_VERSION", 0) or None
)
PSQL_PING_TIMEOUT_MS: int = _int_env("PSQL_PING_TIMEOUT_MS", 100)

# Object store
AWS_BUCKET_SECURE: bool = _bool_env("AWS_BUCKET_SECURE", True)
PRESIGNED_URL_TTL_MINUTES: int = _int_env("PRESIGNED_URL_TTL_MINUTES", 60)
OBJECT_WAIT_SECONDS: int = _int_env("OBJECT_WAIT_SECONDS", 60)

# Sessions & requests
SESSION_COOKIE_NAME = "sessionID"
SESSION_TTL_HOURS: int = _int_env("SESSION_TTL_HOURS", 96)
REQUEST_TIMEOUT_SECONDS: int = _int_env("REQUEST_TIMEOUT_SECONDS", 5)

# Forum. Name of the demo topic when the seed first records it; tracked by id after that
DEMO_TOPIC_NAME: str = os.getenv("DEMO_TOPIC_NAME", "Demos")

ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
