"""Behave environment hooks for survey lifecycle integration tests.

Scenarios run against `TEST_BASE_URL` when it is set (a live API sharing
`TEST_DATABASE_URL`); otherwise the application is served in-process over a
file-backed SQLite database. Seed data is written straight through the
repository helpers, so both modes need direct database access.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import httpx
from sqlalchemy import text

_ROOT = Path(__file__).resolve().parents[3]
_DEFAULT_DB = _ROOT / "tmp" / "integration_tests.db"

_TABLES = (
    "change_log",
    "survey_question_response",
    "survey_instance_owner",
    "survey_instance_recipient",
    "survey_instance",
    "survey_question",
    "survey_run",
    "user_role",
    "person",
)


def before_all(context: Any) -> None:  # pragma: no cover - executed by Behave
    base_url = os.getenv("TEST_BASE_URL", "").strip().rstrip("/")
    if not os.getenv("TEST_DATABASE_URL"):
        _DEFAULT_DB.parent.mkdir(parents=True, exist_ok=True)
        if _DEFAULT_DB.exists():
            _DEFAULT_DB.unlink()
        os.environ["TEST_DATABASE_URL"] = f"sqlite:///{_DEFAULT_DB}"
    os.environ.setdefault("DATABASE_URL", os.environ["TEST_DATABASE_URL"])
    os.environ.setdefault("AUTO_APPLY_MIGRATIONS", "0")

    from survey_lifecycle.db.base import get_engine, reset_engine
    from survey_lifecycle.db.migrations_runner import apply_migrations

    reset_engine()
    context.engine = get_engine(os.environ["TEST_DATABASE_URL"])
    apply_migrations(context.engine)
    context.api_prefix = os.getenv("TEST_API_PREFIX", "/api/v1")

    if base_url:
        context.client = httpx.Client(base_url=base_url, timeout=10.0)
    else:
        from fastapi.testclient import TestClient

        from survey_lifecycle.config import load_config
        from survey_lifecycle.main import create_app

        context.client = TestClient(create_app(load_config()))
    print(f"[env] api={'live ' + base_url if base_url else 'in-process'} db={os.environ['TEST_DATABASE_URL']}")


def before_scenario(context: Any, scenario: Any) -> None:  # pragma: no cover - executed by Behave
    with context.engine.begin() as conn:
        for table in _TABLES:
            conn.execute(text(f"DELETE FROM {table}"))
    context.people = {}
    context.last_response = None


def after_all(context: Any) -> None:  # pragma: no cover - executed by Behave
    client = getattr(context, "client", None)
    if client is not None:
        client.close()
