"""Functional test bootstrap for the survey lifecycle service.

Points the service at a file-backed SQLite database before any application
import, applies the SQLite migrations once per session, and empties every
table before each test so scenarios never see each other's rows.
"""

from __future__ import annotations

import os
import pathlib
from dataclasses import dataclass
from typing import Iterable, Optional

import pytest

_ROOT = pathlib.Path(__file__).resolve().parents[2]
_DB_FILE = _ROOT / "tmp" / "functional_tests.db"
_DB_FILE.parent.mkdir(parents=True, exist_ok=True)
if _DB_FILE.exists():
    _DB_FILE.unlink()

# Use a file-backed SQLite DB to ensure persistence across connections
os.environ["TEST_DATABASE_URL"] = f"sqlite:///{_DB_FILE}"
os.environ["DATABASE_URL"] = os.environ["TEST_DATABASE_URL"]
# Disable app startup auto-migrations; we will apply SQLite migrations explicitly
os.environ["AUTO_APPLY_MIGRATIONS"] = "0"

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

ADMIN_ROLE = "SURVEY_ADMIN"


@pytest.fixture(scope="session", autouse=True)
def functional_sqlite_bootstrap():
    """Session-level bootstrap: apply migrations once for the shared DB."""
    from survey_lifecycle.db.base import get_engine, reset_engine
    from survey_lifecycle.db.migrations_runner import SQLITE_MIGRATIONS_DIR, apply_migrations

    reset_engine()
    engine = get_engine(os.environ["TEST_DATABASE_URL"])
    apply_migrations(engine, migrations_dir=SQLITE_MIGRATIONS_DIR)
    yield engine
    reset_engine()


@pytest.fixture(autouse=True)
def clean_tables(functional_sqlite_bootstrap):
    from sqlalchemy import text as sql_text

    with functional_sqlite_bootstrap.begin() as conn:
        for table in _TABLES:
            conn.execute(sql_text(f"DELETE FROM {table}"))
    yield


@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    from survey_lifecycle.config import load_config
    from survey_lifecycle.main import create_app

    with TestClient(create_app(load_config())) as c:
        yield c


@dataclass
class SeededSurvey:
    """Ids of a minimal run with one live instance and its cast of people."""

    run_id: int
    template_id: int
    instance_id: int
    recipient_id: int
    owner_id: int
    admin_id: int
    outsider_id: int
    question_ids: list[int]


class Seeder:
    """Thin wrapper over repository seed helpers used by functional tests."""

    def person(self, name: str, *, roles: Iterable[str] = ()) -> int:
        from survey_lifecycle.logic import repository_people

        person_id = repository_people.create_person(name.title(), f"{name}@example.com", user_name=name)
        if roles:
            repository_people.grant_roles(name, roles)
        return person_id

    def survey(
        self,
        *,
        status: str = "NOT_STARTED",
        owning_role: Optional[str] = None,
        questions: int = 2,
    ) -> SeededSurvey:
        from survey_lifecycle.logic import repository_instances, repository_membership, repository_questions
        from survey_lifecycle.models.survey_instance import SurveyInstanceStatus

        recipient = self.person("rita")
        owner = self.person("oscar")
        admin = self.person("ada", roles=[ADMIN_ROLE])
        outsider = self.person("nobody")
        template_id = 7
        question_ids = [
            repository_questions.create_question(template_id, f"Question {i + 1}", position=i)
            for i in range(questions)
        ]
        run_id = repository_instances.create_run("Annual review", template_id)
        instance_id = repository_instances.create_instance(
            run_id,
            status=SurveyInstanceStatus(status),
            owning_role=owning_role,
        )
        repository_membership.add_recipient(instance_id, recipient)
        repository_membership.add_owner(instance_id, owner)
        return SeededSurvey(
            run_id=run_id,
            template_id=template_id,
            instance_id=instance_id,
            recipient_id=recipient,
            owner_id=owner,
            admin_id=admin,
            outsider_id=outsider,
            question_ids=question_ids,
        )


@pytest.fixture
def seed() -> Seeder:
    return Seeder()
