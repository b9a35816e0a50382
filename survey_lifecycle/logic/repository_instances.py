"""Survey instance and survey run data access helpers.

Encapsulates queries and writes for the lifecycle workflow so that route
handlers and the orchestrator stay free of inline SQL. Status writes are
conditional on the expected current status and report an `UpdateOutcome`
instead of a bare row count.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, List, Mapping, Optional

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection

from survey_lifecycle.db.base import connection_scope, get_engine
from survey_lifecycle.logic.outcomes import UpdateOutcome
from survey_lifecycle.models.survey_instance import (
    SurveyInstance,
    SurveyInstanceStatus,
    SurveyRun,
)

logger = logging.getLogger(__name__)

_INSTANCE_COLUMNS = """
    id, survey_run_id, entity_kind, entity_id, status, original_instance_id,
    owning_role, due_date, submitted_at, submitted_by, approved_at, approved_by
"""


def utc_now_text() -> str:
    """RFC3339 UTC timestamp used for every stored timestamp column."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _date_text(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


def _to_instance(row: Mapping[str, Any]) -> SurveyInstance:
    return SurveyInstance.model_validate(dict(row))


def get_instance(instance_id: int) -> SurveyInstance | None:
    eng = get_engine()
    with eng.connect() as conn:
        row = conn.execute(
            sql_text(f"SELECT {_INSTANCE_COLUMNS} FROM survey_instance WHERE id = :id"),
            {"id": instance_id},
        ).mappings().fetchone()
    return _to_instance(row) if row else None


def get_run(run_id: int) -> SurveyRun | None:
    eng = get_engine()
    with eng.connect() as conn:
        row = conn.execute(
            sql_text("SELECT id, name, survey_template_id, owner_id FROM survey_run WHERE id = :id"),
            {"id": run_id},
        ).mappings().fetchone()
    return SurveyRun.model_validate(dict(row)) if row else None


def find_for_recipient(person_id: int) -> List[SurveyInstance]:
    """Live instances on which the person is a recipient."""
    eng = get_engine()
    with eng.connect() as conn:
        rows = conn.execute(
            sql_text(
                f"""
                SELECT {_INSTANCE_COLUMNS}
                FROM survey_instance
                WHERE original_instance_id IS NULL
                  AND id IN (
                    SELECT survey_instance_id FROM survey_instance_recipient WHERE person_id = :pid
                  )
                ORDER BY id ASC
                """
            ),
            {"pid": person_id},
        ).mappings().all()
    return [_to_instance(r) for r in rows]


def find_for_survey_run(run_id: int) -> List[SurveyInstance]:
    eng = get_engine()
    with eng.connect() as conn:
        rows = conn.execute(
            sql_text(
                f"""
                SELECT {_INSTANCE_COLUMNS}
                FROM survey_instance
                WHERE survey_run_id = :rid AND original_instance_id IS NULL
                ORDER BY id ASC
                """
            ),
            {"rid": run_id},
        ).mappings().all()
    return [_to_instance(r) for r in rows]


def find_previous_versions(instance_id: int) -> List[SurveyInstance]:
    """Prior versions of a live instance, oldest first."""
    eng = get_engine()
    with eng.connect() as conn:
        rows = conn.execute(
            sql_text(
                f"""
                SELECT {_INSTANCE_COLUMNS}
                FROM survey_instance
                WHERE original_instance_id = :id
                ORDER BY id ASC
                """
            ),
            {"id": instance_id},
        ).mappings().all()
    return [_to_instance(r) for r in rows]


def update_status(
    instance_id: int,
    expected: SurveyInstanceStatus,
    new_status: SurveyInstanceStatus,
    conn: Optional[Connection] = None,
) -> UpdateOutcome:
    """Move a live instance from `expected` to `new_status`."""
    with connection_scope(conn) as c:
        rowcount = c.execute(
            sql_text(
                """
                UPDATE survey_instance
                SET status = :new_status
                WHERE id = :id AND status = :expected AND original_instance_id IS NULL
                """
            ),
            {"id": instance_id, "new_status": new_status.value, "expected": expected.value},
        ).rowcount
    outcome = UpdateOutcome.from_rowcount(rowcount)
    logger.info(
        "instance_status_update id=%s expected=%s new=%s outcome=%s",
        instance_id,
        expected.value,
        new_status.value,
        outcome.value,
    )
    return outcome


def mark_approved(
    instance_id: int,
    expected: SurveyInstanceStatus,
    user_name: str,
    conn: Optional[Connection] = None,
) -> UpdateOutcome:
    with connection_scope(conn) as c:
        rowcount = c.execute(
            sql_text(
                """
                UPDATE survey_instance
                SET status = :approved, approved_at = :at, approved_by = :by
                WHERE id = :id AND status = :expected AND original_instance_id IS NULL
                """
            ),
            {
                "id": instance_id,
                "approved": SurveyInstanceStatus.APPROVED.value,
                "expected": expected.value,
                "at": utc_now_text(),
                "by": user_name,
            },
        ).rowcount
    return UpdateOutcome.from_rowcount(rowcount)


def mark_submitted(instance_id: int, user_name: str, conn: Optional[Connection] = None) -> UpdateOutcome:
    with connection_scope(conn) as c:
        rowcount = c.execute(
            sql_text(
                "UPDATE survey_instance SET submitted_at = :at, submitted_by = :by WHERE id = :id"
            ),
            {"id": instance_id, "at": utc_now_text(), "by": user_name},
        ).rowcount
    return UpdateOutcome.from_rowcount(rowcount)


def clear_approved(instance_id: int, conn: Optional[Connection] = None) -> UpdateOutcome:
    with connection_scope(conn) as c:
        rowcount = c.execute(
            sql_text(
                "UPDATE survey_instance SET approved_at = NULL, approved_by = NULL WHERE id = :id"
            ),
            {"id": instance_id},
        ).rowcount
    return UpdateOutcome.from_rowcount(rowcount)


def create_previous_version(instance: SurveyInstance, conn: Optional[Connection] = None) -> int:
    """Insert a frozen copy of the stored row for `instance` and return its id.

    Fields are copied from the row as it stands inside the caller's
    transaction; only `status` is taken from the snapshot, because the caller
    has already moved the live row to its new status.
    """
    with connection_scope(conn) as c:
        new_id = c.execute(
            sql_text(
                """
                INSERT INTO survey_instance (
                    survey_run_id, entity_kind, entity_id, status, original_instance_id,
                    owning_role, due_date, submitted_at, submitted_by, approved_at, approved_by
                )
                SELECT
                    survey_run_id, entity_kind, entity_id, :status, id,
                    owning_role, due_date, submitted_at, submitted_by, approved_at, approved_by
                FROM survey_instance
                WHERE id = :id AND original_instance_id IS NULL
                RETURNING id
                """
            ),
            {"id": instance.id, "status": instance.status.value},
        ).scalar_one()
    logger.info("instance_previous_version_created id=%s original=%s", new_id, instance.id)
    return int(new_id)


def update_due_date(instance_id: int, due_date: date, conn: Optional[Connection] = None) -> UpdateOutcome:
    with connection_scope(conn) as c:
        rowcount = c.execute(
            sql_text(
                """
                UPDATE survey_instance SET due_date = :due
                WHERE id = :id AND original_instance_id IS NULL
                """
            ),
            {"id": instance_id, "due": _date_text(due_date)},
        ).rowcount
    return UpdateOutcome.from_rowcount(rowcount)


def create_instance(
    survey_run_id: int,
    *,
    status: SurveyInstanceStatus = SurveyInstanceStatus.NOT_STARTED,
    owning_role: str | None = None,
    due_date: date | None = None,
    entity_kind: str | None = None,
    entity_id: int | None = None,
    conn: Optional[Connection] = None,
) -> int:
    """Insert a live instance; survey issuance lives elsewhere, this seeds it."""
    with connection_scope(conn) as c:
        new_id = c.execute(
            sql_text(
                """
                INSERT INTO survey_instance (survey_run_id, entity_kind, entity_id, status, owning_role, due_date)
                VALUES (:rid, :ek, :eid, :status, :role, :due)
                RETURNING id
                """
            ),
            {
                "rid": survey_run_id,
                "ek": entity_kind,
                "eid": entity_id,
                "status": status.value,
                "role": owning_role,
                "due": _date_text(due_date),
            },
        ).scalar_one()
    return int(new_id)


def create_run(name: str, survey_template_id: int, owner_id: int | None = None) -> int:
    with connection_scope() as c:
        new_id = c.execute(
            sql_text(
                """
                INSERT INTO survey_run (name, survey_template_id, owner_id)
                VALUES (:name, :tid, :owner)
                RETURNING id
                """
            ),
            {"name": name, "tid": survey_template_id, "owner": owner_id},
        ).scalar_one()
    return int(new_id)


__all__ = [
    "utc_now_text",
    "get_instance",
    "get_run",
    "find_for_recipient",
    "find_for_survey_run",
    "find_previous_versions",
    "update_status",
    "mark_approved",
    "mark_submitted",
    "clear_approved",
    "create_previous_version",
    "update_due_date",
    "create_instance",
    "create_run",
]
