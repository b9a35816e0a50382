"""Recipient and owner membership for survey instances."""

from __future__ import annotations

from typing import Any, List, Mapping

from sqlalchemy import text as sql_text

from survey_lifecycle.db.base import connection_scope, get_engine
from survey_lifecycle.models.people import Person, SurveyInstanceOwner, SurveyInstanceRecipient

_MEMBER_SELECT = """
    SELECT m.id AS member_id, m.survey_instance_id,
           p.id, p.display_name, p.email, p.user_name, p.is_removed
    FROM {table} m
    JOIN person p ON p.id = m.person_id
"""


def _person_from(row: Mapping[str, Any]) -> Person:
    return Person(
        id=row["id"],
        display_name=row["display_name"],
        email=row["email"],
        user_name=row["user_name"],
        is_removed=bool(row["is_removed"]),
    )


def is_recipient(person_id: int, instance_id: int) -> bool:
    eng = get_engine()
    with eng.connect() as conn:
        row = conn.execute(
            sql_text(
                """
                SELECT 1 FROM survey_instance_recipient
                WHERE person_id = :pid AND survey_instance_id = :iid
                LIMIT 1
                """
            ),
            {"pid": person_id, "iid": instance_id},
        ).fetchone()
    return row is not None


def is_owner(person_id: int, instance_id: int) -> bool:
    eng = get_engine()
    with eng.connect() as conn:
        row = conn.execute(
            sql_text(
                """
                SELECT 1 FROM survey_instance_owner
                WHERE person_id = :pid AND survey_instance_id = :iid
                LIMIT 1
                """
            ),
            {"pid": person_id, "iid": instance_id},
        ).fetchone()
    return row is not None


def find_recipients(instance_id: int) -> List[SurveyInstanceRecipient]:
    eng = get_engine()
    with eng.connect() as conn:
        rows = conn.execute(
            sql_text(
                _MEMBER_SELECT.format(table="survey_instance_recipient")
                + " WHERE m.survey_instance_id = :iid ORDER BY m.id ASC"
            ),
            {"iid": instance_id},
        ).mappings().all()
    return [
        SurveyInstanceRecipient(id=r["member_id"], survey_instance_id=r["survey_instance_id"], person=_person_from(r))
        for r in rows
    ]


def find_owners(instance_id: int) -> List[SurveyInstanceOwner]:
    eng = get_engine()
    with eng.connect() as conn:
        rows = conn.execute(
            sql_text(
                _MEMBER_SELECT.format(table="survey_instance_owner")
                + " WHERE m.survey_instance_id = :iid ORDER BY m.id ASC"
            ),
            {"iid": instance_id},
        ).mappings().all()
    return [
        SurveyInstanceOwner(id=r["member_id"], survey_instance_id=r["survey_instance_id"], person=_person_from(r))
        for r in rows
    ]


def get_recipient_person_id(instance_id: int, recipient_id: int) -> int | None:
    eng = get_engine()
    with eng.connect() as conn:
        row = conn.execute(
            sql_text("SELECT person_id FROM survey_instance_recipient WHERE id = :id AND survey_instance_id = :iid"),
            {"id": recipient_id, "iid": instance_id},
        ).fetchone()
    return int(row[0]) if row else None


def add_recipient(instance_id: int, person_id: int) -> int:
    with connection_scope() as c:
        new_id = c.execute(
            sql_text(
                """
                INSERT INTO survey_instance_recipient (survey_instance_id, person_id)
                VALUES (:iid, :pid)
                RETURNING id
                """
            ),
            {"iid": instance_id, "pid": person_id},
        ).scalar_one()
    return int(new_id)


def delete_recipient(recipient_id: int) -> bool:
    with connection_scope() as c:
        rowcount = c.execute(
            sql_text("DELETE FROM survey_instance_recipient WHERE id = :id"),
            {"id": recipient_id},
        ).rowcount
    return (rowcount or 0) > 0


def add_owner(instance_id: int, person_id: int) -> int:
    with connection_scope() as c:
        new_id = c.execute(
            sql_text(
                """
                INSERT INTO survey_instance_owner (survey_instance_id, person_id)
                VALUES (:iid, :pid)
                RETURNING id
                """
            ),
            {"iid": instance_id, "pid": person_id},
        ).scalar_one()
    return int(new_id)


__all__ = [
    "is_recipient",
    "is_owner",
    "find_recipients",
    "find_owners",
    "get_recipient_person_id",
    "add_recipient",
    "delete_recipient",
    "add_owner",
]
