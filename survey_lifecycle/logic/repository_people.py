"""Identity resolution and role lookups."""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import text as sql_text

from survey_lifecycle.db.base import connection_scope, get_engine
from survey_lifecycle.models.people import Person

logger = logging.getLogger(__name__)

_PERSON_COLUMNS = "id, display_name, email, user_name, is_removed"


def resolve_person(user_name_or_email: str) -> Person | None:
    """Return the active person whose email or user name matches.

    Email matching is case-insensitive; removed people never resolve.
    """
    if not user_name_or_email or not str(user_name_or_email).strip():
        return None
    key = str(user_name_or_email).strip()
    eng = get_engine()
    with eng.connect() as conn:
        row = conn.execute(
            sql_text(
                f"""
                SELECT {_PERSON_COLUMNS}
                FROM person
                WHERE is_removed = :removed
                  AND (LOWER(email) = LOWER(:key) OR user_name = :key)
                ORDER BY id ASC
                LIMIT 1
                """
            ),
            {"key": key, "removed": False},
        ).mappings().fetchone()
    if row is None:
        logger.info("person_unresolved key=%s", key)
        return None
    return Person.model_validate(dict(row))


def get_person(person_id: int) -> Person | None:
    eng = get_engine()
    with eng.connect() as conn:
        row = conn.execute(
            sql_text(f"SELECT {_PERSON_COLUMNS} FROM person WHERE id = :id"),
            {"id": person_id},
        ).mappings().fetchone()
    return Person.model_validate(dict(row)) if row else None


def has_role(identity: str | None, role_name: str | None) -> bool:
    """True when `identity` (user name or email) holds `role_name`.

    Blank identities or role names never match.
    """
    if not identity or not role_name:
        return False
    eng = get_engine()
    with eng.connect() as conn:
        row = conn.execute(
            sql_text(
                """
                SELECT 1 FROM user_role
                WHERE LOWER(user_name) = LOWER(:identity) AND role = :role
                LIMIT 1
                """
            ),
            {"identity": identity, "role": role_name},
        ).fetchone()
    return row is not None


def create_person(display_name: str, email: str, user_name: str | None = None) -> int:
    with connection_scope() as c:
        new_id = c.execute(
            sql_text(
                """
                INSERT INTO person (display_name, email, user_name, is_removed)
                VALUES (:name, :email, :user_name, :removed)
                RETURNING id
                """
            ),
            {"name": display_name, "email": email, "user_name": user_name, "removed": False},
        ).scalar_one()
    return int(new_id)


def grant_roles(identity: str, roles: Iterable[str]) -> None:
    with connection_scope() as c:
        for role in roles:
            c.execute(
                sql_text("INSERT INTO user_role (user_name, role) VALUES (:u, :r)"),
                {"u": identity, "r": role},
            )


__all__ = [
    "resolve_person",
    "get_person",
    "has_role",
    "create_person",
    "grant_roles",
]
