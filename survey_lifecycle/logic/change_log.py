"""Change log (audit) sink.

`append` is best effort: a failed write is logged and swallowed so it never
rolls back an already committed lifecycle change.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from sqlalchemy import text as sql_text
from sqlalchemy.exc import SQLAlchemyError

from survey_lifecycle.db.base import connection_scope, get_engine
from survey_lifecycle.logic.repository_instances import utc_now_text
from survey_lifecycle.models.change_log import ChangeLogEntry, EntityKind

logger = logging.getLogger(__name__)


def append(entry: ChangeLogEntry) -> bool:
    """Persist one entry; return False instead of raising on storage errors."""
    try:
        with connection_scope() as c:
            c.execute(
                sql_text(
                    """
                    INSERT INTO change_log (parent_kind, parent_id, child_kind, operation, user_id, message, created_at)
                    VALUES (:pk, :pid, :ck, :op, :uid, :msg, :at)
                    """
                ),
                {
                    "pk": entry.parent_kind,
                    "pid": entry.parent_id,
                    "ck": entry.child_kind,
                    "op": entry.operation.value,
                    "uid": entry.user_id,
                    "msg": entry.message,
                    "at": utc_now_text(),
                },
            )
    except SQLAlchemyError:
        logger.error(
            "change_log_append_failed parent=%s/%s message=%s",
            entry.parent_kind,
            entry.parent_id,
            entry.message,
            exc_info=True,
        )
        return False
    logger.info("change_log_appended parent=%s/%s op=%s", entry.parent_kind, entry.parent_id, entry.operation.value)
    return True


def find_for_instance(instance_id: int) -> List[Dict[str, Any]]:
    eng = get_engine()
    with eng.connect() as conn:
        rows = conn.execute(
            sql_text(
                """
                SELECT id, parent_kind, parent_id, child_kind, operation, user_id, message, created_at
                FROM change_log
                WHERE parent_kind = :pk AND parent_id = :pid
                ORDER BY id ASC
                """
            ),
            {"pk": EntityKind.SURVEY_INSTANCE, "pid": instance_id},
        ).mappings().all()
    return [dict(r) for r in rows]


__all__ = ["append", "find_for_instance"]
