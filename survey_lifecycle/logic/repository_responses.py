"""Question response data access helpers.

At most one live response row exists per (survey_instance_id, question_id);
saves upsert on that key rather than inserting duplicates.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional

from sqlalchemy import bindparam, text as sql_text
from sqlalchemy.engine import Connection

from survey_lifecycle.db.base import connection_scope, get_engine
from survey_lifecycle.models.questions import (
    SurveyInstanceQuestionResponse,
    SurveyQuestionResponse,
)

logger = logging.getLogger(__name__)

_VALUE_COLUMNS = (
    "comment",
    "string_response",
    "number_response",
    "boolean_response",
    "date_response",
    "entity_response_kind",
    "entity_response_id",
)


def _to_response(row: Mapping[str, Any]) -> SurveyInstanceQuestionResponse:
    values = {col: row[col] for col in _VALUE_COLUMNS}
    return SurveyInstanceQuestionResponse(
        survey_instance_id=row["survey_instance_id"],
        person_id=row["person_id"],
        last_updated_at=row["last_updated_at"],
        question_response=SurveyQuestionResponse(question_id=row["question_id"], **values),
    )


def list_responses(instance_id: int, conn: Optional[Connection] = None) -> List[SurveyInstanceQuestionResponse]:
    query = sql_text(
        f"""
        SELECT survey_instance_id, question_id, person_id, last_updated_at, {", ".join(_VALUE_COLUMNS)}
        FROM survey_question_response
        WHERE survey_instance_id = :iid
        ORDER BY question_id ASC
        """
    )
    if conn is not None:
        rows = conn.execute(query, {"iid": instance_id}).mappings().all()
    else:
        with get_engine().connect() as own:
            rows = own.execute(query, {"iid": instance_id}).mappings().all()
    return [_to_response(r) for r in rows]


def save_response(response: SurveyInstanceQuestionResponse, conn: Optional[Connection] = None) -> None:
    """Insert or overwrite the response for (instance, question)."""
    qr = response.question_response
    params = {
        "iid": response.survey_instance_id,
        "qid": qr.question_id,
        "pid": response.person_id,
        "at": response.last_updated_at.isoformat(timespec="seconds"),
        "comment": qr.comment,
        "string_response": qr.string_response,
        "number_response": qr.number_response,
        "boolean_response": qr.boolean_response,
        "date_response": qr.date_response.isoformat() if qr.date_response else None,
        "entity_response_kind": qr.entity_response_kind,
        "entity_response_id": qr.entity_response_id,
    }
    with connection_scope(conn) as c:
        c.execute(
            sql_text(
                """
                INSERT INTO survey_question_response (
                    survey_instance_id, question_id, person_id, last_updated_at,
                    comment, string_response, number_response, boolean_response,
                    date_response, entity_response_kind, entity_response_id
                ) VALUES (
                    :iid, :qid, :pid, :at,
                    :comment, :string_response, :number_response, :boolean_response,
                    :date_response, :entity_response_kind, :entity_response_id
                )
                ON CONFLICT (survey_instance_id, question_id) DO UPDATE SET
                    person_id = excluded.person_id,
                    last_updated_at = excluded.last_updated_at,
                    comment = excluded.comment,
                    string_response = excluded.string_response,
                    number_response = excluded.number_response,
                    boolean_response = excluded.boolean_response,
                    date_response = excluded.date_response,
                    entity_response_kind = excluded.entity_response_kind,
                    entity_response_id = excluded.entity_response_id
                """
            ),
            params,
        )
    logger.info("response_saved instance_id=%s question_id=%s", response.survey_instance_id, qr.question_id)


def clone_responses(from_instance_id: int, to_instance_id: int, conn: Optional[Connection] = None) -> int:
    """Copy every response row onto another instance, keeping timestamps."""
    cols = ", ".join(("question_id", "person_id", "last_updated_at") + _VALUE_COLUMNS)
    with connection_scope(conn) as c:
        rowcount = c.execute(
            sql_text(
                f"""
                INSERT INTO survey_question_response (survey_instance_id, {cols})
                SELECT :to_id, {cols}
                FROM survey_question_response
                WHERE survey_instance_id = :from_id
                """
            ),
            {"from_id": from_instance_id, "to_id": to_instance_id},
        ).rowcount
    logger.info(
        "responses_cloned from=%s to=%s count=%s", from_instance_id, to_instance_id, rowcount
    )
    return int(rowcount or 0)


def delete_responses(instance_id: int, question_ids: Iterable[int], conn: Optional[Connection] = None) -> int:
    ids = sorted({int(q) for q in question_ids})
    if not ids:
        return 0
    stmt = sql_text(
        """
        DELETE FROM survey_question_response
        WHERE survey_instance_id = :iid AND question_id IN :qids
        """
    ).bindparams(bindparam("qids", expanding=True))
    with connection_scope(conn) as c:
        rowcount = c.execute(stmt, {"iid": instance_id, "qids": ids}).rowcount
    return int(rowcount or 0)


__all__ = [
    "list_responses",
    "save_response",
    "clone_responses",
    "delete_responses",
]
