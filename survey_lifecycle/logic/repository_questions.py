"""Question catalog lookups for survey instances.

The applicable question set for an instance is the run template's questions
that are not retired and are visible given the instance's stored answers.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Mapping, Optional, Sequence

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection

from survey_lifecycle.db.base import connection_scope, get_engine
from survey_lifecycle.logic.repository_responses import list_responses
from survey_lifecycle.logic.visibility_rules import canonical_answer, compute_visible_set
from survey_lifecycle.models.questions import SurveyQuestion

logger = logging.getLogger(__name__)


def _parse_visible_if(raw: Any) -> Optional[List[str]]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, list):
        return [str(v) for v in raw]
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("visible_if_values_unparseable raw=%r", raw)
        return None
    if isinstance(parsed, list):
        return [str(v) for v in parsed]
    return [str(parsed)]


def _to_question(row: Mapping[str, Any]) -> SurveyQuestion:
    data = dict(row)
    data["visible_if_values"] = _parse_visible_if(data.get("visible_if_values"))
    data["retired"] = bool(data.get("retired"))
    return SurveyQuestion.model_validate(data)


def list_questions_for_instance(instance_id: int, conn: Optional[Connection] = None) -> List[SurveyQuestion]:
    """All non-retired questions of the instance's run template, by position."""
    query = sql_text(
        """
        SELECT q.id, q.survey_template_id, q.question_text, q.field_type, q.external_id,
               q.position, q.parent_question_id, q.visible_if_values, q.retired
        FROM survey_question q
        JOIN survey_run r ON r.survey_template_id = q.survey_template_id
        JOIN survey_instance i ON i.survey_run_id = r.id
        WHERE i.id = :iid AND q.retired = :retired
        ORDER BY q.position ASC, q.id ASC
        """
    )
    params = {"iid": instance_id, "retired": False}
    if conn is not None:
        rows = conn.execute(query, params).mappings().all()
    else:
        with get_engine().connect() as own:
            rows = own.execute(query, params).mappings().all()
    return [_to_question(r) for r in rows]


def applicable_questions(instance_id: int, conn: Optional[Connection] = None) -> List[SurveyQuestion]:
    questions = list_questions_for_instance(instance_id, conn=conn)
    by_question = {
        r.question_response.question_id: r.question_response
        for r in list_responses(instance_id, conn=conn)
    }
    rules = {q.id: (q.parent_question_id, q.visible_if_values) for q in questions}
    parent_values = {
        q.parent_question_id: canonical_answer(by_question.get(q.parent_question_id))
        for q in questions
        if q.parent_question_id is not None
    }
    visible = compute_visible_set(rules, parent_values)
    return [q for q in questions if q.id in visible]


def applicable_question_ids(instance_id: int, conn: Optional[Connection] = None) -> set[int]:
    return {q.id for q in applicable_questions(instance_id, conn=conn)}


def create_question(
    survey_template_id: int,
    question_text: str,
    *,
    position: int = 0,
    field_type: str = "TEXT",
    external_id: str | None = None,
    parent_question_id: int | None = None,
    visible_if_values: Sequence[str] | None = None,
) -> int:
    with connection_scope() as c:
        new_id = c.execute(
            sql_text(
                """
                INSERT INTO survey_question (
                    survey_template_id, question_text, field_type, external_id,
                    position, parent_question_id, visible_if_values, retired
                ) VALUES (:tid, :text, :ftype, :ext, :pos, :parent, :vis, :retired)
                RETURNING id
                """
            ),
            {
                "tid": survey_template_id,
                "text": question_text,
                "ftype": field_type,
                "ext": external_id,
                "pos": position,
                "parent": parent_question_id,
                "vis": json.dumps(list(visible_if_values)) if visible_if_values is not None else None,
                "retired": False,
            },
        ).scalar_one()
    return int(new_id)


def retire_question(question_id: int) -> bool:
    with connection_scope() as c:
        rowcount = c.execute(
            sql_text("UPDATE survey_question SET retired = :retired WHERE id = :id"),
            {"id": question_id, "retired": True},
        ).rowcount
    return (rowcount or 0) > 0


__all__ = [
    "list_questions_for_instance",
    "applicable_questions",
    "applicable_question_ids",
    "create_question",
    "retire_question",
]
