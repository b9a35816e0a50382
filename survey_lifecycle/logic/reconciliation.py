"""Response reconciliation on completion.

The question catalog can change between instance creation and completion.
Completion prunes stored responses whose question is no longer in the
instance's applicable question set. Zero deletions is a normal outcome.
"""

from __future__ import annotations

import logging
from typing import Any, List

from survey_lifecycle.logic import repository_questions, repository_responses

logger = logging.getLogger(__name__)


def orphaned_question_ids(applicable: set[int], answered: List[int]) -> List[int]:
    """Answered question ids absent from the applicable set, in input order."""
    return [qid for qid in answered if qid not in applicable]


def reconcile_responses(
    instance_id: int,
    *,
    questions: Any = repository_questions,
    responses: Any = repository_responses,
) -> int:
    """Delete orphaned responses for `instance_id` and return how many went."""
    applicable = set(questions.applicable_question_ids(instance_id))
    stored = responses.list_responses(instance_id)
    orphans = orphaned_question_ids(applicable, [r.question_response.question_id for r in stored])
    if not orphans:
        logger.info("reconcile_noop instance_id=%s stored=%s", instance_id, len(stored))
        return 0
    removed = responses.delete_responses(instance_id, orphans)
    logger.info(
        "reconcile_removed instance_id=%s removed=%s question_ids=%s",
        instance_id,
        removed,
        orphans,
    )
    return removed


__all__ = ["orphaned_question_ids", "reconcile_responses"]
