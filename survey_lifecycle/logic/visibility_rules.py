"""Question applicability rules.

Centralizes the equality-based checks that decide whether a child question
applies to an instance given the stored answer to its parent question.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional
import logging

from survey_lifecycle.models.questions import SurveyQuestionResponse

logger = logging.getLogger(__name__)


def _canon(tok: object) -> str:
    if isinstance(tok, bool):
        return "true" if tok else "false"
    s = str(tok).strip()
    return s.lower() if s.lower() in {"true", "false"} else s


def canonical_answer(response: SurveyQuestionResponse | None) -> Optional[str]:
    """Return a response's value as a canonical string token, or None.

    Booleans become 'true'/'false'; whole numbers drop the trailing '.0' so
    that '3' and 3.0 compare equal.
    """
    if response is None:
        return None
    if response.boolean_response is not None:
        return _canon(response.boolean_response)
    if response.number_response is not None:
        num = float(response.number_response)
        return str(int(num)) if num.is_integer() else str(num)
    if response.string_response is not None and response.string_response.strip():
        return _canon(response.string_response)
    if response.date_response is not None:
        return response.date_response.isoformat()
    if response.entity_response_id is not None:
        return f"{response.entity_response_kind}/{response.entity_response_id}"
    return None


def is_child_visible(parent_value: str | None, visible_if_values: Iterable | None) -> bool:
    """Return True if a child applies given the parent's canonical value.

    The child applies only when the parent's canonical value is present in the
    configured visible-if list. Empty or None lists never make a child apply.
    """
    if parent_value is None:
        return False
    if not visible_if_values:
        return False
    return _canon(parent_value) in {_canon(x) for x in visible_if_values}


def compute_visible_set(
    rules: Mapping[int, tuple[int | None, list | None]],
    parent_values: Mapping[int, str | None],
) -> set[int]:
    """Compute the set of applicable question ids.

    - Root questions (no parent) always apply.
    - Child questions apply only if their parent applies and the parent's
      canonical value matches one of the configured visible-if values.
    """
    visible: set[int] = set()
    pending = dict(rules)
    # Resolve parents before children; a child of a non-applicable parent never applies.
    while pending:
        progressed = False
        for qid, (parent_id, vis_list) in list(pending.items()):
            if parent_id is None:
                visible.add(qid)
            elif parent_id in pending:
                continue
            elif parent_id in visible and is_child_visible(parent_values.get(parent_id), vis_list):
                visible.add(qid)
            del pending[qid]
            progressed = True
        if not progressed:
            # Cycles or parents outside the catalog: nothing left can apply.
            logger.warning("visibility_unresolved_questions ids=%s", sorted(pending))
            break
    return visible


__all__ = [
    "canonical_answer",
    "is_child_visible",
    "compute_visible_set",
]
