"""Survey question catalog and question response models."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class SurveyQuestion(BaseModel):
    """A question in a survey template.

    Child questions (with `parent_question_id`) apply only when the parent's
    stored answer matches one of `visible_if_values`. Retired questions never
    apply.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    survey_template_id: int
    question_text: str
    field_type: str = "TEXT"
    external_id: Optional[str] = None
    position: int = 0
    parent_question_id: Optional[int] = None
    visible_if_values: Optional[List[str]] = None
    retired: bool = False


class SurveyQuestionResponse(BaseModel):
    question_id: int
    comment: Optional[str] = None
    string_response: Optional[str] = None
    number_response: Optional[float] = None
    boolean_response: Optional[bool] = None
    date_response: Optional[date] = None
    entity_response_kind: Optional[str] = None
    entity_response_id: Optional[int] = None


class SurveyInstanceQuestionResponse(BaseModel):
    survey_instance_id: int
    person_id: int
    last_updated_at: datetime
    question_response: SurveyQuestionResponse


__all__ = [
    "SurveyQuestion",
    "SurveyQuestionResponse",
    "SurveyInstanceQuestionResponse",
]
