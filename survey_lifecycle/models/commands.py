"""Pydantic request and response bodies for survey instance routes.

Declared apart from the route modules so logic and tests can build commands
without importing FastAPI routers.
"""

from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel

from survey_lifecycle.models.survey_instance import SurveyInstanceAction, SurveyInstanceStatus


class SurveyInstanceStatusChangeCommand(BaseModel):
    action: SurveyInstanceAction
    reason: Optional[str] = None


class DateChangeCommand(BaseModel):
    new_date_val: Optional[date] = None


class RecipientCreateCommand(BaseModel):
    person_id: int


class RecipientUpdateCommand(BaseModel):
    person_id: int


class ProblemReportCommand(BaseModel):
    message: str


class StatusChangeResponse(BaseModel):
    status: SurveyInstanceStatus
    applied: bool
    prior_version_id: Optional[int] = None
    removed_responses: int = 0


class ActionView(BaseModel):
    action: SurveyInstanceAction
    display: str
    verb: str
    reason: str
    result_status: SurveyInstanceStatus


class ActionsResponse(BaseModel):
    actions: List[ActionView]


__all__ = [
    "SurveyInstanceStatusChangeCommand",
    "DateChangeCommand",
    "RecipientCreateCommand",
    "RecipientUpdateCommand",
    "ProblemReportCommand",
    "StatusChangeResponse",
    "ActionView",
    "ActionsResponse",
]
