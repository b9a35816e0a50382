"""Pydantic models for survey runs, instances and lifecycle vocabulary."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class SurveyInstanceStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    APPROVED = "APPROVED"
    WITHDRAWN = "WITHDRAWN"


class SurveyInstanceAction(str, Enum):
    SAVING = "SAVING"
    SUBMITTING = "SUBMITTING"
    APPROVING = "APPROVING"
    REJECTING = "REJECTING"
    WITHDRAWING = "WITHDRAWING"
    REOPENING = "REOPENING"


class SurveyRun(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    survey_template_id: int
    owner_id: Optional[int] = None


class SurveyInstance(BaseModel):
    """One recipient's (or group's) fillable copy of a survey run.

    `original_instance_id` is None for the live instance. Rows created by
    re-opening point back at the live instance and are never mutated.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    survey_run_id: int
    entity_kind: Optional[str] = None
    entity_id: Optional[int] = None
    status: SurveyInstanceStatus = SurveyInstanceStatus.NOT_STARTED
    original_instance_id: Optional[int] = None
    owning_role: Optional[str] = None
    due_date: Optional[date] = None
    submitted_at: Optional[datetime] = None
    submitted_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None

    @property
    def is_latest(self) -> bool:
        return self.original_instance_id is None


__all__ = [
    "SurveyInstanceStatus",
    "SurveyInstanceAction",
    "SurveyRun",
    "SurveyInstance",
]
