"""Named persistence outcomes for optimistic, rows-affected based writes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from survey_lifecycle.models.survey_instance import SurveyInstanceStatus


class UpdateOutcome(str, Enum):
    """Result of a conditional write.

    NO_CHANGE means zero rows matched: another writer already moved the row
    away from the expected state. Callers treat it as converged, not failed.
    """

    APPLIED = "APPLIED"
    NO_CHANGE = "NO_CHANGE"

    @classmethod
    def from_rowcount(cls, rowcount: Optional[int]) -> "UpdateOutcome":
        return cls.APPLIED if (rowcount or 0) > 0 else cls.NO_CHANGE

    @property
    def applied(self) -> bool:
        return self is UpdateOutcome.APPLIED


@dataclass(frozen=True)
class VersioningResult:
    outcome: UpdateOutcome
    prior_version_id: Optional[int] = None


@dataclass(frozen=True)
class StatusChangeResult:
    new_status: SurveyInstanceStatus
    outcome: UpdateOutcome
    prior_version_id: Optional[int] = None
    removed_responses: int = 0


__all__ = ["UpdateOutcome", "VersioningResult", "StatusChangeResult"]
