"""Change log (audit) entry model."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class Operation(str, Enum):
    ADD = "ADD"
    UPDATE = "UPDATE"
    REMOVE = "REMOVE"


class EntityKind:
    SURVEY_INSTANCE = "SURVEY_INSTANCE"
    SURVEY_QUESTION = "SURVEY_QUESTION"
    PERSON = "PERSON"


class ChangeLogEntry(BaseModel):
    parent_kind: str = EntityKind.SURVEY_INSTANCE
    parent_id: int
    child_kind: Optional[str] = None
    operation: Operation
    user_id: str
    message: str


__all__ = ["Operation", "EntityKind", "ChangeLogEntry"]
