"""Person, recipient and owner records."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class Person(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    display_name: str
    email: str
    user_name: Optional[str] = None
    is_removed: bool = False


class SurveyInstanceRecipient(BaseModel):
    id: int
    survey_instance_id: int
    person: Person


class SurveyInstanceOwner(BaseModel):
    id: int
    survey_instance_id: int
    person: Person


__all__ = ["Person", "SurveyInstanceRecipient", "SurveyInstanceOwner"]
