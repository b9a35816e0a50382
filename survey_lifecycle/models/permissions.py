"""Capability snapshot for a (user, survey instance) pair."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class SurveyInstancePermissions(BaseModel):
    """Immutable, per-request set of capabilities.

    Never cached across requests; role and ownership facts can change between
    calls.
    """

    model_config = ConfigDict(frozen=True)

    is_admin: bool = False
    is_participant: bool = False
    is_owner: bool = False
    has_owner_role: bool = False
    is_meta_edit: bool = False

    @property
    def can_manage(self) -> bool:
        return self.is_admin or self.is_owner or self.has_owner_role


NO_PERMISSIONS = SurveyInstancePermissions()

__all__ = ["SurveyInstancePermissions", "NO_PERMISSIONS"]
