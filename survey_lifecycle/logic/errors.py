"""Survey lifecycle error taxonomy.

Each error carries a stable `code` and the HTTP `status` used by the
problem+json handler. None of these are retried; they are deterministic
outcomes of input and state.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class SurveyLifecycleError(Exception):
    code = "SURVEY_LIFECYCLE_ERROR"
    status = 500
    title = "Survey lifecycle error"

    def __init__(self, detail: str, **context: Any) -> None:
        super().__init__(detail)
        self.detail = detail
        self.context: Dict[str, Any] = context

    def to_problem(self) -> Dict[str, object]:
        problem: Dict[str, object] = {
            "title": self.title,
            "status": self.status,
            "detail": self.detail,
            "code": self.code,
        }
        if self.context:
            problem["context"] = {k: _jsonable(v) for k, v in self.context.items()}
        return problem


def _jsonable(value: Any) -> Any:
    if hasattr(value, "value"):
        return value.value
    return value


class NotFound(SurveyLifecycleError):
    code = "NOT_FOUND"
    status = 404
    title = "Not Found"


class InstanceNotFound(NotFound):
    def __init__(self, instance_id: int) -> None:
        super().__init__(f"Survey instance {instance_id} not found", instance_id=instance_id)


class RunNotFound(NotFound):
    def __init__(self, run_id: int) -> None:
        super().__init__(f"Survey run {run_id} not found", survey_run_id=run_id)


class PersonNotFound(NotFound):
    def __init__(self, user_name: Optional[str] = None, person_id: Optional[int] = None) -> None:
        ref = user_name if user_name is not None else person_id
        super().__init__(f"Person {ref} cannot be resolved", user_name=user_name, person_id=person_id)


class RecipientNotFound(NotFound):
    def __init__(self, recipient_id: int) -> None:
        super().__init__(f"Recipient {recipient_id} not found", recipient_id=recipient_id)


class ImmutableVersion(SurveyLifecycleError):
    code = "IMMUTABLE_VERSION"
    status = 409
    title = "Immutable Version"

    def __init__(self, instance_id: int, original_instance_id: Optional[int] = None) -> None:
        super().__init__(
            f"Survey instance {instance_id} is a prior version and cannot be changed",
            instance_id=instance_id,
            original_instance_id=original_instance_id,
        )


class PermissionDenied(SurveyLifecycleError):
    code = "PERMISSION_DENIED"
    status = 403
    title = "Forbidden"


class IllegalTransition(SurveyLifecycleError):
    code = "ILLEGAL_TRANSITION"
    status = 409
    title = "Illegal Transition"


class InvalidCommand(SurveyLifecycleError):
    code = "INVALID_COMMAND"
    status = 400
    title = "Invalid Command"


class ReasonRequired(InvalidCommand):
    pass


__all__ = [
    "SurveyLifecycleError",
    "NotFound",
    "InstanceNotFound",
    "RunNotFound",
    "PersonNotFound",
    "RecipientNotFound",
    "ImmutableVersion",
    "PermissionDenied",
    "IllegalTransition",
    "InvalidCommand",
    "ReasonRequired",
]
