"""Survey instance lifecycle state machine.

Every transition is looked up in an explicit `(status, action)` table; every
action carries one capability guard and the ordered effects the orchestrator
must apply when it is accepted. `process` and `next_possible_actions` share
the same checks, so the list of offered actions is exactly the set of actions
`process` would accept.

Evaluation order in `process`:
1. prior versions are rejected (`ImmutableVersion`)
2. the action's capability guard (`PermissionDenied`)
3. the `(status, action)` table (`IllegalTransition`)

This module performs no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Tuple

from survey_lifecycle.logic.errors import IllegalTransition, ImmutableVersion, PermissionDenied
from survey_lifecycle.models.permissions import SurveyInstancePermissions
from survey_lifecycle.models.survey_instance import (
    SurveyInstance,
    SurveyInstanceAction as Action,
    SurveyInstanceStatus as Status,
)


class ReasonRequirement(str, Enum):
    NONE = "NONE"
    OPTIONAL = "OPTIONAL"
    MANDATORY = "MANDATORY"


class Effect(str, Enum):
    """Persistence steps an accepted action expands into, applied in order."""

    CREATE_PRIOR_VERSION = "CREATE_PRIOR_VERSION"
    CLEAR_APPROVAL = "CLEAR_APPROVAL"
    MARK_APPROVED = "MARK_APPROVED"
    UPDATE_STATUS = "UPDATE_STATUS"


Guard = Callable[[SurveyInstancePermissions], bool]


def _participant(p: SurveyInstancePermissions) -> bool:
    return p.is_participant


def _manager(p: SurveyInstancePermissions) -> bool:
    return p.can_manage


@dataclass(frozen=True)
class ActionDefinition:
    action: Action
    display: str
    verb: str
    reason: ReasonRequirement
    guard: Guard
    requirement: str
    effects: Tuple[Effect, ...]

    def allows(self, permissions: SurveyInstancePermissions) -> bool:
        return bool(self.guard(permissions))


_STATUS_ONLY: Tuple[Effect, ...] = (Effect.UPDATE_STATUS,)

# Declaration order drives the order of `next_possible_actions`.
ACTION_DEFINITIONS: Dict[Action, ActionDefinition] = {
    d.action: d
    for d in (
        ActionDefinition(Action.SAVING, "Save", "saved", ReasonRequirement.NONE,
                         _participant, "recipient", _STATUS_ONLY),
        ActionDefinition(Action.SUBMITTING, "Submit", "submitted", ReasonRequirement.NONE,
                         _participant, "recipient", _STATUS_ONLY),
        ActionDefinition(Action.APPROVING, "Approve", "approved", ReasonRequirement.OPTIONAL,
                         _manager, "admin, owner or owning role", (Effect.MARK_APPROVED,)),
        ActionDefinition(Action.REJECTING, "Reject", "rejected", ReasonRequirement.MANDATORY,
                         _manager, "admin, owner or owning role", _STATUS_ONLY),
        ActionDefinition(Action.WITHDRAWING, "Withdraw", "withdrawn", ReasonRequirement.OPTIONAL,
                         _manager, "admin, owner or owning role", _STATUS_ONLY),
        ActionDefinition(Action.REOPENING, "Reopen", "reopened", ReasonRequirement.OPTIONAL,
                         _manager, "admin, owner or owning role",
                         (Effect.CREATE_PRIOR_VERSION, Effect.CLEAR_APPROVAL, Effect.UPDATE_STATUS)),
    )
}

TRANSITIONS: Dict[Tuple[Status, Action], Status] = {
    (Status.NOT_STARTED, Action.SAVING): Status.IN_PROGRESS,
    (Status.NOT_STARTED, Action.SUBMITTING): Status.COMPLETED,
    (Status.NOT_STARTED, Action.WITHDRAWING): Status.WITHDRAWN,

    (Status.IN_PROGRESS, Action.SAVING): Status.IN_PROGRESS,
    (Status.IN_PROGRESS, Action.SUBMITTING): Status.COMPLETED,
    (Status.IN_PROGRESS, Action.WITHDRAWING): Status.WITHDRAWN,

    (Status.COMPLETED, Action.APPROVING): Status.APPROVED,
    (Status.COMPLETED, Action.REJECTING): Status.REJECTED,
    (Status.COMPLETED, Action.REOPENING): Status.IN_PROGRESS,

    (Status.REJECTED, Action.SUBMITTING): Status.COMPLETED,
    (Status.REJECTED, Action.WITHDRAWING): Status.WITHDRAWN,
    (Status.REJECTED, Action.REOPENING): Status.IN_PROGRESS,

    (Status.APPROVED, Action.REOPENING): Status.IN_PROGRESS,

    (Status.WITHDRAWN, Action.REOPENING): Status.IN_PROGRESS,
}

# Responses may only be saved while the instance is editable.
EDITABLE_STATUSES = frozenset({Status.NOT_STARTED, Status.IN_PROGRESS, Status.REJECTED})


def definition_for(action: Action) -> ActionDefinition:
    return ACTION_DEFINITIONS[Action(action)]


def process(
    status: Status,
    action: Action,
    permissions: SurveyInstancePermissions,
    instance: SurveyInstance,
) -> Status:
    """Return the status `action` leads to from `status`, or raise."""
    status = Status(status)
    action = Action(action)
    if instance.original_instance_id is not None:
        raise ImmutableVersion(instance.id, instance.original_instance_id)

    definition = ACTION_DEFINITIONS[action]
    if not definition.allows(permissions):
        raise PermissionDenied(
            f"{action.value} requires {definition.requirement}",
            instance_id=instance.id,
            action=action,
        )

    target = TRANSITIONS.get((status, action))
    if target is None:
        raise IllegalTransition(
            f"Cannot perform {action.value} on a survey instance in status {status.value}",
            instance_id=instance.id,
            status=status,
            action=action,
        )
    return target


def next_possible_actions(
    status: Status,
    permissions: SurveyInstancePermissions,
    instance: SurveyInstance,
) -> List[ActionDefinition]:
    if instance.original_instance_id is not None:
        return []
    status = Status(status)
    return [
        d
        for d in ACTION_DEFINITIONS.values()
        if (status, d.action) in TRANSITIONS and d.allows(permissions)
    ]


__all__ = [
    "ReasonRequirement",
    "Effect",
    "ActionDefinition",
    "ACTION_DEFINITIONS",
    "TRANSITIONS",
    "EDITABLE_STATUSES",
    "definition_for",
    "process",
    "next_possible_actions",
]
