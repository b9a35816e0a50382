"""Survey instance workflow orchestrator.

`SurveyInstanceWorkflow` is the only component that talks to the storage
collaborators. A status change runs:

1. load the instance; prior versions fail with ImmutableVersion
2. evaluate the capability snapshot
3. let the state machine decide the target status (errors propagate)
4. apply the action's declared effects
5. on an applied write reaching COMPLETED: stamp submission, reconcile
6. on an applied write: append one change log entry

A NO_CHANGE write outcome (another writer already moved the row) skips
steps 5 and 6 and still returns the decided status.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, List, Optional, Tuple

from survey_lifecycle.db.base import transaction as db_transaction
from survey_lifecycle.logic import (
    change_log as change_log_sink,
    repository_instances,
    repository_membership,
    repository_people,
    repository_questions,
    repository_responses,
)
from survey_lifecycle.logic.errors import (
    IllegalTransition,
    ImmutableVersion,
    InstanceNotFound,
    InvalidCommand,
    PermissionDenied,
    PersonNotFound,
    ReasonRequired,
    RecipientNotFound,
)
from survey_lifecycle.logic.outcomes import StatusChangeResult, UpdateOutcome
from survey_lifecycle.logic.permissions import (
    DEFAULT_ADMIN_ROLE,
    evaluate_permissions,
    resolve_person_or_raise,
)
from survey_lifecycle.logic.reconciliation import reconcile_responses
from survey_lifecycle.logic.state_machine import (
    EDITABLE_STATUSES,
    ActionDefinition,
    Effect,
    ReasonRequirement,
    TRANSITIONS,
    definition_for,
    next_possible_actions,
    process,
)
from survey_lifecycle.logic.versioning import TransactionFactory, reopen_with_version
from survey_lifecycle.models.change_log import ChangeLogEntry, EntityKind, Operation
from survey_lifecycle.models.commands import SurveyInstanceStatusChangeCommand
from survey_lifecycle.models.people import SurveyInstanceOwner, SurveyInstanceRecipient
from survey_lifecycle.models.permissions import SurveyInstancePermissions
from survey_lifecycle.models.questions import SurveyInstanceQuestionResponse, SurveyQuestionResponse
from survey_lifecycle.models.survey_instance import SurveyInstance, SurveyInstanceStatus

logger = logging.getLogger(__name__)


def status_change_message(
    new_status: SurveyInstanceStatus,
    command: SurveyInstanceStatusChangeCommand,
) -> str:
    message = f"Survey Instance: status changed to {new_status.value} with action {command.action.value}"
    reason = (command.reason or "").strip()
    if reason:
        message += f", [Reason]: {reason}"
    return message


class SurveyInstanceWorkflow:
    def __init__(
        self,
        *,
        instances: Any = repository_instances,
        responses: Any = repository_responses,
        people: Any = repository_people,
        membership: Any = repository_membership,
        questions: Any = repository_questions,
        change_log: Any = change_log_sink,
        transaction: TransactionFactory = db_transaction,
        admin_role: str = DEFAULT_ADMIN_ROLE,
    ) -> None:
        self.instances = instances
        self.responses = responses
        self.people = people
        self.membership = membership
        self.questions = questions
        self.change_log = change_log
        self.transaction = transaction
        self.admin_role = admin_role

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_instance(self, instance_id: int) -> SurveyInstance:
        instance = self.instances.get_instance(instance_id)
        if instance is None:
            raise InstanceNotFound(instance_id)
        return instance

    def find_for_recipient(self, user_name: str) -> List[SurveyInstance]:
        person = resolve_person_or_raise(user_name, self.people)
        return self.instances.find_for_recipient(person.id)

    def find_for_survey_run(self, run_id: int) -> List[SurveyInstance]:
        return self.instances.find_for_survey_run(run_id)

    def find_previous_versions(self, instance_id: int) -> List[SurveyInstance]:
        self.get_instance(instance_id)
        return self.instances.find_previous_versions(instance_id)

    def find_responses(self, instance_id: int) -> List[SurveyInstanceQuestionResponse]:
        self.get_instance(instance_id)
        return self.responses.list_responses(instance_id)

    def find_recipients(self, instance_id: int) -> List[SurveyInstanceRecipient]:
        self.get_instance(instance_id)
        return self.membership.find_recipients(instance_id)

    def find_owners(self, instance_id: int) -> List[SurveyInstanceOwner]:
        self.get_instance(instance_id)
        return self.membership.find_owners(instance_id)

    def get_permissions(self, user_name: str, instance_id: int) -> SurveyInstancePermissions:
        return self._permissions(user_name, self.get_instance(instance_id))

    def find_possible_actions(self, user_name: str, instance_id: int) -> List[ActionDefinition]:
        return [d for d, _target in self.find_possible_transitions(user_name, instance_id)]

    def find_possible_transitions(
        self, user_name: str, instance_id: int
    ) -> List[Tuple[ActionDefinition, SurveyInstanceStatus]]:
        """Offered actions paired with the status each would lead to."""
        instance = self.get_instance(instance_id)
        permissions = self._permissions(user_name, instance)
        return [
            (d, TRANSITIONS[(instance.status, d.action)])
            for d in next_possible_actions(instance.status, permissions, instance)
        ]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def update_status(
        self,
        user_name: str,
        instance_id: int,
        command: SurveyInstanceStatusChangeCommand,
    ) -> StatusChangeResult:
        instance = self.get_instance(instance_id)
        if not instance.is_latest:
            raise ImmutableVersion(instance.id, instance.original_instance_id)

        permissions = self._permissions(user_name, instance)
        new_status = process(instance.status, command.action, permissions, instance)

        definition = definition_for(command.action)
        if definition.reason is ReasonRequirement.MANDATORY and not (command.reason or "").strip():
            raise ReasonRequired(
                f"A reason is required when performing {command.action.value}",
                instance_id=instance_id,
                action=command.action,
            )

        prior_version_id: Optional[int] = None
        if Effect.CREATE_PRIOR_VERSION in definition.effects:
            versioning = reopen_with_version(
                instance,
                new_status,
                instances=self.instances,
                responses=self.responses,
                transaction=self.transaction,
            )
            outcome = versioning.outcome
            prior_version_id = versioning.prior_version_id
        elif Effect.MARK_APPROVED in definition.effects:
            outcome = self.instances.mark_approved(instance_id, instance.status, user_name)
        else:
            outcome = self.instances.update_status(instance_id, instance.status, new_status)

        if not outcome.applied:
            logger.info(
                "survey_status_change_converged instance_id=%s action=%s status=%s",
                instance_id,
                command.action.value,
                new_status.value,
            )
            return StatusChangeResult(new_status=new_status, outcome=UpdateOutcome.NO_CHANGE)

        removed = 0
        if new_status is SurveyInstanceStatus.COMPLETED:
            self.instances.mark_submitted(instance_id, user_name)
            removed = reconcile_responses(instance_id, questions=self.questions, responses=self.responses)

        self._audit(
            ChangeLogEntry(
                parent_id=instance_id,
                operation=Operation.UPDATE,
                user_id=user_name,
                message=status_change_message(new_status, command),
            )
        )
        logger.info(
            "survey_status_change_applied instance_id=%s action=%s from=%s to=%s prior_version_id=%s removed_responses=%s",
            instance_id,
            command.action.value,
            instance.status.value,
            new_status.value,
            prior_version_id,
            removed,
        )
        return StatusChangeResult(
            new_status=new_status,
            outcome=UpdateOutcome.APPLIED,
            prior_version_id=prior_version_id,
            removed_responses=removed,
        )

    def save_response(
        self,
        user_name: str,
        instance_id: int,
        question_response: SurveyQuestionResponse,
    ) -> SurveyInstanceQuestionResponse:
        """Store a recipient's answer; never changes the instance status."""
        instance = self.get_instance(instance_id)
        if not instance.is_latest:
            raise ImmutableVersion(instance.id, instance.original_instance_id)
        person = resolve_person_or_raise(user_name, self.people)
        if not self.membership.is_recipient(person.id, instance_id):
            raise PermissionDenied(
                "Only recipients may save responses",
                instance_id=instance_id,
            )
        if instance.status not in EDITABLE_STATUSES:
            raise IllegalTransition(
                f"Survey instance cannot be updated, current status: {instance.status.value}",
                instance_id=instance_id,
                status=instance.status,
            )
        response = SurveyInstanceQuestionResponse(
            survey_instance_id=instance_id,
            person_id=person.id,
            last_updated_at=datetime.now(timezone.utc),
            question_response=question_response,
        )
        self.responses.save_response(response)
        return response

    # ------------------------------------------------------------------
    # Administrative edits (live instance only)
    # ------------------------------------------------------------------

    def update_due_date(self, user_name: str, instance_id: int, new_due_date: Optional[date]) -> UpdateOutcome:
        if new_due_date is None:
            raise InvalidCommand("newDueDate cannot be null", instance_id=instance_id)
        self._require_meta_edit(user_name, instance_id)
        outcome = self.instances.update_due_date(instance_id, new_due_date)
        self._audit(
            ChangeLogEntry(
                parent_id=instance_id,
                operation=Operation.UPDATE,
                user_id=user_name,
                message=f"Survey Instance: due date changed to {new_due_date.isoformat()}",
            )
        )
        return outcome

    def add_recipient(self, user_name: str, instance_id: int, person_id: int) -> int:
        self._require_meta_edit(user_name, instance_id)
        recipient = self._person_by_id(person_id)
        recipient_id = self.membership.add_recipient(instance_id, person_id)
        self._log_recipient_change(user_name, instance_id, recipient.display_name, Operation.ADD,
                                   "Survey Instance: Added %s as a recipient")
        return recipient_id

    def update_recipient(self, user_name: str, instance_id: int, recipient_id: int, person_id: int) -> bool:
        self._require_meta_edit(user_name, instance_id)
        if self.membership.get_recipient_person_id(instance_id, recipient_id) is None:
            raise RecipientNotFound(recipient_id)
        recipient = self._person_by_id(person_id)
        deleted = self.membership.delete_recipient(recipient_id)
        new_id = self.membership.add_recipient(instance_id, person_id)
        self._log_recipient_change(user_name, instance_id, recipient.display_name, Operation.UPDATE,
                                   "Survey Instance: Set %s as a recipient")
        return bool(deleted) and new_id > 0

    def delete_recipient(self, user_name: str, instance_id: int, recipient_id: int) -> bool:
        self._require_meta_edit(user_name, instance_id)
        person_id = self.membership.get_recipient_person_id(instance_id, recipient_id)
        if person_id is None:
            raise RecipientNotFound(recipient_id)
        recipient = self._person_by_id(person_id)
        deleted = self.membership.delete_recipient(recipient_id)
        self._log_recipient_change(user_name, instance_id, recipient.display_name, Operation.REMOVE,
                                   "Survey Instance: Removed %s as a recipient")
        return bool(deleted)

    def report_problem_with_question_response(
        self,
        user_name: str,
        instance_id: int,
        question_id: int,
        message: str,
    ) -> bool:
        """Log a problem against a question; False when the question does not apply."""
        self.get_instance(instance_id)
        question = next(
            (q for q in self.questions.applicable_questions(instance_id) if q.id == question_id),
            None,
        )
        if question is None:
            return False
        self._audit(
            ChangeLogEntry(
                parent_id=instance_id,
                child_kind=EntityKind.SURVEY_QUESTION,
                operation=Operation.UPDATE,
                user_id=user_name,
                message=f"Question [{question.question_text}]: {message}",
            )
        )
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _permissions(self, user_name: str, instance: SurveyInstance) -> SurveyInstancePermissions:
        return evaluate_permissions(
            user_name,
            instance.id,
            instances=self.instances,
            people=self.people,
            membership=self.membership,
            admin_role=self.admin_role,
            instance=instance,
        )

    def _require_meta_edit(self, user_name: str, instance_id: int) -> SurveyInstancePermissions:
        instance = self.get_instance(instance_id)
        if not instance.is_latest:
            raise ImmutableVersion(instance.id, instance.original_instance_id)
        permissions = self._permissions(user_name, instance)
        if not permissions.is_meta_edit:
            raise PermissionDenied(
                "Administrative edits require admin, owner or owning role",
                instance_id=instance_id,
            )
        return permissions

    def _person_by_id(self, person_id: int):
        person = self.people.get_person(person_id)
        if person is None:
            raise PersonNotFound(person_id=person_id)
        return person

    def _log_recipient_change(self, user_name: str, instance_id: int, name: str, op: Operation, template: str) -> None:
        self._audit(
            ChangeLogEntry(
                parent_id=instance_id,
                child_kind=EntityKind.PERSON,
                operation=op,
                user_id=user_name,
                message=template % name,
            )
        )

    def _audit(self, entry: ChangeLogEntry) -> None:
        # Best effort: the sink logs its own storage failures.
        try:
            self.change_log.append(entry)
        except Exception:
            logger.error("change_log_append_raised parent_id=%s", entry.parent_id, exc_info=True)


__all__ = ["SurveyInstanceWorkflow", "status_change_message"]
