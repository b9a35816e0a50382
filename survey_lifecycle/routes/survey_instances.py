"""Survey instance lifecycle routes.

Route handlers translate HTTP to workflow calls only; every rule lives in
`survey_lifecycle/logic/`. Lifecycle errors are rendered as problem+json by
the handlers registered in `main.create_app`.
"""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, Response

from survey_lifecycle.logic.workflow import SurveyInstanceWorkflow
from survey_lifecycle.models.commands import (
    ActionsResponse,
    ActionView,
    DateChangeCommand,
    ProblemReportCommand,
    RecipientCreateCommand,
    RecipientUpdateCommand,
    StatusChangeResponse,
    SurveyInstanceStatusChangeCommand,
)
from survey_lifecycle.models.people import SurveyInstanceOwner, SurveyInstanceRecipient
from survey_lifecycle.models.permissions import SurveyInstancePermissions
from survey_lifecycle.models.questions import SurveyInstanceQuestionResponse, SurveyQuestionResponse
from survey_lifecycle.models.survey_instance import SurveyInstance
from survey_lifecycle.routes.dependencies import current_user, get_workflow

router = APIRouter()
logger = logging.getLogger(__name__)


# Declared before /{instance_id} so "user" is not parsed as an id.
@router.get(
    "/survey-instances/user",
    summary="List live survey instances where the caller is a recipient",
    operation_id="findSurveyInstancesForUser",
    response_model=List[SurveyInstance],
)
def find_for_user(
    user_name: str = Depends(current_user),
    workflow: SurveyInstanceWorkflow = Depends(get_workflow),
):
    return workflow.find_for_recipient(user_name)


@router.get(
    "/survey-instances/{instance_id}",
    summary="Get a survey instance",
    operation_id="getSurveyInstance",
    response_model=SurveyInstance,
)
def get_instance(instance_id: int, workflow: SurveyInstanceWorkflow = Depends(get_workflow)):
    return workflow.get_instance(instance_id)


@router.get(
    "/survey-instances/{instance_id}/responses",
    summary="List stored question responses",
    operation_id="findSurveyInstanceResponses",
    response_model=List[SurveyInstanceQuestionResponse],
)
def find_responses(instance_id: int, workflow: SurveyInstanceWorkflow = Depends(get_workflow)):
    return workflow.find_responses(instance_id)


@router.put(
    "/survey-instances/{instance_id}/responses",
    summary="Save a question response (recipients only)",
    operation_id="saveSurveyInstanceResponse",
    response_model=SurveyInstanceQuestionResponse,
)
def save_response(
    instance_id: int,
    payload: SurveyQuestionResponse,
    user_name: str = Depends(current_user),
    workflow: SurveyInstanceWorkflow = Depends(get_workflow),
):
    return workflow.save_response(user_name, instance_id, payload)


@router.get(
    "/survey-instances/{instance_id}/permissions",
    summary="Capability snapshot for the caller",
    operation_id="getSurveyInstancePermissions",
    response_model=SurveyInstancePermissions,
)
def get_permissions(
    instance_id: int,
    user_name: str = Depends(current_user),
    workflow: SurveyInstanceWorkflow = Depends(get_workflow),
):
    return workflow.get_permissions(user_name, instance_id)


@router.get(
    "/survey-instances/{instance_id}/actions",
    summary="Actions the caller may perform from the current status",
    operation_id="findPossibleSurveyInstanceActions",
    response_model=ActionsResponse,
)
def find_possible_actions(
    instance_id: int,
    user_name: str = Depends(current_user),
    workflow: SurveyInstanceWorkflow = Depends(get_workflow),
):
    transitions = workflow.find_possible_transitions(user_name, instance_id)
    return ActionsResponse(
        actions=[
            ActionView(
                action=d.action,
                display=d.display,
                verb=d.verb,
                reason=d.reason.value,
                result_status=target,
            )
            for d, target in transitions
        ]
    )


@router.post(
    "/survey-instances/{instance_id}/status",
    summary="Apply a lifecycle action",
    operation_id="updateSurveyInstanceStatus",
    response_model=StatusChangeResponse,
)
def update_status(
    instance_id: int,
    command: SurveyInstanceStatusChangeCommand,
    user_name: str = Depends(current_user),
    workflow: SurveyInstanceWorkflow = Depends(get_workflow),
):
    result = workflow.update_status(user_name, instance_id, command)
    return StatusChangeResponse(
        status=result.new_status,
        applied=result.outcome.applied,
        prior_version_id=result.prior_version_id,
        removed_responses=result.removed_responses,
    )


@router.get(
    "/survey-instances/{instance_id}/previous-versions",
    summary="Prior (frozen) versions of a live instance",
    operation_id="findPreviousSurveyInstanceVersions",
    response_model=List[SurveyInstance],
)
def find_previous_versions(instance_id: int, workflow: SurveyInstanceWorkflow = Depends(get_workflow)):
    return workflow.find_previous_versions(instance_id)


@router.get(
    "/survey-instances/{instance_id}/recipients",
    summary="List recipients",
    operation_id="findSurveyInstanceRecipients",
    response_model=List[SurveyInstanceRecipient],
)
def find_recipients(instance_id: int, workflow: SurveyInstanceWorkflow = Depends(get_workflow)):
    return workflow.find_recipients(instance_id)


@router.post(
    "/survey-instances/{instance_id}/recipients",
    summary="Add a recipient",
    operation_id="addSurveyInstanceRecipient",
    status_code=201,
)
def add_recipient(
    instance_id: int,
    command: RecipientCreateCommand,
    user_name: str = Depends(current_user),
    workflow: SurveyInstanceWorkflow = Depends(get_workflow),
):
    return {"id": workflow.add_recipient(user_name, instance_id, command.person_id)}


@router.put(
    "/survey-instances/{instance_id}/recipients/{recipient_id}",
    summary="Replace a recipient",
    operation_id="updateSurveyInstanceRecipient",
)
def update_recipient(
    instance_id: int,
    recipient_id: int,
    command: RecipientUpdateCommand,
    user_name: str = Depends(current_user),
    workflow: SurveyInstanceWorkflow = Depends(get_workflow),
):
    return {"updated": workflow.update_recipient(user_name, instance_id, recipient_id, command.person_id)}


@router.delete(
    "/survey-instances/{instance_id}/recipients/{recipient_id}",
    summary="Remove a recipient",
    operation_id="deleteSurveyInstanceRecipient",
    status_code=204,
)
def delete_recipient(
    instance_id: int,
    recipient_id: int,
    user_name: str = Depends(current_user),
    workflow: SurveyInstanceWorkflow = Depends(get_workflow),
):
    workflow.delete_recipient(user_name, instance_id, recipient_id)
    return Response(status_code=204)


@router.get(
    "/survey-instances/{instance_id}/owners",
    summary="List explicit owners",
    operation_id="findSurveyInstanceOwners",
    response_model=List[SurveyInstanceOwner],
)
def find_owners(instance_id: int, workflow: SurveyInstanceWorkflow = Depends(get_workflow)):
    return workflow.find_owners(instance_id)


@router.put(
    "/survey-instances/{instance_id}/due-date",
    summary="Change the due date",
    operation_id="updateSurveyInstanceDueDate",
)
def update_due_date(
    instance_id: int,
    command: DateChangeCommand,
    user_name: str = Depends(current_user),
    workflow: SurveyInstanceWorkflow = Depends(get_workflow),
):
    outcome = workflow.update_due_date(user_name, instance_id, command.new_date_val)
    return {"updated": outcome.applied}


@router.post(
    "/survey-instances/{instance_id}/questions/{question_id}/problems",
    summary="Report a problem with a question response",
    operation_id="reportSurveyQuestionProblem",
)
def report_problem(
    instance_id: int,
    question_id: int,
    command: ProblemReportCommand,
    user_name: str = Depends(current_user),
    workflow: SurveyInstanceWorkflow = Depends(get_workflow),
):
    reported = workflow.report_problem_with_question_response(user_name, instance_id, question_id, command.message)
    return {"reported": reported}


__all__ = ["router"]
