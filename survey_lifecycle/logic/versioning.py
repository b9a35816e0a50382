"""Versioning coordinator for the REOPENING action.

Applies the REOPENING effects (CREATE_PRIOR_VERSION, CLEAR_APPROVAL,
UPDATE_STATUS) as one atomic unit:

1. conditional status update of the live instance (expected -> new status);
   zero rows affected means another writer got there first and nothing else
   happens
2. insert a frozen copy of the instance snapshot with
   `original_instance_id` pointing at the live row
3. copy every response of the live instance onto the copy
4. clear the live instance's approval marker

The status update runs first so a lost race never produces a prior version.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from typing import Any, Callable

from survey_lifecycle.db.base import transaction as db_transaction
from survey_lifecycle.logic import repository_instances, repository_responses
from survey_lifecycle.logic.outcomes import UpdateOutcome, VersioningResult
from survey_lifecycle.models.survey_instance import SurveyInstance, SurveyInstanceStatus

logger = logging.getLogger(__name__)

TransactionFactory = Callable[[], AbstractContextManager]


def reopen_with_version(
    instance: SurveyInstance,
    new_status: SurveyInstanceStatus,
    *,
    instances: Any = repository_instances,
    responses: Any = repository_responses,
    transaction: TransactionFactory = db_transaction,
) -> VersioningResult:
    """Freeze `instance` as a prior version and move the live row to `new_status`."""
    with transaction() as conn:
        outcome = instances.update_status(instance.id, instance.status, new_status, conn=conn)
        if not outcome.applied:
            logger.info(
                "reopen_converged instance_id=%s expected=%s; no prior version created",
                instance.id,
                instance.status.value,
            )
            return VersioningResult(outcome=UpdateOutcome.NO_CHANGE)

        prior_id = instances.create_previous_version(instance, conn=conn)
        cloned = responses.clone_responses(instance.id, prior_id, conn=conn)
        instances.clear_approved(instance.id, conn=conn)

    logger.info(
        "reopen_versioned instance_id=%s prior_version_id=%s responses_cloned=%s new_status=%s",
        instance.id,
        prior_id,
        cloned,
        new_status.value,
    )
    return VersioningResult(outcome=UpdateOutcome.APPLIED, prior_version_id=prior_id)


__all__ = ["reopen_with_version", "TransactionFactory"]
