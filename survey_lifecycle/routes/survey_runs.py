"""Survey run routes."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from survey_lifecycle.logic.workflow import SurveyInstanceWorkflow
from survey_lifecycle.models.survey_instance import SurveyInstance
from survey_lifecycle.routes.dependencies import get_workflow

router = APIRouter()


@router.get(
    "/survey-runs/{run_id}/instances",
    summary="List live survey instances issued by a run",
    operation_id="findSurveyInstancesForRun",
    response_model=List[SurveyInstance],
)
def find_for_survey_run(run_id: int, workflow: SurveyInstanceWorkflow = Depends(get_workflow)):
    return workflow.find_for_survey_run(run_id)


__all__ = ["router"]
