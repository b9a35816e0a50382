"""APIRouter registration for the Survey Lifecycle service."""

from __future__ import annotations

from fastapi import APIRouter

from survey_lifecycle.routes.survey_instances import router as survey_instances_router
from survey_lifecycle.routes.survey_runs import router as survey_runs_router

api_router = APIRouter()
api_router.include_router(survey_instances_router, tags=["SurveyInstances"])
api_router.include_router(survey_runs_router, tags=["SurveyRuns"])

__all__ = ["api_router"]
