"""Shared FastAPI dependencies for survey routes."""

from __future__ import annotations

from fastapi import HTTPException, Request

from survey_lifecycle.logic.workflow import SurveyInstanceWorkflow

DEFAULT_USER_HEADER = "X-User-Name"


def get_workflow(request: Request) -> SurveyInstanceWorkflow:
    workflow = getattr(request.app.state, "workflow", None)
    if workflow is None:
        workflow = SurveyInstanceWorkflow()
        request.app.state.workflow = workflow
    return workflow


def current_user(request: Request) -> str:
    """Acting user name taken from the configured identity header."""
    header = getattr(request.app.state, "user_header", DEFAULT_USER_HEADER)
    user_name = (request.headers.get(header) or "").strip()
    if not user_name:
        raise HTTPException(
            status_code=400,
            detail={
                "title": "Bad Request",
                "status": 400,
                "detail": f"{header} header is required",
                "code": "USER_HEADER_MISSING",
            },
        )
    return user_name


__all__ = ["get_workflow", "current_user", "DEFAULT_USER_HEADER"]
