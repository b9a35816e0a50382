"""Problem+JSON utilities and global exception handlers.

Defines the RFC7807 media type and handler callables that render lifecycle
errors, HTTP exceptions, request validation failures and unexpected errors as
application/problem+json responses.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from survey_lifecycle.logic.errors import SurveyLifecycleError

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


def problem_response(problem: dict, status_code: int, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(problem, status_code=status_code, media_type=PROBLEM_MEDIA_TYPE, headers=headers)


async def handle_lifecycle_error(request: Request, exc: SurveyLifecycleError) -> JSONResponse:  # noqa: D401
    problem = exc.to_problem()
    problem["instance"] = str(request.url.path)
    logger.info(
        "error_handler.handle code=%s status=%s path=%s detail=%s",
        exc.code,
        exc.status,
        request.url.path,
        exc.detail,
    )
    return problem_response(problem, exc.status)


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:  # noqa: D401
    status_code = int(getattr(exc, "status_code", 500) or 500)
    if isinstance(exc.detail, dict):
        problem = dict(exc.detail)
        problem.setdefault("status", status_code)
    else:
        problem = {"title": "Error", "status": status_code, "detail": str(exc.detail or "")}
    headers = {str(k): str(v) for k, v in (exc.headers or {}).items()} or None
    return problem_response(problem, status_code, headers=headers)


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: D401
    problem = {
        "title": "Invalid Request",
        "status": 422,
        "detail": "Request validation failed",
        "code": "REQUEST_VALIDATION_FAILED",
        "errors": [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
            for err in exc.errors()
        ],
    }
    return problem_response(problem, 422)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:  # noqa: D401
    logger.error("unexpected_error path=%s", request.url.path, exc_info=exc)
    return problem_response({"title": "Internal Server Error", "status": 500}, 500)


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "problem_response",
    "handle_lifecycle_error",
    "handle_http_exception",
    "handle_request_validation_error",
    "handle_unexpected_error",
]
