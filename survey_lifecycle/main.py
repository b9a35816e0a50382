from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text as sql_text
from sqlalchemy.exc import SQLAlchemyError

from survey_lifecycle.config import AppConfig, load_config
from survey_lifecycle.db.base import get_engine
from survey_lifecycle.db.migrations_runner import apply_migrations
from survey_lifecycle.http.problem import (
    handle_http_exception,
    handle_lifecycle_error,
    handle_request_validation_error,
    handle_unexpected_error,
)
from survey_lifecycle.http.request_id import RequestIdMiddleware
from survey_lifecycle.logging_setup import configure_logging
from survey_lifecycle.logic.errors import SurveyLifecycleError
from survey_lifecycle.logic.workflow import SurveyInstanceWorkflow
from survey_lifecycle.routes import api_router

logger = logging.getLogger(__name__)


def _health_check() -> dict:
    try:
        with get_engine().connect() as conn:
            conn.execute(sql_text("SELECT 1"))
        return {"status": "ok", "db": True}
    except SQLAlchemyError as e:
        logger.error("Health DB check failed", exc_info=True)
        return {"status": "degraded", "db": False, "reason": str(e)}


def create_app(config: AppConfig | None = None) -> FastAPI:
    cfg = config or load_config()
    configure_logging(cfg.log_level)

    engine = get_engine(cfg.database.dsn)
    if cfg.database.auto_apply_migrations:
        applied = apply_migrations(engine)
        logger.info("startup migrations applied=%s", applied)

    app = FastAPI(title="Survey Lifecycle Service")
    app.state.workflow = SurveyInstanceWorkflow(admin_role=cfg.survey.admin_role)
    app.state.user_header = cfg.survey.user_header

    app.add_exception_handler(SurveyLifecycleError, handle_lifecycle_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health", include_in_schema=False)
    def health() -> dict:
        return _health_check()

    return app

