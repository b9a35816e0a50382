"""Survey instance lifecycle service.

Exposes the FastAPI application factory. Lifecycle rules live in
`survey_lifecycle/logic/` and route handlers in `survey_lifecycle/routes/`.
"""

from __future__ import annotations

from survey_lifecycle.main import create_app

__all__ = ["create_app"]
