"""Database bootstrap utilities for the Survey Lifecycle service.

This module exposes convenience imports for engine construction, transaction
scoping and a migrations runner that applies SQL files from the local
migrations/ directory. The DB layer does not leak ORM models into route
handlers.
"""

from survey_lifecycle.db.base import get_engine, reset_engine, transaction
from survey_lifecycle.db.migrations_runner import apply_migrations

__all__ = [
    "get_engine",
    "reset_engine",
    "transaction",
    "apply_migrations",
]
