"""Database package: SQLModel models, engine, and CRUD helpers.

This package contains the SQLite/SQLModel table backing the persistent cache
store.

Key modules:
    - base: ModelBase class for all table models
    - session: Database engine and session management
    - models: Table models (CacheRecord) and CRUD functions
"""

from .base import ModelBase
from .session import engine, dispose_engine, DATABASE_URL
from .models import *  # noqa: F401,F403
from .models import __all__ as _models_all

__all__ = [
    "ModelBase",
    "engine",
    "dispose_engine",
    "DATABASE_URL",
] + list(_models_all)
