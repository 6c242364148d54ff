"""Database module."""

from automation_governance.db.database import close_database, get_db, init_database
from automation_governance.db.workflow_store import (
    PersistenceConflictError,
    WorkflowStore,
    to_workflow,
    workflow_store,
)

__all__ = [
    "get_db",
    "init_database",
    "close_database",
    "workflow_store",
    "WorkflowStore",
    "PersistenceConflictError",
    "to_workflow",
]
