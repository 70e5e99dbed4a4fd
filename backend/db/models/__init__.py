"""Database models for the workflow behavior engine.

This module imports all models to ensure they are registered
with SQLAlchemy's declarative base.
"""

from db.models.organization import Organization
from db.models.workflow import Workflow
from db.models.workflow_run import WorkflowRun
from db.models.domain_object import DomainObject

__all__ = [
    "Organization",
    "Workflow",
    "WorkflowRun",
    "DomainObject",
]
