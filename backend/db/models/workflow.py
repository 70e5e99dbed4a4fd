"""Workflow model: a tenant's behavior pipeline for one trigger."""

from typing import Optional

from sqlalchemy import JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import WorkflowStatus
from db.base import BaseModel, TenantMixin


class Workflow(TenantMixin, BaseModel):
    """Workflow model.

    Attributes:
        id: Unique identifier (UUID string)
        organization_id: Foreign key to Organization
        name: Workflow name
        description: Workflow description
        trigger_on: Trigger name this workflow answers (e.g. "registration_complete")
        status: draft, active or archived; only active workflows are triggered
        behaviors: JSON list of behavior configs
            {id, type, enabled, priority, config, outputs}
        required_inputs: Context keys the trigger is expected to seed
        version: Bumped every time the behavior list changes
        created_by_id: ID of the user who created the workflow
    """

    __tablename__ = "workflows"

    created_by_id: Mapped[Optional[str]] = mapped_column(nullable=True)
    name: Mapped[str] = mapped_column(nullable=False, index=True)
    description: Mapped[str] = mapped_column(nullable=False, default="")
    trigger_on: Mapped[str] = mapped_column(nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        default=WorkflowStatus.DRAFT.value, index=True
    )
    behaviors: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    required_inputs: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    version: Mapped[int] = mapped_column(default=1)

    organization: Mapped["Organization"] = relationship(
        "Organization", back_populates="workflows", lazy="noload"
    )
    runs: Mapped[list["WorkflowRun"]] = relationship(
        "WorkflowRun",
        back_populates="workflow",
        cascade="all, delete-orphan",
        lazy="noload",
    )
