"""Persisted Run Report of a production workflow run."""

from typing import Optional

from sqlalchemy import JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import BaseModel, TenantMixin


class WorkflowRun(TenantMixin, BaseModel):
    """One production invocation of a workflow.

    Dry runs are returned to the caller and never stored here.

    Attributes:
        id: Run ID (the same run_id behaviors received)
        organization_id: Owning tenant
        workflow_id: Workflow that ran
        workflow_version: Workflow version at run time
        trigger: Trigger name that started the run
        success: True when every report entry succeeded
        results: Run Report entries, in execution order
        final_output: Execution context after the last behavior
        duration_ms: Wall time of the whole run
        idempotency_key: Caller-supplied idempotency key, if any
    """

    __tablename__ = "workflow_runs"

    workflow_id: Mapped[str] = mapped_column(
        ForeignKey("workflows.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    workflow_version: Mapped[int] = mapped_column(default=1)
    trigger: Mapped[str] = mapped_column(nullable=False)
    success: Mapped[bool] = mapped_column(default=False, index=True)
    results: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    final_output: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    duration_ms: Mapped[int] = mapped_column(default=0)
    idempotency_key: Mapped[Optional[str]] = mapped_column(nullable=True)

    workflow: Mapped["Workflow"] = relationship(
        "Workflow", back_populates="runs", lazy="noload"
    )
