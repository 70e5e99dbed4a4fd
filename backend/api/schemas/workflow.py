"""Workflow, test-run and trigger schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from api.schemas.common import CamelModel
from core.constants import WorkflowStatus


class BehaviorConfigSchema(CamelModel):
    """One behavior entry of a workflow."""

    id: Optional[str] = Field(default=None, description="Behavior ID (generated when omitted)")
    type: str = Field(min_length=1, description="Registered behavior type, e.g. 'create-ticket'")
    enabled: bool = Field(default=True, description="Disabled behaviors never run")
    priority: int = Field(default=0, description="Higher runs first; ties keep list order")
    config: Dict[str, Any] = Field(default_factory=dict, description="Behavior-specific configuration")
    outputs: Dict[str, str] = Field(default_factory=dict, description="Renames applied to result keys")


class ConfigIssueSchema(CamelModel):
    level: str
    message: str
    behavior_id: Optional[str] = None
    behavior_type: Optional[str] = None


class WorkflowCreate(CamelModel):
    """Request to create a workflow."""

    name: str = Field(min_length=1, description="Workflow name")
    description: str = Field(default="", description="Workflow description")
    trigger_on: str = Field(min_length=1, description="Trigger name this workflow answers")
    status: WorkflowStatus = Field(default=WorkflowStatus.DRAFT)
    behaviors: List[BehaviorConfigSchema] = Field(default_factory=list)
    required_inputs: List[str] = Field(default_factory=list, description="Context keys the trigger seeds")


class WorkflowUpdate(CamelModel):
    """Request to update a workflow."""

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    trigger_on: Optional[str] = Field(default=None, min_length=1)
    status: Optional[WorkflowStatus] = None
    behaviors: Optional[List[BehaviorConfigSchema]] = None
    required_inputs: Optional[List[str]] = None


class WorkflowResponse(CamelModel):
    """Workflow information response."""

    id: str
    name: str
    description: str
    trigger_on: str
    status: str
    behaviors: List[Dict[str, Any]]
    required_inputs: List[str]
    version: int
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    issues: List[ConfigIssueSchema] = Field(default_factory=list, description="Static validation warnings")


class WorkflowListResponse(CamelModel):
    """Paginated list of workflows."""

    workflows: List[WorkflowResponse]
    total: int
    page: int
    per_page: int


class WorkflowValidationResponse(CamelModel):
    valid: bool
    issues: List[ConfigIssueSchema]


class WorkflowTestRequest(CamelModel):
    """Dry-run a workflow with sample data."""

    workflow_id: str = Field(min_length=1)
    test_data: Dict[str, Any] = Field(default_factory=dict)


class RunReportEntrySchema(CamelModel):
    behavior_id: str
    behavior_type: str
    status: str
    duration_ms: int
    input: Dict[str, Any]
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    message: Optional[str] = None


class WorkflowTestResponse(CamelModel):
    """Run Report of a dry run."""

    success: bool
    results: List[RunReportEntrySchema]
    final_output: Dict[str, Any]


class TriggerRequest(CamelModel):
    """Fire the active workflow for a trigger."""

    trigger: str = Field(min_length=1)
    input_data: Dict[str, Any] = Field(default_factory=dict)
    webhook_url: Optional[str] = Field(default=None, description="Receives the signed result envelope")
    idempotency_key: Optional[str] = Field(default=None, description="Repeat-safe object creation")


class TriggerResponse(CamelModel):
    success: bool
    transaction_id: Optional[str] = None
    ticket_id: Optional[str] = None
    invoice_id: Optional[str] = None
    message: str


class WorkflowRunResponse(CamelModel):
    """A persisted production run."""

    id: str
    workflow_id: str
    workflow_version: int
    trigger: str
    success: bool
    results: List[Dict[str, Any]]
    final_output: Dict[str, Any]
    duration_ms: int
    created_at: datetime


class WorkflowRunListResponse(CamelModel):
    runs: List[WorkflowRunResponse]
    total: int
    page: int
    per_page: int
