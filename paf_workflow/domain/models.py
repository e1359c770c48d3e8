"""Domain Models - Pydantic schemas for all entities"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict

from .enums import (
    SubmissionStatus, StepStatus, StepAction, ApproverRole, AuditEventType
)


# ============================================================================
# Identity
# ============================================================================

class ActorContext(BaseModel):
    """Caller identity supplied by the identity provider"""
    model_config = ConfigDict(extra="forbid")

    actor_id: str = Field(..., min_length=1, description="Stable user identifier")
    role: ApproverRole = Field(..., description="Role the caller acts under")
    tenant_id: Optional[str] = Field(None, description="District the caller belongs to")
    display_name: Optional[str] = Field(None, description="User display name")


# ============================================================================
# Workflow Templates
# ============================================================================

class StepDefinition(BaseModel):
    """One position in a template's approval chain"""
    model_config = ConfigDict(extra="forbid")

    order: int = Field(..., description="1-based position in the chain")
    role: ApproverRole = Field(..., description="Role required to act on this step")
    title: str = Field(..., min_length=1, description="Display title")


class WorkflowTemplate(BaseModel):
    """Named, ordered list of approval steps"""
    model_config = ConfigDict(extra="forbid")

    template_id: str
    name: str
    description: Optional[str] = None
    steps: List[StepDefinition] = Field(default_factory=list)
    tenant_id: Optional[str] = Field(None, description="Owning district; None means shared")
    is_default: bool = False
    version: int = 0
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @property
    def step_orders(self) -> List[int]:
        return [s.order for s in self.steps]


# ============================================================================
# Submissions & Approval Ledger
# ============================================================================

class PafSubmission(BaseModel):
    """Personnel Action Form submission"""
    model_config = ConfigDict(extra="forbid")

    submission_id: str
    tenant_id: str
    template_id: str
    template_name: Optional[str] = None
    form_data: Dict[str, Any] = Field(default_factory=dict)
    status: SubmissionStatus = SubmissionStatus.DRAFT
    current_step: int = Field(0, ge=0)
    submitted_by: str
    created_at: datetime
    updated_at: datetime
    submitted_at: Optional[datetime] = None
    first_reviewed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    version: int = 0


class ApprovalStep(BaseModel):
    """Ledger entry for one (submission, step) pair"""
    model_config = ConfigDict(extra="forbid")

    submission_id: str
    step: int = Field(..., description="Template order value; permanent identity")
    title: Optional[str] = None
    approver_role: ApproverRole
    status: StepStatus = StepStatus.PENDING
    approver_user_id: Optional[str] = None
    signed_at: Optional[datetime] = None
    signature: Optional[str] = None
    comments: Optional[str] = None
    correction_reason: Optional[str] = None
    version: int = 0
    updated_at: Optional[datetime] = None


# ============================================================================
# Audit
# ============================================================================

class AuditEvent(BaseModel):
    """Append-only audit record"""
    model_config = ConfigDict(extra="forbid")

    audit_event_id: str
    submission_id: str
    step: Optional[int] = None
    event_type: AuditEventType
    actor_id: str
    actor_role: Optional[ApproverRole] = None
    action: Optional[StepAction] = None
    from_status: Optional[SubmissionStatus] = None
    to_status: Optional[SubmissionStatus] = None
    from_step: Optional[int] = None
    to_step: Optional[int] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime
    correlation_id: Optional[str] = None


# ============================================================================
# Read Models
# ============================================================================

class TimelineMilestone(BaseModel):
    """A key point in a submission's life"""
    event: str
    date: datetime
    duration: Optional[str] = Field(None, description="Time since the previous milestone")


class TimelineSummary(BaseModel):
    """Human-readable summary of a submission's progress"""
    current_status: SubmissionStatus
    current_step: int
    total_duration: Optional[str] = None
    key_milestones: List[TimelineMilestone] = Field(default_factory=list)
    is_overdue: bool = False
    next_expected_action: Optional[str] = None


class SubmissionTimeline(BaseModel):
    """Audit trail plus summary for one submission"""
    submission: PafSubmission
    events: List[AuditEvent] = Field(default_factory=list)
    summary: TimelineSummary


class TenantOverview(BaseModel):
    """Per-district submission statistics"""
    tenant_id: str
    templates_count: int = 0
    submissions_count: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    pending_submissions: int = 0
    approved_submissions: int = 0
    denied_submissions: int = 0
