"""
PAF Schemas

Request and response models for template and submission endpoints.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from ...domain.enums import StepAction
from ...domain.models import ApprovalStep, PafSubmission, StepDefinition, WorkflowTemplate


# =============================================================================
# Template Schemas
# =============================================================================

class CreateTemplateRequest(BaseModel):
    """Request to create a workflow template"""
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    steps: List[StepDefinition]
    tenant_id: Optional[str] = Field(None, description="Owning district; defaults to the caller's")
    is_default: bool = False


class UpdateTemplateRequest(BaseModel):
    """Request to edit a template that no submitted PAF references yet"""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    steps: Optional[List[StepDefinition]] = None
    is_default: Optional[bool] = None
    expected_version: Optional[int] = Field(None, description="Reject the edit if the template changed since")


class TemplateListResponse(BaseModel):
    """Response for template list"""
    items: List[WorkflowTemplate]


# =============================================================================
# Submission Schemas
# =============================================================================

class CreateSubmissionRequest(BaseModel):
    """Request to create a draft PAF"""
    template_id: str = Field(..., min_length=1)
    form_data: Dict[str, Any] = Field(default_factory=dict)
    tenant_id: Optional[str] = None


class UpdateFormDataRequest(BaseModel):
    """Request to replace a PAF's form data"""
    form_data: Dict[str, Any]


class StepActionRequest(BaseModel):
    """Approver decision on the current step"""
    action: StepAction
    comments: Optional[str] = Field(None, max_length=2000)
    signature: Optional[str] = Field(None, max_length=10000, description="Captured signature; a digest is used if omitted")
    correction_reason: Optional[str] = Field(None, max_length=2000)


class SubmissionWithStepsResponse(BaseModel):
    """Submission together with its approval ledger"""
    submission: PafSubmission
    steps: List[ApprovalStep]


class StepActionResponse(BaseModel):
    """Result of a step action"""
    submission: PafSubmission
    step: ApprovalStep


class SubmissionListResponse(BaseModel):
    """Response for submission list"""
    items: List[PafSubmission]
    skip: int
    limit: int


class RebuildStatusResponse(BaseModel):
    """Result of a status recomputation"""
    submission: PafSubmission
    repaired: bool
