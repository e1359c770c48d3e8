"""
PAF Submission Routes

Endpoints for the submission lifecycle:
- Create draft / edit form data / submit
- Approve, reject or request correction on the current step
- Ledger, timeline and district overview
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..deps import get_current_actor_dep, get_correlation_id_dep, get_paf_service
from ...config.settings import settings
from ...domain.enums import ApproverRole, SubmissionStatus
from ...domain.models import (
    ActorContext, ApprovalStep, PafSubmission, SubmissionTimeline, TenantOverview
)
from ...domain.errors import DomainError, ForbiddenError
from ...services.paf_service import PafService
from ...utils.logger import get_logger
from .schemas import (
    CreateSubmissionRequest, UpdateFormDataRequest, StepActionRequest,
    SubmissionWithStepsResponse, StepActionResponse, SubmissionListResponse,
    RebuildStatusResponse
)

logger = get_logger(__name__)
router = APIRouter()


def _ensure_visible(submission: PafSubmission, actor: ActorContext) -> None:
    """Employees only see and change their own submissions"""
    if actor.role == ApproverRole.EMPLOYEE and submission.submitted_by != actor.actor_id:
        raise ForbiddenError("You can only access your own submissions")


# =============================================================================
# Create / List
# =============================================================================

@router.post("", response_model=SubmissionWithStepsResponse, status_code=status.HTTP_201_CREATED)
async def create_submission(
    request: CreateSubmissionRequest,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: PafService = Depends(get_paf_service)
):
    """
    Create a draft PAF from a template.

    One pending approval step is created per template step.
    """
    try:
        submission, steps = service.create_submission(
            template_id=request.template_id,
            form_data=request.form_data,
            actor=actor,
            tenant_id=request.tenant_id
        )
        return SubmissionWithStepsResponse(submission=submission, steps=steps)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("", response_model=SubmissionListResponse)
async def list_submissions(
    status_filter: Optional[SubmissionStatus] = Query(None, alias="status"),
    submitted_by: Optional[str] = Query(None),
    tenant_id: Optional[str] = Query(None, description="Defaults to the caller's district"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: PafService = Depends(get_paf_service)
):
    """
    List submissions, newest first.

    Employees only see submissions they created.
    """
    if actor.role == ApproverRole.EMPLOYEE:
        submitted_by = actor.actor_id

    try:
        items = service.list_submissions(
            tenant_id=tenant_id or actor.tenant_id,
            submitted_by=submitted_by,
            status=status_filter,
            skip=skip,
            limit=limit
        )
        return SubmissionListResponse(items=items, skip=skip, limit=limit)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/overview", response_model=TenantOverview)
async def tenant_overview(
    tenant_id: Optional[str] = Query(None),
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: PafService = Depends(get_paf_service)
):
    """
    Submission counts for a district.

    System owners may read any district; template administrators only
    their own.
    """
    target = tenant_id or actor.tenant_id or settings.default_tenant_id
    allowed = actor.role == ApproverRole.SYSTEM_OWNER or (
        actor.role.value in settings.template_admin_roles_list and target == actor.tenant_id
    )
    if not allowed:
        logger.warning(
            f"Role {actor.role.value} attempted to read overview of {target}",
            extra={"actor_id": actor.actor_id, "tenant_id": target}
        )
        error = ForbiddenError(
            "You cannot view statistics for this district",
            details={"tenant_id": target}
        )
        raise HTTPException(status_code=error.http_status, detail=error.to_dict())

    try:
        return service.tenant_overview(target)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


# =============================================================================
# Single Submission
# =============================================================================

@router.get("/{submission_id}", response_model=SubmissionWithStepsResponse)
async def get_submission(
    submission_id: str,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: PafService = Depends(get_paf_service)
):
    """Get submission with its approval steps"""
    try:
        submission = service.get_submission(submission_id)
        _ensure_visible(submission, actor)
        return SubmissionWithStepsResponse(submission=submission, steps=service.get_steps(submission_id))
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.put("/{submission_id}/form-data", response_model=PafSubmission)
async def update_form_data(
    submission_id: str,
    request: UpdateFormDataRequest,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: PafService = Depends(get_paf_service)
):
    """
    Replace the form data.

    Allowed in draft, or while a step is waiting for corrections.
    """
    try:
        _ensure_visible(service.get_submission(submission_id), actor)
        return service.update_form_data(submission_id, request.form_data, actor)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{submission_id}/submit", response_model=PafSubmission)
async def submit_submission(
    submission_id: str,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: PafService = Depends(get_paf_service)
):
    """Send a draft into the approval chain"""
    try:
        _ensure_visible(service.get_submission(submission_id), actor)
        return service.submit(submission_id, actor)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


# =============================================================================
# Approval Steps
# =============================================================================

@router.post("/{submission_id}/steps/{step}/actions", response_model=StepActionResponse)
async def act_on_step(
    submission_id: str,
    step: int,
    request: StepActionRequest,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: PafService = Depends(get_paf_service)
):
    """
    Approve, reject or request correction on the current step.

    Only the role named on the step may act. A correction sends the PAF
    back to the first step.
    """
    try:
        submission, entry = service.act(
            submission_id=submission_id,
            step=step,
            action=request.action,
            actor=actor,
            comments=request.comments,
            signature=request.signature,
            correction_reason=request.correction_reason
        )
        return StepActionResponse(submission=submission, step=entry)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{submission_id}/steps", response_model=List[ApprovalStep])
async def get_steps(
    submission_id: str,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: PafService = Depends(get_paf_service)
):
    """Approval steps ordered by step number"""
    try:
        _ensure_visible(service.get_submission(submission_id), actor)
        return service.get_steps(submission_id)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{submission_id}/timeline", response_model=SubmissionTimeline)
async def get_timeline(
    submission_id: str,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: PafService = Depends(get_paf_service)
):
    """Audit trail with milestones, durations and the next expected action"""
    try:
        _ensure_visible(service.get_submission(submission_id), actor)
        return service.timeline(submission_id)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{submission_id}/rebuild-status", response_model=RebuildStatusResponse)
async def rebuild_status(
    submission_id: str,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: PafService = Depends(get_paf_service)
):
    """Recompute the cached status from the approval steps"""
    if actor.role.value not in settings.template_admin_roles_list:
        error = ForbiddenError("Only administrators can rebuild submission status")
        raise HTTPException(status_code=error.http_status, detail=error.to_dict())

    try:
        submission, repaired = service.rebuild_status(submission_id, actor)
        return RebuildStatusResponse(submission=submission, repaired=repaired)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
