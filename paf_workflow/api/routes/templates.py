"""
Workflow Template Routes

Endpoints for listing and managing approval chain templates. Creating,
editing and seeding templates is limited to TEMPLATE_ADMIN_ROLES.
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..deps import (
    get_current_actor_dep, get_correlation_id_dep, get_paf_service, require_template_admin
)
from ...domain.models import ActorContext, WorkflowTemplate
from ...domain.errors import DomainError
from ...services.paf_service import PafService
from ...utils.logger import get_logger
from .schemas import CreateTemplateRequest, UpdateTemplateRequest, TemplateListResponse

logger = get_logger(__name__)
router = APIRouter()


@router.get("", response_model=TemplateListResponse)
async def list_templates(
    tenant_id: Optional[str] = Query(None, description="Defaults to the caller's district"),
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: PafService = Depends(get_paf_service)
):
    """List templates shared across districts plus the district's own."""
    try:
        items = service.list_templates(tenant_id or actor.tenant_id)
        return TemplateListResponse(items=items)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("", response_model=WorkflowTemplate, status_code=status.HTTP_201_CREATED)
async def create_template(
    request: CreateTemplateRequest,
    actor: ActorContext = Depends(require_template_admin),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: PafService = Depends(get_paf_service)
):
    """
    Create a workflow template.

    Step orders must be unique and contiguous starting at 1.
    """
    try:
        return service.create_template(
            name=request.name,
            steps=request.steps,
            actor=actor,
            description=request.description,
            tenant_id=request.tenant_id or actor.tenant_id,
            is_default=request.is_default
        )
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/seed-defaults", response_model=TemplateListResponse)
async def seed_default_templates(
    tenant_id: Optional[str] = Query(None),
    actor: ActorContext = Depends(require_template_admin),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: PafService = Depends(get_paf_service)
):
    """Create the default templates for a district; returns only new ones."""
    try:
        return TemplateListResponse(items=service.seed_default_templates(actor, tenant_id=tenant_id))
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{template_id}", response_model=WorkflowTemplate)
async def get_template(
    template_id: str,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: PafService = Depends(get_paf_service)
):
    """Get template details"""
    try:
        return service.get_template(template_id)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.put("/{template_id}", response_model=WorkflowTemplate)
async def update_template(
    template_id: str,
    request: UpdateTemplateRequest,
    actor: ActorContext = Depends(require_template_admin),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: PafService = Depends(get_paf_service)
):
    """
    Edit a template.

    Fails with TEMPLATE_IN_USE once any submitted PAF references it.
    """
    try:
        return service.update_template(
            template_id,
            actor,
            name=request.name,
            description=request.description,
            steps=request.steps,
            is_default=request.is_default,
            expected_version=request.expected_version
        )
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
