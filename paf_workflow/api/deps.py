"""API Dependencies - Common dependencies for routes"""
from functools import lru_cache
from typing import Optional
from fastapi import Depends, Header, HTTPException, status

from ..config.settings import settings
from ..domain.models import ActorContext
from ..domain.errors import AuthenticationError, ForbiddenError
from ..services.paf_service import PafService
from ..utils.jwt import get_current_actor
from ..utils.logger import get_correlation_id, get_logger, set_correlation_id
from ..utils.idgen import generate_correlation_id

logger = get_logger(__name__)


async def get_correlation_id_dep(
    x_correlation_id: Optional[str] = Header(None, alias="X-Correlation-Id")
) -> str:
    """
    Correlation ID for the current request

    Prefers the ID already chosen by CorrelationIdMiddleware, then the
    X-Correlation-Id header, then a fresh one.
    """
    correlation_id = get_correlation_id() or x_correlation_id or generate_correlation_id()
    set_correlation_id(correlation_id)
    return correlation_id


async def get_current_actor_dep(
    authorization: Optional[str] = Header(None)
) -> ActorContext:
    """
    Dependency to get the calling actor from the Authorization header

    Raises:
        HTTPException: 401 if token is invalid or missing
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=AuthenticationError("Authorization header is missing").to_dict(),
            headers={"WWW-Authenticate": "Bearer"}
        )

    try:
        return get_current_actor(authorization)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.to_dict(),
            headers={"WWW-Authenticate": "Bearer"}
        )


@lru_cache()
def get_paf_service() -> PafService:
    """Process-wide service bound to the configured store"""
    return PafService()


async def require_template_admin(
    actor: ActorContext = Depends(get_current_actor_dep)
) -> ActorContext:
    """Only roles listed in TEMPLATE_ADMIN_ROLES may manage templates"""
    if actor.role.value not in settings.template_admin_roles_list:
        logger.warning(
            f"Role {actor.role.value} attempted template management",
            extra={"actor_id": actor.actor_id}
        )
        error = ForbiddenError(
            "Only template administrators can manage workflow templates",
            details={"allowed_roles": settings.template_admin_roles_list}
        )
        raise HTTPException(status_code=error.http_status, detail=error.to_dict())
    return actor
