"""JWT Token Validation for the district identity provider"""
import jwt
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from ..config.settings import settings
from ..domain.errors import AuthenticationError
from ..domain.models import ActorContext
from .logger import get_logger

logger = get_logger(__name__)


class JWTValidator:
    """
    Bearer token validator

    Tokens are issued by the identity provider and carry the actor's id
    (``sub``), role (``role``), district (``tenant_id``) and display name
    (``name``). The engine trusts these claims but never issues them.
    """

    def __init__(self, secret: Optional[str] = None, algorithm: Optional[str] = None):
        self._secret = secret or settings.jwt_secret
        self._algorithm = algorithm or settings.jwt_algorithm

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Validate a bearer token

        In DEVELOPMENT mode the signature is not verified so locally minted
        tokens work without sharing the provider's secret.

        Raises:
            AuthenticationError: If token is invalid
        """
        if not token:
            raise AuthenticationError("Token is missing")

        if token.startswith("Bearer "):
            token = token[7:]

        try:
            if settings.environment.lower() in ["development", "dev", "local", "test"]:
                return jwt.decode(
                    token,
                    options={
                        "verify_signature": False,
                        "verify_exp": True,
                        "verify_aud": False,
                    }
                )

            options = {"verify_exp": True, "verify_aud": bool(settings.jwt_audience)}
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                audience=settings.jwt_audience or None,
                options=options,
            )

        except jwt.ExpiredSignatureError:
            logger.warning("Token expired")
            raise AuthenticationError("Token has expired")
        except jwt.InvalidAudienceError as e:
            logger.warning(f"Invalid token audience: {e}")
            raise AuthenticationError("Invalid token audience")
        except jwt.PyJWTError as e:
            logger.error(f"JWT validation error: {e}")
            raise AuthenticationError(f"Invalid token: {str(e)}")

    def get_actor_context(self, token: str) -> ActorContext:
        """Extract actor context from validated token"""
        claims = self.validate_token(token)

        actor_id = claims.get("sub") or claims.get("actor_id")
        if not actor_id:
            logger.warning(f"No subject in token claims. Available claims: {list(claims.keys())}")
            raise AuthenticationError("Unable to determine actor from token")

        try:
            return ActorContext(
                actor_id=actor_id,
                role=claims.get("role"),
                tenant_id=claims.get("tenant_id"),
                display_name=claims.get("name"),
            )
        except PydanticValidationError:
            raise AuthenticationError(
                "Token carries an unknown role",
                details={"role": claims.get("role")}
            )


# Global validator instance
_jwt_validator: Optional[JWTValidator] = None


def get_jwt_validator() -> JWTValidator:
    """Get global JWT validator instance"""
    global _jwt_validator
    if _jwt_validator is None:
        _jwt_validator = JWTValidator()
    return _jwt_validator


def get_current_actor(authorization: str) -> ActorContext:
    """
    Get current actor from authorization header

    Args:
        authorization: Authorization header value

    Returns:
        ActorContext
    """
    if not authorization:
        raise AuthenticationError("Authorization header is missing")

    return get_jwt_validator().get_actor_context(authorization)
