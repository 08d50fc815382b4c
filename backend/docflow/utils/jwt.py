"""JWT Token Validation (shared-secret bearer tokens)"""
import jwt
from typing import Any, Dict, Optional

from ..config.settings import settings
from ..domain.errors import AuthenticationError
from ..domain.models import ActorContext
from .logger import get_logger

logger = get_logger(__name__)


class JWTValidator:
    """Bearer token validator for tokens issued by the identity provider"""

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        audience: Optional[str] = None
    ):
        self.secret = secret or settings.jwt_secret
        self.algorithm = algorithm or settings.jwt_algorithm
        self.audience = audience if audience is not None else settings.jwt_audience

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Validate a JWT token

        Args:
            token: Bearer token (with or without 'Bearer ' prefix)

        Returns:
            Decoded token claims

        Raises:
            AuthenticationError: If token is invalid
        """
        if not token:
            raise AuthenticationError("Token is missing")

        # Remove 'Bearer ' prefix if present
        if token.startswith("Bearer "):
            token = token[7:]

        options = {"verify_exp": True, "verify_aud": bool(self.audience)}

        try:
            return jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience or None,
                options=options,
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Token expired")
            raise AuthenticationError("Token has expired")
        except jwt.InvalidAudienceError as e:
            logger.warning(f"Invalid token audience: {e}")
            raise AuthenticationError("Invalid token audience")
        except jwt.PyJWTError as e:
            logger.warning(f"JWT validation error: {e}")
            raise AuthenticationError(f"Invalid token: {str(e)}")

    def get_actor_context(self, token: str) -> ActorContext:
        """
        Extract actor context from validated token

        The subject claim carries the directory user id.
        """
        claims = self.validate_token(token)

        user_id = claims.get("sub") or claims.get("user_id") or ""
        if not user_id:
            logger.warning(f"No subject in token claims. Available claims: {list(claims.keys())}")
            raise AuthenticationError("Unable to determine user from token")

        email = claims.get("email") or claims.get("preferred_username") or ""
        display_name = claims.get("name") or email or user_id

        roles = claims.get("roles") or []
        if isinstance(roles, str):
            roles = [roles]
        role = claims.get("role")
        if role and role not in roles:
            roles = [*roles, role]

        return ActorContext(
            user_id=str(user_id),
            email=email,
            display_name=display_name,
            roles=[str(r).lower() for r in roles]
        )


# Global validator instance
_jwt_validator: Optional[JWTValidator] = None


def get_jwt_validator() -> JWTValidator:
    """Get global JWT validator instance"""
    global _jwt_validator
    if _jwt_validator is None:
        _jwt_validator = JWTValidator()
    return _jwt_validator


def get_current_user(authorization: str) -> ActorContext:
    """
    Get current user from authorization header

    Args:
        authorization: Authorization header value

    Returns:
        ActorContext
    """
    if not authorization:
        raise AuthenticationError("Authorization header is missing")

    validator = get_jwt_validator()
    return validator.get_actor_context(authorization)
