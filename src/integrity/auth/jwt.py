"""Bearer token validation for the integrity API.

Tokens are issued by the main authentication service; this module only
decodes them. ``create_access_token`` exists for local development and
tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from integrity.config import get_settings

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 30
ADMIN_ROLES = frozenset({"admin", "owner"})
# Role carried by tokens issued to the authentication service itself
SERVICE_ROLE = "service"


class TokenPayload(BaseModel):
    """JWT token payload structure."""

    sub: str  # User ID
    role: str = "user"
    type: str  # "access" or "refresh"
    exp: datetime
    iat: datetime


class Actor(BaseModel):
    """The authenticated caller."""

    user_id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_service(self) -> bool:
        return self.role == SERVICE_ROLE

    def can_view_user(self, user_id: str) -> bool:
        """Services, admins and the user themselves may read a user's state."""
        return self.is_service or self.is_admin or self.user_id == user_id


# Security scheme for Swagger UI
security = HTTPBearer(auto_error=False)


def create_access_token(
    user_id: str, role: str = "user", expires_delta: timedelta | None = None
) -> str:
    """Create a short-lived access token.

    Args:
        user_id: The user's ID.
        role: Role claim (``user``, ``admin``, ``owner``, ``service``).
        expires_delta: Optional custom expiration time.

    Returns:
        Encoded JWT access token.
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)

    now = datetime.now(timezone.utc)
    to_encode: dict[str, Any] = {
        "sub": str(user_id),
        "role": role,
        "type": "access",
        "exp": now + expires_delta,
        "iat": now,
    }
    return jwt.encode(to_encode, get_settings().jwt_secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> TokenPayload:
    """Decode and validate a JWT token.

    Raises:
        HTTPException: If token is invalid or expired.
    """
    try:
        payload = jwt.decode(
            token, get_settings().jwt_secret_key, algorithms=[ALGORITHM]
        )
        return TokenPayload(
            sub=payload["sub"],
            role=payload.get("role", "user"),
            type=payload["type"],
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
        )
    except (JWTError, KeyError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {e!s}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Actor:
    """FastAPI dependency for the authenticated caller.

    Raises:
        HTTPException: 401 if not authenticated or token invalid.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token_data = decode_token(credentials.credentials)

    if token_data.type != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Actor(user_id=token_data.sub, role=token_data.role)


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """FastAPI dependency that only lets admins and owners through.

    Raises:
        HTTPException: 403 for any other role.
    """
    if not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return actor


async def require_service(actor: Actor = Depends(get_current_actor)) -> Actor:
    """FastAPI dependency for calls made by the authentication service.

    Only the authentication service may report login attempts and client
    IPs.

    Raises:
        HTTPException: 403 for user and admin tokens.
    """
    if not actor.is_service:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Service credential required",
        )
    return actor
