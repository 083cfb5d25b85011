"""FastAPI dependencies for authentication and role checks."""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, Request

from ..models.user import UserRole
from .config import settings
from .exceptions import AuthenticationError, AuthorizationError
from .security import decode_access_token

STAFF_ROLES = (UserRole.STAFF, UserRole.ADMIN)


@dataclass(frozen=True)
class CurrentUser:
    """Identity of the authenticated caller, taken from the access token."""

    id: UUID
    role: UserRole

    @property
    def is_staff(self) -> bool:
        """Staff and admins manage resources owned by other users."""
        return self.role in STAFF_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def _extract_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    """Take the token from a Bearer Authorization header, falling back to the access cookie."""
    if authorization:
        parts = authorization.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            raise AuthenticationError("Invalid authorization header format")
        return parts[1]

    return request.cookies.get(settings.cookie_name)


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> CurrentUser:
    """
    Authentication dependency that validates access tokens.

    Args:
        request: Incoming request, checked for the access token cookie
        authorization: Authorization header with Bearer token

    Returns:
        CurrentUser: Caller identity from the validated token

    Raises:
        AuthenticationError: If the token is missing or invalid
    """
    token = _extract_token(request, authorization)
    if not token:
        raise AuthenticationError("Authentication required")

    payload = decode_access_token(token)

    try:
        user = CurrentUser(id=UUID(str(payload["sub"])), role=UserRole(payload["role"]))
    except (KeyError, ValueError) as e:
        raise AuthenticationError("Invalid token payload", code="INVALID_TOKEN") from e

    # Picked up by the request logging middleware
    request.state.user_id = str(user.id)
    return user


def require_roles(*roles: UserRole):
    """
    Build a dependency that admits only callers holding one of the given roles.

    Usage:
        user: CurrentUser = Depends(require_roles(UserRole.STAFF, UserRole.ADMIN))
    """
    allowed = tuple(roles)

    async def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in allowed:
            raise AuthorizationError(
                "You do not have permission to perform this action",
                required_roles=[role.value for role in allowed],
            )
        return user

    return dependency


# Reusable dependency markers
RequiredAuth = Depends(get_current_user)
RenterOnly = Depends(require_roles(UserRole.RENTER))
StaffOnly = Depends(require_roles(UserRole.STAFF, UserRole.ADMIN))
AdminOnly = Depends(require_roles(UserRole.ADMIN))
