"""Authentication service: registration, login and password changes."""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import atomic
from ..core.exceptions import AuthenticationError, AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..core.security import create_access_token, hash_password, verify_password
from ..models.user import AccountStatus, User, UserRole
from ..schemas.user import ChangePasswordRequest, LoginRequest, RegisterRequest

logger = logging.getLogger(__name__)


class AuthService:
    """Service for authentication operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def email_taken(self, email: str) -> bool:
        """Whether any account, deleted or not, already uses the e-mail (case-insensitive)."""
        existing = await self.db.scalar(select(User.id).where(func.lower(User.email) == email.lower()))
        return existing is not None

    async def register(self, request: RegisterRequest) -> tuple[User, str]:
        """
        Register a renter and issue an access token.

        Raises:
            ConflictError: If the e-mail is already registered
        """
        async with atomic(self.db):
            if await self.email_taken(request.email):
                raise ConflictError(
                    detail="An account with this email already exists",
                    code="EMAIL_TAKEN",
                    conflicting_resource={"email": request.email}
                )

            user = User(
                email=request.email,
                password_hash=hash_password(request.password),
                name=request.name,
                phone=request.phone,
                address=request.address,
                role=UserRole.RENTER,
                account_status=AccountStatus.ACTIVE,
                soft_deleted=False,
            )
            self.db.add(user)

        logger.info("User registered", extra={"user_id": str(user.id)})
        return user, create_access_token(str(user.id), UserRole.RENTER.value)

    async def login(self, request: LoginRequest) -> tuple[User, str]:
        """
        Check credentials and issue an access token.

        Raises:
            AuthenticationError: If the account is unknown, deleted or the password is wrong
            AuthorizationError: If the account is suspended
        """
        user = await self.db.scalar(select(User).where(func.lower(User.email) == request.email.lower()))

        if user is None or user.soft_deleted or not verify_password(request.password, user.password_hash):
            logger.warning("Failed login attempt", extra={"email": request.email})
            raise AuthenticationError("Invalid email or password", code="INVALID_CREDENTIALS")

        if user.account_status == AccountStatus.SUSPENDED:
            logger.warning("Login attempt on suspended account", extra={"user_id": str(user.id)})
            raise AuthorizationError("This account has been suspended", code="ACCOUNT_SUSPENDED")

        logger.info("User logged in", extra={"user_id": str(user.id), "role": user.role})
        return user, create_access_token(str(user.id), UserRole(user.role).value)

    async def change_password(self, user_id: UUID, request: ChangePasswordRequest) -> User:
        """
        Replace the password of a signed-in user after checking the current one.

        Raises:
            NotFoundError: If the account no longer exists
            AuthenticationError: If the current password is wrong
            ValidationError: If the new password equals the current one
        """
        async with atomic(self.db):
            user = await self.db.get(User, user_id)
            if user is None or user.soft_deleted:
                raise NotFoundError(resource_type="user", resource_id=user_id)

            if not verify_password(request.current_password, user.password_hash):
                logger.warning("Password change refused - wrong current password", extra={"user_id": str(user_id)})
                raise AuthenticationError("Current password is incorrect", code="INVALID_CREDENTIALS")

            if request.new_password == request.current_password:
                raise ValidationError(
                    "New password must differ from the current one",
                    violations=[{"path": "newPassword", "message": "must differ from currentPassword"}],
                )

            user.password_hash = hash_password(request.new_password)

        logger.info("Password changed", extra={"user_id": str(user_id)})
        return user
