"""User directory service: profiles, renters and staff."""

import logging
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import atomic
from ..core.exceptions import ConflictError, NotFoundError
from ..core.security import hash_password
from ..models.user import AccountStatus, User, UserRole
from ..schemas.user import CreateStaffRequest, UpdateProfileRequest
from .auth_service import AuthService
from .station_service import StationService

logger = logging.getLogger(__name__)

STAFF_DIRECTORY_ROLES = (UserRole.STAFF, UserRole.ADMIN)


class UserService:
    """Service for user directory operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.station_service = StationService(db)

    async def get_user_by_id(self, user_id: UUID) -> Optional[User]:
        """Get a non-deleted user by ID."""
        user = await self.db.get(User, user_id)
        if user is None or user.soft_deleted:
            return None
        return user

    async def get_user_by_id_or_raise(self, user_id: UUID, roles: Sequence[UserRole] = ()) -> User:
        """
        Get user by ID or raise NotFoundError.

        Args:
            user_id: User id
            roles: If given, users with another role are treated as missing

        Raises:
            NotFoundError: If the user does not exist, was deleted or has another role
        """
        user = await self.get_user_by_id(user_id)
        resource_type = "renter" if tuple(roles) == (UserRole.RENTER,) else "user"
        if not user or (roles and user.role not in roles):
            raise NotFoundError(resource_type=resource_type, resource_id=user_id)
        return user

    async def _list_users(
        self,
        roles: Sequence[UserRole],
        search: Optional[str],
        status: Optional[AccountStatus],
        page: int,
        limit: int,
        station_id: Optional[UUID] = None,
    ) -> tuple[Sequence[User], int]:
        conditions = [User.soft_deleted.is_(False), User.role.in_(roles)]
        if station_id:
            conditions.append(User.station_id == station_id)
        if status:
            conditions.append(User.account_status == status)
        if search:
            pattern = f"%{search.lower()}%"
            conditions.append(or_(
                func.lower(User.name).like(pattern),
                func.lower(User.email).like(pattern),
                User.phone.like(pattern),
            ))

        total = await self.db.scalar(select(func.count()).select_from(User).where(*conditions))
        result = await self.db.execute(
            select(User)
            .where(*conditions)
            .order_by(User.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return result.scalars().all(), total or 0

    async def list_renters(
        self,
        search: Optional[str] = None,
        status: Optional[AccountStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[Sequence[User], int]:
        """List renters, newest first, optionally filtered by a name/email/phone search."""
        return await self._list_users((UserRole.RENTER,), search, status, page, limit)

    async def update_profile(self, user_id: UUID, request: UpdateProfileRequest) -> User:
        """Update the provided profile fields of a user."""
        changes = request.model_dump(exclude_unset=True)

        async with atomic(self.db):
            user = await self.get_user_by_id_or_raise(user_id)
            for field, value in changes.items():
                setattr(user, field, value)

        logger.info("Profile updated", extra={"user_id": str(user_id), "fields": sorted(changes)})
        return user

    async def set_renter_status(self, user_id: UUID, status: AccountStatus) -> User:
        """Suspend or reactivate a renter account."""
        async with atomic(self.db):
            user = await self.get_user_by_id_or_raise(user_id, roles=(UserRole.RENTER,))
            user.account_status = status

        logger.info("Renter status changed", extra={"user_id": str(user_id), "account_status": status.value})
        return user

    async def delete_user(self, user_id: UUID, roles: Sequence[UserRole]) -> None:
        """Soft-delete a renter or staff account."""
        async with atomic(self.db):
            user = await self.get_user_by_id_or_raise(user_id, roles=roles)
            user.soft_deleted = True

        logger.info("User deleted", extra={"user_id": str(user_id), "role": user.role})

    async def create_staff(self, request: CreateStaffRequest) -> User:
        """
        Create a staff account.

        Raises:
            ConflictError: If the e-mail is already registered
            NotFoundError: If the station does not exist
        """
        async with atomic(self.db):
            if await AuthService(self.db).email_taken(request.email):
                raise ConflictError(
                    detail="An account with this email already exists",
                    code="EMAIL_TAKEN",
                    conflicting_resource={"email": request.email}
                )
            if request.station_id:
                await self.station_service.get_station_by_id_or_raise(request.station_id)

            user = User(
                email=request.email,
                password_hash=hash_password(request.password),
                name=request.name,
                phone=request.phone,
                role=UserRole.STAFF,
                account_status=AccountStatus.ACTIVE,
                station_id=request.station_id,
                soft_deleted=False,
            )
            self.db.add(user)

        logger.info(
            "Staff created",
            extra={"user_id": str(user.id), "station_id": str(request.station_id) if request.station_id else None}
        )
        return user

    async def list_staff(
        self,
        search: Optional[str] = None,
        station_id: Optional[UUID] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[Sequence[User], int]:
        """List staff and admin accounts, optionally only those of one station."""
        return await self._list_users(STAFF_DIRECTORY_ROLES, search, None, page, limit, station_id=station_id)

    async def assign_station(self, user_id: UUID, station_id: UUID) -> User:
        """Assign a staff member to a station."""
        async with atomic(self.db):
            user = await self.get_user_by_id_or_raise(user_id, roles=STAFF_DIRECTORY_ROLES)
            await self.station_service.get_station_by_id_or_raise(station_id)
            user.station_id = station_id

        logger.info("Staff assigned to station", extra={"user_id": str(user_id), "station_id": str(station_id)})
        return user
