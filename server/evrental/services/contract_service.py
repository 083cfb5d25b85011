"""Rental contract service."""

import logging
from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import atomic
from ..core.dependencies import CurrentUser
from ..core.exceptions import InvalidStateError, NotFoundError
from ..core.timeutils import utcnow
from ..models.booking import BookingStatus
from ..models.contract import ContractStatus, RentalContract
from ..schemas.registry import CreateContractRequest, UploadSignedContractRequest
from .booking_service import BookingService

logger = logging.getLogger(__name__)


def format_contract_number(year: int, sequence: int) -> str:
    """CONTRACT-<year>-<sequence padded to 4 digits>."""
    return f"CONTRACT-{year}-{sequence:04d}"


class ContractService:
    """Service for rental contract operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.booking_service = BookingService(db)

    async def get_contract_by_id_or_raise(self, contract_id: UUID) -> RentalContract:
        contract = await self.db.get(RentalContract, contract_id)
        if not contract:
            raise NotFoundError(resource_type="contract", resource_id=contract_id)
        return contract

    async def _next_number(self) -> str:
        now = utcnow()
        year_start = datetime(now.year, 1, 1)
        issued = await self.db.scalar(
            select(func.count()).select_from(RentalContract).where(RentalContract.created_at >= year_start)
        )
        return format_contract_number(now.year, (issued or 0) + 1)

    async def create_contract(self, staff_id: UUID, request: CreateContractRequest) -> RentalContract:
        """
        Draw up a contract for a confirmed booking.

        Raises:
            NotFoundError: If the booking does not exist
            InvalidStateError: If the booking is not CONFIRMED
        """
        async with atomic(self.db):
            booking = await self.booking_service.get_booking_by_id_or_raise(request.booking_id)
            if booking.status != BookingStatus.CONFIRMED:
                raise InvalidStateError("booking", booking.id, booking.status, "create a contract for")

            contract = RentalContract(
                booking_id=booking.id,
                contract_number=await self._next_number(),
                status=ContractStatus.CREATED,
                renter_name=request.renter_name,
                witness_name=request.witness_name,
                notes=request.notes,
                created_by=staff_id,
            )
            self.db.add(contract)

        logger.info(
            "Contract created",
            extra={"contract_id": str(contract.id), "contract_number": contract.contract_number, "booking_id": str(booking.id)}
        )
        return contract

    async def upload_signed(self, contract_id: UUID, request: UploadSignedContractRequest) -> RentalContract:
        """
        Attach the signed scan and complete the contract.

        Raises:
            NotFoundError: If the contract does not exist
            InvalidStateError: If the contract is already COMPLETED
        """
        async with atomic(self.db):
            contract = await self.get_contract_by_id_or_raise(contract_id)
            if contract.status != ContractStatus.CREATED:
                raise InvalidStateError("contract", contract_id, contract.status, "upload a signed copy of")

            contract.signed_file_url = request.signed_file_url
            if request.renter_name:
                contract.renter_name = request.renter_name
            if request.witness_name:
                contract.witness_name = request.witness_name
            contract.status = ContractStatus.COMPLETED
            contract.signed_at = utcnow()

        logger.info("Signed contract uploaded", extra={"contract_id": str(contract_id)})
        return contract

    async def get_contract(self, actor: CurrentUser, contract_id: UUID) -> RentalContract:
        """Get a contract; renters only see contracts of their own bookings."""
        contract = await self.get_contract_by_id_or_raise(contract_id)
        if not actor.is_staff:
            booking = await self.booking_service.get_booking_by_id_or_raise(contract.booking_id)
            self.booking_service.ensure_can_access(actor, booking)
        return contract

    async def list_for_booking(self, actor: CurrentUser, booking_id: UUID) -> Sequence[RentalContract]:
        booking = await self.booking_service.get_booking_by_id_or_raise(booking_id)
        self.booking_service.ensure_can_access(actor, booking)

        result = await self.db.execute(
            select(RentalContract)
            .where(RentalContract.booking_id == booking_id)
            .order_by(RentalContract.created_at.desc())
        )
        return result.scalars().all()
