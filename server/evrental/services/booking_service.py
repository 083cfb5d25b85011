"""Booking service: creation with overlap prevention and lifecycle transitions."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import atomic
from ..core.dependencies import CurrentUser
from ..core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ..core.observability import metrics_collector
from ..core.timeutils import utcnow
from ..models.booking import OCCUPYING_STATUSES, Booking, BookingStatus, RentalHistory
from ..models.notification import NotificationType
from ..models.payment import Payment, PaymentStatus
from ..models.promotion import Promotion, PromotionBooking
from ..models.user import User
from ..models.vehicle import Vehicle, VehicleStatus
from ..schemas.booking import CancelBookingRequest, CompleteBookingRequest, CreateBookingRequest
from .notification_service import NotificationService
from .pricing import PriceQuote, quote_rental
from .station_service import StationService
from .vehicle_service import VehicleService

logger = logging.getLogger(__name__)


class VehicleUnavailableError(ConflictError):
    """Exception when the vehicle cannot be booked at all."""

    def __init__(self, vehicle_id: UUID, reason: str):
        super().__init__(
            detail=f"Vehicle {vehicle_id} is not available for booking: {reason}",
            code="VEHICLE_UNAVAILABLE",
            conflicting_resource={"vehicleId": str(vehicle_id), "reason": reason}
        )


class SlotConflictError(ConflictError):
    """Exception when another occupying booking overlaps the requested interval."""

    def __init__(self, vehicle_id: UUID, start: datetime, end: datetime, taken_start: datetime, taken_end: datetime):
        super().__init__(
            detail=f"Vehicle {vehicle_id} is already booked between {taken_start.isoformat()} and {taken_end.isoformat()}",
            code="SLOT_CONFLICT",
            conflicting_resource={
                "vehicleId": str(vehicle_id),
                "requestedStart": start.isoformat(),
                "requestedEnd": end.isoformat(),
                "takenStart": taken_start.isoformat(),
                "takenEnd": taken_end.isoformat(),
            }
        )


@dataclass
class BookingReceipt:
    """A newly created booking with its price breakdown and the promotions that applied."""

    booking: Booking
    quote: PriceQuote
    promotions: list[tuple[Promotion, int]] = field(default_factory=list)


class BookingService:
    """Service for booking-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.vehicle_service = VehicleService(db)
        self.station_service = StationService(db)
        self.notifications = NotificationService(db)

    async def get_booking_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Get booking by ID."""
        return await self.db.get(Booking, booking_id)

    async def get_booking_by_id_or_raise(self, booking_id: UUID) -> Booking:
        """
        Get booking by ID or raise NotFoundError.

        Raises:
            NotFoundError: If the booking does not exist
        """
        booking = await self.get_booking_by_id(booking_id)
        if not booking:
            raise NotFoundError(resource_type="booking", resource_id=booking_id)
        return booking

    async def _lock_booking(self, booking_id: UUID) -> Booking:
        """
        Re-read a booking under a row lock, discarding any stale identity-map state.

        Callers lock the vehicle first; every unit of work takes vehicle then
        booking, so two transitions on the same rental cannot deadlock.
        """
        result = await self.db.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError(resource_type="booking", resource_id=booking_id)
        return booking

    @staticmethod
    def ensure_can_access(actor: CurrentUser, booking: Booking) -> None:
        """Owners and staff may see and act on a booking; other renters may not."""
        if not actor.is_staff and booking.user_id != actor.id:
            raise AuthorizationError("You can only access your own bookings")

    async def _active_promotions(self, references: Sequence[str], moment: datetime) -> list[Promotion]:
        """Resolve promotion codes (or ids) that are valid at ``moment``. Unknown or expired ones are skipped."""
        promotions: list[Promotion] = []
        seen: set[UUID] = set()

        for reference in references:
            reference = reference.strip()
            if not reference:
                continue
            try:
                condition = Promotion.id == UUID(reference)
            except ValueError:
                condition = Promotion.code == reference.upper()

            promotion = await self.db.scalar(select(Promotion).where(condition))
            if promotion and promotion.id not in seen and promotion.is_active_at(moment):
                promotions.append(promotion)
                seen.add(promotion.id)

        return promotions

    async def create_booking(self, renter_id: UUID, request: CreateBookingRequest) -> BookingReceipt:
        """
        Create a PENDING booking, reserving the vehicle.

        Runs as one unit of work: the vehicle row is locked, marked RESERVED,
        and the overlap check runs after that write. Any failure rolls back
        the reservation.

        Args:
            renter_id: Authenticated renter
            request: Validated booking request (start_time < end_time already holds)

        Returns:
            BookingReceipt with the booking, its price quote and applied promotions

        Raises:
            NotFoundError: If the station does not exist
            VehicleUnavailableError: If the vehicle is missing, deleted or not AVAILABLE
            SlotConflictError: If an occupying booking overlaps the requested interval
        """
        start, end = request.start_time, request.end_time

        async with atomic(self.db):
            await self.station_service.get_station_by_id_or_raise(request.station_id)

            vehicle = await self.vehicle_service.get_vehicle_with_lock(request.vehicle_id)
            if vehicle is None or vehicle.soft_deleted:
                self._reject("VEHICLE_UNAVAILABLE", request, "vehicle not found")
                raise VehicleUnavailableError(request.vehicle_id, "vehicle not found")

            if vehicle.status != VehicleStatus.AVAILABLE:
                clash = await self.vehicle_service.find_overlapping_booking(vehicle.id, start, end)
                if clash:
                    self._reject("SLOT_CONFLICT", request, f"overlaps booking {clash.id}")
                    raise SlotConflictError(vehicle.id, start, end, clash.start_time, clash.end_time)
                self._reject("VEHICLE_UNAVAILABLE", request, f"status {vehicle.status}")
                raise VehicleUnavailableError(vehicle.id, f"vehicle status is {vehicle.status}")

            # Reserve first, then check: a concurrent unit of work either waits on
            # the lock or finds the reservation and the overlapping booking.
            vehicle.status = VehicleStatus.RESERVED
            await self.db.flush()

            clash = await self.vehicle_service.find_overlapping_booking(vehicle.id, start, end)
            if clash:
                self._reject("SLOT_CONFLICT", request, f"overlaps booking {clash.id}")
                raise SlotConflictError(vehicle.id, start, end, clash.start_time, clash.end_time)

            promotions = await self._active_promotions(request.promotion_codes, utcnow())
            quote = quote_rental(
                hourly_rate=vehicle.hourly_rate,
                deposit_amount=vehicle.deposit_amount,
                start=start,
                end=end,
                discount_rates=[promotion.discount for promotion in promotions],
                insurance_rate=settings.insurance_rate,
                tax_rate=settings.tax_rate,
            )

            booking = Booking(
                user_id=renter_id,
                vehicle_id=vehicle.id,
                station_id=request.station_id,
                start_time=start,
                end_time=end,
                status=BookingStatus.PENDING,
                pickup_location=request.pickup_location,
                dropoff_location=request.dropoff_location,
                base_price=quote.base_price,
                insurance_amount=quote.insurance_amount,
                tax_amount=quote.tax_amount,
                discount_amount=quote.discount_amount,
                total_amount=quote.total_amount,
                deposit_amount=quote.deposit_amount,
            )
            self.db.add(booking)
            await self.db.flush()

            applied = list(zip(promotions, quote.applied_discounts))
            for promotion, amount in applied:
                self.db.add(PromotionBooking(promotion_id=promotion.id, booking_id=booking.id, discount_amount=amount))

            self.notifications.notify(
                user_id=renter_id,
                type=NotificationType.BOOKING_CREATED,
                title="Booking created",
                message=f"Your booking for {vehicle.brand} {vehicle.model} is pending confirmation.",
                data={"bookingId": str(booking.id), "vehicleId": str(vehicle.id)},
            )

        metrics_collector.record_booking_created(str(request.station_id))
        logger.info(
            "Booking created successfully",
            extra={
                "booking_id": str(booking.id),
                "renter_id": str(renter_id),
                "vehicle_id": str(request.vehicle_id),
                "station_id": str(request.station_id),
                "start_time": start.isoformat(),
                "end_time": end.isoformat(),
                "total_amount": quote.total_amount,
                "promotions": [promotion.code for promotion, _ in applied],
            }
        )
        return BookingReceipt(booking=booking, quote=quote, promotions=applied)

    def _reject(self, code: str, request: CreateBookingRequest, reason: str) -> None:
        metrics_collector.record_booking_conflict(code)
        logger.warning(
            "Booking creation rejected",
            extra={
                "code": code,
                "reason": reason,
                "vehicle_id": str(request.vehicle_id),
                "start_time": request.start_time.isoformat(),
                "end_time": request.end_time.isoformat(),
            }
        )

    async def _finish(
        self,
        booking: Booking,
        details: Optional[CompleteBookingRequest] = None,
    ) -> Vehicle:
        """
        Mark a booking COMPLETED and free its vehicle.

        Writes only to the session; the caller's unit of work commits
        both changes together with whatever triggered the completion.
        """
        details = details or CompleteBookingRequest()

        vehicle = await self.vehicle_service.get_vehicle_with_lock(booking.vehicle_id)
        if vehicle is None:
            raise NotFoundError(resource_type="vehicle", resource_id=booking.vehicle_id)

        now = utcnow()
        booking.status = BookingStatus.COMPLETED
        booking.actual_end_time = now
        if details.return_odometer is not None:
            booking.return_odometer = details.return_odometer
        if details.notes:
            booking.notes = details.notes

        vehicle.status = VehicleStatus.AVAILABLE
        if details.battery_level is not None:
            vehicle.battery_level = details.battery_level

        self.db.add(RentalHistory(
            booking_id=booking.id,
            user_id=booking.user_id,
            distance=details.return_odometer,
            rating=details.rating,
            feedback=details.notes,
        ))
        self.notifications.notify(
            user_id=booking.user_id,
            type=NotificationType.BOOKING_COMPLETED,
            title="Rental completed",
            message="Thank you for riding with us. Your rental has been completed.",
            data={"bookingId": str(booking.id)},
        )
        return vehicle

    async def complete_booking(
        self,
        actor_id: UUID,
        booking_id: UUID,
        details: Optional[CompleteBookingRequest] = None,
    ) -> Booking:
        """
        Complete a booking on behalf of its renter.

        Booking COMPLETED and vehicle AVAILABLE commit together or not at all.

        Raises:
            NotFoundError: If the booking does not exist
            AuthorizationError: If the actor does not own the booking
            InvalidStateError: If the booking is not PENDING or CONFIRMED
        """
        async with atomic(self.db):
            booking = await self.get_booking_by_id_or_raise(booking_id)
            if booking.user_id != actor_id:
                logger.warning(
                    "Booking completion refused - not the owner",
                    extra={"booking_id": str(booking_id), "actor_id": str(actor_id)}
                )
                raise AuthorizationError("Only the renter who made the booking can complete it")

            await self.vehicle_service.get_vehicle_with_lock(booking.vehicle_id)
            booking = await self._lock_booking(booking_id)
            if booking.status not in OCCUPYING_STATUSES:
                logger.warning(
                    "Booking completion refused - invalid state",
                    extra={"booking_id": str(booking_id), "status": booking.status}
                )
                raise InvalidStateError("booking", booking_id, booking.status, "complete")

            await self._finish(booking, details)

        metrics_collector.record_booking_completed("manual")
        logger.info(
            "Booking completed",
            extra={"booking_id": str(booking_id), "vehicle_id": str(booking.vehicle_id), "trigger": "manual"}
        )
        return booking

    async def complete_for_payment(self, booking_id: UUID) -> bool:
        """
        Complete a booking because one of its payments succeeded.

        Must be called inside the unit of work that records the payment as
        PAID. Bookings that are no longer PENDING or CONFIRMED are left alone.

        Returns:
            True if the booking was completed
        """
        booking = await self.get_booking_by_id_or_raise(booking_id)
        await self.vehicle_service.get_vehicle_with_lock(booking.vehicle_id)
        booking = await self._lock_booking(booking_id)
        if booking.status not in OCCUPYING_STATUSES:
            logger.info(
                "Payment recorded for booking not awaiting completion",
                extra={"booking_id": str(booking_id), "status": booking.status}
            )
            return False

        await self._finish(booking)
        metrics_collector.record_booking_completed("payment")
        logger.info(
            "Booking completed",
            extra={"booking_id": str(booking_id), "vehicle_id": str(booking.vehicle_id), "trigger": "payment"}
        )
        return True

    async def confirm_booking(self, booking_id: UUID) -> Booking:
        """
        Staff confirmation: PENDING -> CONFIRMED. The vehicle stays RESERVED.

        Raises:
            NotFoundError: If the booking does not exist
            InvalidStateError: If the booking is not PENDING
        """
        async with atomic(self.db):
            booking = await self.get_booking_by_id_or_raise(booking_id)
            await self.vehicle_service.get_vehicle_with_lock(booking.vehicle_id)
            booking = await self._lock_booking(booking_id)
            if booking.status != BookingStatus.PENDING:
                raise InvalidStateError("booking", booking_id, booking.status, "confirm")

            booking.status = BookingStatus.CONFIRMED
            self.notifications.notify(
                user_id=booking.user_id,
                type=NotificationType.BOOKING_CONFIRMED,
                title="Booking confirmed",
                message="Your booking has been confirmed by the station staff.",
                data={"bookingId": str(booking.id)},
            )

        logger.info("Booking confirmed", extra={"booking_id": str(booking_id)})
        return booking

    async def cancel_booking(
        self,
        actor: CurrentUser,
        booking_id: UUID,
        request: Optional[CancelBookingRequest] = None,
    ) -> Booking:
        """
        Cancel a PENDING or CONFIRMED booking and release its vehicle.

        Raises:
            NotFoundError: If the booking does not exist
            AuthorizationError: If a renter tries to cancel someone else's booking
            InvalidStateError: If the booking is not PENDING or CONFIRMED
        """
        reason = request.reason if request else None

        async with atomic(self.db):
            booking = await self.get_booking_by_id_or_raise(booking_id)
            self.ensure_can_access(actor, booking)

            vehicle = await self.vehicle_service.get_vehicle_with_lock(booking.vehicle_id)
            booking = await self._lock_booking(booking_id)
            if booking.status not in OCCUPYING_STATUSES:
                raise InvalidStateError("booking", booking_id, booking.status, "cancel")

            booking.status = BookingStatus.CANCELLED
            if reason:
                booking.notes = f"Cancelled: {reason}"
            if vehicle is not None and vehicle.status == VehicleStatus.RESERVED:
                vehicle.status = VehicleStatus.AVAILABLE

            self.notifications.notify(
                user_id=booking.user_id,
                type=NotificationType.BOOKING_CANCELLED,
                title="Booking cancelled",
                message=f"Your booking has been cancelled.{' Reason: ' + reason if reason else ''}",
                data={"bookingId": str(booking.id), "cancelledBy": str(actor.id)},
            )

        metrics_collector.record_booking_cancelled()
        logger.info(
            "Booking cancelled",
            extra={"booking_id": str(booking_id), "actor_id": str(actor.id), "actor_role": actor.role.value}
        )
        return booking

    async def list_bookings(
        self,
        status: Optional[BookingStatus] = None,
        user_id: Optional[UUID] = None,
        vehicle_id: Optional[UUID] = None,
        station_id: Optional[UUID] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[Sequence[Booking], int]:
        """List bookings with filters, newest first. Dates filter on start_time."""
        if start_date and end_date and start_date > end_date:
            raise ValidationError("startDate must be before or equal to endDate")

        conditions = []
        if status:
            conditions.append(Booking.status == status)
        if user_id:
            conditions.append(Booking.user_id == user_id)
        if vehicle_id:
            conditions.append(Booking.vehicle_id == vehicle_id)
        if station_id:
            conditions.append(Booking.station_id == station_id)
        if start_date:
            conditions.append(Booking.start_time >= start_date)
        if end_date:
            conditions.append(Booking.start_time <= end_date)

        total = await self.db.scalar(select(func.count()).select_from(Booking).where(*conditions))
        result = await self.db.execute(
            select(Booking)
            .where(*conditions)
            .order_by(Booking.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return result.scalars().all(), total or 0

    async def list_user_bookings(
        self,
        actor: CurrentUser,
        user_id: UUID,
        status: Optional[BookingStatus] = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[Sequence[Booking], int]:
        """
        List one user's bookings.

        Raises:
            AuthorizationError: If a renter asks for another user's bookings
            NotFoundError: If the user does not exist
        """
        if not actor.is_staff and actor.id != user_id:
            raise AuthorizationError("You can only view your own bookings")

        user = await self.db.get(User, user_id)
        if not user or user.soft_deleted:
            raise NotFoundError(resource_type="user", resource_id=user_id)

        return await self.list_bookings(status=status, user_id=user_id, page=page, limit=limit)

    async def get_analytics(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        top: int = 10,
    ) -> dict:
        """Booking counts, revenue and most booked vehicles and stations."""
        if start_date and end_date and start_date > end_date:
            raise ValidationError("startDate must be before or equal to endDate")

        conditions = []
        if start_date:
            conditions.append(Booking.start_time >= start_date)
        if end_date:
            conditions.append(Booking.start_time <= end_date)

        status_rows = await self.db.execute(
            select(Booking.status, func.count()).where(*conditions).group_by(Booking.status)
        )
        by_status = {status.value: 0 for status in BookingStatus}
        for status, count in status_rows.all():
            by_status[str(status)] = count

        revenue = await self.db.scalar(
            select(func.coalesce(func.sum(Payment.amount - Payment.refund_amount), 0))
            .join(Booking, Booking.id == Payment.booking_id)
            .where(
                Booking.status == BookingStatus.COMPLETED,
                Payment.status.in_((PaymentStatus.PAID, PaymentStatus.PARTIALLY_REFUNDED)),
                *conditions,
            )
        )

        async def _top(column):
            rows = await self.db.execute(
                select(column, func.count().label("booking_count"))
                .where(*conditions)
                .group_by(column)
                .order_by(func.count().desc())
                .limit(top)
            )
            return [{"id": key, "booking_count": count} for key, count in rows.all()]

        return {
            "total_bookings": sum(by_status.values()),
            "by_status": by_status,
            "total_revenue": int(revenue or 0),
            "top_vehicles": await _top(Booking.vehicle_id),
            "top_stations": await _top(Booking.station_id),
        }
