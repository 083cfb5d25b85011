"""Payment service: cash and gateway payments, webhooks and refunds."""

import logging
import secrets
import time
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import atomic
from ..core.dependencies import CurrentUser
from ..core.exceptions import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from ..core.observability import metrics_collector
from ..core.timeutils import utcnow
from ..models.booking import OCCUPYING_STATUSES, Booking, BookingStatus
from ..models.notification import NotificationType
from ..models.payment import REFUNDABLE_STATUSES, Payment, PaymentMethod, PaymentStatus
from ..schemas.payment import (
    CreateCashPaymentRequest,
    CreateGatewayPaymentRequest,
    GatewayWebhookRequest,
    RefundPaymentRequest,
)
from .booking_service import BookingService
from .notification_service import NotificationService
from .payment_gateway import CheckoutLink, PaymentGateway

logger = logging.getLogger(__name__)

GATEWAY_SUCCESS_CODE = "00"
CLOSED_BOOKING_STATUSES = (BookingStatus.COMPLETED, BookingStatus.CANCELLED)


def generate_order_code() -> int:
    """Numeric order code for the gateway: millisecond clock plus three random digits."""
    return int(time.time() * 1000) % 10**12 * 1000 + secrets.randbelow(1000)


class PaymentService:
    """Service for payment-related operations."""

    def __init__(self, db: AsyncSession, gateway: Optional[PaymentGateway] = None):
        self.db = db
        self.gateway = gateway or PaymentGateway.from_settings()
        self.booking_service = BookingService(db)
        self.notifications = NotificationService(db)

    async def get_payment_by_id_or_raise(self, payment_id: UUID) -> Payment:
        """
        Get payment by ID or raise NotFoundError.

        Raises:
            NotFoundError: If the payment does not exist
        """
        payment = await self.db.get(Payment, payment_id)
        if not payment:
            raise NotFoundError(resource_type="payment", resource_id=payment_id)
        return payment

    async def _lock_payment(self, payment_id: UUID) -> Payment:
        result = await self.db.execute(
            select(Payment)
            .where(Payment.id == payment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        payment = result.scalar_one_or_none()
        if not payment:
            raise NotFoundError(resource_type="payment", resource_id=payment_id)
        return payment

    async def _get_accessible_booking(self, actor: CurrentUser, booking_id: UUID) -> Booking:
        booking = await self.booking_service.get_booking_by_id_or_raise(booking_id)
        if not actor.is_staff and booking.user_id != actor.id:
            raise AuthorizationError("You can only pay for your own bookings")
        return booking

    async def create_cash_payment(self, actor: CurrentUser, request: CreateCashPaymentRequest) -> Payment:
        """
        Record a pending cash payment for a booking.

        Raises:
            NotFoundError: If the booking does not exist
            AuthorizationError: If a renter pays for someone else's booking
            InvalidStateError: If the booking is not PENDING or CONFIRMED
        """
        async with atomic(self.db):
            booking = await self._get_accessible_booking(actor, request.booking_id)
            if booking.status not in OCCUPYING_STATUSES:
                raise InvalidStateError("booking", booking.id, booking.status, "pay for")

            payment = Payment(
                booking_id=booking.id,
                user_id=booking.user_id,
                amount=request.amount,
                refund_amount=0,
                method=PaymentMethod.CASH,
                payment_type=request.payment_type,
                status=PaymentStatus.PENDING,
                transaction_id=f"CASH-{secrets.token_hex(8).upper()}",
                notes=request.notes,
            )
            self.db.add(payment)

        metrics_collector.record_payment(PaymentMethod.CASH.value, PaymentStatus.PENDING.value)
        logger.info(
            "Cash payment created",
            extra={"payment_id": str(payment.id), "booking_id": str(booking.id), "amount": payment.amount}
        )
        return payment

    async def _mark_paid(self, payment: Payment) -> bool:
        """Set a payment PAID and complete its booking. Runs inside the caller's unit of work."""
        payment.status = PaymentStatus.PAID
        payment.paid_at = utcnow()
        completed = await self.booking_service.complete_for_payment(payment.booking_id)

        self.notifications.notify(
            user_id=payment.user_id,
            type=NotificationType.PAYMENT_RECEIVED,
            title="Payment received",
            message=f"We received your payment of {payment.amount}.",
            data={"paymentId": str(payment.id), "bookingId": str(payment.booking_id)},
        )
        return completed

    async def confirm_cash_payment(self, payment_id: UUID) -> Payment:
        """
        Staff confirmation that cash was received.

        The payment becomes PAID and, if the booking is still PENDING or
        CONFIRMED, the booking completes in the same unit of work.

        Raises:
            NotFoundError: If the payment does not exist
            InvalidStateError: If the payment is not a pending cash payment
        """
        async with atomic(self.db):
            payment = await self.get_payment_by_id_or_raise(payment_id)
            booking = await self.booking_service.get_booking_by_id_or_raise(payment.booking_id)
            # Lock order: vehicle, booking, then payment
            await self.booking_service.vehicle_service.get_vehicle_with_lock(booking.vehicle_id)
            payment = await self._lock_payment(payment_id)

            if payment.method != PaymentMethod.CASH or payment.status != PaymentStatus.PENDING:
                raise InvalidStateError("payment", payment_id, payment.status, "confirm")

            completed = await self._mark_paid(payment)

        metrics_collector.record_payment(PaymentMethod.CASH.value, PaymentStatus.PAID.value)
        logger.info(
            "Cash payment confirmed",
            extra={"payment_id": str(payment_id), "booking_id": str(payment.booking_id), "booking_completed": completed}
        )
        return payment

    async def create_gateway_payment(
        self,
        actor: CurrentUser,
        request: CreateGatewayPaymentRequest,
    ) -> tuple[Payment, CheckoutLink]:
        """
        Start a gateway checkout for a booking.

        The gateway is asked for a link before anything is written, so a
        gateway failure leaves no payment behind. The booking is checked
        again under its row lock before the payment is inserted.

        Raises:
            NotFoundError: If the booking does not exist
            AuthorizationError: If a renter pays for someone else's booking
            InvalidStateError: If the booking is COMPLETED or CANCELLED
            PaymentGatewayError: If the gateway call fails
        """
        async with atomic(self.db):
            booking = await self._get_accessible_booking(actor, request.booking_id)
            if booking.status in CLOSED_BOOKING_STATUSES:
                raise InvalidStateError("booking", booking.id, booking.status, "pay for")

        order_code = generate_order_code()
        description = request.description or f"EV{order_code % 10**8}"
        link = await self.gateway.create_payment_link(
            order_code=order_code,
            amount=request.amount,
            description=description,
            return_url=f"{settings.public_base_url}/payment/success?orderCode={order_code}",
            cancel_url=f"{settings.public_base_url}/payment/cancel?orderCode={order_code}",
        )

        async with atomic(self.db):
            # The booking may have closed while the gateway was answering
            await self.booking_service.vehicle_service.get_vehicle_with_lock(booking.vehicle_id)
            booking = await self.booking_service._lock_booking(booking.id)
            if booking.status in CLOSED_BOOKING_STATUSES:
                logger.warning(
                    "Gateway payment abandoned - booking closed during checkout",
                    extra={"booking_id": str(booking.id), "status": booking.status, "order_code": order_code}
                )
                raise InvalidStateError("booking", booking.id, booking.status, "pay for")

            payment = Payment(
                booking_id=booking.id,
                user_id=booking.user_id,
                amount=request.amount,
                refund_amount=0,
                method=PaymentMethod.GATEWAY,
                payment_type=request.payment_type,
                status=PaymentStatus.PENDING,
                transaction_id=str(order_code),
                checkout_url=link.checkout_url,
            )
            self.db.add(payment)

        metrics_collector.record_payment(PaymentMethod.GATEWAY.value, PaymentStatus.PENDING.value)
        logger.info(
            "Gateway payment created",
            extra={"payment_id": str(payment.id), "booking_id": str(booking.id), "order_code": order_code}
        )
        return payment, link

    async def handle_gateway_webhook(self, body: GatewayWebhookRequest) -> Payment:
        """
        Apply a gateway webhook to its payment.

        Redelivery of a webhook for a payment that is no longer PENDING
        changes nothing.

        Raises:
            ValidationError: If the signature does not match
            NotFoundError: If no payment has the order code
        """
        if not self.gateway.verify_webhook(body.signed_fields(), body.signature):
            logger.warning("Webhook signature mismatch", extra={"order_code": body.data.orderCode})
            raise ValidationError("Invalid webhook signature", code="INVALID_SIGNATURE")

        transaction_id = str(body.data.orderCode)

        async with atomic(self.db):
            payment = await self.db.scalar(select(Payment).where(Payment.transaction_id == transaction_id))
            if not payment:
                raise NotFoundError(resource_type="payment", resource_id=transaction_id)

            booking = await self.booking_service.get_booking_by_id_or_raise(payment.booking_id)
            await self.booking_service.vehicle_service.get_vehicle_with_lock(booking.vehicle_id)
            payment = await self._lock_payment(payment.id)

            if payment.status != PaymentStatus.PENDING:
                logger.info(
                    "Webhook for settled payment ignored",
                    extra={"payment_id": str(payment.id), "status": payment.status}
                )
                return payment

            succeeded = body.data.code == GATEWAY_SUCCESS_CODE
            amount_mismatch = succeeded and body.data.amount != payment.amount
            if succeeded and not amount_mismatch:
                outcome = PaymentStatus.PAID
                completed = await self._mark_paid(payment)
            else:
                outcome = PaymentStatus.FAILED
                completed = False
                payment.status = outcome
                if amount_mismatch:
                    logger.warning(
                        "Webhook amount does not match payment",
                        extra={
                            "payment_id": str(payment.id),
                            "order_code": body.data.orderCode,
                            "expected_amount": payment.amount,
                            "received_amount": body.data.amount,
                        }
                    )
                    payment.notes = f"Amount mismatch: expected {payment.amount}, received {body.data.amount}"
                else:
                    payment.notes = body.data.desc or body.desc
                self.notifications.notify(
                    user_id=payment.user_id,
                    type=NotificationType.PAYMENT_FAILED,
                    title="Payment failed",
                    message="Your payment could not be completed. Please try again.",
                    data={"paymentId": str(payment.id), "bookingId": str(payment.booking_id)},
                )

        metrics_collector.record_payment(PaymentMethod.GATEWAY.value, outcome.value)
        logger.info(
            "Gateway webhook processed",
            extra={
                "payment_id": str(payment.id),
                "order_code": body.data.orderCode,
                "gateway_code": body.data.code,
                "booking_completed": completed,
            }
        )
        return payment

    async def refund_payment(self, payment_id: UUID, request: RefundPaymentRequest) -> Payment:
        """
        Refund part or all of a paid payment.

        Raises:
            NotFoundError: If the payment does not exist
            InvalidStateError: If the payment is not PAID or PARTIALLY_REFUNDED
            ValidationError: If the refund exceeds what is left to refund
        """
        async with atomic(self.db):
            payment = await self._lock_payment(payment_id)
            if payment.status not in REFUNDABLE_STATUSES:
                raise InvalidStateError("payment", payment_id, payment.status, "refund")

            refundable = payment.amount - payment.refund_amount
            if request.amount > refundable:
                raise ValidationError(
                    f"Refund of {request.amount} exceeds the refundable amount {refundable}",
                    violations=[{"path": "amount", "message": f"must be at most {refundable}"}],
                )

            payment.refund_amount += request.amount
            payment.status = (
                PaymentStatus.REFUNDED if payment.refund_amount == payment.amount
                else PaymentStatus.PARTIALLY_REFUNDED
            )
            if request.reason:
                payment.refund_reason = request.reason

            self.notifications.notify(
                user_id=payment.user_id,
                type=NotificationType.PAYMENT_REFUNDED,
                title="Payment refunded",
                message=f"{request.amount} has been refunded to you.",
                data={"paymentId": str(payment.id), "amount": request.amount},
            )

        metrics_collector.record_refund(request.amount)
        logger.info(
            "Payment refunded",
            extra={"payment_id": str(payment_id), "refunded": request.amount, "status": payment.status.value}
        )
        return payment

    async def get_payment(self, actor: CurrentUser, payment_id: UUID) -> Payment:
        """Get a payment visible to the actor."""
        payment = await self.get_payment_by_id_or_raise(payment_id)
        if not actor.is_staff and payment.user_id != actor.id:
            raise AuthorizationError("You can only view your own payments")
        return payment

    async def list_booking_payments(self, actor: CurrentUser, booking_id: UUID) -> Sequence[Payment]:
        """All payments of a booking, oldest first."""
        booking = await self.booking_service.get_booking_by_id_or_raise(booking_id)
        self.booking_service.ensure_can_access(actor, booking)

        result = await self.db.execute(
            select(Payment).where(Payment.booking_id == booking_id).order_by(Payment.created_at)
        )
        return result.scalars().all()
