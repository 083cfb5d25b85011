"""Unit tests for payment service."""

from uuid import uuid4

import pytest
from sqlalchemy import select

from evrental.core.exceptions import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from evrental.models import Booking, BookingStatus, Payment, PaymentMethod, PaymentStatus, Vehicle, VehicleStatus
from evrental.schemas.booking import CreateBookingRequest
from evrental.schemas.payment import (
    CreateCashPaymentRequest,
    CreateGatewayPaymentRequest,
    GatewayWebhookRequest,
    RefundPaymentRequest,
)
from evrental.services.booking_service import BookingService
from evrental.services.payment_gateway import CheckoutLink, GatewayMode, PaymentGateway
from evrental.services.payment_service import PaymentService


@pytest.fixture
def create_booking(test_session, station, vehicle, booking_window):
    """Book the shared vehicle for three hours tomorrow."""

    async def _create_booking(renter):
        start, end = booking_window(0, 3)
        receipt = await BookingService(test_session).create_booking(
            renter.id,
            CreateBookingRequest(
                vehicle_id=vehicle.id,
                station_id=station.id,
                start_time=start,
                end_time=end,
                pickup_location="District 1 Central",
            ),
        )
        return receipt.booking

    return _create_booking


def webhook(gateway, order_code: int, amount: int, code: str = "00") -> GatewayWebhookRequest:
    """A gateway callback signed with the gateway's checksum key."""
    data = {
        "orderCode": order_code,
        "amount": amount,
        "description": f"EV{order_code % 10**8}",
        "code": code,
        "desc": "success" if code == "00" else "declined",
    }
    return GatewayWebhookRequest(
        code="00",
        desc="success",
        success=True,
        data=data,
        signature=gateway.sign_data(data),
    )


@pytest.mark.asyncio
async def test_cash_payment_completes_booking(test_session, gateway, renter, staff_user, vehicle, create_booking, as_actor):
    """Test confirming cash completes the booking and frees the vehicle in one step."""
    booking = await create_booking(renter)
    service = PaymentService(test_session, gateway)

    payment = await service.create_cash_payment(
        as_actor(renter), CreateCashPaymentRequest(booking_id=booking.id, amount=booking.total_amount)
    )
    assert payment.status == PaymentStatus.PENDING
    assert payment.method == PaymentMethod.CASH
    assert payment.transaction_id.startswith("CASH-")
    assert payment.user_id == renter.id

    payment = await service.confirm_cash_payment(payment.id)

    assert payment.status == PaymentStatus.PAID
    assert payment.paid_at is not None
    assert (await test_session.get(Booking, booking.id)).status == BookingStatus.COMPLETED
    assert (await test_session.get(Vehicle, vehicle.id)).status == VehicleStatus.AVAILABLE


@pytest.mark.asyncio
async def test_confirm_cash_payment_twice(test_session, gateway, renter, create_booking, as_actor):
    booking = await create_booking(renter)
    service = PaymentService(test_session, gateway)
    payment = await service.create_cash_payment(
        as_actor(renter), CreateCashPaymentRequest(booking_id=booking.id, amount=1000)
    )
    payment_id = payment.id
    await service.confirm_cash_payment(payment_id)

    with pytest.raises(InvalidStateError):
        await service.confirm_cash_payment(payment_id)


@pytest.mark.asyncio
async def test_cash_payment_for_closed_booking(test_session, gateway, renter, create_booking, as_actor):
    """Test cash cannot be recorded against a completed booking."""
    booking = await create_booking(renter)
    booking_id, actor = booking.id, as_actor(renter)
    await BookingService(test_session).complete_booking(renter.id, booking_id)
    service = PaymentService(test_session, gateway)

    with pytest.raises(InvalidStateError):
        await service.create_cash_payment(actor, CreateCashPaymentRequest(booking_id=booking_id, amount=1000))


@pytest.mark.asyncio
async def test_cash_payment_for_other_renters_booking(test_session, gateway, renter, other_renter, create_booking, as_actor):
    booking = await create_booking(renter)
    service = PaymentService(test_session, gateway)

    with pytest.raises(AuthorizationError):
        await service.create_cash_payment(
            as_actor(other_renter), CreateCashPaymentRequest(booking_id=booking.id, amount=1000)
        )


@pytest.mark.asyncio
async def test_gateway_payment_checkout_link(test_session, gateway, renter, create_booking, as_actor):
    """Test a gateway checkout stores a pending payment keyed by the order code."""
    booking = await create_booking(renter)
    service = PaymentService(test_session, gateway)

    payment, link = await service.create_gateway_payment(
        as_actor(renter), CreateGatewayPaymentRequest(booking_id=booking.id, amount=354000)
    )

    assert payment.status == PaymentStatus.PENDING
    assert payment.method == PaymentMethod.GATEWAY
    assert payment.transaction_id == str(link.order_code)
    assert payment.checkout_url == link.checkout_url
    assert link.checkout_url == f"https://mock-gateway.local/web/mock-{link.order_code}"


@pytest.mark.asyncio
async def test_gateway_webhook_success_completes_booking(test_session, gateway, renter, vehicle, create_booking, as_actor):
    """Test a successful webhook marks the payment PAID and completes the booking."""
    booking = await create_booking(renter)
    service = PaymentService(test_session, gateway)
    payment, link = await service.create_gateway_payment(
        as_actor(renter), CreateGatewayPaymentRequest(booking_id=booking.id, amount=354000)
    )

    updated = await service.handle_gateway_webhook(webhook(gateway, link.order_code, 354000))

    assert updated.id == payment.id
    assert updated.status == PaymentStatus.PAID
    assert (await test_session.get(Booking, booking.id)).status == BookingStatus.COMPLETED
    assert (await test_session.get(Vehicle, vehicle.id)).status == VehicleStatus.AVAILABLE


@pytest.mark.asyncio
async def test_gateway_webhook_redelivery_is_ignored(test_session, gateway, renter, create_booking, as_actor):
    """Test a second delivery of the same result changes nothing."""
    booking = await create_booking(renter)
    service = PaymentService(test_session, gateway)
    _, link = await service.create_gateway_payment(
        as_actor(renter), CreateGatewayPaymentRequest(booking_id=booking.id, amount=5000)
    )

    first = await service.handle_gateway_webhook(webhook(gateway, link.order_code, 5000))
    paid_at = first.paid_at

    # A late failure notice must not undo the payment
    second = await service.handle_gateway_webhook(webhook(gateway, link.order_code, 5000, code="01"))
    assert second.status == PaymentStatus.PAID
    assert second.paid_at == paid_at


@pytest.mark.asyncio
async def test_gateway_webhook_failure(test_session, gateway, renter, vehicle, create_booking, as_actor):
    """Test a failed payment leaves the booking and its vehicle untouched."""
    booking = await create_booking(renter)
    service = PaymentService(test_session, gateway)
    _, link = await service.create_gateway_payment(
        as_actor(renter), CreateGatewayPaymentRequest(booking_id=booking.id, amount=5000)
    )

    payment = await service.handle_gateway_webhook(webhook(gateway, link.order_code, 5000, code="01"))

    assert payment.status == PaymentStatus.FAILED
    assert payment.notes == "declined"
    assert (await test_session.get(Booking, booking.id)).status == BookingStatus.PENDING
    assert (await test_session.get(Vehicle, vehicle.id)).status == VehicleStatus.RESERVED


@pytest.mark.asyncio
async def test_gateway_webhook_amount_mismatch(test_session, gateway, renter, vehicle, create_booking, as_actor):
    """Test a success code for the wrong amount fails the payment instead of completing the booking."""
    booking = await create_booking(renter)
    service = PaymentService(test_session, gateway)
    _, link = await service.create_gateway_payment(
        as_actor(renter), CreateGatewayPaymentRequest(booking_id=booking.id, amount=5000)
    )

    payment = await service.handle_gateway_webhook(webhook(gateway, link.order_code, 4000))

    assert payment.status == PaymentStatus.FAILED
    assert payment.paid_at is None
    assert payment.notes == "Amount mismatch: expected 5000, received 4000"
    assert (await test_session.get(Booking, booking.id)).status == BookingStatus.PENDING
    assert (await test_session.get(Vehicle, vehicle.id)).status == VehicleStatus.RESERVED


class CancellingGateway(PaymentGateway):
    """Mock gateway that cancels the booking while the checkout link is being created."""

    def __init__(self, session, actor, booking_id, **kwargs):
        super().__init__(**kwargs)
        self.session = session
        self.actor = actor
        self.booking_id = booking_id

    async def create_payment_link(self, **kwargs) -> CheckoutLink:
        await BookingService(self.session).cancel_booking(self.actor, self.booking_id)
        return await super().create_payment_link(**kwargs)


@pytest.mark.asyncio
async def test_gateway_payment_for_booking_cancelled_during_checkout(test_session, renter, create_booking, as_actor):
    """Test no payment is stored when the booking is cancelled while the gateway is answering."""
    booking = await create_booking(renter)
    booking_id = booking.id
    actor = as_actor(renter)
    gateway = CancellingGateway(test_session, actor, booking_id, mode=GatewayMode.MOCK, checksum_key="test-checksum-key")
    service = PaymentService(test_session, gateway)

    with pytest.raises(InvalidStateError):
        await service.create_gateway_payment(actor, CreateGatewayPaymentRequest(booking_id=booking_id, amount=5000))

    assert (await test_session.get(Booking, booking_id)).status == BookingStatus.CANCELLED
    stored = (await test_session.execute(select(Payment).where(Payment.booking_id == booking_id))).scalars().all()
    assert stored == []


@pytest.mark.asyncio
async def test_gateway_webhook_bad_signature(test_session, gateway, renter, create_booking, as_actor):
    booking = await create_booking(renter)
    service = PaymentService(test_session, gateway)
    _, link = await service.create_gateway_payment(
        as_actor(renter), CreateGatewayPaymentRequest(booking_id=booking.id, amount=5000)
    )

    body = webhook(gateway, link.order_code, 5000)
    body.signature = "0" * 64

    with pytest.raises(ValidationError) as exc_info:
        await service.handle_gateway_webhook(body)

    assert exc_info.value.code == "INVALID_SIGNATURE"


@pytest.mark.asyncio
async def test_gateway_webhook_unknown_order(test_session, gateway):
    service = PaymentService(test_session, gateway)

    with pytest.raises(NotFoundError):
        await service.handle_gateway_webhook(webhook(gateway, 999999, 5000))


@pytest.mark.asyncio
async def test_refund_partial_then_full(test_session, gateway, renter, create_booking, as_actor):
    """Test refunds accumulate until the payment is fully refunded."""
    booking = await create_booking(renter)
    service = PaymentService(test_session, gateway)
    payment = await service.create_cash_payment(
        as_actor(renter), CreateCashPaymentRequest(booking_id=booking.id, amount=10000)
    )
    payment_id = payment.id
    await service.confirm_cash_payment(payment_id)

    payment = await service.refund_payment(payment_id, RefundPaymentRequest(amount=4000, reason="Early return"))
    assert payment.status == PaymentStatus.PARTIALLY_REFUNDED
    assert payment.refund_amount == 4000
    assert payment.refund_reason == "Early return"

    with pytest.raises(ValidationError) as exc_info:
        await service.refund_payment(payment_id, RefundPaymentRequest(amount=7000))
    assert exc_info.value.details["violations"][0]["path"] == "amount"

    payment = await service.refund_payment(payment_id, RefundPaymentRequest(amount=6000))
    assert payment.status == PaymentStatus.REFUNDED
    assert payment.refund_amount == 10000

    with pytest.raises(InvalidStateError):
        await service.refund_payment(payment_id, RefundPaymentRequest(amount=1))


@pytest.mark.asyncio
async def test_refund_pending_payment(test_session, gateway, renter, create_booking, as_actor):
    booking = await create_booking(renter)
    service = PaymentService(test_session, gateway)
    payment = await service.create_cash_payment(
        as_actor(renter), CreateCashPaymentRequest(booking_id=booking.id, amount=10000)
    )

    with pytest.raises(InvalidStateError):
        await service.refund_payment(payment.id, RefundPaymentRequest(amount=1000))


@pytest.mark.asyncio
async def test_revenue_counts_net_of_refunds(test_session, gateway, renter, create_booking, as_actor):
    """Test analytics revenue is paid minus refunded on completed bookings."""
    booking = await create_booking(renter)
    service = PaymentService(test_session, gateway)
    payment = await service.create_cash_payment(
        as_actor(renter), CreateCashPaymentRequest(booking_id=booking.id, amount=10000)
    )
    await service.confirm_cash_payment(payment.id)
    await service.refund_payment(payment.id, RefundPaymentRequest(amount=2500))

    analytics = await BookingService(test_session).get_analytics()
    assert analytics["total_revenue"] == 7500


@pytest.mark.asyncio
async def test_list_booking_payments(test_session, gateway, renter, other_renter, staff_user, create_booking, as_actor):
    booking = await create_booking(renter)
    service = PaymentService(test_session, gateway)
    await service.create_cash_payment(as_actor(renter), CreateCashPaymentRequest(booking_id=booking.id, amount=1000))
    await service.create_gateway_payment(
        as_actor(renter), CreateGatewayPaymentRequest(booking_id=booking.id, amount=2000)
    )

    payments = await service.list_booking_payments(as_actor(staff_user), booking.id)
    assert [p.amount for p in payments] == [1000, 2000]

    with pytest.raises(AuthorizationError):
        await service.list_booking_payments(as_actor(other_renter), booking.id)

    with pytest.raises(NotFoundError):
        await service.get_payment(as_actor(renter), uuid4())
