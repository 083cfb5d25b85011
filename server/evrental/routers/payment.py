"""Payment router: cash, gateway checkout, webhook and refunds."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import CurrentUser, RequiredAuth, StaffOnly
from ..core.exceptions import ApiError
from ..core.responses import success_response
from ..schemas.payment import (
    CreateCashPaymentRequest,
    CreateGatewayPaymentRequest,
    GatewayCheckoutOut,
    GatewayWebhookRequest,
    PaymentOut,
    RefundPaymentRequest,
)
from ..services.payment_gateway import PaymentGateway, get_payment_gateway
from ..services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])

DB_DEPENDENCY = Depends(get_db)
GATEWAY_DEPENDENCY = Depends(get_payment_gateway)


@router.post("/cash", status_code=201)
async def create_cash_payment(
    request: CreateCashPaymentRequest,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
    gateway: PaymentGateway = GATEWAY_DEPENDENCY
) -> JSONResponse:
    payment = await PaymentService(db, gateway).create_cash_payment(user, request)
    return success_response({"payment": PaymentOut.model_validate(payment)}, "Cash payment recorded", status_code=201)


@router.post("/{payment_id}/confirm-cash")
async def confirm_cash_payment(
    payment_id: UUID,
    _: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY,
    gateway: PaymentGateway = GATEWAY_DEPENDENCY
) -> JSONResponse:
    """Mark a cash payment as received; completes the booking if it is still open."""
    payment = await PaymentService(db, gateway).confirm_cash_payment(payment_id)
    return success_response({"payment": PaymentOut.model_validate(payment)}, "Cash payment confirmed")


@router.post("/gateway", status_code=201)
async def create_gateway_payment(
    request: CreateGatewayPaymentRequest,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
    gateway: PaymentGateway = GATEWAY_DEPENDENCY
) -> JSONResponse:
    """Start a hosted checkout and return its link."""
    payment, link = await PaymentService(db, gateway).create_gateway_payment(user, request)
    checkout = GatewayCheckoutOut(payment_id=payment.id, order_code=link.order_code, checkout_url=link.checkout_url)
    return success_response(checkout, "Checkout link created", status_code=201)


@router.post("/gateway/webhook")
async def gateway_webhook(
    body: GatewayWebhookRequest,
    db: AsyncSession = DB_DEPENDENCY,
    gateway: PaymentGateway = GATEWAY_DEPENDENCY
) -> JSONResponse:
    """
    Payment result callback from the gateway.

    Authenticated by the body signature, not by a user token. Redelivery
    of an already processed result is acknowledged without changes.
    """
    try:
        payment = await PaymentService(db, gateway).handle_gateway_webhook(body)
        return success_response({"payment": PaymentOut.model_validate(payment)}, "Webhook processed")

    except ApiError:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in webhook processing",
            extra={"order_code": body.data.orderCode, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/{payment_id}/refund")
async def refund_payment(
    payment_id: UUID,
    request: RefundPaymentRequest,
    _: CurrentUser = StaffOnly,
    db: AsyncSession = DB_DEPENDENCY,
    gateway: PaymentGateway = GATEWAY_DEPENDENCY
) -> JSONResponse:
    payment = await PaymentService(db, gateway).refund_payment(payment_id, request)
    return success_response({"payment": PaymentOut.model_validate(payment)}, "Payment refunded")


@router.get("/booking/{booking_id}")
async def list_booking_payments(
    booking_id: UUID,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
    gateway: PaymentGateway = GATEWAY_DEPENDENCY
) -> JSONResponse:
    payments = await PaymentService(db, gateway).list_booking_payments(user, booking_id)
    return success_response({"payments": [PaymentOut.model_validate(payment) for payment in payments]})


@router.get("/{payment_id}")
async def get_payment(
    payment_id: UUID,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
    gateway: PaymentGateway = GATEWAY_DEPENDENCY
) -> JSONResponse:
    payment = await PaymentService(db, gateway).get_payment(user, payment_id)
    return success_response({"payment": PaymentOut.model_validate(payment)})
