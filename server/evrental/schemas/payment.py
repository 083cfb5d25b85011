"""Payment-related Pydantic schemas."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.payment import PaymentMethod, PaymentStatus, PaymentType
from .common import CamelModel


class CreateCashPaymentRequest(CamelModel):
    """Request schema for recording a cash payment."""

    booking_id: UUID
    amount: int = Field(..., gt=0, description="Amount in minor units")
    payment_type: PaymentType = PaymentType.RENTAL_FEE
    notes: Optional[str] = Field(None, max_length=500)


class CreateGatewayPaymentRequest(CamelModel):
    """Request schema for starting a gateway checkout."""

    booking_id: UUID
    amount: int = Field(..., gt=0, description="Amount in minor units")
    payment_type: PaymentType = PaymentType.RENTAL_FEE
    description: Optional[str] = Field(None, max_length=25, description="Shown on the checkout page")


class RefundPaymentRequest(CamelModel):
    """Request schema for refunding part or all of a payment."""

    amount: int = Field(..., gt=0, description="Refund in minor units")
    reason: Optional[str] = Field(None, max_length=500)


class GatewayWebhookData(BaseModel):
    """Transaction details inside a gateway webhook. Keys are the gateway's own."""

    model_config = {"extra": "allow"}

    orderCode: int
    amount: int
    description: Optional[str] = None
    code: str = Field(..., description='"00" on success')
    desc: Optional[str] = None


class GatewayWebhookRequest(BaseModel):
    """Webhook body posted by the payment gateway."""

    code: str
    desc: Optional[str] = None
    success: Optional[bool] = None
    data: GatewayWebhookData
    signature: str

    def signed_fields(self) -> dict[str, Any]:
        """The data fields covered by the signature, exactly as received."""
        return self.data.model_dump(exclude_unset=True)


class PaymentOut(CamelModel):
    """Payment response schema."""

    id: UUID
    booking_id: UUID
    user_id: UUID
    amount: int
    refund_amount: int
    method: PaymentMethod
    payment_type: PaymentType
    status: PaymentStatus
    transaction_id: str
    checkout_url: Optional[str] = None
    paid_at: Optional[datetime] = None
    refund_reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime


class GatewayCheckoutOut(CamelModel):
    """Checkout link returned when a gateway payment starts."""

    payment_id: UUID
    order_code: int
    checkout_url: str
