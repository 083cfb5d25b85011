"""
Payment gateway client.

Creates checkout links and verifies webhook signatures. In ``mock`` mode no
network calls are made and checkout links are synthetic, which is what local
development and the test suite run against.
"""

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

import httpx

from ..core.config import settings
from ..core.exceptions import InternalServerError

logger = logging.getLogger(__name__)


class GatewayMode(str, Enum):
    """Gateway mode enumeration."""
    MOCK = "mock"
    LIVE = "live"


@dataclass(frozen=True)
class CheckoutLink:
    """Checkout link returned by the gateway for one order."""

    order_code: int
    checkout_url: str
    payment_link_id: Optional[str] = None


class PaymentGatewayError(InternalServerError):
    """The gateway could not be reached or refused the request."""

    def __init__(self, detail: str):
        super().__init__(detail=detail, code="PAYMENT_GATEWAY_ERROR")


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, dict)):
        return json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
    return str(value)


class PaymentGateway:
    """Client for the hosted-checkout payment gateway."""

    def __init__(
        self,
        mode: GatewayMode = GatewayMode.MOCK,
        base_url: str = "",
        client_id: str = "",
        api_key: str = "",
        checksum_key: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.mode = GatewayMode(mode)
        self.base_url = base_url.rstrip("/")
        self.client_id = client_id
        self.api_key = api_key
        self.checksum_key = checksum_key
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls) -> "PaymentGateway":
        return cls(
            mode=GatewayMode(settings.payment_gateway_mode),
            base_url=settings.payment_gateway_base_url,
            client_id=settings.payment_gateway_client_id,
            api_key=settings.payment_gateway_api_key,
            checksum_key=settings.payment_gateway_checksum_key,
            timeout=settings.payment_gateway_timeout_seconds,
        )

    def sign(self, message: str) -> str:
        """HMAC-SHA256 hex digest of message with the checksum key."""
        return hmac.new(self.checksum_key.encode(), message.encode(), hashlib.sha256).hexdigest()

    def sign_data(self, data: Mapping[str, Any]) -> str:
        """Sign a mapping as ``k=v&k=v`` with keys in sorted order."""
        message = "&".join(f"{key}={_stringify(data[key])}" for key in sorted(data))
        return self.sign(message)

    def verify_webhook(self, data: Mapping[str, Any], signature: str) -> bool:
        """Check a webhook signature over its data fields."""
        expected = self.sign_data(data)
        return hmac.compare_digest(expected, signature or "")

    async def create_payment_link(
        self,
        order_code: int,
        amount: int,
        description: str,
        return_url: str,
        cancel_url: str,
    ) -> CheckoutLink:
        """
        Ask the gateway for a checkout link.

        Raises:
            PaymentGatewayError: On transport failure, non-2xx response or a gateway error code
        """
        if self.mode == GatewayMode.MOCK:
            logger.debug("Mock checkout link created", extra={"order_code": order_code, "amount": amount})
            return CheckoutLink(
                order_code=order_code,
                checkout_url=f"{self.base_url or 'https://mock-gateway.local'}/web/mock-{order_code}",
                payment_link_id=f"mock-{order_code}",
            )

        payload = {
            "orderCode": order_code,
            "amount": amount,
            "description": description,
            "returnUrl": return_url,
            "cancelUrl": cancel_url,
        }
        payload["signature"] = self.sign(
            f"amount={amount}&cancelUrl={cancel_url}&description={description}"
            f"&orderCode={order_code}&returnUrl={return_url}"
        )
        headers = {"x-client-id": self.client_id, "x-api-key": self.api_key}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(f"{self.base_url}/v2/payment-requests", json=payload, headers=headers)
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(
                "Payment gateway request failed",
                extra={"order_code": order_code, "error": str(e)}
            )
            raise PaymentGatewayError(f"Payment gateway request failed: {e}") from e

        data = body.get("data") or {}
        if body.get("code") != "00" or not data.get("checkoutUrl"):
            logger.error(
                "Payment gateway rejected request",
                extra={"order_code": order_code, "gateway_code": body.get("code"), "gateway_desc": body.get("desc")}
            )
            raise PaymentGatewayError(f"Payment gateway rejected the request: {body.get('desc') or 'unknown error'}")

        return CheckoutLink(
            order_code=order_code,
            checkout_url=data["checkoutUrl"],
            payment_link_id=data.get("paymentLinkId"),
        )


def get_payment_gateway() -> PaymentGateway:
    """Dependency that provides the configured gateway client."""
    return PaymentGateway.from_settings()
