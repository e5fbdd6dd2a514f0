from abc import ABC, abstractmethod
from typing import Optional
import hashlib
import hmac
import logging
import os

import razorpay
import requests
from razorpay.errors import BadRequestError, ServerError, GatewayError as SDKGatewayError

logger = logging.getLogger(__name__)

PAYMENT_PROVIDER = os.getenv("PAYMENT_PROVIDER", "razorpay")
RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "rzp_test_key")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "rzp_test_secret")
RAZORPAY_WEBHOOK_SECRET = os.getenv("RAZORPAY_WEBHOOK_SECRET", RAZORPAY_KEY_SECRET)
RAZORPAY_API_URL = os.getenv("RAZORPAY_API_URL", "https://api.razorpay.com")

SDK_REJECTIONS = (BadRequestError, SDKGatewayError, ServerError)


class GatewayError(Exception):
    """The payment gateway could not be reached or rejected the call."""


def compute_signature(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def signatures_match(expected: str, received: Optional[str]) -> bool:
    if not received:
        return False
    return hmac.compare_digest(expected, received)


class BasePaymentProvider(ABC):
    """
    Interface of the external payment gateway.

    Order creation, capture and signing all happen on the gateway side; the
    adapter only moves data across and checks signatures it sends back.
    """

    key_id: str = ""

    @abstractmethod
    def create_order(self, amount: float, currency: str, receipt: str, notes: dict = None) -> dict:
        """Create a gateway order for `amount` in major units. Returns the gateway order."""

    @abstractmethod
    def fetch_payment(self, payment_id: str) -> dict:
        """Return the gateway's authoritative view of a payment."""

    @abstractmethod
    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Check the checkout signature over "<order_id>|<payment_id>"."""

    @abstractmethod
    def verify_webhook_signature(self, body: bytes, signature: str) -> bool:
        """Check the webhook signature over the exact raw request body."""


class RazorpayProvider(BasePaymentProvider):
    """Adapter over the official Razorpay SDK client."""

    def __init__(self, key_id: str = None, key_secret: str = None, webhook_secret: str = None,
                 base_url: str = None, client: razorpay.Client = None):
        self.key_id = key_id or RAZORPAY_KEY_ID
        self.key_secret = key_secret or RAZORPAY_KEY_SECRET
        self.webhook_secret = webhook_secret or RAZORPAY_WEBHOOK_SECRET
        self.client = client or razorpay.Client(
            auth=(self.key_id, self.key_secret),
            base_url=base_url or RAZORPAY_API_URL,
        )

    def _call(self, action: str, func, *args, **kwargs) -> dict:
        try:
            return func(*args, **kwargs)
        except SDK_REJECTIONS as exc:
            logger.error("Razorpay %s rejected: %s", action, exc)
            raise GatewayError(f"Payment gateway rejected the request: {exc}") from exc
        except requests.RequestException as exc:
            logger.error("Razorpay %s unreachable: %s", action, exc)
            raise GatewayError(f"Cannot reach payment gateway: {exc}") from exc

    def create_order(self, amount: float, currency: str, receipt: str, notes: dict = None) -> dict:
        payload = {
            # gateway amounts are in the smallest currency unit (paise)
            "amount": int(round(amount * 100)),
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        order = self._call("order.create", self.client.order.create, data=payload)
        logger.info("Created gateway order %s for receipt %s", order.get("id"), receipt)
        return order

    def fetch_payment(self, payment_id: str) -> dict:
        return self._call("payment.fetch", self.client.payment.fetch, payment_id)

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        expected = compute_signature(self.key_secret, f"{order_id}|{payment_id}".encode("utf-8"))
        return signatures_match(expected, signature)

    def verify_webhook_signature(self, body: bytes, signature: str) -> bool:
        expected = compute_signature(self.webhook_secret, body)
        return signatures_match(expected, signature)


PROVIDERS = {
    "razorpay": RazorpayProvider,
}


def get_payment_provider(provider_name: str = None, **kwargs) -> BasePaymentProvider:
    """Factory for gateway adapters."""
    name = provider_name or PAYMENT_PROVIDER
    if name not in PROVIDERS:
        raise ValueError(f"Unknown payment provider: {name}")
    return PROVIDERS[name](**kwargs)
