import logging
import os
from decimal import Decimal

import razorpay
from dotenv import load_dotenv

from src.domain.exceptions import PaymentGatewayNotConfiguredError

load_dotenv()

logger = logging.getLogger(__name__)

RAZORPAY_CURRENCY = os.getenv("RAZORPAY_CURRENCY", "INR")


def to_paise(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).to_integral_value())


class RazorpayGateway:
    """
    Thin wrapper over the Razorpay SDK: order creation and
    checkout signature verification. Nothing else in the
    codebase talks to `razorpay` directly.
    """

    def __init__(
        self,
        key_id: str | None = None,
        key_secret: str | None = None,
        currency: str = RAZORPAY_CURRENCY,
    ):
        self.key_id = key_id or os.getenv("RAZORPAY_KEY_ID")
        self.key_secret = key_secret or os.getenv("RAZORPAY_KEY_SECRET")
        self.currency = currency

    @property
    def configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    def _client(self) -> razorpay.Client:
        if not self.configured:
            raise PaymentGatewayNotConfiguredError(
                "Razorpay keys not configured. Set RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET."
            )
        return razorpay.Client(auth=(self.key_id, self.key_secret))

    def create_order(self, amount_paise: int, receipt: str) -> dict:
        client = self._client()
        order = client.order.create(
            {
                "amount": amount_paise,
                "currency": self.currency,
                "receipt": receipt,
            }
        )
        logger.info(
            "Razorpay order created. order_id=%s amount_paise=%s receipt=%s",
            order.get("id"),
            amount_paise,
            receipt,
        )
        return order

    def verify_signature(
        self,
        order_id: str,
        payment_id: str,
        signature: str,
    ) -> bool:
        client = self._client()
        try:
            client.utility.verify_payment_signature(
                {
                    "razorpay_order_id": order_id,
                    "razorpay_payment_id": payment_id,
                    "razorpay_signature": signature,
                }
            )
        except razorpay.errors.SignatureVerificationError:
            logger.warning(
                "Razorpay signature verification failed. order_id=%s payment_id=%s",
                order_id,
                payment_id,
            )
            return False
        return True
