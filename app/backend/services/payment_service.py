"""
Payment processing service backed by Stripe.

Wraps the three Stripe operations the application needs: creating a
customer at registration, creating a payment intent for a credit purchase,
and retrieving a payment intent to confirm it settled.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

import stripe

from ..config import get_settings

logger = logging.getLogger(__name__)


class PaymentServiceError(Exception):
    """Raised when a call to the payment processor fails."""

    pass


@dataclass(frozen=True)
class PaymentStatus:
    """Settlement state of one payment intent."""

    id: str
    status: str
    amount: int
    currency: str
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"


@dataclass(frozen=True)
class CreatedPayment:
    id: str
    client_secret: str


def _metadata_dict(metadata: Any) -> dict[str, str]:
    if not metadata:
        return {}
    if hasattr(metadata, "to_dict"):
        metadata = metadata.to_dict()
    return {str(k): str(v) for k, v in dict(metadata).items()}


class PaymentService:
    """
    Service for Stripe operations.

    Without a secret key the service runs in mock mode: payments it creates
    are reported as succeeded, which is only suitable for local development.
    """

    def __init__(self, secret_key: str | None = None, use_mock: bool = False):
        """
        Initialize the payment service.

        Args:
            secret_key: Stripe secret key. If None, reads from config/environment.
            use_mock: If True, never call Stripe.
        """
        if secret_key is None:
            secret_key = get_settings().stripe_secret_key

        self.secret_key = secret_key
        self.use_mock = use_mock or not self.secret_key
        self._mock_payments: dict[str, PaymentStatus] = {}

        if self.use_mock:
            logger.warning(
                "Payment Service running in MOCK MODE. Set STRIPE_SECRET_KEY in .env for real payments."
            )

    def create_customer(self, email: str, name: str) -> str:
        """Create a Stripe customer and return its id."""
        if self.use_mock:
            return f"cus_mock_{uuid.uuid4().hex[:16]}"

        try:
            customer = stripe.Customer.create(
                email=email,
                name=name,
                api_key=self.secret_key,
            )
        except stripe.StripeError as e:
            logger.error("Stripe customer creation failed: %s", e)
            raise PaymentServiceError("Could not create payment customer") from e
        return customer.id

    def create_payment(
        self,
        amount: int,
        currency: str,
        customer_ref: str | None,
        metadata: dict[str, str],
    ) -> CreatedPayment:
        """
        Create a payment intent.

        Args:
            amount: Amount in the smallest currency unit.
            currency: ISO currency code (e.g. "eur").
            customer_ref: Stripe customer id, if the account has one.
            metadata: Values echoed back when the intent is retrieved.
        """
        if self.use_mock:
            payment_id = f"pi_mock_{uuid.uuid4().hex[:16]}"
            self._mock_payments[payment_id] = PaymentStatus(
                id=payment_id,
                status="succeeded",
                amount=amount,
                currency=currency,
                metadata=dict(metadata),
            )
            return CreatedPayment(id=payment_id, client_secret=f"{payment_id}_secret_mock")

        params: dict[str, Any] = {
            "amount": amount,
            "currency": currency,
            "metadata": metadata,
            "api_key": self.secret_key,
        }
        if customer_ref:
            params["customer"] = customer_ref

        try:
            intent = stripe.PaymentIntent.create(**params)
        except stripe.StripeError as e:
            logger.error("Stripe payment intent creation failed: %s", e)
            raise PaymentServiceError("Could not create payment") from e

        logger.info("Created payment intent %s for %d %s", intent.id, amount, currency)
        return CreatedPayment(id=intent.id, client_secret=intent.client_secret)

    def get_payment_status(self, payment_id: str) -> PaymentStatus:
        """Retrieve a payment intent's current status."""
        if self.use_mock:
            try:
                return self._mock_payments[payment_id]
            except KeyError:
                raise PaymentServiceError(f"No such payment: {payment_id}") from None

        try:
            intent = stripe.PaymentIntent.retrieve(payment_id, api_key=self.secret_key)
        except stripe.StripeError as e:
            logger.error("Stripe payment intent retrieval failed for %s: %s", payment_id, e)
            raise PaymentServiceError("Could not retrieve payment") from e

        return PaymentStatus(
            id=intent.id,
            status=intent.status,
            amount=intent.amount,
            currency=intent.currency,
            metadata=_metadata_dict(intent.metadata),
        )


# =============================================================================
# Singleton Factory
# =============================================================================

_payment_service: PaymentService | None = None


def get_payment_service() -> PaymentService:
    """Get or create the payment service singleton."""
    global _payment_service
    if _payment_service is None:
        _payment_service = PaymentService()
    return _payment_service
