"""
Purchase reconciler.

Turns a payment confirmed by the payment processor into purchased credits,
exactly once per payment. Confirmation requests may be repeated (client
retries, double submits); a repeat for an already credited payment reports
success with the current balance instead of crediting again.
"""

import asyncio
import logging
from dataclasses import dataclass

from ..models_db import Account
from .ledger import DuplicatePayment, LedgerStore
from .payment_service import CreatedPayment, PaymentService, PaymentServiceError, PaymentStatus

logger = logging.getLogger(__name__)


class PaymentNotComplete(Exception):
    """Raised when a payment cannot be confirmed as settled for this account."""

    pass


@dataclass(frozen=True)
class PurchaseOutcome:
    new_balance: int
    credits_added: bool = True
    replayed: bool = False


class PurchaseReconciler:
    """
    Coordinates payment creation and confirmation with the ledger.

    Args:
        ledger: Ledger store bound to the request's session.
        payments: Payment processor collaborator.
        currency: Currency used for new payments.
        timeout: Upper bound in seconds for each processor call.
    """

    def __init__(
        self,
        ledger: LedgerStore,
        payments: PaymentService,
        currency: str = "eur",
        timeout: float = 20.0,
    ):
        self.ledger = ledger
        self.payments = payments
        self.currency = currency
        self.timeout = timeout

    async def create_purchase(self, account: Account, amount: int, credits: int) -> CreatedPayment:
        """
        Start a credit purchase by creating a payment for the account.

        The account id and credit count travel in the payment metadata and are
        checked again at confirmation time.

        Raises:
            PaymentServiceError: The processor call failed or timed out.
        """
        account_id, customer_ref = account.id, account.payment_customer_ref
        metadata = {"account_id": str(account_id), "credits": str(credits)}
        self.ledger.end_read()
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(
                    self.payments.create_payment,
                    amount,
                    self.currency,
                    customer_ref,
                    metadata,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning("Payment creation for account %s timed out", account_id)
            raise PaymentServiceError("Payment processor timed out") from e

    async def confirm_purchase(
        self,
        account_id: int,
        payment_id: str,
        credits: int,
    ) -> PurchaseOutcome:
        """
        Credit the account for a settled payment.

        Raises:
            PaymentNotComplete: The payment is not settled, could not be
                verified, or was made for another account or credit count.
        """
        payment = await self._fetch_status(payment_id)

        if not payment.succeeded:
            logger.info("Payment %s not complete (status=%s)", payment_id, payment.status)
            raise PaymentNotComplete("Payment not successful")

        self._check_metadata(payment, account_id, credits)

        try:
            result = self.ledger.credit_purchase(
                account_id,
                credits,
                payment_id,
                description=f"Purchased {credits} credits",
            )
        except DuplicatePayment:
            logger.info("Payment %s already credited; replaying confirmation", payment_id)
            return PurchaseOutcome(
                new_balance=self.ledger.get_balance(account_id),
                replayed=True,
            )

        return PurchaseOutcome(new_balance=result.new_balance)

    async def _fetch_status(self, payment_id: str) -> PaymentStatus:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.payments.get_payment_status, payment_id),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning("Payment status lookup for %s timed out", payment_id)
            raise PaymentNotComplete("Payment could not be verified. Please try again.") from e
        except PaymentServiceError as e:
            raise PaymentNotComplete("Payment could not be verified. Please try again.") from e

    @staticmethod
    def _check_metadata(payment: PaymentStatus, account_id: int, credits: int) -> None:
        owner = payment.metadata.get("account_id")
        if owner is not None and owner != str(account_id):
            logger.warning(
                "Payment %s belongs to account %s, not %s",
                payment.id,
                owner,
                account_id,
            )
            raise PaymentNotComplete("Payment does not belong to this account")

        paid_credits = payment.metadata.get("credits")
        if paid_credits is not None and paid_credits != str(credits):
            logger.warning(
                "Payment %s was for %s credits, confirmation asked for %d",
                payment.id,
                paid_credits,
                credits,
            )
            raise PaymentNotComplete("Payment does not match the requested credits")
