"""
Router for credit purchase endpoints.

Handles:
- Creating a Stripe payment intent for a credit pack
- Confirming a settled payment (idempotent)
- Ledger history
"""

import logging

from fastapi import APIRouter, Depends

from ..dependencies import get_ledger, get_reconciler
from ..models import (
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    CreatePaymentIntentRequest,
    CreatePaymentIntentResponse,
    TransactionListResponse,
    TransactionResponse,
)
from ..services.auth_service import get_current_account_id
from ..services.ledger import LedgerStore
from ..services.rate_limit import rate_limit
from ..services.reconciler import PurchaseReconciler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["payments"], dependencies=[Depends(rate_limit)])


@router.post("/create-payment-intent", response_model=CreatePaymentIntentResponse)
async def create_payment_intent(
    request: CreatePaymentIntentRequest,
    account_id: int = Depends(get_current_account_id),
    ledger: LedgerStore = Depends(get_ledger),
    reconciler: PurchaseReconciler = Depends(get_reconciler),
) -> CreatePaymentIntentResponse:
    """Create a payment intent for buying `credits` at `amount` cents."""
    account = ledger.get_account(account_id)
    payment = await reconciler.create_purchase(account, request.amount, request.credits)
    return CreatePaymentIntentResponse(
        client_secret=payment.client_secret,
        payment_intent_id=payment.id,
    )


@router.post("/confirm-payment", response_model=ConfirmPaymentResponse)
async def confirm_payment(
    request: ConfirmPaymentRequest,
    account_id: int = Depends(get_current_account_id),
    reconciler: PurchaseReconciler = Depends(get_reconciler),
) -> ConfirmPaymentResponse:
    """
    Confirm a payment and add its credits.

    Safe to call repeatedly: a payment is only ever credited once.
    """
    outcome = await reconciler.confirm_purchase(
        account_id,
        request.payment_intent_id,
        request.credits,
    )
    if outcome.replayed:
        message = "Payment already applied."
    else:
        message = f"{request.credits} credits added successfully!"
    return ConfirmPaymentResponse(
        credits_added=outcome.credits_added,
        new_balance=outcome.new_balance,
        message=message,
    )


@router.get("/transactions", response_model=TransactionListResponse)
async def list_transactions(
    account_id: int = Depends(get_current_account_id),
    ledger: LedgerStore = Depends(get_ledger),
) -> TransactionListResponse:
    """Return the current balance and recent ledger entries."""
    balance = ledger.get_balance(account_id)
    return TransactionListResponse(
        balance=balance,
        transactions=[
            TransactionResponse(
                id=entry.id,
                kind=entry.kind.value,
                amount=entry.amount,
                balance_after=entry.balance_after,
                description=entry.description,
                external_payment_ref=entry.external_payment_ref,
                created_at=entry.created_at.isoformat(),
            )
            for entry in ledger.list_entries(account_id)
        ],
    )
