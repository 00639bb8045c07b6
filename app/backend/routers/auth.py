"""
Router for account endpoints.

Handles:
- Registration (with a Stripe customer and the free starting credits)
- Login
- Profile
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import begin_write, get_db
from ..dependencies import get_ledger
from ..models import AccountResponse, AuthResponse, LoginRequest, ProfileResponse, RegisterRequest
from ..models_db import Account
from ..services.auth_service import (
    create_access_token,
    get_current_account_id,
    hash_password,
    verify_password,
)
from ..services.ledger import LedgerStore
from ..services.payment_service import PaymentService, get_payment_service
from ..services.rate_limit import rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"], dependencies=[Depends(rate_limit)])


def _account_response(account: Account) -> AccountResponse:
    return AccountResponse(
        id=account.id,
        email=account.email,
        name=account.name,
        credits=account.credits,
        subscription_status=account.subscription_status,
    )


@router.post("/register", response_model=AuthResponse)
async def register(
    request: RegisterRequest,
    db: Session = Depends(get_db),
    payments: PaymentService = Depends(get_payment_service),
) -> AuthResponse:
    """
    Register a new account.

    Creates the payment processor customer first, then the account with
    the free starting balance.
    """
    existing = db.execute(select(Account.id).where(Account.email == request.email)).first()
    if existing is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    # Release the read snapshot before calling the processor
    db.rollback()
    customer_ref = await asyncio.to_thread(payments.create_customer, request.email, request.name)

    starting_credits = get_settings().starting_credits
    account = Account(
        email=request.email,
        name=request.name,
        password_hash=hash_password(request.password),
        credits=starting_credits,
        starting_credits=starting_credits,
        payment_customer_ref=customer_ref,
    )
    try:
        begin_write(db)
        db.add(account)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )
    db.refresh(account)

    logger.info("Registered account %s", account.id)
    return AuthResponse(
        token=create_access_token(account.id, account.email),
        user=_account_response(account),
        message=f"Registration successful! You have {starting_credits} free credits to start.",
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    request: LoginRequest,
    db: Session = Depends(get_db),
) -> AuthResponse:
    """Exchange email and password for an access token."""
    account = db.execute(select(Account).where(Account.email == request.email)).scalar_one_or_none()
    if account is None or not verify_password(request.password, account.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid credentials",
        )

    return AuthResponse(
        token=create_access_token(account.id, account.email),
        user=_account_response(account),
    )


@router.get("/profile", response_model=ProfileResponse)
async def profile(
    account_id: int = Depends(get_current_account_id),
    ledger: LedgerStore = Depends(get_ledger),
) -> ProfileResponse:
    """Return the authenticated account with its current balance."""
    return ProfileResponse(user=_account_response(ledger.get_account(account_id)))
