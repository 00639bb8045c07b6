"""
Credit ledger store.

Owns every change to an account's credit balance. Each change is applied
together with the ledger entry that records it (and, for analysis debits,
the document record) in a single database transaction, so the balance
always equals the starting balance plus the sum of the account's entries.

The balance check and the decrement are one conditional UPDATE statement.
The database serialises concurrent writers on the account row (row lock on
PostgreSQL, write lock on SQLite), which is what keeps two concurrent debits
from both succeeding on a balance of 1.
"""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import begin_write
from ..models_db import Account, DocumentRecord, EntryKind, LedgerEntry

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base class for ledger failures."""

    pass


class AccountNotFound(LedgerError):
    """Raised when the account does not exist."""

    def __init__(self, account_id: int):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


class InsufficientCredits(LedgerError):
    """Raised when a debit would take the balance below zero."""

    def __init__(self, account_id: int, required: int, available: int):
        self.account_id = account_id
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient credits. Required: {required}, available: {available}. "
            "Please purchase more credits."
        )


class DuplicatePayment(LedgerError):
    """Raised when an external payment has already been credited."""

    def __init__(self, payment_ref: str):
        self.payment_ref = payment_ref
        super().__init__(f"Payment {payment_ref} has already been credited")


class LedgerStorageError(LedgerError):
    """Raised when the ledger transaction could not be committed."""

    pass


@dataclass(frozen=True)
class DocumentPayload:
    """Document data persisted alongside an analysis debit."""

    filename: str
    original_name: str
    analysis: dict[str, Any]
    description: str = "Document analysis"


@dataclass(frozen=True)
class DebitResult:
    new_balance: int
    document_id: int
    entry_id: int


@dataclass(frozen=True)
class CreditResult:
    new_balance: int
    entry_id: int


class LedgerStore:
    """
    Durable bookkeeping of account balances, ledger entries and documents.

    Bound to one SQLAlchemy session; create one store per request (or per
    thread). Every mutating call commits before returning, or rolls back and
    raises.
    """

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_account(self, account_id: int) -> Account:
        account = self.db.get(Account, account_id)
        if account is None:
            raise AccountNotFound(account_id)
        return account

    def get_balance(self, account_id: int) -> int:
        """
        Return the committed credit balance of an account.

        Raises:
            AccountNotFound: If the account does not exist.
        """
        credits = self._current_credits(account_id)
        if credits is None:
            raise AccountNotFound(account_id)
        return credits

    def end_read(self) -> None:
        """End the current read transaction so no snapshot is held across slow calls."""
        self.db.rollback()

    def list_documents(self, account_id: int) -> list[DocumentRecord]:
        """Return the account's document records, newest first."""
        stmt = (
            select(DocumentRecord)
            .where(DocumentRecord.account_id == account_id)
            .order_by(DocumentRecord.created_at.desc(), DocumentRecord.id.desc())
        )
        return list(self.db.scalars(stmt))

    def list_entries(self, account_id: int, limit: int = 50) -> list[LedgerEntry]:
        """Return the account's most recent ledger entries, newest first."""
        stmt = (
            select(LedgerEntry)
            .where(LedgerEntry.account_id == account_id)
            .order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
            .limit(limit)
        )
        return list(self.db.scalars(stmt))

    def verify_balance(self, account_id: int) -> bool:
        """Check that balance == starting balance + sum of signed entries."""
        account = self.get_account(account_id)
        total = self.db.execute(
            select(func.coalesce(func.sum(LedgerEntry.amount), 0)).where(
                LedgerEntry.account_id == account_id
            )
        ).scalar_one()
        consistent = account.credits == account.starting_credits + int(total)
        if not consistent:
            logger.error(
                "Ledger mismatch for account %s: balance=%d starting=%d entries=%d",
                account_id,
                account.credits,
                account.starting_credits,
                total,
            )
        return consistent

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def try_debit(
        self,
        account_id: int,
        document: DocumentPayload,
        amount: int = 1,
    ) -> DebitResult:
        """
        Atomically charge `amount` credits and record the analysed document.

        The balance decrement, the debit entry and the document record are
        committed together or not at all.

        Raises:
            InsufficientCredits: Balance is lower than `amount`; nothing changed.
            AccountNotFound: The account does not exist.
            LedgerStorageError: The transaction failed and was rolled back.
        """
        if amount <= 0:
            raise ValueError("Debit amount must be positive")

        try:
            begin_write(self.db)
            result = self.db.execute(
                update(Account)
                .where(Account.id == account_id, Account.credits >= amount)
                .values(credits=Account.credits - amount)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                raise self._refusal(account_id, amount)

            new_balance = self._current_credits(account_id)

            entry = LedgerEntry(
                account_id=account_id,
                kind=EntryKind.DEBIT,
                amount=-amount,
                balance_after=new_balance,
                description=document.description,
            )
            self.db.add(entry)
            self.db.flush()

            record = DocumentRecord(
                account_id=account_id,
                ledger_entry_id=entry.id,
                filename=document.filename,
                original_name=document.original_name,
                analysis_result=document.analysis,
                credits_used=amount,
            )
            self.db.add(record)
            self.db.flush()

            entry_id, document_id = entry.id, record.id
            self.db.commit()

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Debit transaction failed for account %s", account_id)
            raise LedgerStorageError(f"Could not record debit: {e}") from e

        logger.info(
            "Debited %d credit(s) from account %s (balance now %d, document %s)",
            amount,
            account_id,
            new_balance,
            document_id,
        )
        return DebitResult(
            new_balance=new_balance,
            document_id=document_id,
            entry_id=entry_id,
        )

    def credit_purchase(
        self,
        account_id: int,
        amount: int,
        external_payment_ref: str,
        description: str | None = None,
    ) -> CreditResult:
        """
        Atomically add purchased credits, at most once per payment reference.

        Raises:
            DuplicatePayment: The payment reference was already credited.
            AccountNotFound: The account does not exist.
            LedgerStorageError: The transaction failed and was rolled back.
        """
        if amount <= 0:
            raise ValueError("Credit amount must be positive")
        if not external_payment_ref:
            raise ValueError("A payment reference is required for purchases")

        try:
            begin_write(self.db)
            if self._payment_already_credited(external_payment_ref):
                self.db.rollback()
                raise DuplicatePayment(external_payment_ref)

            result = self.db.execute(
                update(Account)
                .where(Account.id == account_id)
                .values(credits=Account.credits + amount)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                raise AccountNotFound(account_id)

            new_balance = self._current_credits(account_id)

            entry = LedgerEntry(
                account_id=account_id,
                kind=EntryKind.CREDIT,
                amount=amount,
                balance_after=new_balance,
                description=description or f"Purchased {amount} credits",
                external_payment_ref=external_payment_ref,
            )
            self.db.add(entry)
            self.db.flush()
            entry_id = entry.id
            self.db.commit()

        except IntegrityError as e:
            # Lost a race against another confirmation of the same payment
            self.db.rollback()
            if self._payment_already_credited(external_payment_ref):
                raise DuplicatePayment(external_payment_ref) from e
            logger.exception("Credit transaction failed for account %s", account_id)
            raise LedgerStorageError(f"Could not record purchase: {e}") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Credit transaction failed for account %s", account_id)
            raise LedgerStorageError(f"Could not record purchase: {e}") from e

        logger.info(
            "Credited %d credit(s) to account %s for payment %s (balance now %d)",
            amount,
            account_id,
            external_payment_ref,
            new_balance,
        )
        return CreditResult(new_balance=new_balance, entry_id=entry_id)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _current_credits(self, account_id: int) -> int | None:
        return self.db.execute(
            select(Account.credits).where(Account.id == account_id)
        ).scalar_one_or_none()

    def _payment_already_credited(self, payment_ref: str) -> bool:
        existing = self.db.execute(
            select(LedgerEntry.id).where(LedgerEntry.external_payment_ref == payment_ref)
        ).first()
        return existing is not None

    def _refusal(self, account_id: int, amount: int) -> LedgerError:
        """Explain why the conditional debit matched no row."""
        available = self._current_credits(account_id)
        if available is None:
            return AccountNotFound(account_id)
        return InsufficientCredits(account_id, required=amount, available=available)
