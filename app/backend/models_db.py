"""
SQLAlchemy database models for the credit-metered analysis service.

This module defines the ORM models for accounts, analysed documents and the
append-only credit ledger.
"""

import enum
from datetime import datetime

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


class EntryKind(enum.Enum):
    """Direction of a balance-changing ledger event."""

    DEBIT = "debit"
    CREDIT = "credit"


class Account(Base):
    """
    A registered principal with a credit balance.

    The balance is only ever changed by the ledger store, together with
    the ledger entry that explains the change.
    """

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    email: Mapped[str] = mapped_column(
        String(320),
        unique=True,
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    credits: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=5,
    )
    starting_credits: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=5,
        comment="Balance granted at registration, used to audit the ledger",
    )
    subscription_status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="trial",
    )
    payment_customer_ref: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Stripe customer id",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    # Relationships
    documents: Mapped[list["DocumentRecord"]] = relationship(
        "DocumentRecord",
        back_populates="account",
    )
    entries: Mapped[list["LedgerEntry"]] = relationship(
        "LedgerEntry",
        back_populates="account",
    )

    __table_args__ = (
        CheckConstraint("credits >= 0", name="ck_accounts_credits_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, email='{self.email}', credits={self.credits})>"


class LedgerEntry(Base):
    """
    One immutable, signed balance-changing event.

    Purchase credits carry the external payment reference, which is unique
    across the table so a payment can only ever be credited once.
    """

    __tablename__ = "ledger_entries"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    account_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )
    kind: Mapped[EntryKind] = mapped_column(
        Enum(EntryKind),
        nullable=False,
    )
    amount: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Signed change applied to the balance",
    )
    balance_after: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    external_payment_ref: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        unique=True,
        comment="Stripe payment intent id for purchase credits",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True,
    )

    # Relationships
    account: Mapped[Account] = relationship(
        "Account",
        back_populates="entries",
    )

    def __repr__(self) -> str:
        return f"<LedgerEntry(id={self.id}, kind={self.kind.value}, amount={self.amount})>"


class DocumentRecord(Base):
    """
    The persisted result of one successful, billed analysis.

    Always created in the same transaction as its debit entry.
    """

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    account_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )
    ledger_entry_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("ledger_entries.id"),
        nullable=False,
        unique=True,
    )
    filename: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
        comment="Name of the temporary stored upload",
    )
    original_name: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
    )
    analysis_result: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
    )
    credits_used: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True,
    )

    # Relationships
    account: Mapped[Account] = relationship(
        "Account",
        back_populates="documents",
    )
    ledger_entry: Mapped[LedgerEntry] = relationship("LedgerEntry")

    def __repr__(self) -> str:
        return f"<DocumentRecord(id={self.id}, original_name='{self.original_name}')>"
