"""
Pydantic models for the analysis and billing API.

Defines the structured analysis record returned by the AI extraction
service, plus request and response bodies for every endpoint.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Analysis Record
# =============================================================================

UNAVAILABLE = "Analysis unavailable"


class PropertyAnalysis(BaseModel):
    """
    Structured information extracted from a real estate document.

    Attributes:
        property_address: Address of the property the document concerns.
        owner_name: Current or prospective owner.
        property_type: Residential, commercial, land, ...
        price: Price as written in the document.
        price_amount: Numeric price parsed from `price`, when possible.
        key_dates: Important dates, ISO formatted where they could be parsed.
        important_clauses: Notable clauses or conditions.
        document_type: Kind of document (deed, lease, purchase agreement...).
        summary: Short free-text summary.
        fallback: True when the record is a placeholder because the model
            could not be reached.
    """

    property_address: str | None = Field(default=None)
    owner_name: str | None = Field(default=None)
    property_type: str | None = Field(default=None)
    price: str | None = Field(default=None)
    price_amount: float | None = Field(
        default=None,
        description="Numeric value parsed from price",
    )
    key_dates: list[str] = Field(default_factory=list)
    important_clauses: list[str] = Field(default_factory=list)
    document_type: str | None = Field(default=None)
    summary: str | None = Field(default=None)
    fallback: bool = Field(
        default=False,
        description="Placeholder record produced when AI analysis failed",
    )

    @classmethod
    def unavailable(cls) -> "PropertyAnalysis":
        """Placeholder returned when the AI service cannot analyse a document."""
        return cls(
            property_address=UNAVAILABLE,
            owner_name=UNAVAILABLE,
            property_type=UNAVAILABLE,
            price=UNAVAILABLE,
            key_dates=[],
            important_clauses=[],
            document_type="PDF Document",
            summary="Document uploaded successfully. AI analysis temporarily unavailable.",
            fallback=True,
        )


# =============================================================================
# Auth Models
# =============================================================================


class RegisterRequest(BaseModel):
    """Request model for account registration."""

    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=256)
    name: str = Field(..., min_length=1, max_length=255)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Lower-case the email and require a basic user@domain shape."""
        v = v.strip().lower()
        local, _, domain = v.partition("@")
        if not local or not domain:
            raise ValueError("Invalid email address")
        return v


class LoginRequest(BaseModel):
    """Request model for login."""

    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class AccountResponse(BaseModel):
    """Public view of an account."""

    id: int
    email: str
    name: str
    credits: int = Field(..., ge=0)
    subscription_status: str


class AuthResponse(BaseModel):
    """Response model for register and login."""

    token: str = Field(..., description="Bearer token (JWT)")
    user: AccountResponse
    message: str | None = None


class ProfileResponse(BaseModel):
    """Response model for the profile endpoint."""

    user: AccountResponse


# =============================================================================
# Analysis Models
# =============================================================================


class AnalyzeResponse(BaseModel):
    """Response model for a successful document analysis."""

    analysis: PropertyAnalysis
    credits_remaining: int = Field(..., ge=0)
    document_id: int
    message: str = "Document analyzed successfully!"


class DocumentResponse(BaseModel):
    """A previously analysed document."""

    id: int
    original_name: str
    analysis_result: dict[str, Any]
    created_at: str = Field(..., description="Creation timestamp (ISO format)")


class DocumentListResponse(BaseModel):
    """Response model for listing documents, newest first."""

    documents: list[DocumentResponse] = Field(default_factory=list)


# =============================================================================
# Payment Models
# =============================================================================


class CreatePaymentIntentRequest(BaseModel):
    """Request model for starting a credit purchase."""

    amount: int = Field(..., gt=0, description="Amount in the smallest currency unit (cents)")
    credits: int = Field(..., gt=0, le=10000, description="Credits bought with this payment")


class CreatePaymentIntentResponse(BaseModel):
    """Response model carrying the client secret for the payment form."""

    client_secret: str
    payment_intent_id: str


class ConfirmPaymentRequest(BaseModel):
    """Request model for confirming a completed payment."""

    payment_intent_id: str = Field(..., min_length=1, max_length=255)
    credits: int = Field(..., gt=0, le=10000)


class ConfirmPaymentResponse(BaseModel):
    """Response model for a confirmed purchase."""

    success: bool = True
    credits_added: bool = True
    new_balance: int = Field(..., ge=0)
    message: str


class TransactionResponse(BaseModel):
    """A single ledger entry."""

    id: int
    kind: str
    amount: int
    balance_after: int
    description: str | None = None
    external_payment_ref: str | None = None
    created_at: str


class TransactionListResponse(BaseModel):
    """Response model for the ledger history."""

    balance: int = Field(..., ge=0)
    transactions: list[TransactionResponse] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy")
    message: str | None = Field(default=None)
    version: str = Field(default="1.0.0")
