"""
Analysis orchestrator.

Runs one document analysis through a linear state machine:

    RECEIVED -> BALANCE_CHECKED -> EXTRACTED -> PERSISTED
                      |                |
                  REJECTED          FAILED

A credit is consumed only when the request reaches PERSISTED. The early
balance check only avoids paying for an AI call the user cannot afford;
the atomic debit in the ledger store is what enforces the balance. The
temporary upload is released on every exit path.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass

from ..models import PropertyAnalysis
from .ai import AIService, AIServiceError
from .ledger import DocumentPayload, InsufficientCredits, LedgerStore
from .pdf_service import PDFConversionError, PDFService
from .upload_service import StoredUpload, UploadService

logger = logging.getLogger(__name__)


class AnalysisState(enum.Enum):
    RECEIVED = "received"
    BALANCE_CHECKED = "balance_checked"
    EXTRACTED = "extracted"
    PERSISTED = "persisted"
    REJECTED = "rejected"
    FAILED = "failed"


class ExtractionError(Exception):
    """Raised when text or AI extraction fails. No credit is charged."""

    pass


@dataclass(frozen=True)
class AnalysisOutcome:
    analysis: PropertyAnalysis
    credits_remaining: int
    document_id: int
    state: AnalysisState = AnalysisState.PERSISTED


class AnalysisOrchestrator:
    """
    Coordinates balance check, extraction, debit and cleanup for one request.

    Args:
        ledger: Ledger store bound to the request's session.
        ai_service: Extraction collaborator.
        pdf_service: Text extraction collaborator.
        uploads: Upload storage, used to release the temporary file.
        cost: Credits charged per successful analysis.
        timeout: Upper bound in seconds for the AI call.
        charge_fallback: Bill placeholder records produced when the AI
            service could not analyse the document.
    """

    def __init__(
        self,
        ledger: LedgerStore,
        ai_service: AIService,
        pdf_service: PDFService,
        uploads: UploadService,
        cost: int = 1,
        timeout: float = 60.0,
        charge_fallback: bool = False,
    ):
        self.ledger = ledger
        self.ai_service = ai_service
        self.pdf_service = pdf_service
        self.uploads = uploads
        self.cost = cost
        self.timeout = timeout
        self.charge_fallback = charge_fallback

    async def analyze(self, account_id: int, upload: StoredUpload) -> AnalysisOutcome:
        """
        Analyze one uploaded document and charge for it.

        Raises:
            InsufficientCredits: Balance too low, before or at debit time.
            ExtractionError: Text or AI extraction failed or timed out.
            AccountNotFound: Unknown account.
            LedgerStorageError: The debit transaction failed.
        """
        state = AnalysisState.RECEIVED
        try:
            balance = self.ledger.get_balance(account_id)
            if balance < self.cost:
                state = AnalysisState.REJECTED
                raise InsufficientCredits(account_id, required=self.cost, available=balance)
            state = AnalysisState.BALANCE_CHECKED
            self.ledger.end_read()

            analysis = await self._extract(upload)
            state = AnalysisState.EXTRACTED

            try:
                result = self.ledger.try_debit(
                    account_id,
                    DocumentPayload(
                        filename=upload.filename,
                        original_name=upload.original_name,
                        analysis=analysis.model_dump(),
                    ),
                    amount=self.cost,
                )
            except InsufficientCredits:
                # Balance was spent by a concurrent request since the check
                state = AnalysisState.REJECTED
                raise
            state = AnalysisState.PERSISTED

            return AnalysisOutcome(
                analysis=analysis,
                credits_remaining=result.new_balance,
                document_id=result.document_id,
            )

        except Exception:
            if state is not AnalysisState.REJECTED:
                state = AnalysisState.FAILED
            raise
        finally:
            self.uploads.release(upload)
            logger.info(
                "Analysis of %s for account %s finished in state %s",
                upload.original_name,
                account_id,
                state.value,
            )

    async def _extract(self, upload: StoredUpload) -> PropertyAnalysis:
        try:
            text = self.pdf_service.extract_text(upload.content)
        except PDFConversionError as e:
            logger.warning("Text extraction failed for %s: %s", upload.original_name, e)
            raise ExtractionError("Could not read the PDF document") from e

        if not text.strip():
            logger.warning("No text layer in %s", upload.original_name)
            raise ExtractionError(
                "No readable text found in the document. Scanned PDFs are not supported."
            )

        try:
            analysis = await asyncio.wait_for(
                self.ai_service.analyze_text(text),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning("AI analysis of %s timed out", upload.original_name)
            raise ExtractionError("Analysis timed out. Please try again.") from e
        except AIServiceError as e:
            logger.warning("AI analysis of %s failed: %s", upload.original_name, e)
            raise ExtractionError("Analysis failed. Please try again.") from e

        if analysis.fallback and not self.charge_fallback:
            logger.warning(
                "AI analysis of %s returned a fallback record; not charging",
                upload.original_name,
            )
            raise ExtractionError("AI analysis temporarily unavailable. No credit was used.")
        return analysis
