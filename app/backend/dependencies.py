"""
FastAPI dependencies that assemble the per-request core services.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from .config import get_settings
from .database import get_db
from .services.ai import AIService, get_ai_service
from .services.ledger import LedgerStore
from .services.orchestrator import AnalysisOrchestrator
from .services.payment_service import PaymentService, get_payment_service
from .services.pdf_service import PDFService, get_pdf_service
from .services.reconciler import PurchaseReconciler
from .services.upload_service import UploadService, get_upload_service


def get_ledger(db: Session = Depends(get_db)) -> LedgerStore:
    return LedgerStore(db)


def get_orchestrator(
    ledger: LedgerStore = Depends(get_ledger),
    ai_service: AIService = Depends(get_ai_service),
    pdf_service: PDFService = Depends(get_pdf_service),
    uploads: UploadService = Depends(get_upload_service),
) -> AnalysisOrchestrator:
    settings = get_settings()
    return AnalysisOrchestrator(
        ledger,
        ai_service,
        pdf_service,
        uploads,
        cost=settings.analysis_cost,
        timeout=settings.ai_timeout_seconds,
        charge_fallback=settings.charge_fallback_analyses,
    )


def get_reconciler(
    ledger: LedgerStore = Depends(get_ledger),
    payments: PaymentService = Depends(get_payment_service),
) -> PurchaseReconciler:
    settings = get_settings()
    return PurchaseReconciler(
        ledger,
        payments,
        currency=settings.payment_currency,
        timeout=settings.payment_timeout_seconds,
    )
