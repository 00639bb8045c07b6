"""
Services package for the document analysis application.

Contains:
- ledger: Credit balances, ledger entries and document records
- orchestrator: One analysis request, from balance check to debit
- reconciler: Payment confirmation into purchased credits
- ai: OpenAI integration for structured document analysis
- pdf_service: PDF text extraction
- payment_service: Stripe integration
- upload_service: Temporary storage of uploads
- auth_service: Password hashing and JWT handling
"""

from .ledger import LedgerStore
from .orchestrator import AnalysisOrchestrator
from .reconciler import PurchaseReconciler

__all__ = ["LedgerStore", "AnalysisOrchestrator", "PurchaseReconciler"]
