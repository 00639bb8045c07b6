"""
Router for document analysis endpoints.

Handles:
- Uploading a PDF for credit-metered analysis
- Listing previously analysed documents
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, UploadFile

from ..dependencies import get_ledger, get_orchestrator
from ..models import AnalyzeResponse, DocumentListResponse, DocumentResponse
from ..services.auth_service import get_current_account_id
from ..services.ledger import LedgerStore
from ..services.orchestrator import AnalysisOrchestrator
from ..services.rate_limit import rate_limit
from ..services.upload_service import UploadService, get_upload_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["analysis"], dependencies=[Depends(rate_limit)])


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_document(
    document: Annotated[UploadFile, File(description="PDF document to analyze")],
    account_id: int = Depends(get_current_account_id),
    uploads: UploadService = Depends(get_upload_service),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
) -> AnalyzeResponse:
    """
    Analyze a real estate PDF for one credit.

    The credit is only charged when the analysis succeeds; the uploaded
    file is deleted whatever the outcome.
    """
    try:
        upload = await uploads.store(document)
    finally:
        await document.close()

    outcome = await orchestrator.analyze(account_id, upload)
    return AnalyzeResponse(
        analysis=outcome.analysis,
        credits_remaining=outcome.credits_remaining,
        document_id=outcome.document_id,
    )


@router.get("/documents", response_model=DocumentListResponse)
async def list_documents(
    account_id: int = Depends(get_current_account_id),
    ledger: LedgerStore = Depends(get_ledger),
) -> DocumentListResponse:
    """List the account's analysed documents, newest first."""
    return DocumentListResponse(
        documents=[
            DocumentResponse(
                id=doc.id,
                original_name=doc.original_name,
                analysis_result=doc.analysis_result,
                created_at=doc.created_at.isoformat(),
            )
            for doc in ledger.list_documents(account_id)
        ]
    )
