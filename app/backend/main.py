"""
FastAPI application for the credit-metered document analysis service.

Provides endpoints for:
- Account registration, login and profile
- PDF analysis, charged one credit per successful analysis
- Credit purchases through Stripe, with idempotent confirmation
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from . import __version__
from .config import get_settings
from .database import init_db
from .models import HealthResponse
from .routers import analysis, auth, payments
from .services.ai import get_ai_service
from .services.ledger import AccountNotFound, InsufficientCredits, LedgerError
from .services.orchestrator import ExtractionError
from .services.payment_service import PaymentServiceError, get_payment_service
from .services.reconciler import PaymentNotComplete
from .services.upload_service import UploadRejected

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting document analysis service...")
    init_db()
    # Initialize services on startup
    get_ai_service()
    get_payment_service()
    logger.info("Services initialized successfully (upload folder: %s)", settings.upload_dir)
    yield
    logger.info("Shutting down document analysis service...")


# Create FastAPI application
app = FastAPI(
    title="PropTech Document Analysis API",
    description="Credit-metered real estate document analysis",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Health Endpoints
# =============================================================================


@app.get("/", response_model=HealthResponse)
async def root() -> HealthResponse:
    """Root endpoint - health check."""
    return HealthResponse(status="healthy", message="Document analysis API is running", version=__version__)


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", message="Service is healthy", version=__version__)


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(auth.router)
app.include_router(analysis.router)
app.include_router(payments.router)


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(InsufficientCredits)
async def insufficient_credits_handler(request: Request, exc: InsufficientCredits):
    """Balance too low: nothing was charged."""
    return JSONResponse(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        content={"detail": str(exc), "credits": exc.available},
    )


@app.exception_handler(AccountNotFound)
async def account_not_found_handler(request: Request, exc: AccountNotFound):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": "User not found"},
    )


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    """Ledger transaction failures. The transaction has been rolled back."""
    logger.error("Ledger error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Could not update credits. Please try again."},
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Database temporarily unavailable. Please try again."},
    )


@app.exception_handler(ExtractionError)
async def extraction_error_handler(request: Request, exc: ExtractionError):
    """Analysis failed: nothing was charged."""
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": str(exc)},
    )


@app.exception_handler(PaymentNotComplete)
async def payment_not_complete_handler(request: Request, exc: PaymentNotComplete):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)},
    )


@app.exception_handler(PaymentServiceError)
async def payment_service_error_handler(request: Request, exc: PaymentServiceError):
    """Handle payment processor errors."""
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc)},
    )


@app.exception_handler(UploadRejected)
async def upload_rejected_handler(request: Request, exc: UploadRejected):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc)},
    )
