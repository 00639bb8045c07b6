"""Pytest configuration and fixtures."""

import os

# Must be set before the application (and its engine) is imported
os.environ["DATABASE_URL"] = "sqlite://"

import asyncio
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.backend.database import Base, build_engine, get_db
from app.backend.main import app
from app.backend.models import PropertyAnalysis
from app.backend.models_db import Account
from app.backend.services.ai import get_ai_service
from app.backend.services.auth_service import hash_password
from app.backend.services.ledger import LedgerStore
from app.backend.services.payment_service import PaymentService, get_payment_service
from app.backend.services.pdf_service import get_pdf_service
from app.backend.services.rate_limit import reset_counters
from app.backend.services.upload_service import UploadService, get_upload_service


def build_pdf(text: str) -> bytes:
    """Build a one-page PDF showing `text` in Helvetica, with a valid xref table."""
    stream = f"BT /F1 12 Tf 100 700 Td ({text}) Tj ET".encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Resources << /Font << /F1 5 0 R >> >> /Contents 4 0 R >>",
        b"<< /Length " + str(len(stream)).encode() + b" >>\nstream\n" + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"

    xref_at = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode()
    out += f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref_at}\n%%EOF\n".encode()
    return bytes(out)


class StubAIService:
    """Stands in for the OpenAI-backed service."""

    def __init__(self):
        self.result = PropertyAnalysis(
            property_address="12 Harbour Road, Cork",
            owner_name="Jane Murphy",
            property_type="Residential",
            price="€350,000",
            price_amount=350000.0,
            key_dates=["2024-03-01"],
            important_clauses=["Subject to mortgage approval"],
            document_type="Purchase Agreement",
            summary="Sale of a three-bedroom house.",
        )
        self.error: Exception | None = None
        self.delay: float = 0.0
        self.calls: list[str] = []

    async def analyze_text(self, text: str) -> PropertyAnalysis:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


class StubPDFService:
    """Returns fixed text, or raises when `error` is set."""

    def __init__(self, text: str = "Purchase agreement for 12 Harbour Road."):
        self.text = text
        self.error: Exception | None = None

    def extract_text(self, file_bytes) -> str:
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture
def engine():
    """In-memory SQLite shared by every session of one test."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def file_session_factory(tmp_path) -> Generator[sessionmaker, None, None]:
    """Sessions on a file-backed SQLite database, for tests that need real locking."""
    file_engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(bind=file_engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
    file_engine.dispose()


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def ledger(db_session: Session) -> LedgerStore:
    return LedgerStore(db_session)


@pytest.fixture
def make_account(db_session: Session) -> Callable[..., Account]:
    """Factory creating an account with a given starting balance."""
    counter = {"n": 0}

    def _make(credits: int = 5, email: str | None = None) -> Account:
        counter["n"] += 1
        account = Account(
            email=email or f"user{counter['n']}@example.com",
            name=f"User {counter['n']}",
            password_hash=hash_password("secret"),
            credits=credits,
            starting_credits=credits,
        )
        db_session.add(account)
        db_session.commit()
        db_session.refresh(account)
        return account

    return _make


@pytest.fixture
def stub_ai() -> StubAIService:
    return StubAIService()


@pytest.fixture
def stub_pdf() -> StubPDFService:
    return StubPDFService()


@pytest.fixture
def payment_service() -> PaymentService:
    return PaymentService(secret_key="", use_mock=True)


@pytest.fixture
def upload_service(tmp_path) -> UploadService:
    return UploadService(tmp_path / "uploads", max_bytes=64 * 1024)


@pytest.fixture
def client(
    session_factory,
    stub_ai: StubAIService,
    stub_pdf: StubPDFService,
    payment_service: PaymentService,
    upload_service: UploadService,
) -> Generator[TestClient, None, None]:
    """Create a test client wired to the in-memory database and stubs."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ai_service] = lambda: stub_ai
    app.dependency_overrides[get_pdf_service] = lambda: stub_pdf
    app.dependency_overrides[get_payment_service] = lambda: payment_service
    app.dependency_overrides[get_upload_service] = lambda: upload_service
    app.state.disable_rate_limits = True

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    app.state.disable_rate_limits = False
    reset_counters()


@pytest.fixture
def register(client: TestClient) -> Callable[..., dict]:
    """Register an account through the API and return the response body."""

    def _register(email: str = "alice@example.com", password: str = "secret", name: str = "Alice") -> dict:
        response = client.post(
            "/api/register",
            json={"email": email, "password": password, "name": name},
        )
        assert response.status_code == 200, response.text
        return response.json()

    return _register


@pytest.fixture
def auth_headers(register) -> dict[str, str]:
    body = register()
    return {"Authorization": f"Bearer {body['token']}"}


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """A minimal valid PDF whose only text is "Test"."""
    return build_pdf("Test")


@pytest.fixture
def invalid_file_bytes() -> bytes:
    """Create invalid (non-PDF) file bytes for testing."""
    return b"This is not a PDF file"

