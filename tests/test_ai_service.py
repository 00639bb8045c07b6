"""Tests for AI service, response normalization and parsing helpers."""

import time
from types import SimpleNamespace

import pytest

from app.backend.models import PropertyAnalysis
from app.backend.services.ai import (
    AIResponseError,
    AIService,
    AIServiceError,
    build_analysis_prompt,
    normalize_analysis,
    parse_currency,
    parse_date,
)
from app.backend.services.ai.extraction import analyze_text


class FakeCompletions:
    """Records calls and answers like client.chat.completions."""

    def __init__(self, content: str | None = None, error: Exception | None = None, delay: float = 0.0):
        self.content = content
        self.error = error
        self.delay = delay
        self.calls: list[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(completions: FakeCompletions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


class TestParseCurrency:
    """Tests for currency parsing utility."""

    def test_parse_usd_format(self):
        """Test parsing US dollar format."""
        assert parse_currency("$1,234.56") == 1234.56
        assert parse_currency("$100.00") == 100.00
        assert parse_currency("$1,000,000.00") == 1000000.00

    def test_parse_euro_format(self):
        """Test parsing European format (comma as decimal)."""
        assert parse_currency("1.234,56") == 1234.56
        assert parse_currency("€1.234,56") == 1234.56

    def test_parse_plain_numbers(self):
        """Test parsing plain numbers."""
        assert parse_currency("1234.56") == 1234.56
        assert parse_currency("1234") == 1234.0
        assert parse_currency(100) == 100.0
        assert parse_currency(99.99) == 99.99

    def test_parse_with_currency_symbols(self):
        """Test parsing with various currency symbols."""
        assert parse_currency("€100.00") == 100.00
        assert parse_currency("£500.00") == 500.00
        assert parse_currency("¥1000") == 1000.0

    def test_parse_invalid_returns_none(self):
        """Test that invalid values return None."""
        assert parse_currency(None) is None
        assert parse_currency("") is None
        assert parse_currency("not a number") is None
        assert parse_currency(True) is None


class TestParseDate:
    """Tests for date parsing utility."""

    def test_parse_iso_format(self):
        """Test parsing ISO date format."""
        assert parse_date("2024-01-15") == "2024-01-15"

    def test_parse_us_format(self):
        """Test parsing US date format (MM/DD/YYYY)."""
        assert parse_date("01/15/2024") == "2024-01-15"
        assert parse_date("12/31/2023") == "2023-12-31"

    def test_parse_european_format(self):
        """Test parsing European date format (DD/MM/YYYY)."""
        assert parse_date("15/01/2024") == "2024-01-15"

    def test_parse_written_format(self):
        """Test parsing written date formats."""
        assert parse_date("January 15, 2024") == "2024-01-15"
        assert parse_date("15 January 2024") == "2024-01-15"

    def test_parse_invalid_returns_none(self):
        """Test that invalid dates return None."""
        assert parse_date(None) is None
        assert parse_date("") is None
        assert parse_date("not a date") is None
        assert parse_date("32/13/2024") is None


class TestNormalizeAnalysis:
    """Tests for coercing model output into a PropertyAnalysis."""

    def test_full_record(self):
        analysis = normalize_analysis(
            {
                "property_address": " 1 Main Street, Springfield ",
                "owner_name": ["Ann Lee", "Tom Lee"],
                "property_type": "Residential",
                "price": "$450,000",
                "key_dates": [
                    "January 15, 2024",
                    None,
                    {"event": "Closing", "date": "03/01/2024"},
                ],
                "important_clauses": ["No pets", {"clause": "Deposit", "detail": "10%"}],
                "document_type": "Purchase Agreement",
                "summary": "Sale of a family home.",
            }
        )

        assert analysis.property_address == "1 Main Street, Springfield"
        assert analysis.owner_name == "Ann Lee, Tom Lee"
        assert analysis.price == "$450,000"
        assert analysis.price_amount == 450000.0
        assert analysis.key_dates == ["2024-01-15", "Closing: 2024-03-01"]
        assert analysis.important_clauses == ["No pets", "Deposit - 10%"]
        assert analysis.fallback is False

    def test_missing_fields_become_none(self):
        analysis = normalize_analysis({"document_type": "Lease"})
        assert analysis.document_type == "Lease"
        assert analysis.property_address is None
        assert analysis.price_amount is None
        assert analysis.key_dates == []
        assert analysis.important_clauses == []

    def test_unparseable_dates_kept_as_text(self):
        analysis = normalize_analysis({"key_dates": "upon completion"})
        assert analysis.key_dates == ["upon completion"]

    def test_unknown_keys_dropped(self):
        analysis = normalize_analysis({"summary": "ok", "confidence": 0.9})
        assert "confidence" not in analysis.model_dump()


class TestBuildPrompt:
    def test_prompt_lists_every_field(self):
        prompt = build_analysis_prompt("Deed of sale")
        assert "Text: Deed of sale" in prompt
        for name in ("property_address", "owner_name", "key_dates", "important_clauses", "summary"):
            assert name in prompt
        assert "Return only valid JSON" in prompt


class TestAnalyzeText:
    """Tests for the OpenAI extraction call."""

    @pytest.mark.asyncio
    async def test_parses_json_response(self):
        completions = FakeCompletions(content='{"document_type": "Deed", "price": "€200.000,00"}')

        analysis = await analyze_text("Deed text", client=fake_client(completions), model="gpt-4")

        assert analysis.document_type == "Deed"
        assert analysis.price_amount == 200000.0
        call = completions.calls[0]
        assert call["model"] == "gpt-4"
        assert call["response_format"] == {"type": "json_object"}
        assert call["messages"][0]["role"] == "system"
        assert "Deed text" in call["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_empty_text_rejected(self):
        completions = FakeCompletions(content="{}")
        with pytest.raises(AIServiceError):
            await analyze_text("   ", client=fake_client(completions))
        assert completions.calls == []

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self):
        with pytest.raises(AIResponseError):
            await analyze_text("text", client=fake_client(FakeCompletions(content="not json")))

    @pytest.mark.asyncio
    async def test_non_object_json_raises(self):
        with pytest.raises(AIResponseError):
            await analyze_text("text", client=fake_client(FakeCompletions(content="[1, 2]")))

    @pytest.mark.asyncio
    async def test_api_error_raises(self):
        completions = FakeCompletions(error=RuntimeError("rate limited"))
        with pytest.raises(AIServiceError) as exc_info:
            await analyze_text("text", client=fake_client(completions))
        assert "rate limited" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        completions = FakeCompletions(content="{}", delay=0.5)
        with pytest.raises(AIServiceError) as exc_info:
            await analyze_text("text", client=fake_client(completions), timeout=0.05)
        assert "timed out" in str(exc_info.value)


class TestAIService:
    """Tests for the AIService wrapper."""

    def test_mock_mode_enabled_without_api_key(self):
        """Empty string (not None) skips loading the key from settings."""
        service = AIService(api_key="", use_mock=False)
        assert service.use_mock is True

    def test_mock_mode_enabled_explicitly(self):
        service = AIService(api_key="fake-key", use_mock=True)
        assert service.use_mock is True

    @pytest.mark.asyncio
    async def test_mock_analysis(self):
        service = AIService(use_mock=True)
        analysis = await service.analyze_text("some document text")

        assert isinstance(analysis, PropertyAnalysis)
        assert analysis.owner_name == "MOCK-OWNER"
        assert analysis.price_amount == 250000.0
        assert any("DEVELOPMENT" in c for c in analysis.important_clauses)

    @pytest.mark.asyncio
    async def test_failure_returns_fallback_record(self):
        service = AIService(api_key="sk-test", fallback_on_error=True)
        service._client = fake_client(FakeCompletions(error=RuntimeError("boom")))

        analysis = await service.analyze_text("text")

        assert analysis.fallback is True
        assert analysis.property_address == "Analysis unavailable"

    @pytest.mark.asyncio
    async def test_failure_raises_without_fallback(self):
        service = AIService(api_key="sk-test", fallback_on_error=False)
        service._client = fake_client(FakeCompletions(error=RuntimeError("boom")))

        with pytest.raises(AIServiceError):
            await service.analyze_text("text")

    @pytest.mark.asyncio
    async def test_success_uses_configured_model(self):
        completions = FakeCompletions(content='{"summary": "ok"}')
        service = AIService(api_key="sk-test", model="gpt-4o-mini", fallback_on_error=False)
        service._client = fake_client(completions)

        analysis = await service.analyze_text("text")

        assert analysis.summary == "ok"
        assert completions.calls[0]["model"] == "gpt-4o-mini"
