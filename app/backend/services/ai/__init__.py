"""
AI service package for real estate document analysis.

This package provides:
- extraction: Prompting OpenAI and parsing its JSON answer
- validation: Normalization of the returned record

The AIService class wraps these modules with configuration, mock mode
and the fallback record policy.
"""

import logging

from ...config import get_settings
from ...models import PropertyAnalysis
from .exceptions import AIResponseError, AIServiceError
from .extraction import analyze_text as _analyze_text, build_analysis_prompt
from .validation import normalize_analysis, parse_currency, parse_date

logger = logging.getLogger(__name__)

__all__ = [
    "AIResponseError",
    "AIService",
    "AIServiceError",
    "build_analysis_prompt",
    "get_ai_service",
    "normalize_analysis",
    "parse_currency",
    "parse_date",
]


class AIService:
    """
    Service for AI-powered real estate document analysis.

    Uses an OpenAI chat model to turn document text into a PropertyAnalysis.
    When `fallback_on_error` is set, failures produce the placeholder record
    (`fallback=True`) instead of raising.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        fallback_on_error: bool | None = None,
        use_mock: bool = False,
    ):
        """
        Initialize the AI service.

        Args:
            api_key: OpenAI API key. If None, reads from config/environment.
            model: OpenAI chat model to use.
            timeout: Seconds allowed for one analysis call.
            fallback_on_error: Return the placeholder record on failure.
            use_mock: If True, return mock data instead of calling OpenAI.
        """
        settings = get_settings()
        if api_key is None:
            api_key = settings.openai_api_key

        self.api_key = api_key
        self.model = model or settings.openai_model
        self.timeout = timeout if timeout is not None else settings.ai_timeout_seconds
        self.fallback_on_error = (
            settings.ai_fallback_on_error if fallback_on_error is None else fallback_on_error
        )
        self.use_mock = use_mock or not self.api_key
        self._client = None

        if self.use_mock:
            logger.warning(
                "AI Service running in MOCK MODE. Set OPENAI_API_KEY in .env for real analysis."
            )

    @property
    def client(self):
        """Lazy-load the OpenAI client."""
        if self._client is None:
            if not self.api_key:
                raise AIServiceError(
                    "OpenAI API key not provided. Set OPENAI_API_KEY environment variable."
                )
            from openai import OpenAI

            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    async def analyze_text(self, text: str) -> PropertyAnalysis:
        """
        Analyze document text.

        Returns:
            The extracted record, or the placeholder record when the call
            fails and fallback is enabled.

        Raises:
            AIServiceError: When the call fails and fallback is disabled.
        """
        if self.use_mock:
            return self._get_mock_analysis(text)

        try:
            return await _analyze_text(
                text,
                client=self.client,
                model=self.model,
                timeout=self.timeout,
            )
        except AIServiceError as e:
            if not self.fallback_on_error:
                raise
            logger.warning("AI analysis failed, returning fallback record: %s", e)
            return PropertyAnalysis.unavailable()

    def _get_mock_analysis(self, text: str) -> PropertyAnalysis:
        """Return a mock analysis for development."""
        return normalize_analysis(
            {
                "property_address": "123 Mock Street, Test City",
                "owner_name": "MOCK-OWNER",
                "property_type": "Residential",
                "price": "€250,000",
                "key_dates": ["2024-01-15"],
                "important_clauses": ["DEVELOPMENT MODE: mock analysis"],
                "document_type": "Purchase Agreement",
                "summary": f"Mock analysis of a {len(text)}-character document.",
            }
        )


# =============================================================================
# Singleton Factory
# =============================================================================

_ai_service: AIService | None = None


def get_ai_service() -> AIService:
    """Get or create the AI service singleton."""
    global _ai_service
    if _ai_service is None:
        _ai_service = AIService()
    return _ai_service
