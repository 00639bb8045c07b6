"""
Structured extraction of real estate document data from plain text.

Uses OpenAI chat completions in JSON mode.
"""

import asyncio
import json
import logging
from typing import Any

from ...models import PropertyAnalysis
from .exceptions import AIResponseError, AIServiceError
from .validation import normalize_analysis

logger = logging.getLogger(__name__)


# =============================================================================
# Prompts
# =============================================================================

ANALYSIS_SYSTEM_PROMPT = (
    "You are a real estate document analyzer. Extract key information from "
    "property documents and return structured JSON."
)

ANALYSIS_FIELDS = (
    "property_address",
    "owner_name",
    "property_type",
    "price (if mentioned)",
    "key_dates",
    "important_clauses",
    "document_type",
    "summary",
)


def build_analysis_prompt(text: str) -> str:
    """Build the user prompt for one document."""
    fields = "\n".join(f"- {name}" for name in ANALYSIS_FIELDS)
    return f"""Analyze this real estate document and extract key information in JSON format:

Text: {text}

Please extract:
{fields}

Use null for anything the document does not state. key_dates and
important_clauses are lists of strings.

Return only valid JSON."""


# =============================================================================
# Extraction
# =============================================================================


def _parse_response(content: str | None) -> dict[str, Any]:
    if not content:
        raise AIResponseError("Empty response from OpenAI")

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse analysis response: %s", content[:500])
        raise AIResponseError(f"Invalid JSON in analysis response: {e}") from e

    if not isinstance(data, dict):
        raise AIResponseError("Analysis response is not a JSON object")
    return data


async def analyze_text(
    text: str,
    client: Any,  # OpenAI client
    model: str = "gpt-4",
    timeout: float = 60.0,
) -> PropertyAnalysis:
    """
    Extract a PropertyAnalysis from document text.

    The blocking SDK call runs in a worker thread and is bounded by
    `timeout` seconds.

    Raises:
        AIServiceError: On API errors, timeouts or unparseable output.
    """
    if not text.strip():
        raise AIServiceError("Document contains no extractable text")

    messages = [
        {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
        {"role": "user", "content": build_analysis_prompt(text)},
    ]

    try:
        response = await asyncio.wait_for(
            asyncio.to_thread(
                client.chat.completions.create,
                model=model,
                messages=messages,
                max_tokens=1000,
                temperature=0.3,
                response_format={"type": "json_object"},
                timeout=timeout,
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        logger.warning("OpenAI analysis timed out after %.1fs", timeout)
        raise AIServiceError(f"Analysis timed out after {timeout:.0f}s") from e
    except Exception as e:
        logger.error("OpenAI API error: %s", e)
        raise AIServiceError(f"Analysis request failed: {e}") from e

    data = _parse_response(response.choices[0].message.content)
    analysis = normalize_analysis(data)
    logger.info(
        "Analysis complete: document_type=%s, %d key date(s), %d clause(s)",
        analysis.document_type,
        len(analysis.key_dates),
        len(analysis.important_clauses),
    )
    return analysis
