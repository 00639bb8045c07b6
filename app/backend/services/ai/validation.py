"""
Normalization utilities for analysis records returned by the model.

Handles:
- Coercing the model's loosely typed JSON into a PropertyAnalysis
- Currency parsing of the price field
- Date normalization of key dates
- Data cleaning (null removal from arrays)
"""

import logging
import re
from datetime import datetime
from typing import Any

from dateutil import parser as date_parser
from price_parser import Price

from ...models import PropertyAnalysis

logger = logging.getLogger(__name__)

_TEXT_FIELDS = (
    "property_address",
    "owner_name",
    "property_type",
    "price",
    "document_type",
    "summary",
)


def parse_currency(value: Any) -> float | None:
    """
    Parse a currency string to float using price-parser.

    Handles international formats such as "$1,234.56", "€1.234,56",
    "1000 USD" or "£500.00".
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return None

    value = value.strip()
    if not value:
        return None

    try:
        price = Price.fromstring(value)
        if price.amount_float is not None:
            return price.amount_float

        # Fallback: plain numbers without a currency symbol
        cleaned = re.sub(r"[^\d.,\-]", "", value)
        if cleaned:
            if "," in cleaned and "." in cleaned:
                if cleaned.rfind(",") > cleaned.rfind("."):
                    cleaned = cleaned.replace(".", "").replace(",", ".")
                else:
                    cleaned = cleaned.replace(",", "")
            elif "," in cleaned:
                parts = cleaned.split(",")
                if len(parts) == 2 and len(parts[1]) == 2:
                    cleaned = cleaned.replace(",", ".")
                else:
                    cleaned = cleaned.replace(",", "")
            return float(cleaned)
        return None

    except (ValueError, AttributeError):
        return None


def parse_date(value: Any) -> str | None:
    """
    Parse various date formats to YYYY-MM-DD.

    Returns None if parsing fails.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)

    value = value.strip()
    if not value:
        return None

    # Try ISO format first (YYYY-MM-DD)
    if re.match(r"^\d{4}-\d{2}-\d{2}$", value):
        return value

    # Slash dates are read month-first, then day-first
    match = re.match(r"^(\d{1,2})/(\d{1,2})/(\d{4})$", value)
    if match:
        first, second, year = (int(g) for g in match.groups())
        for month, day in ((first, second), (second, first)):
            try:
                return datetime(year, month, day).strftime("%Y-%m-%d")
            except ValueError:
                continue
        return None

    # Written formats ("January 15, 2024", "15 Jan 2024")
    try:
        return date_parser.parse(value).strftime("%Y-%m-%d")
    except (ValueError, OverflowError):
        return None


def clean_null_from_arrays(
    data: dict[str, Any] | list[Any] | Any,
) -> dict[str, Any] | list[Any] | Any:
    """Recursively remove None/null values from arrays in the data structure."""
    if isinstance(data, dict):
        return {k: clean_null_from_arrays(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [clean_null_from_arrays(item) for item in data if item is not None]
    else:
        return data


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value if v is not None) or None
    return str(value)


def _normalize_key_date(item: Any) -> str | None:
    """
    Render one key date as text.

    The model returns either plain strings or objects such as
    {"event": "Closing", "date": "March 3, 2024"}.
    """
    if isinstance(item, dict):
        raw_date = item.get("date") or item.get("value")
        label = item.get("event") or item.get("description") or item.get("label")
        iso = parse_date(raw_date) or _as_text(raw_date)
        if label and iso:
            return f"{label}: {iso}"
        return iso or _as_text(label)
    text = _as_text(item)
    if text is None:
        return None
    return parse_date(text) or text


def _as_text_list(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        value = [value]
    items = []
    for item in value:
        if isinstance(item, dict):
            text = " - ".join(str(v) for v in item.values() if v is not None)
        else:
            text = _as_text(item)
        if text:
            items.append(text)
    return items


def normalize_analysis(raw: dict[str, Any]) -> PropertyAnalysis:
    """
    Build a PropertyAnalysis from the model's JSON output.

    Unknown keys are dropped, scalars are coerced to text, the price is
    parsed to a number and key dates are ISO-formatted where possible.
    """
    data = clean_null_from_arrays(raw)

    fields: dict[str, Any] = {name: _as_text(data.get(name)) for name in _TEXT_FIELDS}
    fields["price_amount"] = parse_currency(data.get("price"))
    fields["key_dates"] = [
        d for d in (_normalize_key_date(item) for item in _listify(data.get("key_dates"))) if d
    ]
    fields["important_clauses"] = _as_text_list(data.get("important_clauses"))
    fields["fallback"] = bool(data.get("fallback", False))

    dropped = sorted(set(data) - set(fields))
    if dropped:
        logger.debug("Ignoring unexpected analysis keys: %s", dropped)

    return PropertyAnalysis(**fields)


def _listify(value: Any) -> list[Any]:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]
