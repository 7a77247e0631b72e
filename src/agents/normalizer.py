"""
Argument Normalizer
Canonicalizes oracle-extracted values one field at a time, before they are trusted.

Every rule is pure and idempotent: normalize(normalize(x)) == normalize(x).
Values a rule cannot repair are passed through unchanged (never silently
dropped), so the dispatcher can surface or ignore them. The only values that
are removed are "no value" markers: None, empty strings, and boolean filters
that are not literally "true" or "false".
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional, Union

from .intents import (
    CATEGORY_VALUES,
    COUNT_TARGETS,
    EXPENSE_STATUS_VALUES,
    INTERACTION_TYPES,
    METRICS,
    ROLE_VALUES,
)

# Marker for a field that carries no value and must be removed
REMOVE = object()

TITLE_CASE_FIELDS = frozenset({
    "city", "author", "publisher", "location", "name", "firstName", "lastName",
    "staffName", "contactName", "genre",
})
UPPER_CASE_FIELDS = frozenset({"state"})
LOWER_CASE_FIELDS = frozenset({"email"})
RANGE_FIELDS = frozenset({"priceFilter", "amountFilter"})
DATE_FIELDS = frozenset({
    "date", "reportDate", "dateSubmitted", "itemDate", "startDate", "endDate", "interactionDate",
})
BOOLEAN_FIELDS = frozenset({"sendTNSBNewsletter", "isActive", "inStock"})
INTEGER_FIELDS = frozenset({"stock", "publicationYear", "limit", "quantity"})
NUMBER_FIELDS = frozenset({"price", "totalAmount", "cashAmount"})
IDENTIFIER_FIELDS = frozenset({
    "identifier", "eventIdentifier", "contactIdentifier", "userIdentifier",
})

# Closed vocabularies matched case-insensitively; unmatched values pass through
ENUM_FIELDS = {
    "category": CATEGORY_VALUES,
    "status": EXPENSE_STATUS_VALUES,
    "type": INTERACTION_TYPES,
    "role": ROLE_VALUES,
    "target": COUNT_TARGETS + [t for t in METRICS if t not in COUNT_TARGETS],
    "metric": sorted({m for ms in METRICS.values() for m in ms}),
}

_NUMBER = r"(\d+(?:\.\d+)?|\.\d+)"
_LESS_THAN = re.compile(rf"^<{_NUMBER}$")
_GREATER_THAN = re.compile(rf"^>{_NUMBER}$")
_BETWEEN = re.compile(rf"^{_NUMBER}-{_NUMBER}$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


@dataclass(frozen=True)
class PriceRange:
    """Typed numeric range. None means the end is open."""
    min: Optional[float] = None
    max: Optional[float] = None
    min_inclusive: bool = True
    max_inclusive: bool = True

    def contains(self, value: Any) -> bool:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if self.min is not None:
            if value < self.min or (value == self.min and not self.min_inclusive):
                return False
        if self.max is not None:
            if value > self.max or (value == self.max and not self.max_inclusive):
                return False
        return True

    def to_filter_string(self) -> str:
        """Serialize back to the filter syntax the oracle uses."""
        if self.min is not None and self.max is not None:
            return f"{_format_number(self.min)}-{_format_number(self.max)}"
        if self.max is not None:
            return f"<{_format_number(self.max)}"
        return f">{_format_number(self.min)}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min": self.min,
            "max": self.max,
            "minInclusive": self.min_inclusive,
            "maxInclusive": self.max_inclusive,
        }


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _to_number(text: str) -> Union[int, float]:
    number = float(text)
    return int(number) if number.is_integer() else number


def _canonical_key(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "", text.lower())


def title_case(text: str) -> str:
    """Lower-case, then capitalize the first letter of each whitespace-separated word."""
    return " ".join(word[:1].upper() + word[1:] for word in text.strip().lower().split())


def match_enum(value: Any, allowed: Iterable[str]) -> Any:
    """Case-insensitive match against a closed set. Unmatched values pass through unchanged."""
    if not isinstance(value, str):
        return value
    wanted = _canonical_key(value)
    for candidate in allowed:
        if _canonical_key(candidate) == wanted:
            return candidate
    return value


def parse_price_filter(value: Any) -> Any:
    """Parse '<N', '>N' or 'A-B' into a PriceRange. Malformed input is returned unchanged."""
    if isinstance(value, PriceRange):
        return value
    if isinstance(value, dict) and ({"min", "max"} & set(value)):
        try:
            low = _to_number(str(value["min"])) if value.get("min") is not None else None
            high = _to_number(str(value["max"])) if value.get("max") is not None else None
        except ValueError:
            return value
        if low is None and high is None:
            return value
        return PriceRange(
            min=low,
            max=high,
            min_inclusive=value.get("minInclusive") is not False,
            max_inclusive=value.get("maxInclusive") is not False,
        )
    if not isinstance(value, str):
        return value

    compact = re.sub(r"\s+", "", value).replace("$", "")
    match = _LESS_THAN.match(compact)
    if match:
        return PriceRange(max=_to_number(match.group(1)), max_inclusive=False)
    match = _GREATER_THAN.match(compact)
    if match:
        return PriceRange(min=_to_number(match.group(1)), min_inclusive=False)
    match = _BETWEEN.match(compact)
    if match:
        low, high = _to_number(match.group(1)), _to_number(match.group(2))
        if low <= high:
            return PriceRange(min=low, max=high)
    return value


def parse_local_date(value: Any) -> Any:
    """Parse 'YYYY-MM-DD' into a calendar date.

    The date is built from its year/month/day components, never through a
    timezone-aware parser, so it cannot drift by a day with the host offset.
    Already-typed dates and timestamps pass through, as does anything unparseable.
    """
    if isinstance(value, (date, datetime)):
        return value
    if not isinstance(value, str):
        return value
    match = _ISO_DATE.match(value.strip())
    if not match:
        return value
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return value


def coerce_boolean(value: Any) -> Any:
    """Only the literal strings 'true'/'false' coerce. Anything else means 'not set'."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        token = value.strip()
        if token == "true":
            return True
        if token == "false":
            return False
    return REMOVE


def coerce_number(value: Any, integer: bool = False) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and integer and value.is_integer():
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            number = _to_number(value.strip().replace("$", "").replace(",", ""))
        except ValueError:
            return value
        return number
    return value


def normalize_value(field: str, value: Any) -> Any:
    """Normalize one field. Returns REMOVE when the field carries no value."""
    if value is None:
        return REMOVE
    if isinstance(value, str) and not value.strip():
        return REMOVE

    if field in BOOLEAN_FIELDS:
        return coerce_boolean(value)
    if field in RANGE_FIELDS:
        return parse_price_filter(value)
    if field in DATE_FIELDS:
        return parse_local_date(value)
    if field in INTEGER_FIELDS:
        return coerce_number(value, integer=True)
    if field in NUMBER_FIELDS:
        return coerce_number(value)

    if isinstance(value, dict):
        return normalize_arguments(value)
    if isinstance(value, list):
        items = [normalize_value(field, item) for item in value]
        items = [item for item in items if item is not REMOVE]
        return items if items else REMOVE

    if not isinstance(value, str):
        return value

    if field in TITLE_CASE_FIELDS:
        return title_case(value)
    if field in UPPER_CASE_FIELDS:
        return value.strip().upper()
    if field in LOWER_CASE_FIELDS:
        return value.strip().lower()
    if field in ENUM_FIELDS:
        return match_enum(value.strip(), ENUM_FIELDS[field])
    if field in IDENTIFIER_FIELDS:
        return value.strip()
    return value


def normalize_arguments(args: Optional[Dict[str, Any]], intent=None) -> Dict[str, Any]:
    """Normalize every field of an argument mapping, recursing into nested mappings.

    Rules are keyed by field name only, so intents that share a field name
    share its rule.
    """
    normalized = {}
    for field, value in (args or {}).items():
        result = normalize_value(field, value)
        if result is not REMOVE:
            normalized[field] = result
    return normalized
