"""Text extraction helpers for escalation rules.

Monetary amounts and phrase matching live here so the parsing rules can be
tested without any scheduling state.

Supported amount formats:
  $15,000   $15,000.50   $ 2500   $15k   $1.2M   $3 million
  12,500 USD   3000 dollars
"""

from __future__ import annotations

import re
from collections.abc import Iterable

AMOUNT_PATTERN = re.compile(
    r"\$\s?(?P<dollar>\d[\d,]*(?:\.\d+)?)(?:\s?(?P<suffix>thousand|million|mm)\b|(?P<short>[km])\b)?"
    r"|(?P<plain>\d[\d,]*(?:\.\d+)?)\s*(?:dollars?|usd)\b",
    re.IGNORECASE,
)

SUFFIX_MULTIPLIERS: dict[str, float] = {
    "k": 1_000.0,
    "thousand": 1_000.0,
    "m": 1_000_000.0,
    "mm": 1_000_000.0,
    "million": 1_000_000.0,
}

CONTRACT_PATTERN = re.compile(r"\bcontracts?\b", re.IGNORECASE)


def _to_number(raw: str) -> float | None:
    cleaned = raw.replace(",", "").rstrip(".")
    try:
        return float(cleaned)
    except ValueError:
        return None


def extract_amounts(text: str) -> list[float]:
    """Return every monetary amount in `text`, in order of appearance."""
    amounts: list[float] = []
    for match in AMOUNT_PATTERN.finditer(text or ""):
        if match.group("dollar") is not None:
            value = _to_number(match.group("dollar"))
            # Single-letter suffixes must be attached: $15k, not "$5 M&A"
            suffix = (match.group("suffix") or match.group("short") or "").lower()
            if value is not None and suffix:
                value *= SUFFIX_MULTIPLIERS[suffix]
        else:
            value = _to_number(match.group("plain"))
        if value is not None:
            amounts.append(value)
    return amounts


def mentions_contract(text: str) -> bool:
    return bool(CONTRACT_PATTERN.search(text or ""))


def find_phrase(text: str, phrases: Iterable[str]) -> str | None:
    """First phrase (in `phrases` order) contained in `text`, case-insensitive."""
    lowered = (text or "").lower()
    for phrase in phrases:
        if phrase and phrase.lower() in lowered:
            return phrase
    return None


def format_amount(value: float) -> str:
    """Render an amount as `$15,000` (or `$15,000.50` when fractional)."""
    if value == int(value):
        return f"${int(value):,}"
    return f"${value:,.2f}"
