"""Parsing and display helpers for loosely formatted financial magnitudes.

Every magnitude handled by the engine is expressed in millions of the
company's reporting currency. Provider payloads mix formats freely
("920 M", "3,5 Md", "1.2B", "250k", "--"), so the parsers below are total:
anything that cannot be read becomes ``0.0`` and downstream arithmetic keeps
working.
"""
from __future__ import annotations

import math
import re
from typing import Any, Optional

import numpy as np

PLACEHOLDER = "--"

_BILLION_TOKENS = {"B", "BN", "BILLION", "BILLIONS", "MD", "MDS", "MRD", "MILLIARD", "MILLIARDS"}
_THOUSAND_TOKENS = {"K", "THOUSAND", "THOUSANDS"}

_NON_NUMERIC = re.compile(r"[^0-9,.\-]")
_UNICODE_MINUS = "\u2212"
# "1,234" in a quote is a thousands group, not a decimal comma.
_GROUPED_QUOTE = re.compile(r"^\d{1,3},\d{3}$")
_ALPHA_TOKENS = re.compile(r"[A-Za-z]+")


def _unit_multiplier(text: str) -> float:
    tokens = {token.upper() for token in _ALPHA_TOKENS.findall(text)}
    if tokens & _BILLION_TOKENS:
        return 1000.0
    if tokens & _THOUSAND_TOKENS:
        return 0.001
    return 1.0


def _normalize_separators(clean: str) -> str:
    """Turn localized digit groups into a float()-friendly string."""
    has_comma = "," in clean
    has_dot = "." in clean
    if has_comma and has_dot:
        # Whichever separator comes last is the decimal point.
        if clean.rfind(",") > clean.rfind("."):
            return clean.replace(".", "").replace(",", ".")
        return clean.replace(",", "")
    if has_comma:
        if clean.count(",") > 1:
            return clean.replace(",", "")
        return clean.replace(",", ".")
    if clean.count(".") > 1:
        return clean.replace(".", "")
    return clean


def _finite_or_zero(value: float) -> float:
    return value if math.isfinite(value) else 0.0


def parse_financial_value(value: Any) -> float:
    """Convert a magnitude such as ``"920 M"`` or ``"3,5 Md"`` into millions."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return _finite_or_zero(float(value))
    if not value or not isinstance(value, str) or value.strip() == PLACEHOLDER:
        return 0.0

    clean = _NON_NUMERIC.sub("", value.replace(_UNICODE_MINUS, "-"))
    # A sign is only meaningful in front of the digits.
    negative = clean.startswith("-")
    clean = clean.replace("-", "")
    clean = _normalize_separators(clean)
    try:
        numeric = float(clean)
    except ValueError:
        return 0.0
    if negative:
        numeric = -numeric
    return _finite_or_zero(numeric * _unit_multiplier(value))


def parse_percent(value: Any) -> float:
    """Parse ``"3.5%"`` (or ``"3,5 %"``) into ``3.5``; unreadable input gives 0."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return _finite_or_zero(float(value))
    if not value or not isinstance(value, str):
        return 0.0
    clean = value.replace(_UNICODE_MINUS, "-").replace("%", "").strip().replace(" ", "")
    if "," in clean and "." not in clean:
        clean = clean.replace(",", ".")
    try:
        return _finite_or_zero(float(clean))
    except ValueError:
        return 0.0


def parse_price(value: Any) -> float:
    """Parse a plain quote (no unit scaling); invalid or negative values give 0."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        numeric = _finite_or_zero(float(value))
    elif isinstance(value, str):
        digits = _NON_NUMERIC.sub("", value).replace("-", "")
        if _GROUPED_QUOTE.match(digits):
            digits = digits.replace(",", "")
        clean = _normalize_separators(digits)
        try:
            numeric = _finite_or_zero(float(clean))
        except ValueError:
            return 0.0
    else:
        return 0.0
    return numeric if numeric > 0 else 0.0


def format_magnitude(value: float) -> str:
    """Render a value in millions as ``"920 M"``; zero renders as ``--``.

    The shortest positional representation is used so that parsing the
    result gives the same float back.
    """
    if value is None or not math.isfinite(value) or value == 0:
        return PLACEHOLDER
    text = np.format_float_positional(float(value), trim="-")
    return f"{text} M"


def format_currency_short(value: Any) -> str:
    """Compact display: ``"4.24 B"`` above a billion, ``"920.0 M"`` below."""
    if value is None or value == PLACEHOLDER or value == "":
        return PLACEHOLDER
    numeric = parse_financial_value(value)
    if numeric == 0:
        return PLACEHOLDER
    if abs(numeric) >= 1000:
        return f"{numeric / 1000:.2f} B"
    return f"{numeric:.1f} M"


def format_multiple(value: Optional[float]) -> str:
    """Render a valuation multiple; the 0 sentinel means not meaningful."""
    if value is None or not math.isfinite(value) or value == 0:
        return PLACEHOLDER
    return f"{value:.1f}x"


def format_percent(value: Optional[float]) -> str:
    if value is None or not math.isfinite(value) or value == 0:
        return PLACEHOLDER
    return f"{value:.1f}%"


def format_age(timestamp: Optional[float], now: float) -> str:
    """Human readable age of a freshness stamp (epoch seconds)."""
    if not timestamp:
        return "never"
    elapsed = max(0.0, now - timestamp)
    if elapsed < 60:
        return "just now"
    minutes = int(elapsed // 60)
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    days = hours // 24
    return f"{days} day{'s' if days != 1 else ''} ago"
