"""Ticker identity resolution across independently sourced records."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

# Provider payloads sometimes write "DEC_PA" for "DEC.PA".
_SEPARATOR_VARIANTS = ("_", "-", " ")


def normalize_ticker(ticker: Any) -> str:
    """Canonical form used for comparisons and storage keys."""
    if ticker is None:
        return ""
    text = str(ticker).strip().upper()
    for variant in _SEPARATOR_VARIANTS:
        text = text.replace(variant, ".")
    return text


def resolve_ticker(target: str, candidates: Iterable[str]) -> Optional[str]:
    """Return the candidate that names the same entity as ``target``.

    Matching order: exact (case-insensitive), exact after separator
    normalization, then substring containment in either direction. The first
    match wins at every step, so short tickers can collide in the last step.
    """
    pool: List[str] = [c for c in candidates if c is not None and str(c).strip()]
    wanted = str(target or "").strip()
    if not wanted or not pool:
        return None

    upper = wanted.upper()
    for candidate in pool:
        if str(candidate).strip().upper() == upper:
            return candidate

    normalized = normalize_ticker(wanted)
    for candidate in pool:
        if normalize_ticker(candidate) == normalized:
            return candidate

    for candidate in pool:
        other = normalize_ticker(candidate)
        if normalized in other or other in normalized:
            return candidate
    return None


def match_record(
    target: str,
    records: Sequence[Dict[str, Any]],
    *,
    key: str = "ticker",
) -> Optional[Dict[str, Any]]:
    """Find the record whose ``key`` field resolves to ``target``."""
    tickers = [str(r.get(key)) for r in records if isinstance(r, dict) and r.get(key)]
    resolved = resolve_ticker(target, tickers)
    if resolved is None:
        return None
    for record in records:
        if isinstance(record, dict) and str(record.get(key)) == resolved:
            return record
    return None
