"""Shared plumbing for category pipeline nodes."""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from ooh_terminal.domain.models.sector import Category, Company, Snapshot
from ooh_terminal.domain.services.ratios import apply_ratios
from ooh_terminal.domain.services.tickers import match_record, normalize_ticker
from ooh_terminal.infrastructure.llm.gemini_client import InferenceRequest
from ooh_terminal.workflows.nodes.llm_clean import parse_json_payload

SYSTEM_PROMPT = (
    "You are a financial data extraction service for the out-of-home advertising sector. "
    "Answer with a single JSON document and nothing else."
)


class CategoryNode:
    """Request, parse, merge and fallback rules for one data category.

    ``parse`` returns ``None`` when the provider text holds nothing usable;
    ``fallback`` returns bundled data only when the snapshot has none yet.
    """

    category: Category
    web_search = True

    def build_request(self, snapshot: Snapshot, targets: Optional[Sequence[str]]) -> InferenceRequest:
        return InferenceRequest.from_prompt(
            self.prompt(snapshot, resolve_targets(snapshot, targets)),
            system=SYSTEM_PROMPT,
            web_search=self.web_search,
        )

    def prompt(self, snapshot: Snapshot, targets: List[str]) -> str:
        raise NotImplementedError

    def parse(self, text: str, snapshot: Snapshot, targets: Optional[Sequence[str]]) -> Optional[Any]:
        raise NotImplementedError

    def merge(
        self,
        snapshot: Snapshot,
        payload: Any,
        now: float,
        targets: Optional[Sequence[str]] = None,
    ) -> Snapshot:
        raise NotImplementedError

    def fallback(self, snapshot: Snapshot) -> Optional[Any]:
        return None


def resolve_targets(snapshot: Snapshot, targets: Optional[Sequence[str]]) -> List[str]:
    if targets:
        return [t for t in (normalize_ticker(t) for t in targets) if t]
    return snapshot.tickers()


def payload_list(text: str, key: str) -> Optional[List[Dict[str, Any]]]:
    """``{key: [...]}`` (or a bare list) from provider text; None if absent."""
    payload = parse_json_payload(text, {})
    if isinstance(payload, dict):
        payload = payload.get(key)
    if not isinstance(payload, list):
        return None
    records = [item for item in payload if isinstance(item, dict)]
    return records or None


def stamp_label(now: float) -> str:
    return datetime.fromtimestamp(now, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def merge_company_records(
    snapshot: Snapshot,
    records: Sequence[Dict[str, Any]],
    update: Callable[[Company, Dict[str, Any]], Company],
    *,
    now: float,
    targets: Optional[Sequence[str]] = None,
    allow_new: bool = False,
) -> Snapshot:
    """Apply matching provider records to companies and recompute ratios.

    Companies outside ``targets`` are left untouched, records that match no
    company are skipped. With ``allow_new`` a target absent from the
    snapshot becomes a new company when a record resolves to it.
    """
    scope = {normalize_ticker(t) for t in targets} if targets else None
    companies: List[Company] = []
    for company in snapshot.companies:
        if scope is not None and company.key not in scope:
            companies.append(company)
            continue
        record = match_record(company.ticker, records)
        companies.append(company if record is None else apply_ratios(update(company, record)))

    if allow_new and scope:
        known = {c.key for c in companies}
        for ticker in _ordered(scope, targets or ()):
            if ticker in known:
                continue
            record = match_record(ticker, records)
            if record is None:
                continue
            name = str(record.get("name") or ticker).strip()
            fresh = Company(
                ticker=ticker,
                name=name,
                id=slugify(name) or slugify(ticker),
                currency=str(record.get("currency") or "USD"),
            )
            companies.append(apply_ratios(update(fresh, record)))
            known.add(ticker)

    return snapshot.evolve(companies=tuple(companies), last_updated=stamp_label(now))


def _ordered(scope: Iterable[str], targets: Sequence[str]) -> List[str]:
    seen: List[str] = []
    for target in targets:
        key = normalize_ticker(target)
        if key in scope and key not in seen:
            seen.append(key)
    return seen
