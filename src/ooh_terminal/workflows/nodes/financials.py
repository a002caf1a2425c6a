"""Quote refresh: latest price and daily change per tracked company."""
from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from ooh_terminal.domain.models.sector import Category, Company, Snapshot
from ooh_terminal.domain.services.parsing import parse_percent, parse_price
from ooh_terminal.workflows.nodes.base import CategoryNode, merge_company_records, payload_list


def _quote(company: Company, record: Dict[str, Any]) -> Company:
    price = parse_price(record.get("price"))
    if price <= 0:
        return company
    return replace(company, price=price, change=parse_percent(record.get("change")))


class FinancialsNode(CategoryNode):
    category = Category.FINANCIALS

    def prompt(self, snapshot: Snapshot, targets: List[str]) -> str:
        return (
            f"Latest stock quotes as of {date.today().isoformat()} for: {', '.join(targets)}.\n"
            "Return JSON only:\n"
            '{"companies": [{"ticker": "string", "price": number, "change": number}]}\n'
            "change is the daily move in percent."
        )

    def parse(self, text: str, snapshot: Snapshot, targets: Optional[Sequence[str]]) -> Optional[List[Dict[str, Any]]]:
        records = payload_list(text, "companies")
        if records is None:
            return None
        quotes = [r for r in records if r.get("ticker") and parse_price(r.get("price")) > 0]
        return quotes or None

    def merge(self, snapshot, payload, now, targets=None) -> Snapshot:
        return merge_company_records(snapshot, payload, _quote, now=now, targets=targets)


NODE = FinancialsNode()
