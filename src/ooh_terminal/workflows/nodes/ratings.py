"""Analyst consensus refresh: rating label and target price."""
from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

from ooh_terminal.domain.models.sector import AnalystRating, Category, Company, Snapshot
from ooh_terminal.domain.services.parsing import parse_price
from ooh_terminal.workflows.nodes.base import CategoryNode, merge_company_records, payload_list


def _update(company: Company, record: Dict[str, Any]) -> Company:
    changes: Dict[str, Any] = {}
    rating = AnalystRating.parse(record.get("rating"))
    if rating is not AnalystRating.NA:
        changes["rating"] = rating
    target = parse_price(record.get("targetPrice", record.get("target_price")))
    if target > 0:
        changes["target_price"] = target
    return replace(company, **changes) if changes else company


class RatingsNode(CategoryNode):
    category = Category.RATINGS

    def prompt(self, snapshot: Snapshot, targets: List[str]) -> str:
        return (
            f"Current analyst consensus for: {', '.join(targets)}.\n"
            "Return JSON only:\n"
            '{"companies": [{"ticker": "string", '
            '"rating": "Buy | Strong Buy | Hold | Sell", "targetPrice": number}]}'
        )

    def parse(self, text: str, snapshot: Snapshot, targets: Optional[Sequence[str]]) -> Optional[List[Dict[str, Any]]]:
        records = payload_list(text, "companies")
        if records is None:
            return None
        usable = [
            r
            for r in records
            if r.get("ticker")
            and (
                AnalystRating.parse(r.get("rating")) is not AnalystRating.NA
                or parse_price(r.get("targetPrice", r.get("target_price"))) > 0
            )
        ]
        return usable or None

    def merge(self, snapshot, payload, now, targets=None) -> Snapshot:
        return merge_company_records(snapshot, payload, _update, now=now, targets=targets)


NODE = RatingsNode()
