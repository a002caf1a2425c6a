"""Fundamentals refresh: per-year raw figures, balance sheet inputs and quotes.

Also the path by which a new company enters the snapshot: a target absent
from the tracked set becomes a company when the provider returns a record
resolving to it.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

from ooh_terminal.domain.models.sector import FISCAL_YEARS, Category, Company, Snapshot, fundamentals_from_flat
from ooh_terminal.domain.services.parsing import PLACEHOLDER, parse_financial_value, parse_percent, parse_price
from ooh_terminal.domain.services.ratios import shares_from_market_cap
from ooh_terminal.workflows.nodes.base import CategoryNode, merge_company_records, payload_list

_FIELDS = ("revenue", "ebitda", "ebit", "netIncome", "capex", "fcf", "dividendPerShare", "dividendYield")


def _schema() -> str:
    flat = ", ".join(f'"{name}{year}": "string"' for name in _FIELDS for year in FISCAL_YEARS)
    return (
        '{"companies": [{"ticker": "string", "name": "string", "currency": "string", '
        '"price": number, "change": number, "netDebt": "string", '
        '"sharesOutstanding": number, "marketCap": "string", '
        '"description": "string", "nextEarnings": "YYYY-MM-DD", '
        f"{flat}}}]}}"
    )


def _update(company: Company, record: Dict[str, Any]) -> Company:
    changes: Dict[str, Any] = {}

    net_debt = str(record.get("netDebt") or record.get("net_debt") or "").strip()
    if net_debt and net_debt != PLACEHOLDER:
        changes["net_debt"] = net_debt

    shares = parse_financial_value(record.get("sharesOutstanding", record.get("shares_outstanding")))
    if shares > 0:
        changes["shares_outstanding"] = shares

    price = parse_price(record.get("price"))
    if price > 0:
        changes["price"] = price
        changes["change"] = parse_percent(record.get("change"))

    if shares <= 0 and company.shares_outstanding <= 0:
        derived = shares_from_market_cap(record.get("marketCap", record.get("market_cap")), price or company.price)
        if derived > 0:
            changes["shares_outstanding"] = derived

    name = str(record.get("name") or "").strip()
    if name and company.name in ("", company.ticker):
        changes["name"] = name

    description = str(record.get("description") or "").strip()
    if description and not company.description:
        changes["description"] = description

    next_earnings = str(record.get("nextEarnings") or "").strip()
    if next_earnings:
        changes["next_earnings"] = next_earnings

    updated = company.with_fundamentals(fundamentals_from_flat(record))
    return replace(updated, **changes) if changes else updated


class FundamentalsNode(CategoryNode):
    category = Category.FUNDAMENTALS

    def prompt(self, snapshot: Snapshot, targets: List[str]) -> str:
        years = "/".join(FISCAL_YEARS)
        return (
            f"Out-of-home advertising fundamentals for: {', '.join(targets)}.\n"
            f"Required ({years}): revenue, EBITDA, EBIT, net income, capex, free cash flow, "
            "dividend per share, dividend yield; plus price, daily change, net debt and shares "
            "outstanding in millions. Amounts as strings with a unit, e.g. \"3570 M\".\n"
            f"Return JSON only:\n{_schema()}"
        )

    def parse(self, text: str, snapshot: Snapshot, targets: Optional[Sequence[str]]) -> Optional[List[Dict[str, Any]]]:
        records = payload_list(text, "companies")
        if records is None:
            return None
        usable = [r for r in records if r.get("ticker")]
        return usable or None

    def merge(self, snapshot, payload, now, targets=None) -> Snapshot:
        return merge_company_records(
            snapshot, payload, _update, now=now, targets=targets, allow_new=True
        )


NODE = FundamentalsNode()
