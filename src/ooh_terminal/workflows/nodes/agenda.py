"""Upcoming corporate events (earnings dates, AGMs, investor days)."""
from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ooh_terminal.domain.defaults import FALLBACK_EVENTS
from ooh_terminal.domain.models.sector import Category, EventItem, Snapshot
from ooh_terminal.domain.services.tickers import resolve_ticker
from ooh_terminal.workflows.nodes.base import CategoryNode, payload_list


def merge_events(existing: Iterable[EventItem], incoming: Iterable[EventItem]) -> Tuple[EventItem, ...]:
    """Union by ``(title, date)`` sorted by date ascending; incoming wins."""
    by_key: Dict[Tuple[str, str], EventItem] = {}
    for item in list(existing) + list(incoming):
        by_key[(item.title.strip().lower(), item.date)] = item
    return tuple(sorted(by_key.values(), key=lambda e: e.date))


class CalendarNode(CategoryNode):
    category = Category.CALENDAR

    def prompt(self, snapshot: Snapshot, targets: List[str]) -> str:
        return (
            f"Upcoming earnings dates and corporate events for: {', '.join(targets)}.\n"
            "Return JSON only:\n"
            '{"events": [{"id": "string", "title": "string", "date": "YYYY-MM-DD", '
            '"type": "Earnings | AGM | Dividend | Conference", "ticker": "string"}]}'
        )

    def parse(self, text: str, snapshot: Snapshot, targets: Optional[Sequence[str]]) -> Optional[List[EventItem]]:
        records = payload_list(text, "events")
        if records is None:
            return None
        tickers = snapshot.tickers()
        events: List[EventItem] = []
        for record in records:
            item = EventItem.from_dict(record)
            if item is None:
                continue
            if item.ticker:
                item = replace(item, ticker=resolve_ticker(item.ticker, tickers) or item.ticker)
            events.append(item)
        return events or None

    def merge(self, snapshot, payload, now, targets=None) -> Snapshot:
        return snapshot.evolve(events=merge_events(snapshot.events, payload))

    def fallback(self, snapshot: Snapshot) -> Optional[List[EventItem]]:
        if snapshot.events:
            return None
        return list(FALLBACK_EVENTS)


NODE = CalendarNode()
