"""News and highlights feeds for the tracked companies."""
from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence, Tuple

from ooh_terminal.domain.defaults import BOOT_NEWS, FALLBACK_NEWS
from ooh_terminal.domain.models.sector import Category, NewsItem, Snapshot
from ooh_terminal.workflows.nodes.base import CategoryNode, payload_list

MAX_ITEMS = 50

_ITEM_SCHEMA = (
    '{"id": "string", "source": "string", "title": "string", "time": "string", '
    '"date": "YYYY-MM-DD", "tag": "string", "url": "string", "ticker": "string"}'
)


def _title_key(item: NewsItem) -> str:
    return re.sub(r"\s+", " ", item.title).strip().lower()


def merge_news(existing: Iterable[NewsItem], incoming: Iterable[NewsItem]) -> Tuple[NewsItem, ...]:
    """Union by title; incoming items first (newest), capped at ``MAX_ITEMS``."""
    merged: List[NewsItem] = []
    seen = set()
    for item in list(incoming) + list(existing):
        key = _title_key(item)
        if key in seen:
            continue
        seen.add(key)
        merged.append(item)
    return tuple(merged[:MAX_ITEMS])


def _parse_items(text: str, key: str) -> Optional[List[NewsItem]]:
    records = payload_list(text, key)
    if records is None:
        return None
    items = [item for item in (NewsItem.from_dict(r) for r in records) if item is not None]
    return items or None


class NewsNode(CategoryNode):
    category = Category.NEWS

    def prompt(self, snapshot: Snapshot, targets: List[str]) -> str:
        return (
            "Fetch the 5 most recent out-of-home advertising news items about: "
            f"{', '.join(targets)}.\n"
            f'Return JSON only: {{"news": [{_ITEM_SCHEMA}]}}'
        )

    def parse(self, text: str, snapshot: Snapshot, targets: Optional[Sequence[str]]) -> Optional[List[NewsItem]]:
        return _parse_items(text, "news")

    def merge(self, snapshot, payload, now, targets=None) -> Snapshot:
        # The boot placeholder is dropped once real items arrive.
        existing = [n for n in snapshot.news if n not in BOOT_NEWS]
        return snapshot.evolve(news=merge_news(existing, payload))

    def fallback(self, snapshot: Snapshot) -> Optional[List[NewsItem]]:
        if any(n not in BOOT_NEWS for n in snapshot.news):
            return None
        return list(FALLBACK_NEWS)


class HighlightsNode(CategoryNode):
    category = Category.HIGHLIGHTS

    def prompt(self, snapshot: Snapshot, targets: List[str]) -> str:
        return (
            "List the most significant recent corporate highlights (contracts won, "
            "acquisitions, results, guidance changes) for the out-of-home advertising "
            f"companies: {', '.join(targets)}.\n"
            f'Return JSON only: {{"highlights": [{_ITEM_SCHEMA}]}}'
        )

    def parse(self, text: str, snapshot: Snapshot, targets: Optional[Sequence[str]]) -> Optional[List[NewsItem]]:
        return _parse_items(text, "highlights")

    def merge(self, snapshot, payload, now, targets=None) -> Snapshot:
        return snapshot.evolve(highlights=merge_news(snapshot.highlights, payload))


NEWS_NODE = NewsNode()
HIGHLIGHTS_NODE = HighlightsNode()
