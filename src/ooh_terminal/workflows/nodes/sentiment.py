"""Sector sentiment: a label, a short description and key takeaways."""
from __future__ import annotations

from dataclasses import replace
from typing import List, Optional, Sequence

from ooh_terminal.domain.models.sector import Category, Sentiment, Snapshot
from ooh_terminal.workflows.nodes.base import CategoryNode, stamp_label
from ooh_terminal.workflows.nodes.llm_clean import parse_json_payload


class SentimentNode(CategoryNode):
    category = Category.SENTIMENT

    def prompt(self, snapshot: Snapshot, targets: List[str]) -> str:
        return (
            "Assess the current market sentiment on the out-of-home advertising sector "
            f"({', '.join(targets)}).\n"
            "Return JSON only:\n"
            '{"sentiment": {"label": "Bullish | Neutral | Bearish", "description": "string", '
            '"keyTakeaways": ["string"]}}'
        )

    def parse(self, text: str, snapshot: Snapshot, targets: Optional[Sequence[str]]) -> Optional[Sentiment]:
        payload = parse_json_payload(text, {})
        if isinstance(payload, dict) and isinstance(payload.get("sentiment"), dict):
            payload = payload["sentiment"]
        return Sentiment.from_dict(payload)

    def merge(self, snapshot, payload, now, targets=None) -> Snapshot:
        if not payload.last_updated:
            payload = replace(payload, last_updated=stamp_label(now))
        return snapshot.evolve(sentiment=payload)


NODE = SentimentNode()
