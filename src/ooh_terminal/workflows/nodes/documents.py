"""Investor documents (annual reports, presentations, ESG) per company."""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ooh_terminal.domain.defaults import FALLBACK_DOCUMENTS
from ooh_terminal.domain.models.sector import Category, DocumentItem, Snapshot
from ooh_terminal.domain.services.tickers import resolve_ticker
from ooh_terminal.workflows.nodes.base import CategoryNode, payload_list

DocumentsByTicker = Dict[str, Tuple[DocumentItem, ...]]


def merge_documents(existing: Iterable[DocumentItem], incoming: Iterable[DocumentItem]) -> Tuple[DocumentItem, ...]:
    """Union by ``(title, date)``, newest date first; incoming wins on collision."""
    by_key: Dict[Tuple[str, str], DocumentItem] = {}
    for item in existing:
        by_key[(item.title.strip().lower(), item.date)] = item
    for item in incoming:
        by_key[(item.title.strip().lower(), item.date)] = item
    return tuple(sorted(by_key.values(), key=lambda d: d.date, reverse=True))


class DocumentsNode(CategoryNode):
    category = Category.DOCS

    def prompt(self, snapshot: Snapshot, targets: List[str]) -> str:
        return (
            f"Find the latest financial reports and investor presentations for: {', '.join(targets)}.\n"
            "Return JSON only:\n"
            '{"documentsByTicker": [{"ticker": "string", "docs": [{"id": "string", '
            '"type": "PDF | PPT | ESG | Report", "title": "string", "date": "YYYY-MM-DD", '
            '"url": "string"}]}]}'
        )

    def parse(self, text: str, snapshot: Snapshot, targets: Optional[Sequence[str]]) -> Optional[DocumentsByTicker]:
        records = payload_list(text, "documentsByTicker")
        if records is None:
            return None
        tickers = snapshot.tickers()
        result: Dict[str, Tuple[DocumentItem, ...]] = {}
        for record in records:
            resolved = resolve_ticker(str(record.get("ticker") or ""), tickers)
            docs = record.get("docs")
            if resolved is None or not isinstance(docs, list):
                continue
            items = tuple(d for d in (DocumentItem.from_dict(doc) for doc in docs) if d is not None)
            if items:
                result[resolved] = result.get(resolved, ()) + items
        return result or None

    def merge(self, snapshot, payload, now, targets=None) -> Snapshot:
        documents = dict(snapshot.company_documents)
        for ticker, items in payload.items():
            documents[ticker] = merge_documents(documents.get(ticker, ()), items)
        return snapshot.evolve(company_documents=documents)

    def fallback(self, snapshot: Snapshot) -> Optional[DocumentsByTicker]:
        if any(snapshot.company_documents.values()):
            return None
        return dict(FALLBACK_DOCUMENTS)


NODE = DocumentsNode()
