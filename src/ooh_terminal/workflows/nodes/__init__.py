"""Category nodes keyed by the data category they refresh."""
from __future__ import annotations

from typing import Dict

from ooh_terminal.domain.models.sector import Category
from ooh_terminal.workflows.nodes import agenda, documents, financials, fundamentals, news, ratings, sentiment
from ooh_terminal.workflows.nodes.base import CategoryNode

CATEGORY_NODES: Dict[Category, CategoryNode] = {
    Category.FINANCIALS: financials.NODE,
    Category.FUNDAMENTALS: fundamentals.NODE,
    Category.RATINGS: ratings.NODE,
    Category.NEWS: news.NEWS_NODE,
    Category.HIGHLIGHTS: news.HIGHLIGHTS_NODE,
    Category.SENTIMENT: sentiment.NODE,
    Category.DOCS: documents.NODE,
    Category.CALENDAR: agenda.NODE,
}


def node_for(category: Category) -> CategoryNode:
    return CATEGORY_NODES[Category(category)]


__all__ = ["CATEGORY_NODES", "CategoryNode", "node_for"]
