"""Workflow state definitions shared by LangGraph nodes."""
from __future__ import annotations

from typing import Any, List, Optional, TypedDict

from ooh_terminal.domain.models.sector import Category


class RefreshState(TypedDict, total=False):
    category: Category
    targets: Optional[List[str]]
    started_at: float

    raw_text: Optional[str]
    payload: Any
    used_fallback: bool
    changed: bool

    logs: List[str]
    errors: List[str]
