"""Workflow blueprint describing refresh stages and their handlers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, List, TYPE_CHECKING

from ooh_terminal.workflows.nodes import refresh

if TYPE_CHECKING:
    from ooh_terminal.workflows.context import WorkflowContext
    from ooh_terminal.workflows.state import RefreshState


@dataclass
class StageSpec:
    """Single LangGraph stage definition."""

    key: str
    description: str
    handler: Callable[["RefreshState", "WorkflowContext"], Any]
    depends_on: List[str] = field(default_factory=list)


def build_default_stages() -> List[StageSpec]:
    """Return the ordered stages of a category refresh."""
    return [
        StageSpec(
            key="fetch",
            description="Build the category request and call Gemini through the retry policy.",
            handler=refresh.fetch,
        ),
        StageSpec(
            key="parse",
            description="Sanitize and decode the answer; fall back to bundled data when unusable.",
            handler=refresh.parse,
            depends_on=["fetch"],
        ),
        StageSpec(
            key="merge",
            description="Fold the payload into the latest snapshot and stamp freshness.",
            handler=refresh.merge,
            depends_on=["parse"],
        ),
        StageSpec(
            key="persist",
            description="Write the snapshot envelope to SQLite.",
            handler=refresh.persist,
            depends_on=["merge"],
        ),
    ]
