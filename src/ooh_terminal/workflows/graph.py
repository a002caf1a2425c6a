"""LangGraph workflow assembly for the category refresh pipeline."""
from __future__ import annotations

import inspect
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from langgraph.graph import END, StateGraph

from ooh_terminal.domain.models.sector import Category
from ooh_terminal.workflows.blueprint import StageSpec, build_default_stages
from ooh_terminal.workflows.context import WorkflowContext
from ooh_terminal.workflows.state import RefreshState


class RefreshWorkflow:
    """Compose the refresh stages into a graph compiled once and reused."""

    def __init__(
        self,
        context: WorkflowContext,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._context = context
        self._clock = clock
        self._stages: List[StageSpec] = build_default_stages()
        self._graph = self._build_graph()

    @property
    def context(self) -> WorkflowContext:
        return self._context

    def _build_graph(self):
        builder = StateGraph(RefreshState)

        if not self._stages:
            raise RuntimeError("Workflow blueprint is empty; cannot build LangGraph.")

        for stage in self._stages:
            builder.add_node(stage.key, self._wrap(stage.handler))

        builder.set_entry_point(self._stages[0].key)
        for current, nxt in zip(self._stages, self._stages[1:]):
            builder.add_edge(current.key, nxt.key)
        builder.add_edge(self._stages[-1].key, END)

        return builder.compile(checkpointer=None)

    def _wrap(self, func: Callable[[RefreshState, WorkflowContext], Any]):
        async def wrapper(state: Dict[str, Any]) -> Dict[str, Any]:
            result = func(state, self._context)
            if inspect.isawaitable(result):
                result = await result
            return result

        return wrapper

    async def run(self, category: Category, targets: Optional[Sequence[str]] = None) -> RefreshState:
        """Execute the pipeline for one category; provider failures propagate."""
        initial_state: RefreshState = {
            "category": Category(category),
            "targets": list(targets) if targets else None,
            "started_at": self._clock(),
            "logs": [],
            "errors": [],
        }
        result: RefreshState = await self._graph.ainvoke(initial_state)
        return result

    def describe_stages(self) -> List[str]:
        """Return human-readable workflow stage descriptions."""
        return [f"{stage.key}: {stage.description}" for stage in self._stages]
