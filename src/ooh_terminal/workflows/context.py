"""Workflow dependency container."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from ooh_terminal.domain.models.sector import Snapshot
from ooh_terminal.infrastructure.db.sqlite import SQLiteRepository
from ooh_terminal.infrastructure.llm.errors import ErrorKind, ProviderError
from ooh_terminal.infrastructure.llm.gemini_client import GeminiClient, InferenceRequest, InferenceResponse
from ooh_terminal.infrastructure.llm.retry import with_retry
from ooh_terminal.infrastructure.snapshot_store import SnapshotStore
from ooh_terminal.settings.config import Config

logger = logging.getLogger(__name__)


class SnapshotCell:
    """Holds the current snapshot; replaced wholesale, never edited in place."""

    def __init__(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot

    @property
    def current(self) -> Snapshot:
        return self._snapshot

    def replace(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot


@dataclass
class WorkflowContext:
    """Holds heavy-weight dependencies shared by LangGraph nodes."""

    config: Config
    repository: SQLiteRepository
    store: SnapshotStore
    cell: SnapshotCell
    gemini: Optional[Any]  # GeminiClient or any object with ``async invoke(request)``
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    async def invoke(self, request: InferenceRequest) -> InferenceResponse:
        """Provider call through the retry policy."""
        if self.gemini is None:
            raise ProviderError(ErrorKind.PERMANENT, "Gemini client not configured (missing API key).")
        gemini = self.gemini
        return await with_retry(
            lambda: gemini.invoke(request),
            max_retries=self.config.retry_max,
            initial_delay=self.config.retry_initial_delay,
            sleep=self.sleep,
        )

    def persist(self) -> None:
        self.store.save(self.cell.current)

    async def close(self) -> None:
        """Release any dependencies that need explicit cleanup."""
        if isinstance(self.gemini, GeminiClient):
            await self.gemini.aclose()
        self.repository.engine.dispose()


def build_context(config: Config, *, gemini: Optional[Any] = None) -> WorkflowContext:
    """Wire repository, store and Gemini client from configuration.

    Without an API key the context runs client-less and every category
    falls back to bundled data.
    """
    config.ensure_directories()
    repository = SQLiteRepository(database_uri=config.database_uri, echo=config.sqlite_echo)
    store = SnapshotStore(repository, key=config.snapshot_key)

    if gemini is None:
        try:
            gemini = GeminiClient(
                api_key=config.llm_api_key or "",
                model=config.gemini_model,
                base_url=config.llm_base_url,
                proxy_url=config.proxy_url,
                timeout=config.llm_timeout,
                default_web_search=config.llm_web_search,
                default_thinking_budget=config.llm_thinking_budget,
            )
        except ValueError as exc:
            logger.warning("%s Running on bundled data only.", exc)
            gemini = None

    return WorkflowContext(
        config=config,
        repository=repository,
        store=store,
        cell=SnapshotCell(store.load()),
        gemini=gemini,
    )
