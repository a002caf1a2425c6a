"""Refresh orchestration: freshness, loading flags, coalescing and failure isolation."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ooh_terminal.domain.models.sector import Category, HistoricalPrices, NewsItem, Snapshot
from ooh_terminal.domain.services.parsing import format_age
from ooh_terminal.domain.services.tickers import normalize_ticker
from ooh_terminal.workflows.context import WorkflowContext
from ooh_terminal.workflows.graph import RefreshWorkflow
from ooh_terminal.workflows.nodes import analyst, node_for
from ooh_terminal.workflows.nodes.price_history import TimeSeriesCache

logger = logging.getLogger(__name__)

RequestKey = Tuple[Category, Optional[Tuple[str, ...]]]


@dataclass(frozen=True)
class CategoryStatus:
    last_success: Optional[float] = None
    loading: bool = False
    last_error: Optional[float] = None
    message: str = ""


class RefreshOrchestrator:
    """Single owner of the snapshot; decides when each category is refreshed.

    A request identical to one already in flight (same category and targets)
    awaits that pending run. A request with other targets for the same
    category queues behind it. Categories never block one another.
    """

    def __init__(
        self,
        context: WorkflowContext,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._context = context
        self._clock = clock
        self._workflow = RefreshWorkflow(context, clock=clock)
        self._history = TimeSeriesCache(context.repository, context.invoke)
        self._locks: Dict[Category, asyncio.Lock] = {}
        self._inflight: Dict[RequestKey, "asyncio.Future[Snapshot]"] = {}
        self._loading: Dict[Category, int] = {c: 0 for c in Category}
        self._errors: Dict[Category, Tuple[float, str]] = {}

    @property
    def snapshot(self) -> Snapshot:
        return self._context.cell.current

    @property
    def workflow(self) -> RefreshWorkflow:
        return self._workflow

    # ------
    # Status
    # ------
    def windows(self) -> Dict[str, int]:
        return dict(self._context.config.freshness_windows)

    def is_loading(self, category: Category) -> bool:
        return self._loading[Category(category)] > 0

    def is_stale(self, category: Category, now: Optional[float] = None) -> bool:
        category = Category(category)
        last = self.snapshot.freshness.get(category.value)
        if last is None:
            return True
        window = self._context.config.freshness_windows.get(category.value, 0)
        current = self._clock() if now is None else now
        return current - last > window

    def status(self, category: Category) -> CategoryStatus:
        category = Category(category)
        last_error, message = self._errors.get(category, (None, ""))
        return CategoryStatus(
            last_success=self.snapshot.freshness.get(category.value),
            loading=self.is_loading(category),
            last_error=last_error,
            message=message,
        )

    def freshness_ages(self) -> Dict[str, str]:
        now = self._clock()
        return {c.value: format_age(self.snapshot.freshness.get(c.value), now) for c in Category}

    # --------
    # Refresh
    # --------
    async def refresh(self, category: Category, targets: Optional[Sequence[str]] = None) -> Snapshot:
        """Refresh one category and return the resulting snapshot.

        Never raises for provider or payload failures; those are recorded in
        ``status(category)`` and the snapshot's ``ai_status``.
        """
        category = Category(category)
        normalized = tuple(sorted({normalize_ticker(t) for t in targets if t})) if targets else None
        key: RequestKey = (category, normalized or None)

        pending = self._inflight.get(key)
        if pending is not None and not pending.done():
            logger.debug("Joining in-flight %s refresh", category.value)
            return await asyncio.shield(pending)

        task = asyncio.ensure_future(self._run(category, list(normalized) if normalized else None))
        self._inflight[key] = task

        def _release(done: "asyncio.Future[Snapshot]") -> None:
            if self._inflight.get(key) is done:
                del self._inflight[key]

        task.add_done_callback(_release)
        return await asyncio.shield(task)

    async def _run(self, category: Category, targets: Optional[List[str]]) -> Snapshot:
        lock = self._locks.setdefault(category, asyncio.Lock())
        self._loading[category] += 1
        try:
            async with lock:
                try:
                    result = await self._workflow.run(category, targets)
                except Exception as exc:  # pylint: disable=broad-except
                    self._record_failure(category, exc)
                else:
                    for message in result.get("errors") or []:
                        logger.warning(message)
                    if result.get("used_fallback"):
                        self._errors[category] = (result["started_at"], "unusable provider payload")
                    else:
                        self._errors.pop(category, None)
                        logger.info("Refreshed %s", category.value)
        finally:
            self._loading[category] -= 1
        return self.snapshot

    def _record_failure(self, category: Category, exc: Exception) -> None:
        """Category failure: record it, fall back only when the category is empty."""
        now = self._clock()
        logger.error("Refresh of %s failed: %s", category.value, exc)
        self._errors[category] = (now, str(exc))

        node = node_for(category)
        snapshot = self.snapshot
        payload = node.fallback(snapshot)
        if payload is not None:
            logger.info("Applying bundled %s data", category.value)
            snapshot = node.merge(snapshot, payload, now)
        self._context.cell.replace(snapshot.mark_error(now))
        self._context.persist()

    async def refresh_stale(self) -> Snapshot:
        """Refresh every stale category concurrently; one failure never blocks others."""
        stale = [c for c in Category if self.is_stale(c)]
        if not stale:
            logger.info("All categories are fresh")
            return self.snapshot
        logger.info("Refreshing stale categories: %s", ", ".join(c.value for c in stale))
        results = await asyncio.gather(*(self.refresh(c) for c in stale), return_exceptions=True)
        for category, outcome in zip(stale, results):
            if isinstance(outcome, BaseException):
                logger.error("Refresh of %s aborted: %s", category.value, outcome)
        return self.snapshot

    async def add_entity(self, identifier: str) -> Snapshot:
        """Track a new company; it is added only if the provider resolves a record."""
        ticker = normalize_ticker(identifier)
        if not ticker:
            raise ValueError("A ticker or company identifier is required.")
        if self.snapshot.company(ticker) is not None:
            logger.info("%s is already tracked; refreshing its fundamentals", ticker)
        return await self.refresh(Category.FUNDAMENTALS, [ticker])

    # -----------------
    # Read-side helpers
    # -----------------
    async def price_history(self, period: str, tickers: Optional[Sequence[str]] = None) -> HistoricalPrices:
        snapshot = self.snapshot
        wanted = list(tickers) if tickers else snapshot.tickers()
        names: Dict[str, str] = {}
        currencies: Dict[str, str] = {}
        for ticker in wanted:
            company = snapshot.company(ticker)
            if company is not None:
                names[ticker] = company.name
                currencies[ticker] = company.currency
        return await self._history.get_or_fetch(period, wanted, names=names, currencies=currencies)

    async def summarize_news(self, item: NewsItem) -> str:
        return await analyst.summarize_news(self._context.invoke, item)

    async def ask(self, question: str) -> str:
        return await analyst.ask(self._context.invoke, question, self.snapshot)

    async def aclose(self) -> None:
        await self._context.close()
