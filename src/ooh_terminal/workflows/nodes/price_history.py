"""Historical price cache: serve from SQLite when deep enough, else fetch and merge."""
from __future__ import annotations

import logging
import re
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from ooh_terminal.domain.models.sector import HistoricalPrices, PricePoint, PriceSeries
from ooh_terminal.domain.services.parsing import parse_price
from ooh_terminal.domain.services.tickers import normalize_ticker, resolve_ticker
from ooh_terminal.infrastructure.db.sqlite import SQLiteRepository
from ooh_terminal.infrastructure.llm.gemini_client import InferenceRequest, InferenceResponse
from ooh_terminal.workflows.nodes.base import SYSTEM_PROMPT
from ooh_terminal.workflows.nodes.llm_clean import parse_json_payload

logger = logging.getLogger(__name__)

# Minimum cached points that let a period be served without a fetch.
THRESHOLDS: Dict[str, int] = {"1M": 10, "3M": 30, "6M": 60, "1Y": 120}

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

Invoke = Callable[[InferenceRequest], Awaitable[InferenceResponse]]


def _valid_points(points: Iterable[Any]) -> List[Dict[str, Any]]:
    valid = []
    for point in points or []:
        if not isinstance(point, dict):
            continue
        day = str(point.get("date") or "").strip()[:10]
        price = parse_price(point.get("price", point.get("close")))
        if _ISO_DATE.match(day) and price > 0:
            valid.append({"date": day, "price": price})
    return valid


def merge_price_points(
    existing: Sequence[PricePoint], incoming: Sequence[PricePoint]
) -> List[PricePoint]:
    """Union by date, incoming wins; ascending by date."""
    frames = [
        pd.DataFrame([{"date": p.date, "price": p.price} for p in batch], columns=["date", "price"])
        for batch in (existing, incoming)
    ]
    frame = pd.concat(frames, ignore_index=True)
    if frame.empty:
        return []
    frame = frame.drop_duplicates(subset="date", keep="last").sort_values("date")
    return [PricePoint(date=str(row.date), price=float(row.price)) for row in frame.itertuples(index=False)]


class TimeSeriesCache:
    """Serve ``HistoricalPrices`` for a period, fetching only the missing depth."""

    def __init__(self, repository: SQLiteRepository, invoke: Invoke) -> None:
        self._repository = repository
        self._invoke = invoke

    def cached_points(self, ticker: str, *, limit: Optional[int] = None) -> List[PricePoint]:
        rows = self._repository.fetch_prices(normalize_ticker(ticker), limit=limit)
        return [PricePoint(date=row["trade_date"], price=float(row["close"])) for row in rows]

    async def get_or_fetch(
        self,
        period: str,
        tickers: Sequence[str],
        *,
        names: Optional[Dict[str, str]] = None,
        currencies: Optional[Dict[str, str]] = None,
    ) -> HistoricalPrices:
        if period not in THRESHOLDS:
            raise ValueError(f"Unsupported period {period!r}; expected one of {', '.join(THRESHOLDS)}")
        required = THRESHOLDS[period]
        names = dict(names or {})
        currencies = dict(currencies or {})

        def series_for(ticker: str, points: Sequence[PricePoint]) -> PriceSeries:
            return PriceSeries(
                ticker=ticker,
                name=names.get(ticker, ticker),
                currency=currencies.get(ticker, "EUR"),
                points=tuple(points[-required:]),
            )

        resolved: List[PriceSeries] = []
        missing: List[str] = []
        for ticker in tickers:
            if self._repository.count_prices(normalize_ticker(ticker)) >= required:
                resolved.append(series_for(ticker, self.cached_points(ticker, limit=required)))
            else:
                missing.append(ticker)

        if not missing:
            return HistoricalPrices(period=period, series=tuple(resolved))

        logger.info("Fetching %s price history for %s", period, ", ".join(missing))
        try:
            response = await self._invoke(self._request(period, missing))
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Price history fetch failed, serving cache only: %s", exc)
            return HistoricalPrices(period=period, series=tuple(resolved))

        payload = parse_json_payload(response.text, {})
        returned = payload.get("series") if isinstance(payload, dict) else None
        if not isinstance(returned, list):
            logger.warning("Price history response has no series list; serving cache only")
            return HistoricalPrices(period=period, series=tuple(resolved))

        fetched = set()
        for entry in returned:
            if not isinstance(entry, dict):
                continue
            ticker = resolve_ticker(str(entry.get("ticker") or ""), missing)
            if ticker is None:
                logger.debug("Dropping price series for unrequested ticker %r", entry.get("ticker"))
                continue
            if ticker in fetched:
                continue
            fetched.add(ticker)
            incoming = [PricePoint(**p) for p in _valid_points(entry.get("points"))]
            merged = merge_price_points(self.cached_points(ticker), incoming)
            if not merged:
                continue
            self._repository.upsert_prices(
                normalize_ticker(ticker),
                ({"trade_date": p.date, "close": p.price} for p in merged),
            )
            names.setdefault(ticker, str(entry.get("name") or ticker))
            currencies.setdefault(ticker, str(entry.get("currency") or "EUR"))
            resolved.append(series_for(ticker, merged))

        return HistoricalPrices(period=period, series=tuple(resolved))

    @staticmethod
    def _request(period: str, tickers: Sequence[str]) -> InferenceRequest:
        prompt = (
            f"Daily closing stock prices over the last {period} for: {', '.join(tickers)}.\n"
            "Return JSON only:\n"
            '{"series": [{"ticker": "string", "name": "string", "currency": "string", '
            '"points": [{"date": "YYYY-MM-DD", "price": number}]}]}'
        )
        return InferenceRequest.from_prompt(prompt, system=SYSTEM_PROMPT, web_search=True)
