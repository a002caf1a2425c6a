from __future__ import annotations

from datetime import date, timedelta

import pytest

from ooh_terminal.domain.models.sector import PricePoint
from ooh_terminal.infrastructure.llm.errors import ErrorKind, ProviderError
from ooh_terminal.workflows.nodes.price_history import TimeSeriesCache, merge_price_points

from conftest import FakeGemini


def days(count: int, start: date = date(2025, 1, 1), price: float = 10.0):
    return [
        {"trade_date": (start + timedelta(days=i)).isoformat(), "close": price + i}
        for i in range(count)
    ]


def test_merge_price_points_union_new_wins_sorted():
    existing = [PricePoint("2025-01-02", 2.0), PricePoint("2025-01-01", 1.0)]
    incoming = [PricePoint("2025-01-02", 20.0), PricePoint("2025-01-03", 3.0)]
    merged = merge_price_points(existing, incoming)
    assert merged == [
        PricePoint("2025-01-01", 1.0),
        PricePoint("2025-01-02", 20.0),
        PricePoint("2025-01-03", 3.0),
    ]
    assert merge_price_points([], []) == []


@pytest.mark.asyncio
async def test_deep_cache_is_served_without_fetch(repository):
    gemini = FakeGemini()
    repository.upsert_prices("DEC.PA", days(12))
    cache = TimeSeriesCache(repository, gemini.invoke)

    result = await cache.get_or_fetch("1M", ["DEC.PA"])

    assert gemini.calls == 0
    series = result.for_ticker("DEC.PA")
    assert len(series.points) == 10
    assert series.points[0].date == "2025-01-03"
    assert series.points[-1].date == "2025-01-12"
    assert [p.date for p in series.points] == sorted(p.date for p in series.points)


@pytest.mark.asyncio
async def test_shallow_cache_fetches_merges_and_persists(repository):
    repository.upsert_prices("LAMR", days(3, price=100.0))
    gemini = FakeGemini(
        {
            "series": [
                {
                    "ticker": "lamr",
                    "name": "Lamar",
                    "currency": "USD",
                    "points": [
                        {"date": "2025-01-03", "price": 150.0},
                        {"date": "2025-01-04", "price": 151.0},
                        {"date": "not a date", "price": 1.0},
                        {"date": "2025-01-05", "price": "n/a"},
                    ],
                },
                {"ticker": "UNREQUESTED", "points": [{"date": "2025-01-01", "price": 1.0}]},
            ]
        }
    )
    cache = TimeSeriesCache(repository, gemini.invoke)

    result = await cache.get_or_fetch("1M", ["LAMR"])

    assert gemini.calls == 1
    assert "LAMR" in gemini.prompt()
    series = result.for_ticker("LAMR")
    assert series.currency == "USD"
    assert [(p.date, p.price) for p in series.points] == [
        ("2025-01-01", 100.0),
        ("2025-01-02", 101.0),
        ("2025-01-03", 150.0),
        ("2025-01-04", 151.0),
    ]
    assert repository.count_prices("LAMR") == 4
    assert repository.count_prices("UNREQUESTED") == 0


@pytest.mark.asyncio
async def test_only_missing_tickers_are_requested(repository):
    repository.upsert_prices("DEC.PA", days(40))
    gemini = FakeGemini({"series": []})
    cache = TimeSeriesCache(repository, gemini.invoke)

    result = await cache.get_or_fetch("3M", ["DEC.PA", "CCO"])

    assert "CCO" in gemini.prompt() and "DEC.PA" not in gemini.prompt()
    assert [s.ticker for s in result.series] == ["DEC.PA"]
    assert len(result.series[0].points) == 30


@pytest.mark.asyncio
async def test_provider_failure_returns_resolved_cache_only(repository):
    repository.upsert_prices("DEC.PA", days(15))
    repository.upsert_prices("OUT", days(2))
    gemini = FakeGemini(ProviderError(ErrorKind.UNAVAILABLE, "down"))
    cache = TimeSeriesCache(repository, gemini.invoke)

    result = await cache.get_or_fetch("1M", ["DEC.PA", "OUT"])

    assert [s.ticker for s in result.series] == ["DEC.PA"]
    assert repository.count_prices("OUT") == 2


@pytest.mark.asyncio
async def test_invalid_structure_returns_resolved_cache_only(repository):
    gemini = FakeGemini("I could not find any prices.")
    cache = TimeSeriesCache(repository, gemini.invoke)
    result = await cache.get_or_fetch("6M", ["CCO"])
    assert result.period == "6M"
    assert result.series == ()


@pytest.mark.asyncio
async def test_unknown_period_is_rejected(repository):
    cache = TimeSeriesCache(repository, FakeGemini().invoke)
    with pytest.raises(ValueError):
        await cache.get_or_fetch("5Y", ["CCO"])


def test_repository_limit_returns_latest_rows_ascending(repository):
    repository.upsert_prices("CCO", days(5))
    assert repository.count_prices("CCO") == 5
    rows = repository.fetch_prices("CCO", limit=2)
    assert [r["trade_date"] for r in rows] == ["2025-01-04", "2025-01-05"]
    assert len(repository.fetch_prices("CCO")) == 5
