from __future__ import annotations

import asyncio
import json

import pytest

from ooh_terminal.domain.defaults import FALLBACK_EVENTS, FALLBACK_NEWS
from ooh_terminal.domain.models.sector import Category, Company
from ooh_terminal.infrastructure.llm.errors import ErrorKind, ProviderError
from ooh_terminal.infrastructure.llm.gemini_client import InferenceResponse
from ooh_terminal.workflows.orchestrator import RefreshOrchestrator

QUOTES = {"companies": [{"ticker": "DEC.PA", "price": 22.0, "change": 0.5}]}


class GatedGemini:
    """Blocks every call until ``release`` is set; counts calls."""

    def __init__(self, answer) -> None:
        self.answer = json.dumps(answer)
        self.release = asyncio.Event()
        self.calls = 0
        self.prompts = []

    async def invoke(self, request):
        self.calls += 1
        self.prompts.append(request.messages[-1]["content"])
        await self.release.wait()
        return InferenceResponse(text=self.answer)


async def wait_until(predicate, attempts: int = 400) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0.005)
    raise AssertionError("condition never became true")


@pytest.fixture
def orchestrator(context, clock):
    return RefreshOrchestrator(context, clock=clock)


@pytest.mark.asyncio
async def test_successful_refresh_stamps_freshness_and_persists(orchestrator, gemini, store, clock):
    gemini.push(QUOTES)
    assert orchestrator.is_stale(Category.FINANCIALS)

    snapshot = await orchestrator.refresh(Category.FINANCIALS)

    assert snapshot.company("DEC.PA").price == 22.0
    assert snapshot.freshness["financials"] == clock.now
    assert snapshot.ai_status.last_success == clock.now
    assert not orchestrator.is_stale(Category.FINANCIALS)
    assert not orchestrator.is_loading(Category.FINANCIALS)
    assert orchestrator.status(Category.FINANCIALS).last_error is None
    assert store.load().company("DEC.PA").price == 22.0


@pytest.mark.asyncio
async def test_freshness_window_expiry(orchestrator, gemini, clock):
    gemini.push(QUOTES)
    await orchestrator.refresh("financials")
    clock.advance(299)
    assert not orchestrator.is_stale(Category.FINANCIALS)
    clock.advance(2)
    assert orchestrator.is_stale(Category.FINANCIALS)
    assert orchestrator.freshness_ages()["financials"] == "5 minutes ago"
    assert orchestrator.freshness_ages()["news"] == "never"


@pytest.mark.asyncio
async def test_provider_failure_applies_fallback_only_to_empty_category(orchestrator, gemini, clock):
    gemini.push(ProviderError(ErrorKind.PERMANENT, "invalid key", status_code=401))
    before = orchestrator.snapshot

    snapshot = await orchestrator.refresh(Category.NEWS)

    assert snapshot.news == FALLBACK_NEWS
    assert "news" not in snapshot.freshness
    assert snapshot.ai_status.last_error == clock.now
    status = orchestrator.status(Category.NEWS)
    assert status.last_error == clock.now and not status.loading
    assert "invalid key" in status.message
    assert snapshot.companies == before.companies
    assert gemini.calls == 1


@pytest.mark.asyncio
async def test_transient_failures_are_retried_then_succeed(orchestrator, gemini):
    gemini.push(ProviderError(ErrorKind.RATE_LIMITED, "429"), QUOTES)
    snapshot = await orchestrator.refresh(Category.FINANCIALS)
    assert gemini.calls == 2
    assert snapshot.company("DEC.PA").price == 22.0


@pytest.mark.asyncio
async def test_unusable_payload_falls_back_without_stamping(orchestrator, gemini):
    gemini.push("Sorry, I cannot help with that.")
    snapshot = await orchestrator.refresh(Category.CALENDAR)
    assert set(snapshot.events) == set(FALLBACK_EVENTS)
    assert "calendar" not in snapshot.freshness
    assert orchestrator.status(Category.CALENDAR).last_error is not None


@pytest.mark.asyncio
async def test_unusable_payload_keeps_existing_company_data(orchestrator, gemini):
    before = orchestrator.snapshot.company("LAMR")
    gemini.push('{"companies": "none"}')
    snapshot = await orchestrator.refresh(Category.FINANCIALS)
    assert snapshot.company("LAMR") == before
    assert "financials" not in snapshot.freshness


@pytest.mark.asyncio
async def test_missing_client_fails_every_category_permanently(context, clock):
    context.gemini = None
    orchestrator = RefreshOrchestrator(context, clock=clock)
    snapshot = await orchestrator.refresh_stale()
    assert snapshot.freshness == {}
    assert set(snapshot.events) == set(FALLBACK_EVENTS)
    assert all(orchestrator.status(c).last_error == clock.now for c in Category)


@pytest.mark.asyncio
async def test_refresh_stale_isolates_failures(orchestrator, gemini, clock):
    sector = '{"sentiment": {"label": "Neutral", "description": "flat"}}'
    news = '{"news": [{"title": "Lamar buys billboards"}]}'

    async def invoke(request):
        prompt = request.messages[-1]["content"]
        if "sentiment" in prompt:
            return InferenceResponse(text=sector)
        if "news items" in prompt:
            return InferenceResponse(text=news)
        raise ProviderError(ErrorKind.PERMANENT, "quota exhausted")

    gemini.invoke = invoke
    snapshot = await orchestrator.refresh_stale()

    assert snapshot.sentiment.label == "Neutral"
    assert snapshot.news[0].title == "Lamar buys billboards"
    assert set(snapshot.freshness) == {"sentiment", "news"}
    assert orchestrator.status(Category.RATINGS).last_error == clock.now
    assert not any(orchestrator.is_loading(c) for c in Category)


@pytest.mark.asyncio
async def test_duplicate_requests_share_one_call(context, clock):
    gated = GatedGemini(QUOTES)
    context.gemini = gated
    orchestrator = RefreshOrchestrator(context, clock=clock)

    first = asyncio.ensure_future(orchestrator.refresh(Category.FINANCIALS))
    second = asyncio.ensure_future(orchestrator.refresh(Category.FINANCIALS))
    await wait_until(lambda: gated.calls == 1)
    assert orchestrator.is_loading(Category.FINANCIALS)
    gated.release.set()
    results = await asyncio.gather(first, second)

    assert gated.calls == 1
    assert results[0] is results[1]
    assert not orchestrator.is_loading(Category.FINANCIALS)


@pytest.mark.asyncio
async def test_different_targets_queue_behind_each_other(context, clock):
    gated = GatedGemini(QUOTES)
    context.gemini = gated
    orchestrator = RefreshOrchestrator(context, clock=clock)

    first = asyncio.ensure_future(orchestrator.refresh(Category.FINANCIALS, ["DEC.PA"]))
    second = asyncio.ensure_future(orchestrator.refresh(Category.FINANCIALS, ["LAMR"]))
    await wait_until(lambda: gated.calls == 1)
    await asyncio.sleep(0.01)
    assert gated.calls == 1
    gated.release.set()
    await asyncio.gather(first, second)
    assert gated.calls == 2
    assert "DEC.PA" in gated.prompts[0] and "LAMR" in gated.prompts[1]


@pytest.mark.asyncio
async def test_add_entity_creates_company_only_when_resolved(orchestrator, gemini):
    gemini.push(
        {"companies": [{"ticker": "MAC.PA", "name": "Mediaco", "price": 8, "sharesOutstanding": 10}]},
        {"companies": []},
    )
    snapshot = await orchestrator.add_entity("mac_pa")
    added = snapshot.company("MAC.PA")
    assert added is not None and added.market_cap == "80 M"
    assert "fundamentals" not in snapshot.freshness

    snapshot = await orchestrator.add_entity("NOTHING")
    assert snapshot.company("NOTHING") is None

    with pytest.raises(ValueError):
        await orchestrator.add_entity("   ")


@pytest.mark.asyncio
async def test_price_history_uses_company_metadata(orchestrator, gemini, repository):
    gemini.push({"series": [{"ticker": "DEC.PA", "points": [{"date": "2025-02-03", "price": 20.1}]}]})
    history = await orchestrator.price_history("1M", ["DEC.PA"])
    series = history.for_ticker("DEC.PA")
    assert series.name == "JCDecaux SE"
    assert series.currency == "EUR"
    assert repository.count_prices("DEC.PA") == 1


@pytest.mark.asyncio
async def test_free_text_answers_and_fallbacks(orchestrator, gemini):
    gemini.push("*Thinking...*\n\nJCDecaux trades at a discount.", ProviderError(ErrorKind.UNAVAILABLE, "503"))
    answer = await orchestrator.ask("Who is cheapest?")
    assert answer == "JCDecaux trades at a discount."
    assert "DEC.PA" in gemini.prompt(0)

    summary = await orchestrator.summarize_news(orchestrator.snapshot.news[0])
    assert summary == "The summary service is temporarily unavailable."


@pytest.mark.asyncio
async def test_scoped_fundamentals_refresh_recomputes_ratios(orchestrator, context, gemini):
    seeded = context.cell.current
    tracked = Company(ticker="ABC", name="ABC", price=10.0, shares_outstanding=5.0)
    context.cell.replace(seeded.evolve(companies=seeded.companies + (tracked,)))
    gemini.push({"companies": [{"ticker": "abc", "revenue2024": "100 M", "ebitda2024": "20 M"}]})

    snapshot = await orchestrator.refresh(Category.FUNDAMENTALS, ["ABC"])

    abc = snapshot.company("ABC")
    assert abc.market_cap == "50 M"
    assert abc.derived["ebitda_margin_2024"] == 20.0
    assert abc.derived["ev_ebitda_2024"] == 2.5
    assert snapshot.company("LAMR") == seeded.company("LAMR")
    assert "fundamentals" not in snapshot.freshness
