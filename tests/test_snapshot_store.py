from __future__ import annotations

import json
from dataclasses import replace

from ooh_terminal.domain.defaults import DEFAULT_COMPANIES
from ooh_terminal.domain.models.sector import AnalystRating, Company, NewsItem
from ooh_terminal.infrastructure.snapshot_store import SCHEMA_VERSION, SnapshotStore


def test_missing_or_malformed_payload_yields_defaults(repository, store):
    fresh = store.load()
    assert [c.ticker for c in fresh.companies] == [c.ticker for c in DEFAULT_COMPANIES]
    assert all(c.market_cap != "--" for c in fresh.companies)

    repository.set(store.key, "{not json")
    assert len(store.load().companies) == len(DEFAULT_COMPANIES)

    repository.set(store.key, json.dumps([1, 2, 3]))
    assert len(store.load().companies) == len(DEFAULT_COMPANIES)


def test_save_writes_versioned_envelope_and_roundtrips(repository, store):
    snapshot = store.load().stamp("news", 1234.0)
    store.save(snapshot)

    envelope = json.loads(repository.get(store.key))
    assert envelope["schema_version"] == SCHEMA_VERSION
    assert "saved_at" in envelope

    loaded = store.load()
    assert loaded.freshness == {"news": 1234.0}
    assert loaded.company("DEC.PA").price == snapshot.company("DEC.PA").price


def test_unknown_future_version_falls_back_to_defaults(repository, store):
    repository.set(store.key, json.dumps({"schema_version": SCHEMA_VERSION + 1, "snapshot": {"companies": []}}))
    loaded = store.load()
    assert loaded.freshness == {}
    assert len(loaded.companies) == len(DEFAULT_COMPANIES)


def test_legacy_unversioned_layout_is_migrated(repository, store):
    legacy = {
        "lastUpdated": "2025-01-10",
        "companies": [
            {
                "ticker": "DEC.PA",
                "name": "JCDecaux SE",
                "price": 21.5,
                "change": 1.0,
                "netDebt": "900 M",
                "revenue2024": "3600 M",
                "rating": "Acheter",
                "targetPrice": 25,
            }
        ],
        "news": [{"id": 7, "source": "Reuters", "title": "Contract won"}],
        "timestamps": {"financials": 1_700_000_000_000},
        "aiStatus": {"lastSuccess": 1_700_000_000_000, "lastError": None},
    }
    repository.set(store.key, json.dumps(legacy))

    loaded = store.load()
    dec = loaded.company("DEC.PA")
    assert dec.price == 21.5
    assert dec.net_debt == "900 M"
    assert dec.fundamental("revenue", "2024") == "3600 M"
    # Backfilled from the bundled defaults.
    assert dec.fundamental("ebitda", "2024") == "1890 M"
    assert dec.rating is AnalystRating.BUY
    assert dec.target_price == 25.0
    assert loaded.freshness == {"financials": 1_700_000_000.0}
    assert loaded.ai_status.last_success == 1_700_000_000.0
    assert loaded.news[0].title == "Contract won"
    assert len(loaded.companies) == len(DEFAULT_COMPANIES)


def test_legacy_market_cap_becomes_share_count(repository, store):
    legacy = {
        "companies": [
            {"ticker": "MAC.PA", "name": "Mediaco", "price": 8.0, "marketCap": "800 M", "ebitda2024": "100 M"}
        ]
    }
    repository.set(store.key, json.dumps(legacy))

    mac = store.load().company("MAC.PA")
    assert mac.shares_outstanding == 100.0
    assert mac.market_cap == "800 M"
    assert mac.enterprise_value == "800 M"
    assert mac.derived["ev_ebitda_2024"] == 8.0


def test_repair_keeps_cached_quotes_and_user_companies(store):
    base = store.load()
    dec = base.company("DEC.PA")
    stripped = replace(dec, price=30.0, change=-2.0, fundamentals={"2024": {"revenue": "--"}})
    extra = Company(ticker="ZZZ", name="Zeta Media", price=5.0, shares_outstanding=10.0)
    damaged = base.evolve(companies=(stripped, extra), news=())

    repaired = store.repair(damaged)
    fixed = repaired.company("DEC.PA")
    assert fixed.price == 30.0 and fixed.change == -2.0
    assert fixed.fundamental("revenue", "2024") == DEFAULT_COMPANIES[0].fundamental("revenue", "2024")
    assert repaired.company("ZZZ").market_cap == "50 M"
    assert {c.key for c in DEFAULT_COMPANIES} <= {c.key for c in repaired.companies}
    assert repaired.news  # boot placeholder restored


def test_repair_replaces_non_positive_cached_price(store):
    base = store.load()
    broken = base.evolve(companies=(replace(base.company("LAMR"), price=0.0),))
    repaired = store.repair(broken)
    assert repaired.company("LAMR").price == next(c.price for c in DEFAULT_COMPANIES if c.ticker == "LAMR")


def test_custom_store_key_is_isolated(repository):
    first = SnapshotStore(repository, key="one")
    second = SnapshotStore(repository, key="two")
    first.save(first.load().evolve(news=(NewsItem(id="x", source="s", title="only in one"),)))
    assert second.load().news[0].title != "only in one"
