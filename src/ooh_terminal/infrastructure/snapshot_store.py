"""Durable snapshot persistence: versioned envelope, migration and repair."""
from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from ooh_terminal.domain.defaults import BOOT_NEWS, DEFAULT_COMPANIES, default_snapshot
from ooh_terminal.domain.models.sector import AnalystRating, Company, Snapshot, fundamentals_from_flat
from ooh_terminal.domain.services.parsing import PLACEHOLDER
from ooh_terminal.domain.services.ratios import apply_ratios, shares_from_market_cap
from ooh_terminal.infrastructure.db.sqlite import SQLiteRepository

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


def _migrate_legacy(body: Dict[str, Any]) -> Dict[str, Any]:
    """Unversioned dashboard layout (camelCase, millisecond stamps) -> version 1."""
    companies = []
    for item in body.get("companies") or []:
        if not isinstance(item, dict) or not item.get("ticker"):
            continue
        target = item.get("targetPrice")
        price = _number(item.get("price"))
        shares = _number(item.get("sharesOutstanding")) or shares_from_market_cap(item.get("marketCap"), price)
        companies.append(
            {
                "ticker": item.get("ticker"),
                "name": item.get("name"),
                "id": item.get("id"),
                "currency": item.get("currency"),
                "price": price,
                "change": _number(item.get("change")),
                "shares_outstanding": shares,
                "net_debt": item.get("netDebt"),
                "fundamentals": fundamentals_from_flat(item),
                "rating": item.get("rating"),
                "target_price": _number(target) if target is not None else None,
                "description": item.get("description"),
                "next_earnings": item.get("nextEarnings"),
            }
        )

    def millis(value: Any) -> Optional[float]:
        number = _number(value)
        return number / 1000.0 if number else None

    timestamps = body.get("timestamps") or {}
    status = body.get("aiStatus") or {}
    return {
        "companies": companies,
        "news": body.get("news") or [],
        "highlights": body.get("highlights") or [],
        "events": body.get("events") or [],
        "documents": body.get("documents") or [],
        "company_documents": body.get("companyDocuments") or {},
        "sentiment": body.get("sentiment"),
        "freshness": {str(k): v for k, v in ((k, millis(v)) for k, v in timestamps.items()) if v is not None},
        "last_updated": body.get("lastUpdated") or "",
        "ai_status": {
            "last_success": millis(status.get("lastSuccess")),
            "last_error": millis(status.get("lastError")),
        },
    }


# version found on disk -> step to the next version
MIGRATIONS: Dict[int, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    0: _migrate_legacy,
}


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value))
    except (TypeError, ValueError):
        return 0.0


def _is_missing(value: Any) -> bool:
    return value is None or value == "" or value == PLACEHOLDER


class SnapshotStore:
    """Serialize the snapshot after every mutation and rebuild it on startup."""

    def __init__(
        self,
        repository: SQLiteRepository,
        *,
        key: str = "ooh_terminal_snapshot",
        defaults: Sequence[Company] = DEFAULT_COMPANIES,
    ) -> None:
        self._repository = repository
        self._key = key
        self._defaults = tuple(defaults)

    @property
    def key(self) -> str:
        return self._key

    def save(self, snapshot: Snapshot) -> None:
        envelope = {
            "schema_version": SCHEMA_VERSION,
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "snapshot": snapshot.to_dict(),
        }
        self._repository.set(self._key, json.dumps(envelope, ensure_ascii=False))

    def load(self) -> Snapshot:
        """Stored snapshot (migrated and repaired), or the bundled defaults."""
        raw = self._repository.get(self._key)
        if raw is None:
            logger.info("No stored snapshot; starting from bundled defaults")
            return self._fresh()

        try:
            document = json.loads(raw)
        except ValueError as exc:
            logger.warning("Stored snapshot is not valid JSON (%s); using defaults", exc)
            return self._fresh()
        if not isinstance(document, dict):
            logger.warning("Stored snapshot has unexpected type %s; using defaults", type(document).__name__)
            return self._fresh()

        if "schema_version" in document and isinstance(document.get("snapshot"), dict):
            version = document.get("schema_version")
            body = document["snapshot"]
        else:
            version, body = 0, document

        if not isinstance(version, int) or version > SCHEMA_VERSION or version < 0:
            logger.warning("Unknown snapshot schema version %r; using defaults", version)
            return self._fresh()

        try:
            while version < SCHEMA_VERSION:
                logger.info("Migrating stored snapshot from schema version %d", version)
                body = MIGRATIONS[version](body)
                version += 1
            snapshot = Snapshot.from_dict(body)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Stored snapshot could not be migrated (%s); using defaults", exc)
            return self._fresh()

        return self.repair(snapshot)

    def repair(self, snapshot: Snapshot) -> Snapshot:
        """Reconcile cached companies with the bundled reference data.

        Default fields missing from the cache are backfilled, cached quotes win
        over default quotes, default companies absent from the cache are added
        and user-added companies are kept. Ratios are recomputed for all.
        """
        if not snapshot.companies:
            companies: List[Company] = list(self._defaults)
        else:
            cached = {c.key: c for c in snapshot.companies}
            companies = []
            for default in self._defaults:
                current = cached.pop(default.key, None)
                companies.append(default if current is None else _backfill(current, default))
            companies.extend(c for c in snapshot.companies if c.key in cached)

        return snapshot.evolve(
            companies=tuple(apply_ratios(c) for c in companies),
            news=snapshot.news or BOOT_NEWS,
        )

    def _fresh(self) -> Snapshot:
        return default_snapshot(self._defaults)


def _backfill(cached: Company, default: Company) -> Company:
    fundamentals = {year: dict(metrics) for year, metrics in cached.fundamentals.items()}
    for year, metrics in default.fundamentals.items():
        slot = fundamentals.setdefault(year, {})
        for metric, value in metrics.items():
            if _is_missing(slot.get(metric)):
                slot[metric] = value

    price, change = cached.price, cached.change
    if price <= 0:
        price, change = default.price, default.change

    return replace(
        cached,
        name=default.name if _is_missing(cached.name) or cached.name == cached.ticker else cached.name,
        id=cached.id or default.id,
        currency=cached.currency or default.currency,
        price=price,
        change=change,
        shares_outstanding=cached.shares_outstanding or default.shares_outstanding,
        net_debt=default.net_debt if _is_missing(cached.net_debt) else cached.net_debt,
        fundamentals=fundamentals,
        rating=default.rating if cached.rating is AnalystRating.NA else cached.rating,
        target_price=cached.target_price if cached.target_price else default.target_price,
        description=cached.description or default.description,
        next_earnings=default.next_earnings if _is_missing(cached.next_earnings) or cached.next_earnings == "TBD" else cached.next_earnings,
    )
