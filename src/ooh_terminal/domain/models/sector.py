"""Domain models describing the sector snapshot exchanged between services."""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ooh_terminal.domain.services.tickers import normalize_ticker

FISCAL_YEARS: Tuple[str, ...] = ("2024", "2025", "2026")

# Provider spellings (lower-cased, separators removed) -> canonical metric.
_METRIC_ALIASES: Dict[str, str] = {
    "revenue": "revenue",
    "revenues": "revenue",
    "sales": "revenue",
    "ebitda": "ebitda",
    "ebit": "ebit",
    "netincome": "net_income",
    "capex": "capex",
    "fcf": "fcf",
    "freecashflow": "fcf",
    "dividendpershare": "dividend_per_share",
    "dps": "dividend_per_share",
    "dividendyield": "dividend_yield",
}
_FLAT_FIELD = re.compile(r"^([a-z]+?)(\d{4})?$")


class AnalystRating(str, Enum):
    BUY = "Buy"
    STRONG_BUY = "Strong Buy"
    HOLD = "Hold"
    SELL = "Sell"
    NA = "N/A"

    @classmethod
    def parse(cls, value: Any) -> "AnalystRating":
        """Map free-form analyst wording (English or French) onto the enum."""
        if isinstance(value, cls):
            return value
        text = re.sub(r"[\s_\-]+", " ", str(value or "")).strip().lower()
        return _RATING_ALIASES.get(text, cls.NA)


_RATING_ALIASES: Dict[str, AnalystRating] = {
    "buy": AnalystRating.BUY,
    "acheter": AnalystRating.BUY,
    "achat": AnalystRating.BUY,
    "outperform": AnalystRating.BUY,
    "overweight": AnalystRating.BUY,
    "strong buy": AnalystRating.STRONG_BUY,
    "renforcer": AnalystRating.STRONG_BUY,
    "hold": AnalystRating.HOLD,
    "neutral": AnalystRating.HOLD,
    "conserver": AnalystRating.HOLD,
    "equal weight": AnalystRating.HOLD,
    "sell": AnalystRating.SELL,
    "vendre": AnalystRating.SELL,
    "underperform": AnalystRating.SELL,
    "underweight": AnalystRating.SELL,
    "strong sell": AnalystRating.SELL,
    "n/a": AnalystRating.NA,
    "n/d": AnalystRating.NA,
}


class Category(str, Enum):
    """Refreshable data categories; values double as freshness-record keys."""

    FINANCIALS = "financials"
    FUNDAMENTALS = "fundamentals"
    RATINGS = "ratings"
    NEWS = "news"
    HIGHLIGHTS = "highlights"
    SENTIMENT = "sentiment"
    DOCS = "docs"
    CALENDAR = "calendar"


def fundamentals_from_flat(record: Dict[str, Any]) -> Dict[str, Dict[str, str]]:
    """Collect ``revenue2024``-style fields into ``{year: {metric: value}}``.

    Keys are matched case-insensitively and with ``_`` removed, so
    ``net_income_2025`` and ``netIncome2025`` land on the same slot. A field
    without a year (``dividendYield``) belongs to the first fiscal year.
    """
    result: Dict[str, Dict[str, str]] = {}
    for key, value in record.items():
        if value is None or isinstance(value, (dict, list)):
            continue
        match = _FLAT_FIELD.match(str(key).replace("_", "").lower())
        if not match:
            continue
        metric = _METRIC_ALIASES.get(match.group(1))
        year = match.group(2) or (FISCAL_YEARS[0] if metric == "dividend_yield" else None)
        if metric is None or year is None:
            continue
        text = str(value).strip()
        if not text:
            continue
        result.setdefault(year, {})[metric] = text
    return result


@dataclass(frozen=True)
class Company:
    """A tracked company: raw inputs plus derived fields recomputed from them."""

    ticker: str
    name: str
    id: str = ""
    currency: str = "USD"
    price: float = 0.0
    change: float = 0.0
    shares_outstanding: float = 0.0  # millions
    net_debt: str = "--"
    fundamentals: Dict[str, Dict[str, str]] = field(default_factory=dict)
    rating: AnalystRating = AnalystRating.NA
    target_price: Optional[float] = None
    description: str = ""
    next_earnings: str = "TBD"
    # Derived, overwritten by the ratio engine.
    market_cap: str = "--"
    enterprise_value: str = "--"
    derived: Dict[str, float] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return normalize_ticker(self.ticker)

    def fundamental(self, metric: str, year: str) -> str:
        return self.fundamentals.get(year, {}).get(metric, "--")

    def with_fundamentals(self, updates: Dict[str, Dict[str, str]]) -> "Company":
        """Return a copy where ``updates`` override the stored raw fields."""
        merged = {year: dict(metrics) for year, metrics in self.fundamentals.items()}
        for year, metrics in updates.items():
            merged.setdefault(year, {}).update(metrics)
        return replace(self, fundamentals=merged)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["rating"] = self.rating.value
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Company":
        fundamentals = {
            str(year): {str(k): str(v) for k, v in (metrics or {}).items()}
            for year, metrics in (data.get("fundamentals") or {}).items()
            if isinstance(metrics, dict)
        }
        derived = {
            str(k): float(v)
            for k, v in (data.get("derived") or {}).items()
            if isinstance(v, (int, float))
        }
        target = data.get("target_price")
        return cls(
            ticker=str(data.get("ticker") or ""),
            name=str(data.get("name") or data.get("ticker") or ""),
            id=str(data.get("id") or ""),
            currency=str(data.get("currency") or "USD"),
            price=float(data.get("price") or 0.0),
            change=float(data.get("change") or 0.0),
            shares_outstanding=float(data.get("shares_outstanding") or 0.0),
            net_debt=str(data.get("net_debt") or "--"),
            fundamentals=fundamentals,
            rating=AnalystRating.parse(data.get("rating")),
            target_price=float(target) if isinstance(target, (int, float)) and target > 0 else None,
            description=str(data.get("description") or ""),
            next_earnings=str(data.get("next_earnings") or "TBD"),
            market_cap=str(data.get("market_cap") or "--"),
            enterprise_value=str(data.get("enterprise_value") or "--"),
            derived=derived,
        )


@dataclass(frozen=True)
class NewsItem:
    id: str
    source: str
    title: str
    time: str = ""
    date: Optional[str] = None
    tag: str = "Market"
    url: Optional[str] = None
    ticker: Optional[str] = None
    region: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["NewsItem"]:
        """Build from a provider or stored record; records without a title are dropped."""
        if not isinstance(data, dict):
            return None
        title = str(data.get("title") or "").strip()
        if not title:
            return None
        return cls(
            id=str(data.get("id") or title),
            source=str(data.get("source") or "Unknown"),
            title=title,
            time=str(data.get("time") or ""),
            date=_optional_str(data.get("date")),
            tag=str(data.get("tag") or "Market"),
            url=_optional_str(data.get("url")),
            ticker=_optional_str(data.get("ticker")),
            region=_optional_str(data.get("region")),
        )


@dataclass(frozen=True)
class EventItem:
    id: str
    title: str
    date: str
    type: Optional[str] = None
    ticker: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["EventItem"]:
        if not isinstance(data, dict):
            return None
        title = str(data.get("title") or "").strip()
        date = str(data.get("date") or "").strip()
        if not title or not date:
            return None
        return cls(
            id=str(data.get("id") or f"{date}:{title}"),
            title=title,
            date=date,
            type=_optional_str(data.get("type")),
            ticker=_optional_str(data.get("ticker")),
        )


@dataclass(frozen=True)
class DocumentItem:
    id: str
    title: str
    date: str
    type: str = "Report"
    url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["DocumentItem"]:
        if not isinstance(data, dict):
            return None
        title = str(data.get("title") or "").strip()
        if not title:
            return None
        date = str(data.get("date") or "").strip()
        doc_type = str(data.get("type") or "Report")
        if doc_type not in {"PDF", "PPT", "ESG", "Report"}:
            doc_type = "Report"
        return cls(
            id=str(data.get("id") or f"{date}:{title}"),
            title=title,
            date=date,
            type=doc_type,
            url=_optional_str(data.get("url")),
        )


@dataclass(frozen=True)
class Sentiment:
    label: str
    description: str
    key_takeaways: Tuple[str, ...] = ()
    last_updated: str = ""

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["key_takeaways"] = list(self.key_takeaways)
        return payload

    @classmethod
    def from_dict(cls, data: Any) -> Optional["Sentiment"]:
        if not isinstance(data, dict):
            return None
        label = str(data.get("label") or "").strip()
        if not label:
            return None
        takeaways = data.get("key_takeaways", data.get("keyTakeaways")) or []
        return cls(
            label=label,
            description=str(data.get("description") or ""),
            key_takeaways=tuple(str(t) for t in takeaways if t) if isinstance(takeaways, list) else (),
            last_updated=str(data.get("last_updated", data.get("lastUpdated")) or ""),
        )


@dataclass(frozen=True)
class PricePoint:
    date: str  # YYYY-MM-DD
    price: float


@dataclass(frozen=True)
class PriceSeries:
    ticker: str
    name: str
    currency: str
    points: Tuple[PricePoint, ...] = ()


@dataclass(frozen=True)
class HistoricalPrices:
    period: str
    series: Tuple[PriceSeries, ...] = ()

    def for_ticker(self, ticker: str) -> Optional[PriceSeries]:
        wanted = normalize_ticker(ticker)
        for item in self.series:
            if normalize_ticker(item.ticker) == wanted:
                return item
        return None


@dataclass(frozen=True)
class AIStatus:
    last_success: Optional[float] = None
    last_error: Optional[float] = None


@dataclass(frozen=True)
class Snapshot:
    """Complete application state; never edited in place, only evolved."""

    companies: Tuple[Company, ...] = ()
    news: Tuple[NewsItem, ...] = ()
    highlights: Tuple[NewsItem, ...] = ()
    events: Tuple[EventItem, ...] = ()
    documents: Tuple[DocumentItem, ...] = ()
    company_documents: Dict[str, Tuple[DocumentItem, ...]] = field(default_factory=dict)
    sentiment: Optional[Sentiment] = None
    freshness: Dict[str, float] = field(default_factory=dict)
    last_updated: str = ""
    ai_status: AIStatus = AIStatus()
    revision: int = 0

    def evolve(self, **changes: Any) -> "Snapshot":
        """Build the successor snapshot with ``changes`` applied."""
        return replace(self, revision=self.revision + 1, **changes)

    def stamp(self, category: str, when: float) -> "Snapshot":
        freshness = dict(self.freshness)
        freshness[category] = when
        return self.evolve(
            freshness=freshness,
            ai_status=AIStatus(last_success=when, last_error=self.ai_status.last_error),
        )

    def mark_error(self, when: float) -> "Snapshot":
        return self.evolve(
            ai_status=AIStatus(last_success=self.ai_status.last_success, last_error=when)
        )

    def company(self, ticker: str) -> Optional[Company]:
        wanted = normalize_ticker(ticker)
        for company in self.companies:
            if company.key == wanted:
                return company
        return None

    def tickers(self) -> List[str]:
        return [c.ticker for c in self.companies if c.ticker]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "companies": [c.to_dict() for c in self.companies],
            "news": [asdict(n) for n in self.news],
            "highlights": [asdict(n) for n in self.highlights],
            "events": [asdict(e) for e in self.events],
            "documents": [asdict(d) for d in self.documents],
            "company_documents": {
                ticker: [asdict(d) for d in docs] for ticker, docs in self.company_documents.items()
            },
            "sentiment": self.sentiment.to_dict() if self.sentiment else None,
            "freshness": dict(self.freshness),
            "last_updated": self.last_updated,
            "ai_status": asdict(self.ai_status),
            "revision": self.revision,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Snapshot":
        status = data.get("ai_status") or {}
        return cls(
            companies=tuple(
                Company.from_dict(c) for c in data.get("companies") or [] if isinstance(c, dict)
            ),
            news=_records(NewsItem, data.get("news")),
            highlights=_records(NewsItem, data.get("highlights")),
            events=_records(EventItem, data.get("events")),
            documents=_records(DocumentItem, data.get("documents")),
            company_documents={
                str(ticker): _records(DocumentItem, docs)
                for ticker, docs in (data.get("company_documents") or {}).items()
            },
            sentiment=Sentiment.from_dict(data.get("sentiment")),
            freshness={
                str(k): float(v)
                for k, v in (data.get("freshness") or {}).items()
                if isinstance(v, (int, float))
            },
            last_updated=str(data.get("last_updated") or ""),
            ai_status=AIStatus(
                last_success=status.get("last_success"),
                last_error=status.get("last_error"),
            ),
            revision=int(data.get("revision") or 0),
        )


def _records(model: Any, items: Optional[Iterable[Any]]) -> Tuple[Any, ...]:
    if not isinstance(items, list):
        return ()
    parsed = (model.from_dict(item) for item in items)
    return tuple(item for item in parsed if item is not None)


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
