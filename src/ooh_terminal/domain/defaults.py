"""Bundled default dataset used on first run and as repair reference."""
from __future__ import annotations

from typing import Dict, Iterable, Optional, Tuple

from ooh_terminal.domain.models.sector import (
    AnalystRating,
    Company,
    DocumentItem,
    EventItem,
    NewsItem,
    Snapshot,
    fundamentals_from_flat,
)
from ooh_terminal.domain.services.ratios import apply_ratios


def _company(
    *,
    id: str,
    name: str,
    ticker: str,
    currency: str,
    rating: AnalystRating,
    description: str,
    shares: float,
    price: float,
    change: float,
    net_debt: str,
    **flat: str,
) -> Company:
    return Company(
        ticker=ticker,
        name=name,
        id=id,
        currency=currency,
        price=price,
        change=change,
        shares_outstanding=shares,
        net_debt=net_debt,
        fundamentals=fundamentals_from_flat(flat),
        rating=rating,
        description=description,
    )


DEFAULT_COMPANIES: Tuple[Company, ...] = (
    _company(
        id="jcdecaux", name="JCDecaux SE", ticker="DEC.PA", currency="EUR",
        rating=AnalystRating.BUY, description="Global leader in outdoor advertising.",
        shares=212, price=19.85, change=0.8, net_debt="920 M",
        revenue2024="3570 M", revenue2025="3780 M", revenue2026="3950 M",
        ebitda2024="1890 M", ebitda2025="2010 M", ebitda2026="2150 M",
        ebit2024="1150 M", ebit2025="1240 M", ebit2026="1350 M",
        netIncome2024="385 M", netIncome2025="430 M", netIncome2026="495 M",
        capex2024="260 M", capex2025="275 M", capex2026="290 M",
        fcf2024="420 M", fcf2025="480 M", fcf2026="540 M",
        dividendPerShare2024="0.70", dividendPerShare2025="0.80", dividendPerShare2026="0.90",
    ),
    _company(
        id="outfront", name="Outfront Media Inc.", ticker="OUT", currency="USD",
        rating=AnalystRating.HOLD, description="Billboard and transit advertising in the US.",
        shares=167, price=18.75, change=-1.2, net_debt="2750 M",
        revenue2024="1820 M", revenue2025="1910 M",
        ebitda2024="455 M", ebitda2025="485 M",
        ebit2024="215 M", ebit2025="240 M",
        fcf2024="165 M",
        dividendPerShare2024="1.22", dividendPerShare2025="1.25",
    ),
    _company(
        id="stroeer", name="Ströer SE & Co. KGaA", ticker="SAX.DE", currency="EUR",
        rating=AnalystRating.BUY, description="Out-of-home and digital media specialist in Germany.",
        shares=57, price=58.40, change=1.5, net_debt="620 M",
        revenue2024="1940 M", revenue2025="2080 M", revenue2026="2200 M",
        ebitda2024="595 M", ebitda2025="645 M", ebitda2026="695 M",
        ebit2024="415 M", ebit2025="460 M", ebit2026="505 M",
        netIncome2024="210 M", netIncome2025="245 M", netIncome2026="280 M",
        fcf2024="215 M", fcf2025="240 M", fcf2026="275 M",
        dividendPerShare2024="1.85", dividendPerShare2025="1.95", dividendPerShare2026="2.10",
    ),
    _company(
        id="clearchannel", name="Clear Channel Outdoor", ticker="CCO", currency="USD",
        rating=AnalystRating.SELL, description="Global player in the middle of a geographic restructuring.",
        shares=485, price=1.62, change=-2.4, net_debt="5350 M",
        revenue2024="2580 M", revenue2025="2650 M",
        ebitda2024="535 M", ebitda2025="560 M",
        ebit2024="165 M", ebit2025="185 M",
        dividendPerShare2024="0.00",
    ),
    _company(
        id="arabian", name="Arabian Contracting Services", ticker="4071.SR", currency="SAR",
        rating=AnalystRating.STRONG_BUY, description="Leading billboard operator in Saudi Arabia.",
        shares=50, price=194.50, change=1.1, net_debt="120 M",
        revenue2024="1220 M", revenue2025="1450 M",
        ebitda2024="445 M", ebitda2025="520 M",
        ebit2024="380 M", ebit2025="450 M",
        dividendPerShare2024="5.50", dividendPerShare2025="6.00",
    ),
    _company(
        id="lamar", name="Lamar Advertising Company", ticker="LAMR", currency="USD",
        rating=AnalystRating.HOLD, description="US billboard REIT.",
        shares=102, price=134.20, change=-0.3, net_debt="3150 M",
        revenue2024="2150 M", revenue2025="2300 M", revenue2026="2450 M",
        ebitda2024="980 M", ebitda2025="1050 M", ebitda2026="1120 M",
        ebit2024="810 M", ebit2025="870 M", ebit2026="940 M",
        netIncome2024="465 M", netIncome2025="510 M", netIncome2026="560 M",
        capex2024="145 M", capex2025="150 M", capex2026="155 M",
        fcf2024="620 M", fcf2025="680 M", fcf2026="740 M",
        dividendPerShare2024="5.20", dividendPerShare2025="5.40", dividendPerShare2026="5.60",
    ),
)

BOOT_NEWS: Tuple[NewsItem, ...] = (
    NewsItem(id="1", source="System", tag="Market", title="Initializing the sector terminal...", time="Live"),
)

FALLBACK_NEWS: Tuple[NewsItem, ...] = (
    NewsItem(
        id="101", source="Reuters", tag="Digital", time="2h ago",
        title="JCDecaux accelerates programmatic rollout in Northern Europe",
    ),
    NewsItem(
        id="103", source="Financial Times", tag="Earnings", time="6h ago",
        title="OOH sector: digital out-of-home revenue beats expectations in Q4",
    ),
)

FALLBACK_EVENTS: Tuple[EventItem, ...] = (
    EventItem(id="e1", title="JCDecaux Full Year 2024 Results", date="2025-03-06", type="Earnings", ticker="DEC.PA"),
    EventItem(id="e2", title="Lamar Advertising Q4 & FY 2024 Results", date="2025-02-21", type="Earnings", ticker="LAMR"),
    EventItem(id="e3", title="Ströer SE & Co. KGaA Annual Report 2024", date="2025-03-27", type="Earnings", ticker="SAX.DE"),
    EventItem(id="e4", title="Outfront Media Q4 2024 Earnings Call", date="2025-02-25", type="Earnings", ticker="OUT"),
    EventItem(id="e5", title="Clear Channel Outdoor Q4 2024 Results", date="2025-02-27", type="Earnings", ticker="CCO"),
    EventItem(id="e6", title="JCDecaux Q1 2025 Revenue", date="2025-05-15", type="Earnings", ticker="DEC.PA"),
)

FALLBACK_DOCUMENTS: Dict[str, Tuple[DocumentItem, ...]] = {
    "DEC.PA": (
        DocumentItem(
            id="d1", type="Report", title="Annual Report 2023", date="2024-03-15",
            url="https://www.jcdecaux.com",
        ),
    ),
}


def default_snapshot(companies: Optional[Iterable[Company]] = None) -> Snapshot:
    """Snapshot built from bundled data, with ratios already computed."""
    source = DEFAULT_COMPANIES if companies is None else companies
    return Snapshot(
        companies=tuple(apply_ratios(c) for c in source),
        news=BOOT_NEWS,
        last_updated="Initializing...",
    )
