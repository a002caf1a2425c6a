"""Ratio engine: derived valuation multiples and margins for one company.

All inputs are the company's raw fields (fundamentals stored as magnitude
strings, net debt, share count) plus the current quote. Outputs never
contain NaN or infinities: a ratio that cannot be computed is ``0.0``, which
the presentation layer renders as ``--``.

Multiples that depend on the share price (EV/EBITDA, EV/EBIT, EV/Sales, P/E,
EV/(EBITDA - Capex), FCF yield) are only computed when the price is positive
and the denominator is positive; margins only need a non-zero revenue.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Optional

import numpy as np

from ooh_terminal.domain.models.sector import FISCAL_YEARS, Company
from ooh_terminal.domain.services.parsing import (
    format_magnitude,
    parse_financial_value,
    parse_percent,
)

# Years -> suffix of the headline aliases (current, forward, next).
YEAR_ALIASES: Dict[str, str] = {"2024": "", "2025": "_forward", "2026": "_next"}

MULTIPLE_KEYS = ("ev_ebitda", "ev_ebit", "ev_sales", "pe", "ev_ebitda_capex", "fcf_yield")
MARGIN_KEYS = ("ebitda_margin", "ebit_margin", "net_margin", "capex_revenue", "fcf_revenue")


@dataclass(frozen=True)
class DerivedFields:
    """Everything the ratio engine produces for one company."""

    market_cap: float
    enterprise_value: float
    ratios: Dict[str, float] = field(default_factory=dict)


def _finite(value: float) -> float:
    return float(value) if np.isfinite(value) else 0.0


def _sdiv(numerator: float, denominator: float) -> float:
    if not np.isfinite(numerator) or not np.isfinite(denominator) or denominator == 0:
        return 0.0
    return _finite(numerator / denominator)


def _pct(numerator: float, denominator: float) -> float:
    if not np.isfinite(numerator) or not np.isfinite(denominator) or denominator == 0:
        return 0.0
    return _finite(numerator * 100.0 / denominator)


def _multiple(numerator: float, denominator: float, price: float) -> float:
    if price <= 0 or denominator <= 0:
        return 0.0
    return _sdiv(numerator, denominator)


class RatioCalculator:
    """Derive market cap, EV, margins and multiples from a company's raw fields."""

    def calculate(self, company: Company) -> DerivedFields:
        price = _finite(company.price) if company.price and company.price > 0 else 0.0
        shares = _finite(company.shares_outstanding) if company.shares_outstanding > 0 else 0.0

        market_cap = price * shares
        net_debt = parse_financial_value(company.net_debt)
        enterprise_value = market_cap + net_debt

        ratios: Dict[str, float] = {}
        previous_revenue: Optional[float] = None
        for year in FISCAL_YEARS:
            def value(metric: str) -> float:
                return parse_financial_value(company.fundamental(metric, year))

            revenue = value("revenue")
            ebitda = value("ebitda")
            ebit = value("ebit")
            net_income = value("net_income")
            capex = abs(value("capex"))
            fcf = value("fcf")
            dps = value("dividend_per_share")

            ratios[f"ebitda_margin_{year}"] = _pct(ebitda, revenue)
            ratios[f"ebit_margin_{year}"] = _pct(ebit, revenue)
            ratios[f"net_margin_{year}"] = _pct(net_income, revenue)
            ratios[f"capex_revenue_{year}"] = _pct(capex, revenue)
            ratios[f"fcf_revenue_{year}"] = _pct(fcf, revenue)

            growth = 0.0
            if previous_revenue and previous_revenue > 0 and revenue > 0:
                growth = _pct(revenue - previous_revenue, previous_revenue)
            ratios[f"revenue_growth_{year}"] = growth
            previous_revenue = revenue

            ratios[f"ev_ebitda_{year}"] = _multiple(enterprise_value, ebitda, price)
            ratios[f"ev_ebit_{year}"] = _multiple(enterprise_value, ebit, price)
            ratios[f"ev_sales_{year}"] = _multiple(enterprise_value, revenue, price)
            ratios[f"pe_{year}"] = _multiple(market_cap, net_income, price)
            ratios[f"ev_ebitda_capex_{year}"] = _multiple(enterprise_value, ebitda - capex, price)
            ratios[f"fcf_yield_{year}"] = (
                _pct(fcf, market_cap) if price > 0 and market_cap > 0 else 0.0
            )

            if price > 0 and dps > 0:
                dividend_yield = _pct(dps, price)
            else:
                dividend_yield = parse_percent(company.fundamental("dividend_yield", year))
            ratios[f"dividend_yield_{year}"] = dividend_yield

        for year, suffix in YEAR_ALIASES.items():
            for key in MULTIPLE_KEYS + MARGIN_KEYS + ("dividend_yield",):
                ratios[f"{key}{suffix}"] = ratios[f"{key}_{year}"]

        target = company.target_price
        ratios["upside"] = _pct(target - price, price) if target and price > 0 else 0.0
        ratios["market_cap"] = _finite(market_cap)
        ratios["enterprise_value"] = _finite(enterprise_value)

        return DerivedFields(
            market_cap=_finite(market_cap),
            enterprise_value=_finite(enterprise_value),
            ratios=ratios,
        )


_CALCULATOR = RatioCalculator()


def compute_ratios(company: Company) -> DerivedFields:
    """Pure entry point; identical inputs always give identical outputs."""
    return _CALCULATOR.calculate(company)


def shares_from_market_cap(market_cap: object, price: float) -> float:
    """Share count in millions implied by a reported market cap; 0 when unknown."""
    cap = parse_financial_value(market_cap)
    if cap <= 0 or not price or price <= 0:
        return 0.0
    return _finite(cap / price)


def apply_ratios(company: Company) -> Company:
    """Return a copy of ``company`` whose derived fields are recomputed."""
    derived = compute_ratios(company)
    return replace(
        company,
        market_cap=format_magnitude(derived.market_cap),
        enterprise_value=format_magnitude(derived.enterprise_value),
        derived=dict(derived.ratios),
    )
