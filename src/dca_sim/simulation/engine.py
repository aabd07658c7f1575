"""
Core simulation engine for weekly dollar-cost-averaging backtests.

Replays a fixed weekly contribution against a historical weekly price
series and records the cumulative position after every purchase.
"""

from datetime import date
from decimal import Decimal

from dca_sim.models import (
    HUNDRED,
    ZERO,
    HistoryPoint,
    PriceSeries,
    SimulationResult,
)


def _as_iso(start_date: date | str) -> str:
    if isinstance(start_date, date):
        return start_date.isoformat()
    return date.fromisoformat(start_date).isoformat()


def eligible_dates(series: PriceSeries, start_date: date | str) -> list[str]:
    """
    Dates on or after the start date, ascending.

    Args:
        series: Price series keyed by ISO date string
        start_date: First eligible date (inclusive)

    Returns:
        Sorted list of ISO date strings
    """
    start = _as_iso(start_date)
    return sorted(day for day in series if day >= start)


def simulate(
    series: PriceSeries,
    weekly_contribution: Decimal,
    start_date: date | str,
    symbol: str = "",
) -> SimulationResult:
    """
    Simulate buying a fixed amount of a security every week.

    One purchase of ``weekly_contribution / adjusted_close`` fractional shares
    is made on every series date on or after ``start_date``. When no date
    qualifies the zero-valued result is returned.

    Args:
        series: Weekly price series for the security
        weekly_contribution: Amount invested per week
        start_date: First date eligible for a purchase (inclusive)
        symbol: Ticker symbol to stamp on the result

    Returns:
        SimulationResult with one HistoryPoint per purchase
    """
    contribution = Decimal(str(weekly_contribution))
    dates = eligible_dates(series, start_date)

    if not dates:
        return SimulationResult(symbol=symbol)

    total_invested = ZERO
    total_shares = ZERO
    history: list[HistoryPoint] = []

    for day in dates:
        price = series[day].adjusted_close

        total_shares += contribution / price
        total_invested += contribution

        average_cost = total_invested / total_shares if total_shares > 0 else ZERO
        history.append(
            HistoryPoint(
                date=day,
                invested=total_invested,
                value=total_shares * price,
                price=price,
                shares=total_shares,
                average_cost=average_cost,
            )
        )

    current_price = series[dates[-1]].adjusted_close
    current_value = total_shares * current_price

    if total_invested > 0:
        total_return_percent = (current_value - total_invested) / total_invested * HUNDRED
    else:
        total_return_percent = ZERO

    return SimulationResult(
        symbol=symbol,
        total_invested=total_invested,
        current_value=current_value,
        total_shares=total_shares,
        total_return_percent=total_return_percent,
        average_cost=total_invested / total_shares if total_shares > 0 else ZERO,
        current_price=current_price,
        history=tuple(history),
    )
