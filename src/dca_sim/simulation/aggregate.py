"""
Portfolio aggregation of per-symbol simulation results.
"""

from collections.abc import Iterable
from decimal import Decimal

from dca_sim.models import (
    HUNDRED,
    ZERO,
    ChartPoint,
    PortfolioSnapshot,
    SimulationResult,
)


def aggregate(results: Iterable[SimulationResult]) -> PortfolioSnapshot:
    """
    Merge per-symbol results into portfolio totals and one chart series.

    Each chart date sums only the securities that have a history point on
    that date; histories are not back-filled or forward-filled.

    Args:
        results: Simulation results, one per symbol

    Returns:
        PortfolioSnapshot (all zero for no results)
    """
    total_invested = ZERO
    current_value = ZERO
    by_date: dict[str, list[Decimal]] = {}

    for result in results:
        total_invested += result.total_invested
        current_value += result.current_value

        for point in result.history:
            totals = by_date.setdefault(point.date, [ZERO, ZERO])
            totals[0] += point.invested
            totals[1] += point.value

    if total_invested > 0:
        total_return_percent = (current_value - total_invested) / total_invested * HUNDRED
    else:
        total_return_percent = ZERO

    # ISO dates are zero-padded, so string order is chronological
    chart_series = tuple(
        ChartPoint(date=day, invested=totals[0], value=totals[1])
        for day, totals in sorted(by_date.items())
    )

    return PortfolioSnapshot(
        total_invested=total_invested,
        current_value=current_value,
        total_return_percent=total_return_percent,
        chart_series=chart_series,
    )
