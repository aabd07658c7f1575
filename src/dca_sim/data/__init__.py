"""
Data module for the weekly DCA backtester.

Provides market data providers, the price cache, file schemas and
CSV export of backtest results.
"""

from dca_sim.data.exporters import (
    save_all,
    save_history,
    save_portfolio_history,
    save_results,
)
from dca_sim.data.schemas import (
    HISTORY_SCHEMA,
    PORTFOLIO_HISTORY_SCHEMA,
    RESULTS_SCHEMA,
    WEEKLY_PRICES_SCHEMA,
)

__all__ = [
    "save_all",
    "save_history",
    "save_portfolio_history",
    "save_results",
    "HISTORY_SCHEMA",
    "PORTFOLIO_HISTORY_SCHEMA",
    "RESULTS_SCHEMA",
    "WEEKLY_PRICES_SCHEMA",
]
