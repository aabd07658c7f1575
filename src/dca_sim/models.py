"""
Core data models for the weekly DCA backtester.

This module defines the fundamental data structures used throughout the system,
including price points, simulation results, portfolio snapshots and the
per-symbol fetch states tracked by the orchestrator.
All monetary and share quantities use Decimal for precision.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union


ZERO = Decimal("0")
HUNDRED = Decimal("100")


class ActionType(Enum):
    """Types of logged actions for the event log."""
    SYMBOL_ADDED = "SYMBOL_ADDED"
    SYMBOL_REMOVED = "SYMBOL_REMOVED"
    SYMBOL_INVALIDATED = "SYMBOL_INVALIDATED"
    FETCH_SUCCEEDED = "FETCH_SUCCEEDED"
    FETCH_FAILED = "FETCH_FAILED"
    CONFIG_UPDATED = "CONFIG_UPDATED"
    SIMULATION_COMPLETED = "SIMULATION_COMPLETED"


def normalize_symbol(symbol: str) -> str:
    """
    Normalize a ticker symbol to its canonical uppercase form.

    Args:
        symbol: Raw ticker as typed by a user or read from a file

    Returns:
        Stripped, uppercased symbol

    Raises:
        ValueError: If the symbol is empty after normalization
    """
    normalized = str(symbol).strip().upper()
    if not normalized:
        raise ValueError("Symbol cannot be empty")
    return normalized


@dataclass(frozen=True)
class PricePoint:
    """
    Weekly adjusted close for one date.

    Attributes:
        date: ISO calendar date string (YYYY-MM-DD)
        adjusted_close: Split/dividend adjusted closing price
    """
    date: str
    adjusted_close: Decimal


# Mapping from ISO date string to price point, unordered until sorted
PriceSeries = dict[str, PricePoint]


@dataclass(frozen=True)
class CacheEntry:
    """
    Cached price series for one symbol.

    Attributes:
        symbol: Ticker symbol
        series: Price series as returned by the provider
        fetched_at_ms: Fetch time in epoch milliseconds
    """
    symbol: str
    series: PriceSeries
    fetched_at_ms: int


@dataclass(frozen=True)
class SimulationConfig:
    """
    Global simulation inputs shared by every tracked symbol.

    Attributes:
        weekly_contribution: Amount invested on every eligible week
        start_date: First calendar date eligible for a purchase
    """
    weekly_contribution: Decimal
    start_date: date


@dataclass
class Workspace:
    """
    Persisted user workspace.

    Attributes:
        config: Global simulation inputs
        symbols: Tracked symbols in the order they were added
        cache_dir: Directory for the price cache
        cache_ttl_hours: Lifetime of cached series
        event_log: Path of the JSONL event log (relative to the workspace file)
    """
    config: SimulationConfig
    symbols: list[str] = field(default_factory=list)
    cache_dir: str = "data/cache"
    cache_ttl_hours: int = 24
    event_log: str = "event_log.jsonl"


@dataclass(frozen=True)
class HistoryPoint:
    """Cumulative position after the purchase on one date."""
    date: str
    invested: Decimal
    value: Decimal
    price: Decimal
    shares: Decimal
    average_cost: Decimal


@dataclass(frozen=True)
class SimulationResult:
    """
    Result of replaying weekly contributions for one symbol.

    Attributes:
        symbol: Ticker symbol
        total_invested: Sum of all contributions
        current_value: total_shares * current_price
        total_shares: Fractional shares accumulated
        total_return_percent: Return on invested capital, in percent
        average_cost: total_invested / total_shares (0 when no shares)
        current_price: Adjusted close of the latest eligible date
        history: One point per eligible date, ascending
    """
    symbol: str
    total_invested: Decimal = ZERO
    current_value: Decimal = ZERO
    total_shares: Decimal = ZERO
    total_return_percent: Decimal = ZERO
    average_cost: Decimal = ZERO
    current_price: Decimal = ZERO
    history: tuple[HistoryPoint, ...] = ()

    @property
    def net_profit(self) -> Decimal:
        """Unrealized profit or loss."""
        return self.current_value - self.total_invested


@dataclass(frozen=True)
class ChartPoint:
    """Portfolio-wide invested and value totals on one date."""
    date: str
    invested: Decimal
    value: Decimal


@dataclass(frozen=True)
class PortfolioSnapshot:
    """
    Portfolio totals merged from every simulated symbol.

    Attributes:
        total_invested: Sum of per-symbol invested amounts
        current_value: Sum of per-symbol current values
        total_return_percent: Portfolio return in percent (0 when nothing invested)
        chart_series: Per-date totals sorted by date ascending
    """
    total_invested: Decimal = ZERO
    current_value: Decimal = ZERO
    total_return_percent: Decimal = ZERO
    chart_series: tuple[ChartPoint, ...] = ()

    @property
    def net_profit(self) -> Decimal:
        """Unrealized profit or loss across the portfolio."""
        return self.current_value - self.total_invested


@dataclass(frozen=True)
class Pending:
    """
    Symbol waiting for a fetch.

    Holds the previously loaded series, if any, while a retry is outstanding.
    """
    series: Optional[PriceSeries] = None


@dataclass(frozen=True)
class Loaded:
    """Symbol with a price series installed."""
    series: PriceSeries


@dataclass(frozen=True)
class Errored:
    """
    Symbol whose last fetch failed with a transient error.

    Attributes:
        message: Error message surfaced to the user
        series: Series loaded before the failure, retained for display
    """
    message: str
    series: Optional[PriceSeries] = None


SymbolState = Union[Pending, Loaded, Errored]


@dataclass
class EventLogEntry:
    """
    Entry for the append-only event log.

    Attributes:
        timestamp: When the action occurred
        action_type: Type of action
        details: JSON-serializable details dictionary
    """
    timestamp: datetime
    action_type: ActionType
    details: dict = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        action_type: ActionType,
        details: dict,
    ) -> "EventLogEntry":
        """Factory method with auto-generated timestamp."""
        return cls(
            timestamp=datetime.now(),
            action_type=action_type,
            details=details,
        )
