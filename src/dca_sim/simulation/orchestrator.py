"""
Orchestration of tracked symbols, fetch outcomes and derived results.

The orchestrator state is an immutable snapshot; every transition is a pure
function returning a new snapshot. ``Backtester`` is the mutable holder that
executes the outstanding fetch batch against a market data source and
installs the outcomes as a single update.
"""

from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Optional, Union

from dca_sim.models import (
    Errored,
    Loaded,
    Pending,
    PortfolioSnapshot,
    PriceSeries,
    SimulationConfig,
    SimulationResult,
    SymbolState,
    normalize_symbol,
)
from dca_sim.data.providers.base import InvalidSymbolError, SymbolFetchError
from dca_sim.data.providers.cache import MarketDataSource
from dca_sim.logging.event_log import EventLogger
from dca_sim.simulation.aggregate import aggregate
from dca_sim.simulation.engine import simulate


# A fetch either yields a series or a classified per-symbol failure
FetchOutcome = Union[PriceSeries, SymbolFetchError]


@dataclass(frozen=True)
class OrchestratorState:
    """
    Snapshot of the tracked symbols and global configuration.

    Attributes:
        config: Simulation inputs shared by every symbol
        symbols: (symbol, state) pairs in the order symbols were added
    """
    config: SimulationConfig
    symbols: tuple[tuple[str, SymbolState], ...] = ()

    @property
    def tracked(self) -> tuple[str, ...]:
        """Tracked symbols in insertion order."""
        return tuple(symbol for symbol, _ in self.symbols)

    def state_of(self, symbol: str) -> Optional[SymbolState]:
        """State of a tracked symbol, or None if it is not tracked."""
        symbol = normalize_symbol(symbol)
        for tracked, symbol_state in self.symbols:
            if tracked == symbol:
                return symbol_state
        return None

    @property
    def errors(self) -> dict[str, str]:
        """Error message per errored symbol."""
        return {
            symbol: symbol_state.message
            for symbol, symbol_state in self.symbols
            if isinstance(symbol_state, Errored)
        }


def initial_state(config: SimulationConfig, symbols: Iterable[str] = ()) -> OrchestratorState:
    """Build a state tracking ``symbols``, all pending."""
    state = OrchestratorState(config=config)
    for symbol in symbols:
        state = add_symbol(state, symbol)
    return state


def series_of(symbol_state: Optional[SymbolState]) -> Optional[PriceSeries]:
    """The series held by a symbol state, if any."""
    if symbol_state is None:
        return None
    return symbol_state.series


def _with_state(state: OrchestratorState, symbol: str, symbol_state: SymbolState) -> OrchestratorState:
    return replace(
        state,
        symbols=tuple(
            (tracked, symbol_state if tracked == symbol else current)
            for tracked, current in state.symbols
        ),
    )


def add_symbol(state: OrchestratorState, symbol: str) -> OrchestratorState:
    """
    Start tracking a symbol.

    Adding a tracked symbol is a no-op, except that an errored symbol
    becomes pending again so it is retried.
    """
    symbol = normalize_symbol(symbol)
    current = state.state_of(symbol)

    if current is None:
        return replace(state, symbols=state.symbols + ((symbol, Pending()),))
    if isinstance(current, Errored):
        return _with_state(state, symbol, Pending(series=current.series))
    return state


def remove_symbol(state: OrchestratorState, symbol: str) -> OrchestratorState:
    """Stop tracking a symbol, discarding its series and error state."""
    symbol = normalize_symbol(symbol)
    if state.state_of(symbol) is None:
        return state
    return replace(
        state,
        symbols=tuple((s, st) for s, st in state.symbols if s != symbol),
    )


def update_config(state: OrchestratorState, config: SimulationConfig) -> OrchestratorState:
    """Replace the global configuration; symbol states are untouched."""
    if config == state.config:
        return state
    return replace(state, config=config)


def mark_for_retry(state: OrchestratorState, symbol: Optional[str] = None) -> OrchestratorState:
    """
    Move errored symbols back to pending.

    Args:
        state: Current state
        symbol: Symbol to retry, or None to retry every errored symbol

    Returns:
        New state; symbols that are not errored are left as they are
    """
    targets = None if symbol is None else {normalize_symbol(symbol)}
    new_symbols = []
    changed = False

    for tracked, symbol_state in state.symbols:
        if isinstance(symbol_state, Errored) and (targets is None or tracked in targets):
            new_symbols.append((tracked, Pending(series=symbol_state.series)))
            changed = True
        else:
            new_symbols.append((tracked, symbol_state))

    if not changed:
        return state
    return replace(state, symbols=tuple(new_symbols))


def symbols_needing_fetch(state: OrchestratorState) -> tuple[str, ...]:
    """
    Outstanding fetch work: every pending symbol, in tracked order.

    Errored symbols are not included; they are fetched again only after an
    explicit retry or re-add.
    """
    return tuple(
        symbol for symbol, symbol_state in state.symbols
        if isinstance(symbol_state, Pending)
    )


def apply_fetch_outcome(
    state: OrchestratorState,
    symbol: str,
    outcome: FetchOutcome,
) -> OrchestratorState:
    """
    Install the outcome of one fetch.

    - A series loads the symbol and clears any error.
    - ``InvalidSymbolError`` drops the symbol from tracking.
    - Any other failure records its message and keeps a previously
      loaded series.

    Outcomes for symbols that are no longer tracked are ignored.
    """
    symbol = normalize_symbol(symbol)
    current = state.state_of(symbol)
    if current is None:
        return state

    if isinstance(outcome, InvalidSymbolError):
        return remove_symbol(state, symbol)

    if isinstance(outcome, SymbolFetchError):
        return _with_state(
            state, symbol, Errored(message=outcome.message, series=series_of(current))
        )

    return _with_state(state, symbol, Loaded(series=outcome))


def apply_fetch_outcomes(
    state: OrchestratorState,
    outcomes: Mapping[str, FetchOutcome],
) -> OrchestratorState:
    """Install a whole batch of fetch outcomes as one new state."""
    for symbol, outcome in outcomes.items():
        state = apply_fetch_outcome(state, symbol, outcome)
    return state


def compute_results(state: OrchestratorState) -> list[SimulationResult]:
    """
    Simulate every tracked symbol that holds a series.

    Returns:
        Results in tracked order
    """
    results = []
    for symbol, symbol_state in state.symbols:
        series = series_of(symbol_state)
        if series is None:
            continue
        results.append(
            simulate(
                series,
                state.config.weekly_contribution,
                state.config.start_date,
                symbol=symbol,
            )
        )
    return results


def compute_snapshot(state: OrchestratorState) -> PortfolioSnapshot:
    """Aggregate the results of every symbol with data."""
    return aggregate(compute_results(state))


class Backtester:
    """
    Mutable holder driving the orchestrator.

    Owns the current state snapshot, executes fetch batches through a
    market data source and memoizes derived results per snapshot.
    """

    def __init__(
        self,
        source: MarketDataSource,
        config: SimulationConfig,
        symbols: Iterable[str] = (),
        event_logger: Optional[EventLogger] = None,
        max_workers: int = 1,
    ):
        """
        Initialize the backtester.

        Args:
            source: Cache-backed market data source
            config: Initial simulation configuration
            symbols: Symbols to track initially
            event_logger: Optional event log for fetch outcomes and changes
            max_workers: Fetch concurrency (1 fetches sequentially)
        """
        self._source = source
        self._state = initial_state(config, symbols)
        self._logger = event_logger
        self._max_workers = max(1, max_workers)
        self._derived_for: Optional[OrchestratorState] = None
        self._results: list[SimulationResult] = []
        self._snapshot = PortfolioSnapshot()

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def config(self) -> SimulationConfig:
        return self._state.config

    @property
    def tracked_symbols(self) -> tuple[str, ...]:
        return self._state.tracked

    @property
    def errors(self) -> dict[str, str]:
        return self._state.errors

    def add(self, symbol: str) -> bool:
        """
        Track a symbol (or re-queue it if it errored).

        Returns:
            True if the symbol was not tracked before
        """
        symbol = normalize_symbol(symbol)
        is_new = self._state.state_of(symbol) is None
        self._state = add_symbol(self._state, symbol)
        if is_new and self._logger:
            self._logger.log_symbol_added(symbol)
        return is_new

    def remove(self, symbol: str) -> bool:
        """
        Stop tracking a symbol.

        Returns:
            True if the symbol was tracked
        """
        symbol = normalize_symbol(symbol)
        was_tracked = self._state.state_of(symbol) is not None
        self._state = remove_symbol(self._state, symbol)
        if was_tracked and self._logger:
            self._logger.log_symbol_removed(symbol)
        return was_tracked

    def retry(self, symbol: Optional[str] = None) -> None:
        """Re-queue one errored symbol, or all of them."""
        self._state = mark_for_retry(self._state, symbol)

    def update_config(self, config: SimulationConfig) -> None:
        new_state = update_config(self._state, config)
        if new_state is not self._state and self._logger:
            self._logger.log_config_updated(config)
        self._state = new_state

    def _fetch(self, symbol: str) -> tuple[FetchOutcome, str]:
        """Fetch one symbol; returns the outcome and where a series came from."""
        source_name = "cache" if self._source.is_cached(symbol) else self._source.name
        try:
            return self._source.fetch_weekly_series(symbol), source_name
        except SymbolFetchError as e:
            return e, source_name

    def refresh(self) -> dict[str, FetchOutcome]:
        """
        Fetch every symbol needing data and install the outcomes.

        All outcomes of the batch are applied in one update. A global
        ``DataProviderError`` aborts the batch and leaves the state unchanged.

        Returns:
            Outcome per fetched symbol
        """
        pending = symbols_needing_fetch(self._state)
        if not pending:
            return {}

        if self._max_workers > 1 and len(pending) > 1:
            with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
                fetched = list(executor.map(self._fetch, pending))
        else:
            fetched = [self._fetch(symbol) for symbol in pending]

        outcomes = {symbol: outcome for symbol, (outcome, _) in zip(pending, fetched)}

        # Nothing is logged until the whole batch has been fetched
        if self._logger:
            for symbol, (outcome, source_name) in zip(pending, fetched):
                if isinstance(outcome, InvalidSymbolError):
                    self._logger.log_symbol_invalidated(symbol, outcome.message)
                elif isinstance(outcome, SymbolFetchError):
                    self._logger.log_fetch_failed(
                        symbol, type(outcome).__name__, outcome.message
                    )
                else:
                    self._logger.log_fetch_succeeded(symbol, len(outcome), source_name)

        self._state = apply_fetch_outcomes(self._state, outcomes)
        return outcomes

    def _derive(self) -> None:
        if self._derived_for is self._state:
            return
        self._results = compute_results(self._state)
        self._snapshot = aggregate(self._results)
        self._derived_for = self._state

    @property
    def results(self) -> list[SimulationResult]:
        """Per-symbol results for the current state."""
        self._derive()
        return list(self._results)

    @property
    def snapshot(self) -> PortfolioSnapshot:
        """Portfolio snapshot for the current state."""
        self._derive()
        return self._snapshot
