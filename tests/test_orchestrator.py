"""
Tests for orchestrator transitions and the Backtester holder.
"""

from datetime import date
from decimal import Decimal

import pytest

from dca_sim.data.providers.base import (
    DataProviderError,
    InvalidSymbolError,
    NoDataError,
    ProviderNoticeError,
    RateLimitedError,
)
from dca_sim.data.providers.cache import MarketDataSource, PriceCache
from dca_sim.logging.event_log import EventLogger
from dca_sim.models import (
    ActionType,
    Errored,
    Loaded,
    Pending,
    SimulationConfig,
)
from dca_sim.simulation.aggregate import aggregate
from dca_sim.simulation.engine import simulate
from dca_sim.simulation.orchestrator import (
    Backtester,
    add_symbol,
    apply_fetch_outcome,
    apply_fetch_outcomes,
    compute_results,
    compute_snapshot,
    initial_state,
    mark_for_retry,
    remove_symbol,
    symbols_needing_fetch,
    update_config,
)

from conftest import StubProvider


class TestTransitions:
    """Tests for the pure state transitions."""

    def test_add_symbol_starts_pending(self, sample_config):
        state = add_symbol(initial_state(sample_config), " aapl ")
        assert state.tracked == ("AAPL",)
        assert state.state_of("AAPL") == Pending()

    def test_add_tracked_symbol_is_noop(self, sample_config, sample_series):
        """Test that re-adding a loaded symbol changes nothing."""
        state = initial_state(sample_config, ["AAPL"])
        state = apply_fetch_outcome(state, "AAPL", sample_series)

        assert add_symbol(state, "aapl") is state

    def test_initial_state_dedupes(self, sample_config):
        state = initial_state(sample_config, ["AAPL", "aapl", "MSFT"])
        assert state.tracked == ("AAPL", "MSFT")

    def test_add_empty_symbol_rejected(self, sample_config):
        with pytest.raises(ValueError):
            add_symbol(initial_state(sample_config), "  ")

    def test_readd_errored_symbol_retries(self, sample_config):
        """Test that re-adding an errored symbol makes it pending again."""
        state = initial_state(sample_config, ["AAPL"])
        state = apply_fetch_outcome(state, "AAPL", NoDataError("AAPL", "No data found for AAPL"))

        state = add_symbol(state, "AAPL")
        assert state.state_of("AAPL") == Pending()
        assert symbols_needing_fetch(state) == ("AAPL",)

    def test_remove_symbol(self, sample_config, sample_series):
        """Test that removal drops the series from all derived results."""
        state = initial_state(sample_config, ["AAPL", "MSFT"])
        state = apply_fetch_outcome(state, "AAPL", sample_series)

        state = remove_symbol(state, "aapl")
        assert state.tracked == ("MSFT",)
        assert state.state_of("AAPL") is None
        assert compute_results(state) == []

    def test_remove_absent_symbol_is_noop(self, sample_config):
        state = initial_state(sample_config, ["AAPL"])
        assert remove_symbol(state, "MSFT") is state
        once = remove_symbol(state, "AAPL")
        assert remove_symbol(once, "AAPL") is once

    def test_symbols_needing_fetch(self, sample_config, sample_series):
        """Test that only pending symbols are outstanding work."""
        state = initial_state(sample_config, ["AAPL", "MSFT", "GOOG"])
        state = apply_fetch_outcomes(state, {
            "AAPL": sample_series,
            "MSFT": RateLimitedError("MSFT", "throttled"),
        })

        assert symbols_needing_fetch(state) == ("GOOG",)

    def test_invalid_symbol_removed(self, sample_config):
        """Test that an invalid symbol is dropped with no recorded error."""
        state = initial_state(sample_config, ["AAPL", "ZZZZ"])
        state = apply_fetch_outcome(state, "ZZZZ", InvalidSymbolError("ZZZZ", "Invalid symbol: ZZZZ"))

        assert "ZZZZ" not in state.tracked
        assert "ZZZZ" not in state.errors
        assert state.tracked == ("AAPL",)

    def test_rate_limited_keeps_loaded_series(self, sample_config, sample_series):
        """Test that a transient failure keeps the prior series and records an error."""
        state = initial_state(sample_config, ["AAPL"])
        state = apply_fetch_outcome(state, "AAPL", sample_series)

        state = apply_fetch_outcome(
            state, "AAPL", RateLimitedError("AAPL", "API call frequency exceeded")
        )

        assert "AAPL" in state.tracked
        assert state.state_of("AAPL") == Errored(
            message="API call frequency exceeded", series=sample_series
        )
        assert state.errors == {"AAPL": "API call frequency exceeded"}
        assert len(compute_results(state)) == 1

    def test_error_without_prior_series(self, sample_config):
        state = initial_state(sample_config, ["AAPL"])
        state = apply_fetch_outcome(state, "AAPL", ProviderNoticeError("AAPL", "premium"))

        assert state.state_of("AAPL") == Errored(message="premium")
        assert compute_results(state) == []

    def test_success_clears_error(self, sample_config, sample_series):
        state = initial_state(sample_config, ["AAPL"])
        state = apply_fetch_outcome(state, "AAPL", NoDataError("AAPL", "No data found for AAPL"))
        state = apply_fetch_outcome(state, "AAPL", sample_series)

        assert state.state_of("AAPL") == Loaded(series=sample_series)
        assert state.errors == {}

    def test_outcome_for_untracked_symbol_ignored(self, sample_config, sample_series):
        state = initial_state(sample_config, ["AAPL"])
        assert apply_fetch_outcome(state, "MSFT", sample_series) is state

    def test_mark_for_retry_all(self, sample_config, sample_series):
        """Test that retry re-queues every errored symbol and keeps retained series."""
        state = initial_state(sample_config, ["AAPL", "MSFT", "GOOG"])
        state = apply_fetch_outcomes(state, {"AAPL": sample_series, "GOOG": sample_series})
        state = apply_fetch_outcome(state, "GOOG", RateLimitedError("GOOG", "throttled"))
        state = apply_fetch_outcome(state, "MSFT", NoDataError("MSFT", "none"))

        state = mark_for_retry(state)

        assert symbols_needing_fetch(state) == ("MSFT", "GOOG")
        assert state.state_of("GOOG") == Pending(series=sample_series)
        assert isinstance(state.state_of("AAPL"), Loaded)

    def test_mark_for_retry_single(self, sample_config):
        state = initial_state(sample_config, ["AAPL", "MSFT"])
        state = apply_fetch_outcomes(state, {
            "AAPL": NoDataError("AAPL", "none"),
            "MSFT": NoDataError("MSFT", "none"),
        })

        state = mark_for_retry(state, "msft")
        assert symbols_needing_fetch(state) == ("MSFT",)
        assert "AAPL" in state.errors

    def test_mark_for_retry_without_errors_is_noop(self, sample_config):
        state = initial_state(sample_config, ["AAPL"])
        assert mark_for_retry(state) is state

    def test_update_config_keeps_loaded(self, sample_config, sample_series):
        """Test that a config change only affects derived results."""
        state = initial_state(sample_config, ["AAPL"])
        state = apply_fetch_outcome(state, "AAPL", sample_series)

        new_config = SimulationConfig(weekly_contribution=Decimal("50"), start_date=date(2023, 1, 13))
        updated = update_config(state, new_config)

        assert updated.state_of("AAPL") == Loaded(series=sample_series)
        assert symbols_needing_fetch(updated) == ()
        assert compute_results(updated)[0].total_invested == Decimal("100")

    def test_update_config_same_value_is_noop(self, sample_config):
        state = initial_state(sample_config)
        same = SimulationConfig(
            weekly_contribution=sample_config.weekly_contribution,
            start_date=sample_config.start_date,
        )
        assert update_config(state, same) is state

    def test_compute_snapshot(self, sample_config, sample_series, msft_series):
        """Test that the snapshot aggregates every loaded symbol in tracked order."""
        state = initial_state(sample_config, ["MSFT", "AAPL", "GOOG"])
        state = apply_fetch_outcomes(state, {"AAPL": sample_series, "MSFT": msft_series})

        results = compute_results(state)
        assert [r.symbol for r in results] == ["MSFT", "AAPL"]
        assert results[1] == simulate(sample_series, Decimal("100"), date(2023, 1, 6), symbol="AAPL")
        assert compute_snapshot(state) == aggregate(results)


class TestBacktester:
    """Tests for the mutable Backtester holder."""

    @pytest.fixture
    def provider(self, sample_series, msft_series):
        return StubProvider({
            "AAPL": sample_series,
            "MSFT": msft_series,
            "ZZZZ": InvalidSymbolError("ZZZZ", "Invalid symbol: ZZZZ"),
            "SLOW": RateLimitedError("SLOW", "Thank you for using Alpha Vantage!"),
        })

    @pytest.fixture
    def source(self, provider, fake_clock):
        return MarketDataSource(provider, PriceCache(clock=fake_clock))

    def test_refresh_installs_batch(self, source, sample_config):
        """Test that one refresh loads, errors and drops symbols together."""
        backtester = Backtester(source, sample_config, ["AAPL", "ZZZZ", "SLOW", "MSFT"])

        outcomes = backtester.refresh()

        assert set(outcomes) == {"AAPL", "ZZZZ", "SLOW", "MSFT"}
        assert backtester.tracked_symbols == ("AAPL", "SLOW", "MSFT")
        assert backtester.errors == {"SLOW": "Thank you for using Alpha Vantage!"}
        assert [r.symbol for r in backtester.results] == ["AAPL", "MSFT"]
        assert backtester.snapshot.total_invested == Decimal("600")

    def test_refresh_skips_loaded_and_errored(self, source, provider, sample_config):
        """Test that a second refresh issues no fetches."""
        backtester = Backtester(source, sample_config, ["AAPL", "SLOW"])
        backtester.refresh()
        calls = list(provider.calls)

        assert backtester.refresh() == {}
        assert provider.calls == calls

    def test_retry_refetches_errored(self, source, provider, sample_config, sample_series):
        """Test that an explicit retry recovers once the provider succeeds."""
        backtester = Backtester(source, sample_config, ["SLOW"])
        backtester.refresh()
        assert "SLOW" in backtester.errors

        provider.responses["SLOW"] = sample_series
        backtester.retry("SLOW")
        backtester.refresh()

        assert backtester.errors == {}
        assert backtester.results[0].symbol == "SLOW"

    def test_global_error_leaves_state_unchanged(self, sample_config, sample_series, fake_clock):
        """Test that a transport failure aborts the whole batch."""
        provider = StubProvider({
            "AAPL": sample_series,
            "DOWN": DataProviderError("connection refused"),
        })
        source = MarketDataSource(provider, PriceCache(clock=fake_clock))
        backtester = Backtester(source, sample_config, ["AAPL", "DOWN"])
        before = backtester.state

        with pytest.raises(DataProviderError):
            backtester.refresh()

        assert backtester.state is before
        assert backtester.results == []

    def test_global_error_logs_nothing(self, sample_config, sample_series, fake_clock, tmp_path):
        """Test that an aborted batch does not log successes that were never installed."""
        provider = StubProvider({
            "AAPL": sample_series,
            "DOWN": DataProviderError("connection refused"),
        })
        logger = EventLogger(tmp_path / "events.jsonl")
        backtester = Backtester(
            MarketDataSource(provider, PriceCache(clock=fake_clock)),
            sample_config,
            ["AAPL", "DOWN"],
            event_logger=logger,
        )

        with pytest.raises(DataProviderError):
            backtester.refresh()

        assert provider.calls == ["AAPL", "DOWN"]
        assert logger.read_log() == []

    def test_concurrent_refresh_matches_sequential(self, provider, sample_config, fake_clock):
        symbols = ["AAPL", "ZZZZ", "SLOW", "MSFT"]
        sequential = Backtester(
            MarketDataSource(provider, PriceCache(clock=fake_clock)), sample_config, symbols
        )
        concurrent = Backtester(
            MarketDataSource(provider, PriceCache(clock=fake_clock)), sample_config, symbols,
            max_workers=4,
        )
        sequential.refresh()
        concurrent.refresh()

        assert concurrent.state == sequential.state
        assert concurrent.snapshot == sequential.snapshot

    def test_results_follow_config(self, source, sample_config):
        """Test that derived results are current after a config change."""
        backtester = Backtester(source, sample_config, ["AAPL"])
        backtester.refresh()
        assert backtester.snapshot.total_invested == Decimal("300")

        backtester.update_config(
            SimulationConfig(weekly_contribution=Decimal("10"), start_date=date(2023, 1, 6))
        )
        assert backtester.snapshot.total_invested == Decimal("30")

    def test_results_follow_removal(self, source, sample_config):
        backtester = Backtester(source, sample_config, ["AAPL", "MSFT"])
        backtester.refresh()

        assert backtester.remove("MSFT") is True
        assert backtester.remove("MSFT") is False
        assert [r.symbol for r in backtester.results] == ["AAPL"]

    def test_add_returns_whether_new(self, source, sample_config):
        backtester = Backtester(source, sample_config)
        assert backtester.add("aapl") is True
        assert backtester.add("AAPL") is False
        backtester.refresh()
        assert backtester.tracked_symbols == ("AAPL",)

    def test_uses_cache_across_backtesters(self, provider, sample_config, fake_clock):
        """Test that a shared source serves the second run from cache."""
        source = MarketDataSource(provider, PriceCache(clock=fake_clock))
        Backtester(source, sample_config, ["AAPL"]).refresh()
        Backtester(source, sample_config, ["AAPL"]).refresh()

        assert provider.calls == ["AAPL"]

    def test_event_log(self, source, sample_config, tmp_path):
        """Test that fetch outcomes and changes are logged."""
        logger = EventLogger(tmp_path / "events.jsonl")
        backtester = Backtester(source, sample_config, ["AAPL", "ZZZZ", "SLOW"], event_logger=logger)

        backtester.refresh()
        backtester.add("MSFT")
        backtester.remove("MSFT")
        backtester.update_config(
            SimulationConfig(weekly_contribution=Decimal("5"), start_date=date(2023, 1, 1))
        )

        kinds = [e.action_type for e in logger.read_log()]
        assert kinds == [
            ActionType.FETCH_SUCCEEDED,
            ActionType.SYMBOL_INVALIDATED,
            ActionType.FETCH_FAILED,
            ActionType.SYMBOL_ADDED,
            ActionType.SYMBOL_REMOVED,
            ActionType.CONFIG_UPDATED,
        ]
        failed = logger.filter_by_action_type(ActionType.FETCH_FAILED)[0]
        assert failed.details["symbol"] == "SLOW"
        assert failed.details["error_kind"] == "RateLimitedError"
