"""
Simulation module for the weekly DCA backtester.

Provides the per-symbol simulation engine, portfolio aggregation and the
orchestration of tracked symbols across fetches.
"""

from dca_sim.simulation.engine import simulate
from dca_sim.simulation.aggregate import aggregate
from dca_sim.simulation.orchestrator import (
    Backtester,
    OrchestratorState,
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

__all__ = [
    "simulate",
    "aggregate",
    "Backtester",
    "OrchestratorState",
    "initial_state",
    "add_symbol",
    "remove_symbol",
    "update_config",
    "mark_for_retry",
    "symbols_needing_fetch",
    "apply_fetch_outcome",
    "apply_fetch_outcomes",
    "compute_results",
    "compute_snapshot",
]
