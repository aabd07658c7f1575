"""
Tests for CSV export of backtest results.
"""

from datetime import date
from decimal import Decimal

import pandas as pd
import pytest

from dca_sim.data.exporters import save_all, save_history, save_portfolio_history, save_results
from dca_sim.data.schemas import HISTORY_SCHEMA, PORTFOLIO_HISTORY_SCHEMA, RESULTS_SCHEMA
from dca_sim.models import SimulationResult
from dca_sim.simulation.aggregate import aggregate
from dca_sim.simulation.engine import simulate


@pytest.fixture
def results(sample_series, msft_series):
    start = date(2023, 1, 6)
    return [
        simulate(sample_series, Decimal("100"), start, symbol="AAPL"),
        simulate(msft_series, Decimal("100"), start, symbol="MSFT"),
    ]


class TestSaveResults:
    """Tests for save_results."""

    def test_columns_and_values(self, tmp_path, results):
        path = save_results(results, tmp_path / "out" / "results.csv")

        df = pd.read_csv(path)
        assert list(df.columns) == RESULTS_SCHEMA.all_columns
        assert df["symbol"].tolist() == ["AAPL", "MSFT"]
        assert df["weeks"].tolist() == [3, 3]
        assert df.loc[0, "total_invested"] == pytest.approx(300.0)
        assert df.loc[0, "net_profit"] == pytest.approx(float(results[0].net_profit))

    def test_empty_results_write_header(self, tmp_path):
        path = save_results([], tmp_path / "results.csv")
        assert path.read_text().strip() == ",".join(RESULTS_SCHEMA.all_columns)

    def test_zero_result(self, tmp_path):
        path = save_results([SimulationResult(symbol="AAPL")], tmp_path / "results.csv")
        df = pd.read_csv(path)
        assert df.loc[0, "current_value"] == 0
        assert df.loc[0, "weeks"] == 0


class TestSaveHistory:
    """Tests for save_history and save_portfolio_history."""

    def test_history(self, tmp_path, results):
        path = save_history(results[0], tmp_path / "history_AAPL.csv")

        df = pd.read_csv(path)
        assert list(df.columns) == HISTORY_SCHEMA.all_columns
        assert df["date"].tolist() == ["2023-01-06", "2023-01-13", "2023-01-20"]
        assert df["invested"].tolist() == [100.0, 200.0, 300.0]

    def test_portfolio_history(self, tmp_path, results):
        snapshot = aggregate(results)
        path = save_portfolio_history(snapshot, tmp_path / "portfolio_history.csv")

        df = pd.read_csv(path)
        assert list(df.columns) == PORTFOLIO_HISTORY_SCHEMA.all_columns
        assert df["date"].tolist() == ["2023-01-06", "2023-01-13", "2023-01-20", "2023-01-27"]
        assert df["invested"].tolist() == [100.0, 300.0, 500.0, 300.0]


class TestSaveAll:
    def test_writes_every_file(self, tmp_path, results):
        paths = save_all(results, aggregate(results), tmp_path / "out")

        assert sorted(p.name for p in paths) == [
            "history_AAPL.csv",
            "history_MSFT.csv",
            "portfolio_history.csv",
            "results.csv",
        ]
        assert all(p.exists() for p in paths)
