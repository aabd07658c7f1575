"""
CSV output of backtest results.

Writes per-symbol summaries, per-symbol weekly histories and the merged
portfolio history.
"""

from pathlib import Path

import pandas as pd

from dca_sim.models import PortfolioSnapshot, SimulationResult
from dca_sim.data.schemas import (
    HISTORY_SCHEMA,
    PORTFOLIO_HISTORY_SCHEMA,
    RESULTS_SCHEMA,
)


def save_results(
    results: list[SimulationResult],
    output_path: str | Path,
) -> Path:
    """
    Save per-symbol result summaries to CSV file.

    Args:
        results: List of SimulationResult objects
        output_path: Path for output CSV file

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    records = []
    for result in results:
        records.append({
            "symbol": result.symbol,
            "total_invested": float(result.total_invested),
            "current_value": float(result.current_value),
            "net_profit": float(result.net_profit),
            "total_shares": float(result.total_shares),
            "average_cost": float(result.average_cost),
            "current_price": float(result.current_price),
            "total_return_percent": float(result.total_return_percent),
            "weeks": len(result.history),
        })

    df = pd.DataFrame(records, columns=RESULTS_SCHEMA.all_columns)
    df.to_csv(output_path, index=False)

    return output_path


def save_history(
    result: SimulationResult,
    output_path: str | Path,
) -> Path:
    """
    Save one symbol's weekly history to CSV file.

    Args:
        result: Simulation result to export
        output_path: Path for output CSV file

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    records = [
        {
            "date": point.date,
            "invested": float(point.invested),
            "value": float(point.value),
            "price": float(point.price),
            "shares": float(point.shares),
            "average_cost": float(point.average_cost),
        }
        for point in result.history
    ]

    df = pd.DataFrame(records, columns=HISTORY_SCHEMA.all_columns)
    df.to_csv(output_path, index=False)

    return output_path


def save_portfolio_history(
    snapshot: PortfolioSnapshot,
    output_path: str | Path,
) -> Path:
    """
    Save the merged portfolio chart series to CSV file.

    Args:
        snapshot: Aggregated portfolio snapshot
        output_path: Path for output CSV file

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    records = [
        {
            "date": point.date,
            "invested": float(point.invested),
            "value": float(point.value),
        }
        for point in snapshot.chart_series
    ]

    df = pd.DataFrame(records, columns=PORTFOLIO_HISTORY_SCHEMA.all_columns)
    df.to_csv(output_path, index=False)

    return output_path


def save_all(
    results: list[SimulationResult],
    snapshot: PortfolioSnapshot,
    output_dir: str | Path,
) -> list[Path]:
    """
    Write every export into a directory.

    Returns:
        Paths of the written files
    """
    output_dir = Path(output_dir)
    paths = [
        save_results(results, output_dir / "results.csv"),
        save_portfolio_history(snapshot, output_dir / "portfolio_history.csv"),
    ]
    for result in results:
        paths.append(save_history(result, output_dir / f"history_{result.symbol}.csv"))
    return paths
