"""
Append-only event logging for the weekly DCA backtester.

Symbol changes, fetch outcomes, configuration edits and completed
simulations are logged with timestamps to keep runs auditable.
"""

import json
from datetime import datetime, date
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

from dca_sim.models import (
    ActionType,
    EventLogEntry,
    PortfolioSnapshot,
    SimulationConfig,
    SimulationResult,
)


class EventLogger:
    """
    Append-only event logger.

    Writes all events to a JSONL file.
    Each line is a complete JSON object representing one action.
    """

    def __init__(self, log_path: str | Path):
        """
        Initialize the event logger.

        Args:
            log_path: Path to the log file (will be created if not exists)
        """
        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, entry: EventLogEntry) -> None:
        """Write an event log entry."""
        record = {
            "timestamp": entry.timestamp.isoformat(),
            "action_type": entry.action_type.value,
            "details": entry.details,
        }

        with open(self.log_path, "a") as f:
            f.write(json.dumps(record, cls=DecimalEncoder) + "\n")

    def _log_action(self, action_type: ActionType, details: dict) -> None:
        self.log(EventLogEntry.create(action_type=action_type, details=details))

    def log_symbol_added(self, symbol: str) -> None:
        self._log_action(ActionType.SYMBOL_ADDED, {"symbol": symbol})

    def log_symbol_removed(self, symbol: str) -> None:
        self._log_action(ActionType.SYMBOL_REMOVED, {"symbol": symbol})

    def log_symbol_invalidated(self, symbol: str, message: str) -> None:
        """Log a symbol dropped because the provider does not know it."""
        self._log_action(
            ActionType.SYMBOL_INVALIDATED,
            {"symbol": symbol, "message": message},
        )

    def log_fetch_succeeded(self, symbol: str, num_points: int, source: str) -> None:
        """
        Log a successful fetch.

        Args:
            symbol: Ticker symbol
            num_points: Number of weekly price points received
            source: "cache" or the provider name
        """
        self._log_action(
            ActionType.FETCH_SUCCEEDED,
            {"symbol": symbol, "num_points": num_points, "source": source},
        )

    def log_fetch_failed(self, symbol: str, error_kind: str, message: str) -> None:
        """
        Log a transient fetch failure.

        Args:
            symbol: Ticker symbol
            error_kind: Exception class name of the classified failure
            message: Error message recorded against the symbol
        """
        self._log_action(
            ActionType.FETCH_FAILED,
            {"symbol": symbol, "error_kind": error_kind, "message": message},
        )

    def log_config_updated(self, config: SimulationConfig) -> None:
        self._log_action(
            ActionType.CONFIG_UPDATED,
            {
                "weekly_contribution": str(config.weekly_contribution),
                "start_date": config.start_date.isoformat(),
            },
        )

    def log_simulation_completed(
        self,
        config: SimulationConfig,
        results: list[SimulationResult],
        snapshot: PortfolioSnapshot,
    ) -> None:
        """
        Log a completed portfolio simulation.

        Args:
            config: Configuration the results were computed with
            results: Per-symbol results
            snapshot: Aggregated portfolio snapshot
        """
        details = {
            "weekly_contribution": str(config.weekly_contribution),
            "start_date": config.start_date.isoformat(),
            "symbols": [r.symbol for r in results],
            "total_invested": str(snapshot.total_invested),
            "current_value": str(snapshot.current_value),
            "total_return_percent": str(snapshot.total_return_percent),
            "num_dates": len(snapshot.chart_series),
        }
        self._log_action(ActionType.SIMULATION_COMPLETED, details)

    def read_log(self) -> list[EventLogEntry]:
        """
        Read all entries from the log file.

        Returns:
            List of EventLogEntry objects
        """
        if not self.log_path.exists():
            return []

        entries = []
        with open(self.log_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                record = json.loads(line)
                entries.append(
                    EventLogEntry(
                        timestamp=datetime.fromisoformat(record["timestamp"]),
                        action_type=ActionType(record["action_type"]),
                        details=record.get("details", {}),
                    )
                )

        return entries

    def filter_by_action_type(
        self,
        action_type: ActionType,
    ) -> list[EventLogEntry]:
        """
        Get log entries of a specific action type.

        Args:
            action_type: Action type to filter by

        Returns:
            Filtered list of entries
        """
        return [e for e in self.read_log() if e.action_type == action_type]


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal and date types."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, (date, datetime)):
            return obj.isoformat()
        return super().default(obj)


# Global logger instance (initialized on first use)
_global_logger: Optional[EventLogger] = None


def get_logger(log_path: Optional[str | Path] = None) -> EventLogger:
    """
    Get or create the global event logger.

    Args:
        log_path: Optional path to (re)initialize the logger with

    Returns:
        EventLogger instance
    """
    global _global_logger

    if _global_logger is None:
        if log_path is None:
            log_path = "event_log.jsonl"
        _global_logger = EventLogger(log_path)
    elif log_path is not None:
        # Allow reinitializing with new path
        _global_logger = EventLogger(log_path)

    return _global_logger
