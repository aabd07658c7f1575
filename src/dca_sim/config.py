"""
Configuration loading and management for the weekly DCA backtester.

This module handles loading and saving the workspace (tracked symbols and
global simulation settings) from YAML files, API key management, and
validation of configuration parameters.
"""

import os
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values

from dca_sim.models import SimulationConfig, Workspace, normalize_symbol


# Default paths for configuration files
DEFAULT_WORKSPACE_FILE = Path("dca_workspace.yaml")
DEFAULT_ENV_FILE = Path(".env")
DEFAULT_API_KEYS_FILE = Path("config") / "api_keys.yaml"

DEFAULT_WEEKLY_CONTRIBUTION = Decimal("100")


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""
    pass


def load_api_keys(
    env_file: str | Path | None = None,
    api_keys_file: str | Path | None = None,
) -> dict[str, str]:
    """
    Load API keys from multiple sources with priority.

    Sources are checked in this order (later sources override earlier):
    1. config/api_keys.yaml file
    2. .env file in the working directory
    3. Environment variables

    Args:
        env_file: Path to .env file
        api_keys_file: Path to api_keys.yaml

    Returns:
        Dictionary with API keys:
        - alphavantage_api_key: Alpha Vantage API key (if available)
    """
    api_keys: dict[str, str] = {}

    # 1. Load from config/api_keys.yaml
    yaml_path = Path(api_keys_file) if api_keys_file else DEFAULT_API_KEYS_FILE
    if yaml_path.exists():
        try:
            with open(yaml_path, "r") as f:
                yaml_config = yaml.safe_load(f) or {}
        except (yaml.YAMLError, OSError) as e:
            raise ConfigurationError(f"Cannot read API keys file {yaml_path}: {e}")
        if isinstance(yaml_config, dict) and yaml_config.get("alphavantage_api_key"):
            api_keys["alphavantage_api_key"] = str(yaml_config["alphavantage_api_key"])

    # 2. Load from .env file
    env_path = Path(env_file) if env_file else DEFAULT_ENV_FILE
    if env_path.exists():
        env_values = dotenv_values(env_path)
        if env_values.get("ALPHAVANTAGE_API_KEY"):
            api_keys["alphavantage_api_key"] = str(env_values["ALPHAVANTAGE_API_KEY"])

    # 3. Override with environment variables (highest priority)
    if os.environ.get("ALPHAVANTAGE_API_KEY"):
        api_keys["alphavantage_api_key"] = os.environ["ALPHAVANTAGE_API_KEY"]

    return api_keys


def get_alphavantage_api_key() -> str:
    """
    Get the Alpha Vantage API key from available configuration sources.

    Returns:
        The Alpha Vantage API key

    Raises:
        ConfigurationError: If ALPHAVANTAGE_API_KEY is not configured
    """
    api_keys = load_api_keys()
    if not api_keys.get("alphavantage_api_key"):
        raise ConfigurationError(
            "Alpha Vantage API key is not configured. Please set it using one of:\n"
            "  1. Environment variable: export ALPHAVANTAGE_API_KEY=your-key\n"
            "  2. .env file: ALPHAVANTAGE_API_KEY=your-key\n"
            "  3. config/api_keys.yaml: alphavantage_api_key: your-key\n"
            "\n"
            "Get a free key at: https://www.alphavantage.co/support/#api-key"
        )
    return api_keys["alphavantage_api_key"]


def one_year_before(day: date) -> date:
    """Same calendar day one year earlier (Feb 29 maps to Feb 28)."""
    try:
        return day.replace(year=day.year - 1)
    except ValueError:
        return day.replace(year=day.year - 1, day=28)


def default_simulation_config(today: date | None = None) -> SimulationConfig:
    """Contribution of 100 per week starting one year ago."""
    return SimulationConfig(
        weekly_contribution=DEFAULT_WEEKLY_CONTRIBUTION,
        start_date=one_year_before(today or date.today()),
    )


def load_workspace(workspace_path: str | Path = DEFAULT_WORKSPACE_FILE) -> Workspace:
    """
    Load the workspace from a YAML file.

    A missing file is not an error: a fresh workspace with default
    settings and no symbols is returned.

    Args:
        workspace_path: Path to the YAML workspace file

    Returns:
        Workspace with validated settings

    Raises:
        ConfigurationError: If the file cannot be parsed or is invalid
    """
    workspace_path = Path(workspace_path)

    if not workspace_path.exists():
        return Workspace(config=default_simulation_config())

    try:
        with open(workspace_path, "r") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in workspace file: {e}")

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Workspace file must contain a mapping: {workspace_path}")

    return _parse_workspace(raw)


def _parse_workspace(raw: dict[str, Any]) -> Workspace:
    """
    Parse and validate a raw workspace dictionary.

    Args:
        raw: Dictionary loaded from YAML

    Returns:
        Validated Workspace

    Raises:
        ConfigurationError: If a field is invalid
    """
    defaults = default_simulation_config()

    weekly_contribution = _parse_decimal(
        raw.get("weekly_contribution", defaults.weekly_contribution),
        "weekly_contribution",
    )
    if weekly_contribution <= 0:
        raise ConfigurationError("weekly_contribution must be positive")

    start_date = _parse_date(raw.get("start_date", defaults.start_date), "start_date")

    raw_symbols = raw.get("symbols") or []
    if not isinstance(raw_symbols, list):
        raise ConfigurationError("symbols must be a list of ticker symbols")

    symbols: list[str] = []
    for raw_symbol in raw_symbols:
        try:
            symbol = normalize_symbol(raw_symbol)
        except ValueError:
            raise ConfigurationError(f"Invalid symbol in workspace: {raw_symbol!r}")
        if symbol not in symbols:
            symbols.append(symbol)

    try:
        cache_ttl_hours = int(raw.get("cache_ttl_hours", 24))
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"Invalid integer value for cache_ttl_hours: {raw.get('cache_ttl_hours')}"
        )
    if cache_ttl_hours < 0:
        raise ConfigurationError("cache_ttl_hours must be >= 0")

    return Workspace(
        config=SimulationConfig(
            weekly_contribution=weekly_contribution,
            start_date=start_date,
        ),
        symbols=symbols,
        cache_dir=str(raw.get("cache_dir", "data/cache")),
        cache_ttl_hours=cache_ttl_hours,
        event_log=str(raw.get("event_log", "event_log.jsonl")),
    )


def _parse_date(value: Any, field_name: str) -> date:
    """
    Parse a date value from various formats.

    Args:
        value: The value to parse (string or date object)
        field_name: Name of the field for error messages

    Returns:
        Parsed date object

    Raises:
        ConfigurationError: If the date cannot be parsed
    """
    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        try:
            return datetime.strptime(value, "%Y-%m-%d").date()
        except ValueError:
            pass

    raise ConfigurationError(
        f"Invalid date format for {field_name}: {value}. Expected YYYY-MM-DD"
    )


def _parse_decimal(value: Any, field_name: str) -> Decimal:
    """
    Parse a decimal value.

    Raises:
        ConfigurationError: If the value is not a finite number
    """
    try:
        decimal_value = Decimal(str(value))
    except Exception:
        raise ConfigurationError(f"Invalid decimal value for {field_name}: {value}")

    if not decimal_value.is_finite():
        raise ConfigurationError(f"Invalid decimal value for {field_name}: {value}")

    return decimal_value


def parse_simulation_config(
    base: SimulationConfig,
    weekly_contribution: Any = None,
    start_date: Any = None,
) -> SimulationConfig:
    """
    Build a new config from user-supplied overrides.

    Args:
        base: Current configuration
        weekly_contribution: New contribution, or None to keep the current one
        start_date: New start date, or None to keep the current one

    Returns:
        Validated SimulationConfig

    Raises:
        ConfigurationError: If an override is invalid
    """
    contribution = base.weekly_contribution
    if weekly_contribution is not None:
        contribution = _parse_decimal(weekly_contribution, "weekly_contribution")
        if contribution <= 0:
            raise ConfigurationError("weekly_contribution must be positive")

    start = base.start_date
    if start_date is not None:
        start = _parse_date(start_date, "start_date")

    return SimulationConfig(weekly_contribution=contribution, start_date=start)


def save_workspace(workspace: Workspace, output_path: str | Path = DEFAULT_WORKSPACE_FILE) -> None:
    """
    Write a Workspace to a YAML file.

    Args:
        workspace: The workspace to write
        output_path: Path to write the YAML file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    workspace_dict = {
        "weekly_contribution": str(workspace.config.weekly_contribution),
        "start_date": workspace.config.start_date.isoformat(),
        "symbols": list(workspace.symbols),
        "cache_dir": workspace.cache_dir,
        "cache_ttl_hours": workspace.cache_ttl_hours,
        "event_log": workspace.event_log,
    }

    with open(output_path, "w") as f:
        yaml.dump(workspace_dict, f, default_flow_style=False, sort_keys=False)
