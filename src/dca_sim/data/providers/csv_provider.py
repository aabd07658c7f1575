"""
Offline data provider backed by CSV files.

Reads one ``<SYMBOL>.csv`` file per symbol from a directory, which makes
backtests reproducible without network access or an API key.
"""

from decimal import Decimal, InvalidOperation
from pathlib import Path

import pandas as pd

from dca_sim.models import PricePoint, PriceSeries, normalize_symbol
from dca_sim.data.providers.base import (
    DataProvider,
    DataProviderError,
    InvalidSymbolError,
    NoDataError,
)
from dca_sim.data.schemas import WEEKLY_PRICES_SCHEMA


class CsvDataProvider(DataProvider):
    """
    Data provider reading weekly prices from local CSV files.

    Each file must have the columns ``date`` and ``adjusted_close``.
    A symbol without a file is reported as invalid; an undecodable file
    is a per-symbol failure.
    """

    def __init__(self, data_dir: str | Path):
        """
        Initialize CSV provider.

        Args:
            data_dir: Directory containing <SYMBOL>.csv files
        """
        self.data_dir = Path(data_dir)

    @property
    def name(self) -> str:
        return "CSV"

    def fetch_weekly_series(self, symbol: str) -> PriceSeries:
        symbol = normalize_symbol(symbol)
        file_path = self.data_dir / f"{symbol}.csv"

        if not file_path.exists():
            raise InvalidSymbolError(symbol, f"Invalid symbol: {symbol}")

        try:
            df = pd.read_csv(file_path, dtype={"date": str, "adjusted_close": str})
        except pd.errors.EmptyDataError:
            raise NoDataError(symbol, f"No data found for {symbol}")
        except UnicodeDecodeError:
            raise NoDataError(symbol, f"Cannot decode price file for {symbol}")
        except (OSError, pd.errors.ParserError) as e:
            raise DataProviderError(f"Failed to load CSV file {file_path}: {e}")

        is_valid, missing = WEEKLY_PRICES_SCHEMA.validate_columns(df.columns.tolist())
        if not is_valid:
            raise DataProviderError(
                f"File {file_path} is missing required columns: {missing}"
            )

        df = df.dropna(subset=["date", "adjusted_close"])
        # Normalize to zero-padded ISO strings so string order is date order
        try:
            df["date"] = pd.to_datetime(df["date"]).dt.strftime("%Y-%m-%d")
        except ValueError as e:
            raise DataProviderError(f"Invalid date in {file_path}: {e}")

        series: PriceSeries = {}
        for _, row in df.iterrows():
            try:
                close = Decimal(str(row["adjusted_close"]).strip())
            except InvalidOperation:
                continue
            if not close.is_finite() or close <= 0:
                continue
            day = str(row["date"])
            series[day] = PricePoint(date=day, adjusted_close=close)

        if not series:
            raise NoDataError(symbol, f"No data found for {symbol}")

        return series
