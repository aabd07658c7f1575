"""
Pytest fixtures for the weekly DCA backtester tests.

Provides common test data and utilities used across test modules.
"""

from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Union

import pytest

from dca_sim.models import PricePoint, PriceSeries, SimulationConfig
from dca_sim.data.providers.base import DataProvider, DataProviderError


def make_series(prices: dict[str, Union[str, int]]) -> PriceSeries:
    """Build a PriceSeries from {date: price}."""
    return {
        day: PricePoint(date=day, adjusted_close=Decimal(str(price)))
        for day, price in prices.items()
    }


class FakeClock:
    """Controllable epoch-millisecond clock."""

    def __init__(self, now_ms: int = 1_700_000_000_000):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class StubProvider(DataProvider):
    """
    Provider returning canned responses.

    Each response is either a PriceSeries or an exception instance to raise.
    """

    def __init__(self, responses: dict):
        self.responses = dict(responses)
        self.calls: list[str] = []

    @property
    def name(self) -> str:
        return "Stub"

    def fetch_weekly_series(self, symbol: str) -> PriceSeries:
        self.calls.append(symbol)
        response = self.responses.get(symbol)
        if response is None:
            raise DataProviderError(f"No canned response for {symbol}")
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def sample_series() -> PriceSeries:
    """Three weekly closes: 100, 110, 90."""
    return make_series({
        "2023-01-06": "100",
        "2023-01-13": "110",
        "2023-01-20": "90",
    })


@pytest.fixture
def msft_series() -> PriceSeries:
    """Weekly closes that start one week later than sample_series."""
    return make_series({
        "2023-01-13": "250",
        "2023-01-20": "240",
        "2023-01-27": "260",
    })


@pytest.fixture
def sample_config() -> SimulationConfig:
    """Invest 100 every week from 2023-01-06."""
    return SimulationConfig(
        weekly_contribution=Decimal("100"),
        start_date=date(2023, 1, 6),
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sample_alphavantage_payload() -> dict:
    """
    Sample Alpha Vantage TIME_SERIES_WEEKLY_ADJUSTED response.

    Format matches https://www.alphavantage.co/query?function=TIME_SERIES_WEEKLY_ADJUSTED
    """
    return {
        "Meta Data": {
            "1. Information": "Weekly Adjusted Prices and Volumes",
            "2. Symbol": "AAPL",
            "3. Last Refreshed": "2023-01-20",
            "4. Time Zone": "US/Eastern",
        },
        "Weekly Adjusted Time Series": {
            "2023-01-20": {
                "1. open": "134.8300",
                "2. high": "138.6100",
                "3. low": "133.7700",
                "4. close": "137.8700",
                "5. adjusted close": "136.9411",
                "6. volume": "290657458",
                "7. dividend amount": "0.0000",
            },
            "2023-01-13": {
                "1. open": "130.4650",
                "2. high": "134.9200",
                "3. low": "128.1200",
                "4. close": "134.7600",
                "5. adjusted close": "133.8519",
                "6. volume": "333335193",
                "7. dividend amount": "0.0000",
            },
            "2023-01-06": {
                "1. open": "130.2800",
                "2. high": "130.9000",
                "3. low": "124.1700",
                "4. close": "129.6200",
                "5. adjusted close": "128.7464",
                "6. volume": "395849656",
                "7. dividend amount": "0.0000",
            },
        },
    }


@pytest.fixture
def csv_data_dir(tmp_path: Path) -> Path:
    """Directory with AAPL.csv and MSFT.csv weekly price files."""
    data_dir = tmp_path / "prices"
    data_dir.mkdir()
    (data_dir / "AAPL.csv").write_text(
        "date,adjusted_close\n"
        "2023-01-06,100\n"
        "2023-01-13,110\n"
        "2023-01-20,90\n"
    )
    (data_dir / "MSFT.csv").write_text(
        "date,adjusted_close\n"
        "2023-01-13,250\n"
        "2023-01-20,240\n"
        "2023-01-27,260\n"
    )
    return data_dir
