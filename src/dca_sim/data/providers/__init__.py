"""
Data providers for weekly market data.

Provides a pluggable interface for fetching weekly adjusted price history,
with a TTL-bounded cache that turns a raw provider into a stable,
error-classified market data source.
"""

from dca_sim.data.providers.base import (
    DataProvider,
    DataProviderError,
    InvalidSymbolError,
    NoDataError,
    ProviderNoticeError,
    RateLimitedError,
    SymbolFetchError,
)
from dca_sim.data.providers.cache import FileStore, MarketDataSource, MemoryStore, PriceCache
from dca_sim.data.providers.alphavantage_provider import AlphaVantageProvider, get_alphavantage_source
from dca_sim.data.providers.csv_provider import CsvDataProvider

__all__ = [
    "DataProvider",
    "DataProviderError",
    "SymbolFetchError",
    "InvalidSymbolError",
    "RateLimitedError",
    "ProviderNoticeError",
    "NoDataError",
    "PriceCache",
    "MemoryStore",
    "FileStore",
    "MarketDataSource",
    "AlphaVantageProvider",
    "get_alphavantage_source",
    "CsvDataProvider",
]
