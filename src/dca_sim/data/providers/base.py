"""
Abstract base class for data providers.

Defines the interface that all data providers must implement,
enabling pluggable data sources for backtesting, along with the
failure kinds a provider uses to classify unusable responses.
"""

from abc import ABC, abstractmethod

from dca_sim.models import PriceSeries


class DataProviderError(Exception):
    """
    Raised when a data provider encounters an error.

    Raised directly, this is a global failure (transport, malformed payload)
    that cannot be attributed to a single symbol.
    """
    pass


class SymbolFetchError(DataProviderError):
    """Base class for failures scoped to one symbol."""

    def __init__(self, symbol: str, message: str):
        super().__init__(message)
        self.symbol = symbol
        self.message = message


class InvalidSymbolError(SymbolFetchError):
    """Provider reports the symbol does not exist. Not retryable."""
    pass


class RateLimitedError(SymbolFetchError):
    """Provider throttled the request instead of returning data."""
    pass


class ProviderNoticeError(SymbolFetchError):
    """Provider returned an informational notice instead of data."""
    pass


class NoDataError(SymbolFetchError):
    """Provider answered successfully but without any price points."""
    pass


class DataProvider(ABC):
    """
    Abstract base class for market data providers.

    Implementations must provide a method to fetch the full weekly
    adjusted-close history of a single symbol.
    """

    @abstractmethod
    def fetch_weekly_series(self, symbol: str) -> PriceSeries:
        """
        Fetch the weekly adjusted close series for a symbol.

        Args:
            symbol: Normalized ticker symbol

        Returns:
            Mapping from ISO date string to PricePoint

        Raises:
            InvalidSymbolError: If the symbol does not exist
            RateLimitedError: If the provider throttled the request
            ProviderNoticeError: If the provider returned a notice instead of data
            NoDataError: If the provider returned an empty series
            DataProviderError: On transport or parsing failures
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the name of this data provider."""
        pass
