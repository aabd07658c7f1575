"""
Alpha Vantage data provider implementation.

Uses the Alpha Vantage API (https://www.alphavantage.co/documentation/) to
fetch weekly adjusted price history for a single symbol.
"""

import time
from decimal import Decimal, InvalidOperation
from typing import Optional

import requests

from dca_sim.config import get_alphavantage_api_key
from dca_sim.models import PricePoint, PriceSeries, normalize_symbol
from dca_sim.data.providers.base import (
    DataProvider,
    DataProviderError,
    InvalidSymbolError,
    NoDataError,
    ProviderNoticeError,
    RateLimitedError,
)


class AlphaVantageProvider(DataProvider):
    """
    Data provider using the Alpha Vantage TIME_SERIES_WEEKLY_ADJUSTED endpoint.

    Features:
    - Fetches weekly adjusted close prices (handles splits/dividends)
    - Classifies throttling, notices and unknown symbols per symbol
    - Retries transport failures with a linear backoff
    - Requires an ALPHAVANTAGE_API_KEY
    """

    BASE_URL = "https://www.alphavantage.co/query"
    FUNCTION = "TIME_SERIES_WEEKLY_ADJUSTED"

    # Response body keys
    SERIES_KEY = "Weekly Adjusted Time Series"
    ADJUSTED_CLOSE_KEY = "5. adjusted close"
    RATE_LIMIT_KEY = "Note"
    NOTICE_KEY = "Information"
    ERROR_KEY = "Error Message"

    def __init__(
        self,
        api_key: Optional[str] = None,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        timeout: float = 30.0,
    ):
        """
        Initialize Alpha Vantage provider.

        Args:
            api_key: API key (defaults to loading from config sources)
            max_retries: Maximum attempts for failed requests
            retry_delay: Base delay between retries (seconds)
            timeout: Per-request timeout (seconds)

        Raises:
            ConfigurationError: If no API key is passed or configured
        """
        self._api_key = api_key or get_alphavantage_api_key()
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "AlphaVantage"

    def fetch_weekly_series(self, symbol: str) -> PriceSeries:
        """
        Fetch the weekly adjusted series for one symbol.

        Uses endpoint: https://www.alphavantage.co/query?function=TIME_SERIES_WEEKLY_ADJUSTED&symbol={symbol}&apikey={key}

        Args:
            symbol: Ticker symbol

        Returns:
            Mapping from ISO date string to PricePoint
        """
        symbol = normalize_symbol(symbol)
        params = {
            "function": self.FUNCTION,
            "symbol": symbol,
            "apikey": self._api_key,
        }

        payload = self._make_request(params)
        return self._parse_payload(symbol, payload)

    def _parse_payload(self, symbol: str, payload: dict) -> PriceSeries:
        """
        Classify a response body and extract its price series.

        Throttling and notices take precedence over an error message.
        """
        if payload.get(self.RATE_LIMIT_KEY):
            raise RateLimitedError(symbol, str(payload[self.RATE_LIMIT_KEY]))

        if payload.get(self.NOTICE_KEY):
            raise ProviderNoticeError(symbol, str(payload[self.NOTICE_KEY]))

        if payload.get(self.ERROR_KEY):
            raise InvalidSymbolError(symbol, f"Invalid symbol: {symbol}")

        raw_series = payload.get(self.SERIES_KEY)
        if not isinstance(raw_series, dict) or not raw_series:
            raise NoDataError(symbol, f"No data found for {symbol}")

        series: PriceSeries = {}
        for day, record in raw_series.items():
            try:
                close = Decimal(str(record[self.ADJUSTED_CLOSE_KEY]))
            except (KeyError, TypeError, InvalidOperation):
                continue
            if not close.is_finite() or close <= 0:
                continue
            series[day] = PricePoint(date=day, adjusted_close=close)

        if not series:
            raise NoDataError(symbol, f"No data found for {symbol}")

        return series

    def _make_request(self, params: dict) -> dict:
        """
        Make an HTTP request to the Alpha Vantage API with retry logic.

        Args:
            params: Query parameters

        Returns:
            Parsed JSON response object

        Raises:
            DataProviderError: On request failure after all retries
        """
        last_error = None

        for attempt in range(self._max_retries):
            try:
                response = requests.get(self.BASE_URL, params=params, timeout=self._timeout)
                response.raise_for_status()

                data = response.json()
                if not isinstance(data, dict):
                    raise DataProviderError(
                        f"Unexpected response format from Alpha Vantage: {type(data).__name__}"
                    )
                return data

            except requests.exceptions.Timeout:
                last_error = "Request timeout"
            except ValueError as e:
                raise DataProviderError(f"Invalid JSON response from Alpha Vantage: {e}")
            except requests.exceptions.RequestException as e:
                last_error = str(e)

            if attempt < self._max_retries - 1:
                time.sleep(self._retry_delay * (attempt + 1))

        raise DataProviderError(
            f"Failed to fetch data from Alpha Vantage after {self._max_retries} attempts: {last_error}"
        )


def get_alphavantage_source(
    use_cache: bool = True,
    cache_dir: str = "data/cache",
    ttl_hours: int = 24,
    api_key: Optional[str] = None,
):
    """
    Get an Alpha Vantage market data source.

    Args:
        use_cache: Whether to persist the cache on disk (in-memory otherwise)
        cache_dir: Directory for cache files
        ttl_hours: Lifetime of cached series
        api_key: Alpha Vantage API key (defaults to config sources)

    Returns:
        MarketDataSource wrapping an AlphaVantageProvider
    """
    from dca_sim.data.providers.cache import FileStore, MarketDataSource, PriceCache

    provider = AlphaVantageProvider(api_key=api_key)
    store = FileStore(cache_dir) if use_cache else None
    cache = PriceCache(store=store, ttl_ms=ttl_hours * 60 * 60 * 1000)
    return MarketDataSource(provider, cache)
