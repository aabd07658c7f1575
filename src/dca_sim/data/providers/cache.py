"""
Caching layer for data providers.

Provides a TTL-bounded price cache over a pluggable key/value store to ensure:
- Reduced API calls to rate-limited data providers
- Reproducibility across backtest runs within a day
- Faster subsequent runs
"""

import json
import os
import shutil
import time
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Callable, Optional, Protocol

from dca_sim.models import CacheEntry, PricePoint, PriceSeries, normalize_symbol
from dca_sim.data.providers.base import DataProvider, NoDataError


# Cached series older than this are treated as a miss
DEFAULT_TTL_MS = 24 * 60 * 60 * 1000


def _now_ms() -> int:
    return int(time.time() * 1000)


class CacheStore(Protocol):
    """Key/value storage for cache entries, keyed by symbol."""

    def load(self, symbol: str) -> Optional[CacheEntry]:
        ...

    def save(self, entry: CacheEntry) -> None:
        ...

    def clear(self) -> None:
        ...


class MemoryStore:
    """In-process store; entries are lost when the process exits."""

    def __init__(self):
        self._entries: dict[str, CacheEntry] = {}

    def load(self, symbol: str) -> Optional[CacheEntry]:
        return self._entries.get(symbol)

    def save(self, entry: CacheEntry) -> None:
        self._entries[entry.symbol] = entry

    def clear(self) -> None:
        self._entries.clear()


class FileStore:
    """
    File-based store for cached price series.

    Stores one JSON file per symbol so entries survive process restarts.
    """

    def __init__(self, cache_dir: str | Path = "data/cache"):
        """
        Initialize the file store.

        Args:
            cache_dir: Directory to store cached data
        """
        self.cache_dir = Path(cache_dir)
        self.prices_dir = self.cache_dir / "weekly"

    def _path_for(self, symbol: str) -> Path:
        return self.prices_dir / f"{symbol}.json"

    def load(self, symbol: str) -> Optional[CacheEntry]:
        """
        Read a cached entry.

        Returns:
            CacheEntry, or None if missing or unreadable
        """
        cache_file = self._path_for(symbol)
        if not cache_file.exists():
            return None

        try:
            with open(cache_file, "r") as f:
                raw = json.load(f)
            series = {
                day: PricePoint(date=day, adjusted_close=Decimal(str(close)))
                for day, close in raw["series"].items()
            }
            return CacheEntry(
                symbol=raw["symbol"],
                series=series,
                fetched_at_ms=int(raw["fetched_at_ms"]),
            )
        except (OSError, ValueError, KeyError, TypeError, AttributeError, InvalidOperation):
            # Cache corrupted, will re-fetch
            return None

    def save(self, entry: CacheEntry) -> None:
        """
        Write an entry, replacing any previous one for the symbol.

        The file is written to a temporary path first so readers never
        observe a partially written entry.
        """
        cache_file = self._path_for(entry.symbol)
        tmp_file = cache_file.with_suffix(".json.tmp")
        record = {
            "symbol": entry.symbol,
            "fetched_at_ms": entry.fetched_at_ms,
            "series": {
                day: str(point.adjusted_close)
                for day, point in entry.series.items()
            },
        }

        try:
            self.prices_dir.mkdir(parents=True, exist_ok=True)
            with open(tmp_file, "w") as f:
                json.dump(record, f)
            os.replace(tmp_file, cache_file)
        except OSError:
            # Don't fail on cache write errors
            pass

    def clear(self) -> None:
        """Clear all cached data."""
        if self.prices_dir.exists():
            shutil.rmtree(self.prices_dir)


class PriceCache:
    """
    TTL-bounded cache mapping symbol to its latest fetched series.

    Expired entries are reported as a miss but are not evicted; the next
    successful fetch replaces them.
    """

    def __init__(
        self,
        store: Optional[CacheStore] = None,
        ttl_ms: int = DEFAULT_TTL_MS,
        clock: Callable[[], int] = _now_ms,
    ):
        """
        Initialize the price cache.

        Args:
            store: Backing store (in-memory if None)
            ttl_ms: Entry lifetime in milliseconds
            clock: Returns the current time in epoch milliseconds
        """
        self._store = store if store is not None else MemoryStore()
        self._ttl_ms = ttl_ms
        self._clock = clock

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    def get(self, symbol: str) -> Optional[CacheEntry]:
        """
        Get a cached entry if present and younger than the TTL.

        Args:
            symbol: Ticker symbol

        Returns:
            CacheEntry holding its own copy of the series, or None on a miss
        """
        entry = self._store.load(normalize_symbol(symbol))
        if entry is None:
            return None
        if self._clock() - entry.fetched_at_ms >= self._ttl_ms:
            return None
        return replace(entry, series=dict(entry.series))

    def put(self, symbol: str, series: PriceSeries) -> None:
        """Store a series for a symbol, timestamped now."""
        symbol = normalize_symbol(symbol)
        self._store.save(
            CacheEntry(symbol=symbol, series=dict(series), fetched_at_ms=self._clock())
        )

    def clear(self) -> None:
        """Remove every cached entry."""
        self._store.clear()


class MarketDataSource:
    """
    Wrapper that adds caching to any DataProvider.

    Checks the cache before calling the underlying provider,
    and saves successful results to the cache after fetching.
    """

    def __init__(
        self,
        provider: DataProvider,
        cache: Optional[PriceCache] = None,
    ):
        """
        Initialize the market data source.

        Args:
            provider: Underlying data provider
            cache: Price cache instance (in-memory if None)
        """
        self._provider = provider
        self._cache = cache if cache is not None else PriceCache()

    @property
    def name(self) -> str:
        return f"Cached({self._provider.name})"

    @property
    def cache(self) -> PriceCache:
        return self._cache

    def fetch_weekly_series(self, symbol: str) -> PriceSeries:
        """
        Get a weekly series with caching.

        Checks cache first, falls back to provider if not cached.
        Provider failures propagate unchanged and leave the cache untouched.

        Raises:
            NoDataError: If the provider returns an empty series
        """
        symbol = normalize_symbol(symbol)

        # Try cache first
        cached = self._cache.get(symbol)
        if cached is not None:
            return cached.series

        # Fetch from provider
        series = self._provider.fetch_weekly_series(symbol)
        if not series:
            raise NoDataError(symbol, f"No data found for {symbol}")

        # Save to cache
        self._cache.put(symbol, series)

        return series

    def is_cached(self, symbol: str) -> bool:
        """Whether a fresh entry exists for the symbol."""
        return self._cache.get(symbol) is not None
