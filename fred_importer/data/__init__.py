"""Data fetching and storage."""

from .calendar import TradingCalendar, build_trading_days
from .fred_fetcher import FredFetcher
from .store import SeriesStore, Transaction

__all__ = ["FredFetcher", "SeriesStore", "Transaction", "TradingCalendar", "build_trading_days"]
