"""Forward-fill reconciliation."""

from .engine import CalendarSource, FillResult, GapFillEngine, SeriesStore, Transaction
from .errors import (
    CalendarUnavailableError,
    FillError,
    IntegrityViolationError,
    NoBaselineError,
    StoreConnectionError,
    StoreError,
    StoreTimeoutError,
)

__all__ = [
    "GapFillEngine",
    "FillResult",
    "CalendarSource",
    "SeriesStore",
    "Transaction",
    "FillError",
    "NoBaselineError",
    "IntegrityViolationError",
    "CalendarUnavailableError",
    "StoreError",
    "StoreTimeoutError",
    "StoreConnectionError",
]
