"""Data models for end-of-day series values."""

from dataclasses import dataclass
from datetime import date
from enum import Enum

from fred_importer.config import FILL_SOURCE, FRED_SOURCE


class Provenance(str, Enum):
    """Who wrote a point."""

    OBSERVED = FRED_SOURCE
    SYNTHESIZED = FILL_SOURCE


@dataclass(frozen=True)
class Asset:
    """A FRED series registered in the assets table."""

    ticker: str
    composite_figi: str
    asset_type: str = "FRED"

    def __str__(self) -> str:
        return f"{self.ticker} ({self.composite_figi})"


@dataclass
class Point:
    """Single end-of-day row for an asset."""

    ticker: str
    composite_figi: str
    event_date: date
    open: float
    high: float
    low: float
    close: float
    volume: int = 0
    dividend: float = 0.0
    split_factor: float = 1.0
    source: str = Provenance.OBSERVED.value

    @property
    def value(self) -> float:
        return self.close

    @property
    def is_synthetic(self) -> bool:
        return self.source == Provenance.SYNTHESIZED.value

    @classmethod
    def observed(cls, asset: Asset, event_date: date, value: float) -> "Point":
        """Point published by FRED; every price field carries the series value."""
        return cls(
            ticker=asset.ticker,
            composite_figi=asset.composite_figi,
            event_date=event_date,
            open=value,
            high=value,
            low=value,
            close=value,
        )

    @classmethod
    def synthetic(cls, asset: Asset, event_date: date, value: float) -> "Point":
        """Forward-filled point carrying the previous known value."""
        return cls(
            ticker=asset.ticker,
            composite_figi=asset.composite_figi,
            event_date=event_date,
            open=value,
            high=value,
            low=value,
            close=value,
            volume=0,
            dividend=0.0,
            split_factor=1.0,
            source=Provenance.SYNTHESIZED.value,
        )
