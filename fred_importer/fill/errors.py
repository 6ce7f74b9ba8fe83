"""Failures raised while reconciling a series."""

from datetime import date

from fred_importer.models import Asset


class FillError(Exception):
    """Base class for reconciliation failures.

    Carries the asset and date being processed plus the underlying cause so
    callers can log the failure and decide whether to retry.
    """

    retryable = False

    def __init__(
        self,
        message: str,
        asset: Asset | None = None,
        day: date | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.asset = asset
        self.day = day
        self.cause = cause

    def with_context(self, asset: Asset | None = None, day: date | None = None) -> "FillError":
        """Fill in asset/day if the raiser did not know them."""
        if self.asset is None:
            self.asset = asset
        if self.day is None:
            self.day = day
        return self

    def __str__(self) -> str:
        parts = [self.message]
        if self.asset is not None:
            parts.append(f"ticker={self.asset.ticker} figi={self.asset.composite_figi}")
        if self.day is not None:
            parts.append(f"date={self.day.isoformat()}")
        if self.cause is not None:
            parts.append(f"cause={self.cause!r}")
        return " | ".join(parts)


class NoBaselineError(FillError):
    """No value exists to seed the forward fill."""


class IntegrityViolationError(FillError):
    """More than one point is stored for a single date."""


class CalendarUnavailableError(FillError):
    """The trading day calendar could not be read."""


class StoreError(FillError):
    """The series store failed."""

    retryable = True


class StoreTimeoutError(StoreError):
    """Timed out waiting on the series store."""


class StoreConnectionError(StoreError):
    """Could not connect to the series store."""
