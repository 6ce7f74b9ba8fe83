"""Forward-fill reconciliation of end-of-day series against the trading calendar."""

import logging
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator, Protocol

from fred_importer.fill.errors import (
    CalendarUnavailableError,
    FillError,
    NoBaselineError,
    StoreError,
)
from fred_importer.models import Asset, Point


logger = logging.getLogger(__name__)


class CalendarSource(Protocol):
    """Ordered trading days on or after a date."""

    def trading_days_from(self, since: date) -> Iterable[date]: ...


class Transaction(Protocol):
    """Atomic unit of work on a series store."""

    def delete_synthetic(self, asset: Asset, start: date, end: date) -> int: ...

    def point_at(self, asset: Asset, day: date) -> Point | None: ...

    def insert(self, point: Point) -> None: ...

    def insert_many(self, points: Iterable[Point]) -> int: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


class SeriesStore(Protocol):
    """Durable storage of end-of-day points."""

    def earliest_date(self, asset: Asset) -> date | None: ...

    def value_before(self, asset: Asset, day: date, inclusive: bool = False) -> float | None: ...

    def transaction(self) -> AbstractContextManager[Transaction]: ...


@dataclass
class FillResult:
    """Outcome of reconciling one asset."""

    asset: Asset
    since: date | None = None
    until: date | None = None
    trading_days: int = 0
    inserted: list[date] = field(default_factory=list)
    error: FillError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _as_date(value: date) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


class GapFillEngine:
    """
    Makes sure every trading day in the fill window has a value.

    Missing days get a synthetic point carrying the most recent known value.
    Synthetic points in the window are purged and recomputed on every run so
    late-arriving FRED data always wins; points from any other source are
    never modified.
    """

    def __init__(
        self,
        store: SeriesStore,
        calendar: CalendarSource,
        max_fill_age: timedelta = timedelta(days=90),
    ) -> None:
        self.store = store
        self.calendar = calendar
        self.max_fill_age = max_fill_age

    def fill_window_start(self, asset: Asset, now: date) -> tuple[date, date]:
        """Return (since, earliest): since is the later of the first stored date and ``now - max_fill_age``."""
        earliest = self.store.earliest_date(asset)
        if earliest is None:
            raise NoBaselineError("no points stored for asset", asset)
        return max(earliest, now - self.max_fill_age), earliest

    def _baseline(self, asset: Asset, since: date, earliest: date) -> float:
        # Nothing can precede the first stored point, so a window that opens
        # on it is seeded from that point itself.
        value = self.store.value_before(asset, since, inclusive=since <= earliest)
        if value is None:
            raise NoBaselineError("no value before fill window", asset, since)
        return value

    def _window_days(self, since: date, until: date) -> Iterator[date]:
        try:
            days = iter(self.calendar.trading_days_from(since))
        except FillError:
            raise
        except Exception as e:
            raise CalendarUnavailableError("calendar source failed", day=since, cause=e) from e

        last = None
        while True:
            try:
                day = next(days)
            except StopIteration:
                return
            except FillError:
                raise
            except Exception as e:
                raise CalendarUnavailableError("calendar source failed", day=last, cause=e) from e

            day = _as_date(day)
            if day < since:
                continue
            if day > until:
                return
            if last is not None and day <= last:
                raise CalendarUnavailableError(
                    f"calendar not strictly increasing after {last.isoformat()}", day=day
                )
            last = day
            yield day

    def reconcile(self, asset: Asset, now: date) -> FillResult:
        """
        Forward-fill missing trading days for one asset.

        Args:
            asset: Series to reconcile
            now: End of the fill window, from the caller's clock

        Returns:
            FillResult listing the synthesized dates

        Raises:
            FillError: on any failure; nothing from this run is left in the store
        """
        now = _as_date(now)
        logger.info(f"Checking for missing values: {asset}")

        try:
            since, earliest = self.fill_window_start(asset, now)
            logger.info(f"  First date for forward-fill: {since.isoformat()}")
            prev_value = self._baseline(asset, since, earliest)
            result = FillResult(asset=asset, since=since, until=now)

            with self.store.transaction() as txn:
                removed = txn.delete_synthetic(asset, since, now)
                if removed:
                    logger.debug(f"  Removed {removed} previously filled points")

                pending: list[Point] = []
                for day in self._window_days(since, now):
                    result.trading_days += 1
                    try:
                        point = txn.point_at(asset, day)
                    except FillError as e:
                        raise e.with_context(asset, day)
                    if point is None:
                        logger.info(f"  Missing value on {day.isoformat()}, filling with {prev_value}")
                        pending.append(Point.synthetic(asset, day, prev_value))
                        result.inserted.append(day)
                    else:
                        prev_value = point.value

                txn.insert_many(pending)
                txn.commit()
        except FillError as e:
            e.with_context(asset)
            logger.error(f"Forward-fill failed: {e}")
            raise
        except Exception as e:
            err = StoreError("unexpected store failure", asset, cause=e)
            logger.error(f"Forward-fill failed: {err}")
            raise err from e

        logger.info(
            f"  Filled {len(result.inserted)} of {result.trading_days} trading days"
        )
        return result

    def reconcile_all(self, assets: Iterable[Asset], now: date) -> list[FillResult]:
        """Reconcile each asset independently; one failure never stops the rest."""
        results = []
        for asset in assets:
            try:
                results.append(self.reconcile(asset, now))
            except FillError as e:
                results.append(FillResult(asset=asset, error=e))

        failed = [r for r in results if not r.ok]
        if failed:
            logger.warning(
                f"Forward-fill failed for {len(failed)} assets: "
                f"{[r.asset.ticker for r in failed]}"
            )
        return results
