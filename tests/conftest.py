from __future__ import annotations

from collections import defaultdict
from datetime import date
from pathlib import Path

import pytest

from fred_importer.data import SeriesStore, TradingCalendar
from fred_importer.fill import IntegrityViolationError
from fred_importer.models import Asset, Point


DAY1 = date(2024, 1, 2)
DAY2 = date(2024, 1, 3)
DAY3 = date(2024, 1, 4)
DAY4 = date(2024, 1, 5)


@pytest.fixture
def asset() -> Asset:
    return Asset(ticker="DGS10", composite_figi="FRED00000DGS10")


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "fred.db"


@pytest.fixture
def store(db_path: Path) -> SeriesStore:
    return SeriesStore(db_path, timeout=1.0)


@pytest.fixture
def calendar(db_path: Path) -> TradingCalendar:
    cal = TradingCalendar(db_path, timeout=1.0)
    cal.store_trading_days([DAY1, DAY2, DAY3, DAY4])
    return cal


def closes(store: SeriesStore, asset: Asset) -> dict[date, tuple[float, str]]:
    df = store.get_series(asset)
    return {ts.date(): (row["close"], row["source"]) for ts, row in df.iterrows()}


class ListCalendar:
    """Calendar over a fixed list of days."""

    def __init__(self, days: list[date]) -> None:
        self.days = list(days)
        self.calls = 0

    def trading_days_from(self, since: date):
        self.calls += 1
        return iter([d for d in self.days if d >= since])


class FakeTransaction:
    def __init__(self, store: "FakeStore") -> None:
        self.store = store
        self.rows: dict[tuple[str, date], list[Point]] | None = None
        self.committed = False
        self.rolled_back = False

    def __enter__(self) -> "FakeTransaction":
        self.rows = defaultdict(list, {k: list(v) for k, v in self.store.rows.items()})
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self.committed:
            self.rollback()

    def delete_synthetic(self, asset: Asset, start: date, end: date) -> int:
        removed = 0
        for (figi, day), points in self.rows.items():
            if figi != asset.composite_figi or not (start <= day <= end):
                continue
            kept = [p for p in points if not p.is_synthetic]
            removed += len(points) - len(kept)
            points[:] = kept
        return removed

    def point_at(self, asset: Asset, day: date) -> Point | None:
        points = self.rows.get((asset.composite_figi, day), [])
        if len(points) > 1:
            raise IntegrityViolationError(f"{len(points)} points stored for one date")
        return points[0] if points else None

    def insert(self, point: Point) -> None:
        self.rows[(point.composite_figi, point.event_date)].append(point)

    def insert_many(self, points) -> int:
        count = 0
        for point in points:
            self.insert(point)
            count += 1
        return count

    def commit(self) -> None:
        self.store.rows = {k: v for k, v in self.rows.items() if v}
        self.committed = True
        self.store.commits += 1

    def rollback(self) -> None:
        self.rolled_back = True
        self.store.rollbacks += 1


class FakeStore:
    """In-memory store that tolerates duplicate rows, for failure injection."""

    def __init__(self, points: list[Point] | None = None) -> None:
        self.rows: dict[tuple[str, date], list[Point]] = {}
        self.commits = 0
        self.rollbacks = 0
        for point in points or []:
            self.rows.setdefault((point.composite_figi, point.event_date), []).append(point)

    def _points(self, asset: Asset) -> list[Point]:
        return sorted(
            (p for (figi, _), ps in self.rows.items() if figi == asset.composite_figi for p in ps),
            key=lambda p: p.event_date,
        )

    def earliest_date(self, asset: Asset) -> date | None:
        points = self._points(asset)
        return points[0].event_date if points else None

    def value_before(self, asset: Asset, day: date, inclusive: bool = False) -> float | None:
        prior = [
            p for p in self._points(asset)
            if p.event_date < day or (inclusive and p.event_date == day)
        ]
        return prior[-1].value if prior else None

    def transaction(self) -> FakeTransaction:
        return FakeTransaction(self)
