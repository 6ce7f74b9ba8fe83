from __future__ import annotations

from datetime import date, timedelta

import pytest

from conftest import DAY1, DAY2, DAY3, DAY4, closes
from fred_importer.config import Settings
from fred_importer.data import SeriesStore, TradingCalendar
from fred_importer.fill import NoBaselineError
from fred_importer.importer import run, seed_calendar
from fred_importer.models import Asset, Point, Provenance


class StubFetcher:
    def __init__(self, points: list[Point]) -> None:
        self.points = points
        self.calls = []

    def fetch(self, assets, start_date, end_date):
        self.calls.append(([a.ticker for a in assets], start_date, end_date))
        return [p for p in self.points if p.composite_figi in {a.composite_figi for a in assets}]


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(cache_dir=tmp_path, db_path=tmp_path / "fred.db")


def test_run_fetches_saves_and_fills(settings, asset) -> None:
    store = SeriesStore(settings.db_path)
    store.register_asset(asset)
    TradingCalendar(settings.db_path).store_trading_days([DAY1, DAY2, DAY3, DAY4])
    fetcher = StubFetcher([Point.observed(asset, DAY1, 100.0), Point.observed(asset, DAY3, 110.0)])

    results = run(settings, DAY4, fetcher=fetcher)

    assert fetcher.calls == [(["DGS10"], DAY4 - timedelta(days=7), DAY4)]
    assert len(results) == 1 and results[0].ok
    assert closes(store, asset)[DAY4] == (110.0, Provenance.SYNTHESIZED.value)


def test_run_reports_each_asset(settings, asset) -> None:
    store = SeriesStore(settings.db_path)
    empty = Asset("EMPTY", "FRED0000EMPTY")
    store.register_asset(asset)
    store.register_asset(empty)
    store.save_points([Point.observed(asset, DAY1, 100.0)])
    TradingCalendar(settings.db_path).store_trading_days([DAY1, DAY2])

    results = run(settings, DAY2, skip_fetch=True)

    by_ticker = {r.asset.ticker: r for r in results}
    assert by_ticker["DGS10"].inserted == [DAY2]
    assert isinstance(by_ticker["EMPTY"].error, NoBaselineError)


def test_run_honours_limit(settings, asset) -> None:
    store = SeriesStore(settings.db_path)
    store.register_asset(asset)
    store.register_asset(Asset("VIXCLS", "FRED0000VIXCLS"))
    settings.limit = 1
    fetcher = StubFetcher([])

    results = run(settings, DAY2, fetcher=fetcher)

    assert [r.asset.ticker for r in results] == ["DGS10"]
    assert fetcher.calls[0][0] == ["DGS10"]


def test_seed_calendar(settings) -> None:
    added = seed_calendar(settings, date(2024, 12, 23), date(2024, 12, 27))

    calendar = TradingCalendar(settings.db_path)
    assert added == 4
    assert date(2024, 12, 25) not in list(calendar.trading_days_from(date(2024, 12, 23)))
