"""Download FRED end-of-day values, store them and forward-fill gaps."""

import logging
from datetime import date, timedelta

from fred_importer.config import Settings
from fred_importer.data import FredFetcher, SeriesStore, TradingCalendar, build_trading_days
from fred_importer.fill import FillResult, GapFillEngine


logger = logging.getLogger(__name__)


def run(
    settings: Settings,
    now: date,
    fetcher: FredFetcher | None = None,
    skip_fetch: bool = False,
) -> list[FillResult]:
    """
    Import recent values for every active FRED asset, then reconcile each one.

    Args:
        settings: Importer settings
        now: End of the fetch and fill windows
        fetcher: Fetcher to use; one is created from settings when omitted
        skip_fetch: Only run the forward-fill step

    Returns:
        One FillResult per asset
    """
    store = SeriesStore(settings.db_path, timeout=settings.store_timeout)
    calendar = TradingCalendar(settings.db_path, timeout=settings.store_timeout)

    assets = store.load_assets()
    if settings.limit > 0:
        assets = assets[: settings.limit]
    logger.info(f"Processing {len(assets)} assets")

    if not skip_fetch and assets:
        owns_fetcher = fetcher is None
        fetcher = fetcher or FredFetcher(settings)
        try:
            start = now - timedelta(days=settings.lookback_days)
            points = fetcher.fetch(assets, start, now)
        finally:
            if owns_fetcher:
                fetcher.close()
        store.save_points(points)

    engine = GapFillEngine(store, calendar, settings.max_forward_fill_age)
    return engine.reconcile_all(assets, now)


def seed_calendar(settings: Settings, start: date, end: date) -> int:
    """Populate the trading_days table with US business days in [start, end]."""
    calendar = TradingCalendar(settings.db_path, timeout=settings.store_timeout)
    return calendar.store_trading_days(build_trading_days(start, end))


def main() -> None:
    """CLI entry point."""
    import argparse
    import sys

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(
        description="Download end-of-day values from FRED and forward-fill missing trading days"
    )
    parser.add_argument("--limit", type=int, help="Limit to the first N assets")
    parser.add_argument(
        "--skip-fetch",
        action="store_true",
        help="Only forward-fill values already in the database",
    )
    parser.add_argument(
        "--seed-calendar",
        type=date.fromisoformat,
        metavar="YYYY-MM-DD",
        help="Add US business days from this date through today to the calendar",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show database status and exit",
    )
    args = parser.parse_args()

    try:
        settings = Settings()
        if args.limit is not None:
            settings.limit = args.limit
        settings.validate()
    except ValueError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)

    today = date.today()

    if args.status:
        status = SeriesStore(settings.db_path, timeout=settings.store_timeout).get_status()
        print("\nDatabase Status:")
        print("-" * 70)
        for figi, info in sorted(status.items(), key=lambda item: item[1]["ticker"]):
            print(
                f"{info['ticker']:20} | {info['point_count']:6} pts "
                f"({info['filled_count']} filled) | Last: {info['last_date']:10} | {figi}"
            )
        return

    if args.seed_calendar:
        seed_calendar(settings, args.seed_calendar, today)

    results = run(settings, today, skip_fetch=args.skip_fetch)

    failed = [r for r in results if not r.ok]
    for result in results:
        if result.ok:
            print(f"  {result.asset.ticker}: filled {len(result.inserted)} days")
        else:
            print(f"  {result.asset.ticker}: FAILED - {result.error}")

    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
