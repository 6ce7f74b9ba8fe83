"""Trading day calendar backed by the trading_days table."""

import logging
import sqlite3
from datetime import date
from pathlib import Path
from typing import Iterable, Iterator

import pandas as pd
from pandas.tseries.holiday import USFederalHolidayCalendar
from pandas.tseries.offsets import CustomBusinessDay

from fred_importer.fill.errors import CalendarUnavailableError


logger = logging.getLogger(__name__)


def build_trading_days(start: date, end: date) -> list[date]:
    """Weekdays in [start, end] that are not US federal holidays."""
    offset = CustomBusinessDay(calendar=USFederalHolidayCalendar())
    days = pd.date_range(start=start, end=end, freq=offset)
    return [ts.date() for ts in days]


class TradingCalendar:
    """Reads the ordered list of valid trading days from SQLite."""

    def __init__(self, db_path: Path, timeout: float = 30.0) -> None:
        self.db_path = db_path
        self.timeout = timeout
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        try:
            return sqlite3.connect(self.db_path, timeout=self.timeout)
        except sqlite3.Error as e:
            raise CalendarUnavailableError("could not open calendar database", cause=e) from e

    def _init_db(self) -> None:
        conn = self._get_connection()
        try:
            with conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS trading_days (
                        trading_day TEXT PRIMARY KEY
                    )
                """)
        finally:
            conn.close()

    def trading_days_from(self, since: date) -> Iterator[date]:
        """
        Yield trading days on or after ``since`` in ascending order.

        Rows are read eagerly so the connection is released before the
        caller starts consuming; every call re-queries the table.
        """
        conn = self._get_connection()
        try:
            rows = conn.execute(
                "SELECT trading_day FROM trading_days WHERE trading_day >= ? ORDER BY trading_day ASC",
                (since.isoformat(),),
            ).fetchall()
        except sqlite3.Error as e:
            raise CalendarUnavailableError("query for trading days failed", day=since, cause=e) from e
        finally:
            conn.close()

        for (value,) in rows:
            try:
                yield date.fromisoformat(value)
            except ValueError as e:
                raise CalendarUnavailableError(
                    f"could not parse trading day {value!r}", cause=e
                ) from e

    def store_trading_days(self, days: Iterable[date]) -> int:
        """Add trading days to the calendar, ignoring ones already present."""
        rows = [(d.isoformat(),) for d in days]
        if not rows:
            return 0
        conn = self._get_connection()
        try:
            with conn:
                conn.executemany(
                    "INSERT OR IGNORE INTO trading_days (trading_day) VALUES (?)", rows
                )
        finally:
            conn.close()
        logger.info(f"Stored {len(rows)} trading days")
        return len(rows)

    def latest_day(self) -> date | None:
        conn = self._get_connection()
        try:
            row = conn.execute("SELECT MAX(trading_day) FROM trading_days").fetchone()
        finally:
            conn.close()
        if row and row[0]:
            return date.fromisoformat(row[0])
        return None
