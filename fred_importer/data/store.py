"""SQLite series store for end-of-day values."""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Iterable, Iterator

import pandas as pd

from fred_importer.fill.errors import (
    IntegrityViolationError,
    StoreConnectionError,
    StoreError,
    StoreTimeoutError,
)
from fred_importer.models import Asset, Point, Provenance


logger = logging.getLogger(__name__)

EOD_COLUMNS = (
    "ticker",
    "composite_figi",
    "event_date",
    "open",
    "high",
    "low",
    "close",
    "volume",
    "dividend",
    "split_factor",
    "source",
)

_INSERT_SQL = f"""
    INSERT INTO eod ({", ".join(EOD_COLUMNS)})
    VALUES ({", ".join("?" for _ in EOD_COLUMNS)})
"""

_UPSERT_SQL = _INSERT_SQL + """
    ON CONFLICT (composite_figi, event_date) DO UPDATE SET
        ticker = excluded.ticker,
        open = excluded.open,
        high = excluded.high,
        low = excluded.low,
        close = excluded.close,
        volume = excluded.volume,
        dividend = excluded.dividend,
        split_factor = excluded.split_factor,
        source = excluded.source
"""


def translate_error(
    exc: sqlite3.Error, asset: Asset | None = None, day: date | None = None
) -> StoreError:
    """Map a sqlite3 exception onto the store error taxonomy."""
    message = str(exc).lower()
    if isinstance(exc, sqlite3.OperationalError):
        if "locked" in message or "busy" in message:
            return StoreTimeoutError("timed out waiting for database lock", asset, day, exc)
        if "unable to open" in message:
            return StoreConnectionError("could not open database", asset, day, exc)
    return StoreError("database operation failed", asset, day, exc)


def _point_row(point: Point) -> tuple:
    return (
        point.ticker,
        point.composite_figi,
        point.event_date.isoformat(),
        point.open,
        point.high,
        point.low,
        point.close,
        point.volume,
        point.dividend,
        point.split_factor,
        point.source,
    )


def _parse_date(value: str, asset: Asset | None = None) -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise IntegrityViolationError(f"malformed event_date {value!r}", asset, cause=e) from e


def _row_point(row: sqlite3.Row) -> Point:
    return Point(
        ticker=row["ticker"],
        composite_figi=row["composite_figi"],
        event_date=_parse_date(row["event_date"], Asset(row["ticker"], row["composite_figi"])),
        open=row["open"],
        high=row["high"],
        low=row["low"],
        close=row["close"],
        volume=row["volume"],
        dividend=row["dividend"],
        split_factor=row["split_factor"],
        source=row["source"],
    )


class Transaction:
    """One atomic unit of work on the store.

    Opened with ``BEGIN IMMEDIATE`` so the write lock is held from the first
    read; anything not committed when the block exits is rolled back and the
    connection is always closed.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._open = False

    def __enter__(self) -> "Transaction":
        try:
            self._conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            self._conn.close()
            raise translate_error(e) from e
        self._open = True
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self._open:
                if exc_type is None:
                    self.rollback()
                    return
                logger.warning(f"Rolling back transaction after {exc_type.__name__}")
                try:
                    self.rollback()
                except StoreError as e:
                    # closing the connection discards the uncommitted work
                    logger.error(f"Rollback failed: {e}")
        finally:
            self._conn.close()

    @property
    def is_open(self) -> bool:
        return self._open

    def _execute(self, sql: str, params: tuple, asset: Asset | None = None, day: date | None = None):
        try:
            return self._conn.execute(sql, params)
        except sqlite3.IntegrityError as e:
            raise IntegrityViolationError("constraint violated on write", asset, day, e) from e
        except sqlite3.Error as e:
            raise translate_error(e, asset, day) from e

    def delete_synthetic(self, asset: Asset, start: date, end: date) -> int:
        """Remove forward-filled points for the asset in [start, end]."""
        cursor = self._execute(
            """
            DELETE FROM eod
            WHERE composite_figi = ? AND event_date >= ? AND event_date <= ? AND source = ?
            """,
            (asset.composite_figi, start.isoformat(), end.isoformat(), Provenance.SYNTHESIZED.value),
            asset,
        )
        return cursor.rowcount

    def point_at(self, asset: Asset, day: date) -> Point | None:
        """Return the point stored for ``day``, failing if there is more than one."""
        rows = self._execute(
            f"SELECT {', '.join(EOD_COLUMNS)} FROM eod WHERE composite_figi = ? AND event_date = ?",
            (asset.composite_figi, day.isoformat()),
            asset,
            day,
        ).fetchall()
        if len(rows) > 1:
            raise IntegrityViolationError(f"{len(rows)} points stored for one date", asset, day)
        if not rows:
            return None
        return _row_point(rows[0])

    def insert(self, point: Point) -> None:
        asset = Asset(point.ticker, point.composite_figi)
        self._execute(_INSERT_SQL, _point_row(point), asset, point.event_date)

    def insert_many(self, points: Iterable[Point]) -> int:
        """Insert a batch of points; fails on any existing (figi, date)."""
        rows = [_point_row(p) for p in points]
        if not rows:
            return 0
        try:
            self._conn.executemany(_INSERT_SQL, rows)
        except sqlite3.IntegrityError as e:
            raise IntegrityViolationError("constraint violated on batch insert", cause=e) from e
        except sqlite3.Error as e:
            raise translate_error(e) from e
        return len(rows)

    def commit(self) -> None:
        try:
            self._conn.execute("COMMIT")
        except sqlite3.Error as e:
            raise translate_error(e) from e
        self._open = False

    def rollback(self) -> None:
        if not self._open:
            return
        self._open = False
        try:
            self._conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            raise translate_error(e) from e


class SeriesStore:
    """SQLite-backed store of end-of-day points and the FRED asset registry."""

    def __init__(self, db_path: Path, timeout: float = 30.0) -> None:
        self.db_path = db_path
        self.timeout = timeout
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory, in manual transaction mode."""
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        except sqlite3.Error as e:
            raise StoreConnectionError(f"could not open database {self.db_path}", cause=e) from e
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_connection()
        try:
            yield conn
        except sqlite3.Error as e:
            raise translate_error(e) from e
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS eod (
                    ticker TEXT NOT NULL,
                    composite_figi TEXT NOT NULL,
                    event_date TEXT NOT NULL,
                    open REAL,
                    high REAL,
                    low REAL,
                    close REAL NOT NULL,
                    volume INTEGER NOT NULL DEFAULT 0,
                    dividend REAL NOT NULL DEFAULT 0,
                    split_factor REAL NOT NULL DEFAULT 1,
                    source TEXT NOT NULL,
                    PRIMARY KEY (composite_figi, event_date)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS assets (
                    composite_figi TEXT PRIMARY KEY,
                    ticker TEXT NOT NULL,
                    asset_type TEXT NOT NULL,
                    active INTEGER NOT NULL DEFAULT 1
                )
            """)

    def transaction(self) -> Transaction:
        """Open a transaction; use as a context manager."""
        return Transaction(self._get_connection())

    def load_assets(self) -> list[Asset]:
        """Active FRED assets from the registry."""
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT composite_figi, ticker, asset_type FROM assets
                WHERE asset_type = 'FRED' AND active = 1
                ORDER BY ticker
                """
            ).fetchall()

        assets = [Asset(row["ticker"], row["composite_figi"], row["asset_type"]) for row in rows]
        for asset in assets:
            logger.info(f"Adding asset for download: {asset.ticker}")
        return assets

    def register_asset(self, asset: Asset, active: bool = True) -> None:
        with self._connection() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO assets (composite_figi, ticker, asset_type, active)
                VALUES (?, ?, ?, ?)
                """,
                (asset.composite_figi, asset.ticker, asset.asset_type, int(active)),
            )

    def save_points(self, points: Iterable[Point]) -> int:
        """
        Upsert observed points.

        Args:
            points: Points to write, keyed by (composite_figi, event_date)

        Returns:
            Number of rows inserted/updated
        """
        rows = [_point_row(p) for p in points]
        if not rows:
            return 0

        logger.info(f"Saving {len(rows)} points to database")
        with self._connection() as conn:
            conn.execute("BEGIN")
            try:
                conn.executemany(_UPSERT_SQL, rows)
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        return len(rows)

    def earliest_date(self, asset: Asset) -> date | None:
        """First date stored for the asset, any source."""
        with self._connection() as conn:
            row = conn.execute(
                "SELECT MIN(event_date) AS first_date FROM eod WHERE composite_figi = ?",
                (asset.composite_figi,),
            ).fetchone()
        if row and row["first_date"]:
            return _parse_date(row["first_date"], asset)
        return None

    def value_before(self, asset: Asset, day: date, inclusive: bool = False) -> float | None:
        """Close of the latest point before ``day`` (or on it, if inclusive)."""
        op = "<=" if inclusive else "<"
        with self._connection() as conn:
            row = conn.execute(
                f"""
                SELECT close FROM eod
                WHERE composite_figi = ? AND event_date {op} ?
                ORDER BY event_date DESC LIMIT 1
                """,
                (asset.composite_figi, day.isoformat()),
            ).fetchone()
        if row is None:
            return None
        return row["close"]

    def get_series(
        self, asset: Asset, start_date: date | None = None, end_date: date | None = None
    ) -> pd.DataFrame:
        """
        Retrieve stored points for an asset.

        Returns:
            DataFrame with DatetimeIndex and 'close' and 'source' columns
        """
        query = "SELECT event_date, close, source FROM eod WHERE composite_figi = ?"
        params: list = [asset.composite_figi]

        if start_date:
            query += " AND event_date >= ?"
            params.append(start_date.isoformat())
        if end_date:
            query += " AND event_date <= ?"
            params.append(end_date.isoformat())

        query += " ORDER BY event_date"

        with self._connection() as conn:
            df = pd.read_sql_query(query, conn, params=params)

        if df.empty:
            return pd.DataFrame(columns=["close", "source"])

        df["event_date"] = pd.to_datetime(df["event_date"])
        df.set_index("event_date", inplace=True)
        return df

    def get_status(self) -> dict[str, dict]:
        """Get per-asset counts of stored and forward-filled points."""
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT
                    composite_figi,
                    MAX(ticker) AS ticker,
                    COUNT(*) AS point_count,
                    SUM(CASE WHEN source = ? THEN 1 ELSE 0 END) AS filled_count,
                    MIN(event_date) AS first_date,
                    MAX(event_date) AS last_date
                FROM eod
                GROUP BY composite_figi
                """,
                (Provenance.SYNTHESIZED.value,),
            ).fetchall()

        return {
            row["composite_figi"]: {
                "ticker": row["ticker"],
                "point_count": row["point_count"],
                "filled_count": row["filled_count"],
                "first_date": row["first_date"],
                "last_date": row["last_date"],
            }
            for row in rows
        }
