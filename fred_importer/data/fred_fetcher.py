"""FRED graph CSV fetcher."""

import io
import logging
import time
from datetime import date, timedelta

import httpx
import pandas as pd

from fred_importer.config import FRED_GRAPH_URL, Settings
from fred_importer.models import Asset, Point


logger = logging.getLogger(__name__)


def parse_fredgraph_csv(text: str, asset: Asset) -> list[Point]:
    """
    Parse a fredgraph.csv body into observed points.

    FRED marks missing observations with "."; those rows are dropped.
    """
    df = pd.read_csv(io.StringIO(text), na_values=["."])
    if df.empty or len(df.columns) < 2:
        return []

    date_col, value_col = df.columns[0], df.columns[1]
    df[date_col] = pd.to_datetime(df[date_col], errors="coerce")
    df[value_col] = pd.to_numeric(df[value_col], errors="coerce")

    bad = df[df[date_col].notna() & df[value_col].isna()]
    if not bad.empty:
        logger.debug(f"  {asset.ticker}: skipping {len(bad)} missing observations")

    df = df.dropna(subset=[date_col, value_col])
    return [
        Point.observed(asset, ts.date(), float(val))
        for ts, val in zip(df[date_col], df[value_col])
    ]


class FredFetcher:
    """Fetches daily values from the FRED graph CSV endpoint."""

    BASE_URL = FRED_GRAPH_URL

    def __init__(self, settings: Settings | None = None, client: httpx.Client | None = None) -> None:
        self.settings = settings or Settings()
        self._client = client

    @property
    def client(self) -> httpx.Client:
        """Lazy-initialize HTTP client."""
        if self._client is None:
            self._client = httpx.Client(timeout=30.0, headers={"Accept": "application/csv"})
        return self._client

    def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "FredFetcher":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def fetch_asset(self, asset: Asset, start_date: date, end_date: date) -> list[Point]:
        """
        Fetch daily observations for one asset.

        Args:
            asset: FRED series to download
            start_date: First observation date
            end_date: Last observation date

        Returns:
            Observed points, oldest first
        """
        params = {
            "mode": "fred",
            "id": asset.ticker,
            "cosd": start_date.isoformat(),
            "coed": end_date.isoformat(),
            "fq": "Daily",
            "fam": "avg",
        }
        logger.debug(f"Loading {self.BASE_URL} for {asset.ticker}")

        response = self.client.get(self.BASE_URL, params=params)
        response.raise_for_status()
        return parse_fredgraph_csv(response.text, asset)

    def fetch(
        self,
        assets: list[Asset],
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[Point]:
        """
        Fetch every asset, pausing between requests to respect FRED's rate limit.

        Assets whose request fails are logged and skipped.
        """
        end_date = end_date or date.today()
        start_date = start_date or end_date - timedelta(days=self.settings.lookback_days)

        points: list[Point] = []
        errors: dict[str, str] = {}

        for i, asset in enumerate(assets):
            if i > 0:
                time.sleep(self.settings.request_delay)
            logger.info(f"Fetching {asset.ticker} ({i + 1}/{len(assets)})...")
            try:
                fetched = self.fetch_asset(asset, start_date, end_date)
            except httpx.HTTPStatusError as e:
                logger.error(f"HTTP error fetching {asset.ticker}: {e.response.status_code}")
                errors[asset.ticker] = str(e)
                continue
            except httpx.HTTPError as e:
                logger.error(f"Error fetching {asset.ticker}: {e}")
                errors[asset.ticker] = str(e)
                continue
            except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
                logger.error(f"Could not parse CSV for {asset.ticker}: {e}")
                errors[asset.ticker] = str(e)
                continue
            logger.info(f"  Got {len(fetched)} observations")
            points.extend(fetched)

        if errors:
            logger.warning(f"Failed to fetch {len(errors)} series: {list(errors.keys())}")

        return points
