"""Configuration settings for the importer."""

from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
import os

from dotenv import load_dotenv


load_dotenv()


# Source tags written to the eod.source column
FRED_SOURCE = "fred.stlouisfed.org"
FILL_SOURCE = "api.pennyvault.com"

FRED_GRAPH_URL = "https://fred.stlouisfed.org/graph/fredgraph.csv"


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


@dataclass
class Settings:
    """Application settings."""

    cache_dir: Path = field(
        default_factory=lambda: Path(
            os.getenv("FRED_IMPORTER_CACHE_DIR", Path(__file__).parent.parent.parent / "cache")
        )
    )
    db_path: Path | None = field(
        default_factory=lambda: Path(os.environ["FRED_IMPORTER_DB"])
        if os.getenv("FRED_IMPORTER_DB")
        else None
    )
    max_forward_fill_age: timedelta = field(
        default_factory=lambda: timedelta(days=_env_int("MAX_AGE_FORWARD_FILL_DAYS", 90))
    )
    fred_rate_limit: float = field(
        default_factory=lambda: _env_float("FRED_RATE_LIMIT", 5)
    )
    lookback_days: int = field(default_factory=lambda: _env_int("FRED_LOOKBACK_DAYS", 7))
    store_timeout: float = field(
        default_factory=lambda: _env_float("FRED_STORE_TIMEOUT", 30.0)
    )
    limit: int = field(default_factory=lambda: _env_int("FRED_LIMIT", 0))

    def __post_init__(self) -> None:
        self.cache_dir = Path(self.cache_dir)
        if self.db_path is None:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            self.db_path = self.cache_dir / "fred.db"
        else:
            self.db_path = Path(self.db_path)

    def validate(self) -> None:
        """Validate settings."""
        if self.max_forward_fill_age <= timedelta(0):
            raise ValueError("MAX_AGE_FORWARD_FILL_DAYS must be positive")
        if self.fred_rate_limit <= 0:
            raise ValueError("FRED_RATE_LIMIT must be positive (requests per second)")
        if self.lookback_days <= 0:
            raise ValueError("FRED_LOOKBACK_DAYS must be positive")
        if self.store_timeout <= 0:
            raise ValueError("FRED_STORE_TIMEOUT must be positive")
        if self.limit < 0:
            raise ValueError("FRED_LIMIT cannot be negative")

    @property
    def request_delay(self) -> float:
        """Seconds to wait between FRED requests."""
        return 1.0 / self.fred_rate_limit
