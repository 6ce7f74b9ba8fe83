"""Importer configuration."""

from .settings import FILL_SOURCE, FRED_GRAPH_URL, FRED_SOURCE, Settings

__all__ = ["Settings", "FRED_SOURCE", "FILL_SOURCE", "FRED_GRAPH_URL"]
