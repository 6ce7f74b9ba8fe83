"""Domain models."""

from .market_data import Asset, Point, Provenance

__all__ = ["Asset", "Point", "Provenance"]
