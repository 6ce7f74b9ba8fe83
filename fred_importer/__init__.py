"""Import FRED end-of-day values and forward-fill missing trading days."""

__version__ = "0.1.0"
