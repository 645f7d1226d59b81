"""Trade-pairing and performance-analytics engine for a personal trading journal."""

__version__ = "0.1.0"
