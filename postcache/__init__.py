"""Cache-aside read/write layer and engagement counters for posts."""

__version__ = "1.0.0"
