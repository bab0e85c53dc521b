"""RSS news aggregation with keyword-weighted search."""

__version__ = "0.1.0"
