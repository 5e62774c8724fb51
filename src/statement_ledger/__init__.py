"""Statement ingestion and categorization pipeline for Italian bank statements."""

__version__ = "0.3.0"
