"""Price spike alerting: ticker ingestion, windowed change detection and alert dedup."""

__version__ = "0.1.0"
