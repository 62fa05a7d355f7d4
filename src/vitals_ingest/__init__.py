"""Vitals Ingest - load Apple Health exports and workout routes into SQLite."""

__version__ = "0.1.0"
