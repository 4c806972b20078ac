"""Persistence interface and its SQLite backing."""

from compliance_pipeline.store.base import EventStore
from compliance_pipeline.store.sqlite import SqliteEventStore

__all__ = ["EventStore", "SqliteEventStore"]
