"""Database package: key-value models, session management and the state store."""
from spike_alerts.db.kv_store import KeyValueStore, MemoryKeyValueStore, SqlKeyValueStore
from spike_alerts.db.models import KeyValueEntry
from spike_alerts.db.state_store import StateStore

__all__ = [
    "KeyValueEntry",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SqlKeyValueStore",
    "StateStore",
]
