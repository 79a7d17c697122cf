"""State stores for detection history."""

from authwatch.store.keyed import InMemoryKeyedStore, KeyedStore
from authwatch.store.history import (
    InMemoryLocationHistoryStore,
    KeyedLocationHistoryStore,
    LocationHistoryStore,
    frequent_locations,
)

__all__ = [
    "InMemoryKeyedStore",
    "KeyedStore",
    "InMemoryLocationHistoryStore",
    "KeyedLocationHistoryStore",
    "LocationHistoryStore",
    "frequent_locations",
]
