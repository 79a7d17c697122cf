"""Location history stores.

Per-user, time-windowed history of observed login locations. Each
update prunes samples older than the anomaly window (by timestamp
cutoff, not by count), appends the new sample and refreshes the
frequent-locations summary, all as one atomic step per store.
"""

import threading
from abc import ABC, abstractmethod
from collections import Counter
from typing import Dict, Iterator, List, Optional, Tuple

from authwatch.common.constants import AnomalyConstants
from authwatch.data.schemas.location import LocationSample, UserLocationHistory
from authwatch.store.keyed import InMemoryKeyedStore, KeyedStore


def frequent_locations(
    locations: List[LocationSample],
    limit: int = AnomalyConstants.FREQUENT_LOCATIONS_LIMIT,
) -> List[LocationSample]:
    """Top locations by (city, country code) occurrence.
    
    The first sample seen for a place represents it; ties keep
    first-seen order.
    """
    counts = Counter(loc.place_key for loc in locations)
    representatives: Dict[str, LocationSample] = {}
    for loc in locations:
        representatives.setdefault(loc.place_key, loc)
    
    ranked = sorted(
        representatives,
        key=lambda place: -counts[place],
    )
    return [representatives[place] for place in ranked[:limit]]


def apply_sample(
    history: UserLocationHistory,
    sample: LocationSample,
    window_ms: int,
) -> List[LocationSample]:
    """Prune, then append in place. Returns the pruned prior samples.
    
    The cutoff is measured from the new sample's timestamp, which is the
    observation time of the login being evaluated.
    """
    cutoff = sample.timestamp - window_ms
    prior = [loc for loc in history.locations if loc.timestamp > cutoff]
    
    history.locations = prior + [sample]
    history.frequent_locations = frequent_locations(history.locations)
    history.last_updated = max(history.last_updated, sample.timestamp)
    return prior


class LocationHistoryStore(ABC):
    """Abstract per-user location history store."""
    
    @abstractmethod
    def get(self, user_id: str) -> Optional[UserLocationHistory]:
        """Return a snapshot of the user's history, or None if unseen."""
    
    @abstractmethod
    def record(
        self,
        user_id: str,
        sample: LocationSample,
        window_ms: int,
    ) -> Tuple[List[LocationSample], UserLocationHistory]:
        """Atomically prune, append and return (prior samples, snapshot)."""
    
    @abstractmethod
    def users(self) -> Iterator[str]:
        """Iterate user ids with stored history."""
    
    @abstractmethod
    def delete(self, user_id: str) -> bool:
        """Erase a user's history. Returns True if it existed."""


class InMemoryLocationHistoryStore(LocationHistoryStore):
    """Dict-backed history store guarded by a lock."""
    
    def __init__(self):
        self._histories: Dict[str, UserLocationHistory] = {}
        self._lock = threading.Lock()
    
    def get(self, user_id: str) -> Optional[UserLocationHistory]:
        with self._lock:
            history = self._histories.get(user_id)
            return history.model_copy(deep=True) if history else None
    
    def record(
        self,
        user_id: str,
        sample: LocationSample,
        window_ms: int,
    ) -> Tuple[List[LocationSample], UserLocationHistory]:
        with self._lock:
            history = self._histories.get(user_id)
            if history is None:
                history = UserLocationHistory(user_id=user_id)
                self._histories[user_id] = history
            prior = apply_sample(history, sample, window_ms)
            return prior, history.model_copy(deep=True)
    
    def users(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._histories))
    
    def delete(self, user_id: str) -> bool:
        with self._lock:
            return self._histories.pop(user_id, None) is not None


class KeyedLocationHistoryStore(LocationHistoryStore):
    """History store on top of a KeyedStore.
    
    Histories are stored as JSON-compatible dicts under
    ``user_locations:<user_id>`` so the backing store may serialize
    them. Read-modify-write is serialized by a process-local lock.
    """
    
    KEY_PREFIX = "user_locations:"
    
    def __init__(self, store: Optional[KeyedStore] = None):
        self._store = store or InMemoryKeyedStore()
        self._lock = threading.Lock()
    
    def _key(self, user_id: str) -> str:
        return f"{self.KEY_PREFIX}{user_id}"
    
    def _load(self, user_id: str) -> Optional[UserLocationHistory]:
        raw = self._store.get(self._key(user_id))
        if raw is None:
            return None
        return UserLocationHistory.model_validate(raw)
    
    def get(self, user_id: str) -> Optional[UserLocationHistory]:
        with self._lock:
            return self._load(user_id)
    
    def record(
        self,
        user_id: str,
        sample: LocationSample,
        window_ms: int,
    ) -> Tuple[List[LocationSample], UserLocationHistory]:
        with self._lock:
            history = self._load(user_id) or UserLocationHistory(user_id=user_id)
            prior = apply_sample(history, sample, window_ms)
            self._store.set(self._key(user_id), history.model_dump(mode="json"))
            return prior, history
    
    def users(self) -> Iterator[str]:
        prefix_len = len(self.KEY_PREFIX)
        return (key[prefix_len:] for key in self._store.keys(self.KEY_PREFIX))
    
    def delete(self, user_id: str) -> bool:
        with self._lock:
            return self._store.delete(self._key(user_id))
