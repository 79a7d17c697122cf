"""Keyed store contract and the in-memory implementation.

Durable deployments can back the detector's state with any store that
offers get/set/append/delete over string keys. The in-memory store is
a complete implementation of the contract without persistence.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Optional


class KeyedStore(ABC):
    """Abstract key-value store with list append."""
    
    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the value for key, or None."""
    
    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a value under key, replacing any previous value."""
    
    @abstractmethod
    def append(self, key: str, value: Any) -> int:
        """Append to the list under key and return the new length."""
    
    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove key. Returns True if it existed."""
    
    @abstractmethod
    def keys(self, prefix: str = "") -> Iterator[str]:
        """Iterate keys starting with prefix."""


class InMemoryKeyedStore(KeyedStore):
    """Thread-safe dict-backed store."""
    
    def __init__(self):
        self._data: Dict[str, Any] = {}
        self._lock = threading.Lock()
    
    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._data.get(key)
    
    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value
    
    def append(self, key: str, value: Any) -> int:
        with self._lock:
            items: List[Any] = self._data.setdefault(key, [])
            items.append(value)
            return len(items)
    
    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None
    
    def keys(self, prefix: str = "") -> Iterator[str]:
        with self._lock:
            snapshot = [k for k in self._data if k.startswith(prefix)]
        return iter(snapshot)
