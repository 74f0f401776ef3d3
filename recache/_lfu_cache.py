import time
from collections import OrderedDict
from typing import Callable, DefaultDict, Dict, Generic, Iterator, Optional, Tuple, TypeVar

K = TypeVar("K")
V = TypeVar("V")

__all__ = ["LFUCache"]


class LFUCache(Generic[K, V]):
    """
    A capacity-bounded mapping that evicts the least frequently used key.

    Each value may carry an expiration deadline; expired values are dropped on access.
    """

    def __init__(self, capacity: int, timer: Optional[Callable[[], float]] = None):
        if capacity <= 0:
            raise ValueError("Capacity must be positive")

        self.capacity = capacity
        self._timer = timer or time.monotonic
        self.cache: Dict[K, Tuple[V, Optional[float], int]] = {}
        self.freq_count: DefaultDict[int, "OrderedDict[K, None]"] = DefaultDict(OrderedDict)
        self.min_freq = 0

    def _touch(self, key: K) -> int:
        freq = self.cache[key][2]
        self.freq_count[freq].pop(key)
        if not self.freq_count[freq]:
            del self.freq_count[freq]
            if freq == self.min_freq:
                self.min_freq += 1
        freq += 1
        self.freq_count[freq][key] = None
        return freq

    def _is_expired(self, expires_at: Optional[float]) -> bool:
        return expires_at is not None and self._timer() >= expires_at

    def get(self, key: K) -> V:
        if key not in self.cache:
            raise KeyError(f"Key {key} not found")

        value, expires_at, _ = self.cache[key]
        if self._is_expired(expires_at):
            self.remove_key(key)
            raise KeyError(f"Key {key} not found")

        self.cache[key] = (value, expires_at, self._touch(key))
        return value

    def put(self, key: K, value: V, ttl: Optional[float] = None) -> None:
        expires_at = self._timer() + ttl if ttl is not None else None

        if key in self.cache:
            self.cache[key] = (value, expires_at, self._touch(key))
            return

        if len(self.cache) == self.capacity:
            self.remove_expired()

        if len(self.cache) == self.capacity:
            evicted_key, _ = self.freq_count[self.min_freq].popitem(last=False)
            if not self.freq_count[self.min_freq]:
                del self.freq_count[self.min_freq]
            del self.cache[evicted_key]

        self.cache[key] = (value, expires_at, 1)
        self.freq_count[1][key] = None
        self.min_freq = 1

    def remove_key(self, key: K) -> None:
        if key in self.cache:
            freq = self.cache[key][2]
            self.freq_count[freq].pop(key)
            if not self.freq_count[freq]:
                del self.freq_count[freq]
                if freq == self.min_freq:
                    self.min_freq = min(self.freq_count, default=0)
            del self.cache[key]

    def remove_expired(self) -> None:
        for key in [key for key, (_, expires_at, _) in self.cache.items() if self._is_expired(expires_at)]:
            self.remove_key(key)

    def __len__(self) -> int:
        return len(self.cache)

    def __iter__(self) -> Iterator[K]:
        yield from self.cache
