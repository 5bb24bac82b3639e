import time
from threading import Lock
from typing import Callable, Dict, Optional, Tuple

_MISSING = object()


class CountryCache:
    """In-process IP -> country cache with lazy expiry"""

    def __init__(self, enabled: bool = True, clock: Callable[[], float] = time.time):
        self.enabled = enabled
        self._clock = clock
        self._mem: Dict[str, Tuple[Optional[str], float]] = {}
        self._lock = Lock()

    def lookup(self, ip: str):
        """Cached code (possibly None) or the module-level _MISSING sentinel"""
        if not self.enabled:
            return _MISSING
        with self._lock:
            entry = self._mem.get(ip)
            if entry is None:
                return _MISSING
            country, expires_at = entry
            if self._clock() >= expires_at:
                del self._mem[ip]
                return _MISSING
            return country

    def get(self, ip: str) -> Optional[str]:
        value = self.lookup(ip)
        return None if value is _MISSING else value

    def contains(self, ip: str) -> bool:
        return self.lookup(ip) is not _MISSING

    def put(self, ip: str, country: Optional[str], ttl: int) -> None:
        if not self.enabled:
            return
        with self._lock:
            self._mem[ip] = (country, self._clock() + ttl)

    def clear(self) -> None:
        with self._lock:
            self._mem.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._mem)


def is_miss(value) -> bool:
    return value is _MISSING
