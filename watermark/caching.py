import threading
from typing import Iterator, Optional, Set, Tuple

from watermark.utils.logging import log_message

FontCacheKey = Tuple[str, str]


class FontCache:
    """Process-wide record of font installs that already succeeded.

    Keys are ``(family, weight)``. Entries are only ever added: once a key is
    present it is never re-queried or invalidated. A duplicate install racing
    past the presence check is wasted work, not a correctness problem, since
    registering the same font twice overwrites it with identical data.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Set[FontCacheKey] = set()

    @staticmethod
    def make_key(family: str, weight: str) -> FontCacheKey:
        return (family.strip(), str(weight).strip())

    def has(self, family: str, weight: str) -> bool:
        with self._lock:
            return self.make_key(family, weight) in self._entries

    def add(self, family: str, weight: str, verbose: bool = False) -> None:
        key = self.make_key(family, weight)
        with self._lock:
            self._entries.add(key)
        log_message(f"Font cached: {key[0]} ({key[1]})", verbose=verbose)

    def __contains__(self, key: FontCacheKey) -> bool:
        with self._lock:
            return key in self._entries

    def __iter__(self) -> Iterator[FontCacheKey]:
        with self._lock:
            return iter(sorted(self._entries))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


_global_font_cache: Optional[FontCache] = None
_global_font_cache_lock = threading.Lock()


def get_font_cache() -> FontCache:
    """Get the global font cache instance.

    Returns:
        FontCache: The process-wide font cache
    """
    global _global_font_cache
    with _global_font_cache_lock:
        if _global_font_cache is None:
            _global_font_cache = FontCache()
        return _global_font_cache
