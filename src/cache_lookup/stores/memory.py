"""
In-memory resolution cache
"""
import logging
import time
from typing import Callable, Optional

from ..types import IPV4, AddressFamily, AddressRecord, AddressStore

logger = logging.getLogger("cache_lookup.stores.memory")


class MemoryAddressStore(AddressStore):
    """
    In-memory resolution cache with LRU eviction of whole hostnames.

    Records of one hostname may mix both families; each family is refreshed
    independently. Expired records stay in place until the hostname is
    refreshed or pruned, reads skip them.

    Example:
        store = MemoryAddressStore(max_entries=1000)
        store.replace_family("example.com", 4, records)
        live = store.read("example.com", 4)
    """

    def __init__(
        self,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._cache: dict[str, list[AddressRecord]] = {}
        self._max_entries = max_entries
        self._clock = clock
        self._lru_order: dict[str, int] = {}
        self._access_counter = 0

    def _touch(self, hostname: str) -> None:
        self._access_counter += 1
        self._lru_order[hostname] = self._access_counter

    def get(self, hostname: str) -> Optional[list[AddressRecord]]:
        """Get the raw record list, or None if the hostname was never cached"""
        records = self._cache.get(hostname)
        if records is None:
            return None
        self._touch(hostname)
        return list(records)

    def read(
        self,
        hostname: str,
        family: Optional[AddressFamily] = None,
        now: Optional[float] = None,
    ) -> list[AddressRecord]:
        """Get live records, optionally of one family"""
        records = self._cache.get(hostname)
        if not records:
            return []

        self._touch(hostname)
        if now is None:
            now = self._clock()

        return [
            record
            for record in records
            if record.is_live(now) and (not family or record.family == family)
        ]

    def replace_family(
        self,
        hostname: str,
        family: AddressFamily,
        records: list[AddressRecord],
    ) -> None:
        """Swap out the records of one family, keeping the others"""
        current = self._cache.get(hostname)

        if current is None and len(self._cache) >= self._max_entries:
            self._evict_lru()

        kept = [record for record in current or [] if record.family != family]
        fresh = [record for record in records if record.family == family]
        # IPv4 records always precede IPv6 records
        self._cache[hostname] = fresh + kept if family == IPV4 else kept + fresh
        self._touch(hostname)

    def delete(self, hostname: str) -> bool:
        self._lru_order.pop(hostname, None)
        if hostname in self._cache:
            del self._cache[hostname]
            return True
        return False

    def has(self, hostname: str) -> bool:
        return hostname in self._cache

    def keys(self) -> list[str]:
        return list(self._cache.keys())

    def size(self) -> int:
        return len(self._cache)

    def clear(self) -> None:
        self._cache.clear()
        self._lru_order.clear()
        self._access_counter = 0

    def _evict_lru(self) -> None:
        """Evict the least recently used hostname"""
        if not self._lru_order:
            return

        oldest = min(self._lru_order, key=self._lru_order.__getitem__)
        logger.debug(f"_evict_lru: evicting {oldest!r}")
        self.delete(oldest)

    def prune_expired(self, now: Optional[float] = None) -> int:
        """Drop expired records, and hostnames left without any. Returns records removed."""
        if now is None:
            now = self._clock()

        pruned = 0
        for hostname in list(self._cache):
            records = self._cache[hostname]
            live = [record for record in records if record.is_live(now)]
            pruned += len(records) - len(live)
            if live:
                self._cache[hostname] = live
            else:
                self.delete(hostname)

        return pruned


def create_memory_store(
    max_entries: int = 1000,
    clock: Callable[[], float] = time.time,
) -> MemoryAddressStore:
    """Create a memory store instance"""
    return MemoryAddressStore(max_entries, clock)
