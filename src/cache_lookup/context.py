"""
Lookup context: owner of the shared lookup state.

One context holds the resolution cache, the hosts table, the throttle
coordinator and the periodic hosts refresh. Lookups keep the hosts table
and the throttle registry current on their own; `start()` (or using the
context as an async context manager) adds the periodic jobs, and `stop()`
ends them.
"""
import asyncio
import logging
import time
from typing import Callable, Optional

from .config import merge_config
from .hosts import HostsTable, load_hosts_file
from .stores.memory import MemoryAddressStore
from .throttle import ThrottleCoordinator
from .types import AddressStore, LookupConfig, UpstreamResolver
from .upstream import DnsPythonUpstream

logger = logging.getLogger("cache_lookup.context")

HOSTS_KEY = "lookup:hosts"


class LookupContext:
    """
    Shared state for lookups.

    Example:
        async with LookupContext(LookupConfig(hosts_file="/etc/hosts")) as context:
            resolver = LookupResolver(context)
            address = await resolver.resolve("example.com")
    """

    def __init__(
        self,
        config: Optional[LookupConfig] = None,
        *,
        upstream: Optional[UpstreamResolver] = None,
        store: Optional[AddressStore] = None,
        coordinator: Optional[ThrottleCoordinator] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = merge_config(config)
        self.clock = clock
        self.upstream = upstream or DnsPythonUpstream(
            nameservers=self.config.nameservers,
            timeout_seconds=self.config.query_timeout_seconds,
        )
        self.store = store or MemoryAddressStore(self.config.max_entries, clock)
        self.coordinator = coordinator or ThrottleCoordinator(
            gc_interval_seconds=self.config.gc_interval_seconds,
        )
        self.hosts: Optional[HostsTable] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self._hosts_listeners: set[Callable[[HostsTable], None]] = set()

    async def _load_hosts(self) -> HostsTable:
        return await load_hosts_file(
            self.config.hosts_file,
            min_ttl_seconds=self.config.min_ttl_seconds,
            now=self.clock(),
        )

    async def refresh_hosts(self) -> HostsTable:
        """
        Reload the hosts table.

        Reloads are throttled to one per `min_ttl_seconds`; calls within
        that window share the last load.
        """
        table = await self.coordinator.run(
            HOSTS_KEY,
            self.config.min_ttl_seconds,
            self._load_hosts,
        )
        if table is not self.hosts:
            self.hosts = table
            for listener in list(self._hosts_listeners):
                listener(table)
        return table

    async def ensure_hosts(self) -> HostsTable:
        """
        Get a current hosts table.

        Goes through the throttled refresh, so a table older than
        `min_ttl_seconds` is reloaded even when the periodic refresh is not
        running.
        """
        return await self.refresh_hosts()

    def on_hosts_reload(self, listener: Callable[[HostsTable], None]) -> Callable[[], None]:
        """Subscribe to hosts table reloads"""
        self._hosts_listeners.add(listener)
        return lambda: self._hosts_listeners.discard(listener)

    async def _refresh_loop(self) -> None:
        interval = self.config.hosts_refresh_seconds
        while True:
            await asyncio.sleep(interval)
            try:
                await self.refresh_hosts()
            except Exception as e:
                logger.warning(f"Hosts refresh from {self.config.hosts_file} failed: {e!r}")

    @property
    def running(self) -> bool:
        return self._refresh_task is not None

    def start(self) -> None:
        """Start the periodic hosts refresh and the throttle task sweep"""
        if self._refresh_task is not None:
            return
        loop = asyncio.get_running_loop()
        self._refresh_task = loop.create_task(self._refresh_loop())
        self.coordinator.start()
        logger.debug(
            f"start: refreshing {self.config.hosts_file} "
            f"every {self.config.hosts_refresh_seconds}s"
        )

    async def stop(self) -> None:
        """Stop the periodic jobs. Cached state is kept."""
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            try:
                await self._refresh_task
            except asyncio.CancelledError:
                pass
            self._refresh_task = None
        await self.coordinator.stop()

    async def close(self) -> None:
        """Stop the periodic jobs and release all state"""
        await self.stop()
        self.store.clear()
        self.coordinator.clear()
        self.hosts = None
        self._hosts_listeners.clear()
        await self.upstream.close()

    async def __aenter__(self) -> "LookupContext":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
