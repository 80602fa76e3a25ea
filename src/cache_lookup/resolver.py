"""
Lookup Resolver - Main implementation
"""
import logging
from typing import Callable, Optional, Union

from .config import ip_family, record_expiry
from .context import LookupContext
from .errors import NoDataError, NoMatchingFamilyError, is_no_data
from .types import (
    IPV4,
    IPV6,
    AddressFamily,
    AddressInfo,
    AddressRecord,
    Family,
    LookupEvent,
    LookupEventListener,
    LookupStats,
)

logger = logging.getLogger("cache_lookup.resolver")

LookupResult = Union[str, list[AddressInfo]]


def ipv4_mapped(address: str) -> str:
    """Get the IPv4-mapped IPv6 form of an IPv4 literal"""
    return f"::ffff:{address}"


def shape_result(
    hostname: str,
    records: list[AddressRecord],
    family: Family,
    all: bool,
) -> LookupResult:
    """
    Shape merged records into what the caller asked for.

    With `all`, every record of the requested family (or every record when
    family is 0). Otherwise the address of the first matching record.
    """
    infos = [AddressInfo(address=r.address, family=r.family) for r in records]

    if all:
        if family:
            return [info for info in infos if info.family == family]
        return infos

    if family:
        match = next((info for info in infos if info.family == family), None)
        if match is None:
            raise NoMatchingFamilyError(hostname, family, len(infos))
        return match.address

    if not infos:
        raise NoDataError(hostname)
    return infos[0].address


class LookupResolver:
    """
    Lookup Resolver

    Resolves hostnames to addresses with:
    - Per-record expiration honouring the upstream TTL (with a floor)
    - Hosts file overrides merged ahead of upstream answers
    - One upstream fetch per identical lookup and TTL window
    - IPv4-mapped IPv6 answers for names without AAAA records
    - Event emission for observability

    Example:
        context = LookupContext(LookupConfig(min_ttl_seconds=10.0))
        resolver = LookupResolver(context)

        address = await resolver.resolve("example.com")
        addresses = await resolver.resolve("example.com", 6, all=True)
    """

    def __init__(self, context: Optional[LookupContext] = None) -> None:
        self._context = context or LookupContext()
        self._listeners: set[LookupEventListener] = set()
        self._unsubscribe_hosts = self._context.on_hosts_reload(self._on_hosts_reload)

        # Statistics
        self._cache_hits = 0
        self._cache_misses = 0
        self._fetches = 0
        self._upstream_queries = 0
        self._upstream_errors = 0
        self._synthesized = 0

    @property
    def context(self) -> LookupContext:
        return self._context

    async def resolve(
        self,
        hostname: str,
        family: Family = 0,
        all: bool = False,
    ) -> LookupResult:
        """
        Resolve a hostname, using cache when available

        Args:
            hostname: The hostname or IP literal to resolve
            family: 4 or 6 to restrict the address family, 0 for any
            all: Return every matching address instead of the first one

        Returns:
            One address string, or a list of AddressInfo when `all` is set
        """
        if family not in (0, IPV4, IPV6):
            raise ValueError(f"Invalid address family: {family!r}")

        literal_family = ip_family(hostname)
        if literal_family:
            if all:
                return [AddressInfo(address=hostname, family=literal_family)]
            return hostname

        records = self._context.store.read(hostname, family or None)

        if records:
            self._cache_hits += 1
            self._emit(LookupEvent(
                type="cache:hit",
                data={"hostname": hostname, "family": family, "records": len(records)},
            ))
        else:
            self._cache_misses += 1
            self._emit(LookupEvent(
                type="cache:miss",
                data={"hostname": hostname, "family": family},
            ))
            records = await self._context.coordinator.run(
                ("lookup", hostname, family, all),
                self._context.config.default_ttl_seconds,
                lambda: self._fetch(hostname, family),
            )

        return shape_result(hostname, records, family, all)

    async def resolve_one(self, hostname: str, family: Family = 0) -> str:
        """Resolve a hostname to a single address"""
        return await self.resolve(hostname, family)  # type: ignore[return-value]

    async def resolve_all(self, hostname: str, family: Family = 0) -> list[AddressInfo]:
        """Resolve a hostname to every known address"""
        return await self.resolve(hostname, family, all=True)  # type: ignore[return-value]

    async def _query(self, hostname: str, family: AddressFamily) -> list[AddressRecord]:
        """Query one family upstream and cache the answer"""
        self._upstream_queries += 1
        answers = await self._context.upstream.query(hostname, family)

        now = self._context.clock()
        min_ttl = self._context.config.min_ttl_seconds
        records = [
            AddressRecord(
                address=answer.address,
                family=family,
                expires_at=record_expiry(answer.ttl, min_ttl, now),
            )
            for answer in answers
        ]
        self._context.store.replace_family(hostname, family, records)
        return records

    async def _fetch(self, hostname: str, family: Family) -> list[AddressRecord]:
        """Build the merged record list for a cache miss"""
        self._fetches += 1
        self._emit(LookupEvent(type="fetch:start", data={"hostname": hostname, "family": family}))

        hosts = await self._context.ensure_hosts()
        result: list[AddressRecord] = list(hosts.get(hostname, []))

        error4: Optional[Exception] = None
        error6: Optional[Exception] = None
        v4_attempted = False

        async def update_v4() -> None:
            nonlocal error4, v4_attempted
            v4_attempted = True
            try:
                result.extend(await self._query(hostname, IPV4))
            except Exception as e:
                error4 = e
                self._upstream_failed(hostname, IPV4, e)

        if family in (0, IPV4):
            await update_v4()

        if family in (0, IPV6):
            try:
                result.extend(await self._query(hostname, IPV6))
            except Exception as e:
                self._upstream_failed(hostname, IPV6, e)
                error6 = e
                if family == IPV6 and is_no_data(e, IPV6):
                    if not v4_attempted:
                        await update_v4()
                    mapped = self._synthesize_ipv6(hostname, result)
                    if mapped:
                        result.extend(mapped)
                        error6 = None

        if family == 0 and error4 is not None and error6 is not None:
            error: Exception = NoDataError(hostname)
        elif family == IPV4 and error4 is not None:
            error = error4
        elif family == IPV6 and error6 is not None:
            error = error6
        else:
            self._emit(LookupEvent(
                type="fetch:success",
                data={"hostname": hostname, "family": family, "records": len(result)},
            ))
            return result

        self._emit(LookupEvent(
            type="fetch:error",
            data={"hostname": hostname, "family": family, "error": str(error)},
        ))
        raise error

    def _synthesize_ipv6(
        self,
        hostname: str,
        result: list[AddressRecord],
    ) -> list[AddressRecord]:
        """
        Map the known IPv4 records of `hostname` to IPv4-mapped IPv6 records.

        Known records are this fetch's IPv4 results (hosts entries included)
        followed by live cached ones. The mapped records keep the expiration
        of their source and replace the cached IPv6 records.
        """
        seen: set[str] = set()
        mapped: list[AddressRecord] = []

        for record in result + self._context.store.read(hostname, IPV4):
            if record.family != IPV4 or record.address in seen:
                continue
            seen.add(record.address)
            mapped.append(AddressRecord(
                address=ipv4_mapped(record.address),
                family=IPV6,
                expires_at=record.expires_at,
            ))

        if not mapped:
            logger.debug(f"_synthesize_ipv6: no IPv4 records known for {hostname}")
            return []

        self._context.store.replace_family(hostname, IPV6, mapped)
        self._synthesized += len(mapped)
        self._emit(LookupEvent(
            type="synthesize:ipv6",
            data={"hostname": hostname, "records": len(mapped)},
        ))
        return mapped

    def _upstream_failed(self, hostname: str, family: AddressFamily, error: Exception) -> None:
        self._upstream_errors += 1
        logger.debug(f"_fetch: IPv{family} query for {hostname} failed: {error!r}")
        self._emit(LookupEvent(
            type="upstream:error",
            data={"hostname": hostname, "family": family, "error": str(error)},
        ))

    def _on_hosts_reload(self, table: dict) -> None:
        self._emit(LookupEvent(type="hosts:reload", data={"hostnames": len(table)}))

    def get_stats(self) -> LookupStats:
        """Get lookup statistics"""
        total_requests = self._cache_hits + self._cache_misses
        return LookupStats(
            cache_hits=self._cache_hits,
            cache_misses=self._cache_misses,
            hit_ratio=self._cache_hits / total_requests if total_requests > 0 else 0,
            fetches=self._fetches,
            upstream_queries=self._upstream_queries,
            upstream_errors=self._upstream_errors,
            synthesized=self._synthesized,
            cached_hostnames=self._context.store.size(),
            throttle_tasks=self._context.coordinator.size(),
        )

    def on(self, listener: LookupEventListener) -> Callable[[], None]:
        """Subscribe to events"""
        self._listeners.add(listener)
        return lambda: self._listeners.discard(listener)

    def off(self, listener: LookupEventListener) -> None:
        """Unsubscribe from events"""
        self._listeners.discard(listener)

    def _emit(self, event: LookupEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # Ignore listener errors
                pass

    async def close(self) -> None:
        """Detach from the context and drop listeners"""
        self._unsubscribe_hosts()
        self._listeners.clear()


def create_lookup_resolver(
    context: Optional[LookupContext] = None,
) -> LookupResolver:
    """Factory function to create a lookup resolver"""
    return LookupResolver(context)
