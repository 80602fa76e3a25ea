"""
Type definitions for cache_lookup
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Optional


# Address family selector. 0 means "any family".
Family = Literal[0, 4, 6]

# Concrete address kind of a record.
AddressFamily = Literal[4, 6]

IPV4: AddressFamily = 4
IPV6: AddressFamily = 6


@dataclass(frozen=True)
class AddressRecord:
    """A cached address record"""

    address: str
    """IPv4 or IPv6 literal"""

    family: AddressFamily
    """Address kind of `address`"""

    expires_at: float
    """When this record expires (Unix timestamp)"""

    def is_live(self, now: float) -> bool:
        return now < self.expires_at


@dataclass(frozen=True)
class AddressInfo:
    """A resolved address as handed back to callers"""

    address: str
    family: AddressFamily


@dataclass(frozen=True)
class UpstreamAnswer:
    """One record returned by an upstream query"""

    address: str
    """The resolved address"""

    ttl: float
    """Authoritative TTL in seconds"""


@dataclass
class LookupConfig:
    """Configuration for the lookup context"""

    min_ttl_seconds: float = 10.0
    """Minimum lifetime of any cached record. Default: 10.0"""

    default_ttl_seconds: Optional[float] = None
    """Throttle interval for identical lookups. Default: min_ttl_seconds"""

    hosts_file: Optional[str] = None
    """Hosts file path. Default: platform hosts file"""

    hosts_refresh_seconds: Optional[float] = None
    """Interval of the periodic hosts reload. Default: min_ttl_seconds"""

    gc_interval_seconds: float = 30.0
    """Interval of the idle throttle task sweep. Default: 30.0"""

    max_entries: int = 1000
    """Maximum number of cached hostnames. Default: 1000"""

    nameservers: Optional[list[str]] = None
    """Upstream nameservers. Default: system configuration"""

    query_timeout_seconds: float = 5.0
    """Lifetime of one upstream query (seconds). Default: 5.0"""


@dataclass
class LookupStats:
    """Statistics from the lookup resolver"""

    cache_hits: int
    cache_misses: int
    hit_ratio: float
    fetches: int
    upstream_queries: int
    upstream_errors: int
    synthesized: int
    cached_hostnames: int
    throttle_tasks: int


# Event types
EventType = Literal[
    "cache:hit",
    "cache:miss",
    "fetch:start",
    "fetch:success",
    "fetch:error",
    "upstream:error",
    "synthesize:ipv6",
    "hosts:reload",
]


@dataclass
class LookupEvent:
    """Event emitted by the lookup resolver"""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)


LookupEventListener = Callable[[LookupEvent], None]


class UpstreamResolver(ABC):
    """Name-resolution transport performing A/AAAA queries"""

    @abstractmethod
    async def query(self, hostname: str, family: AddressFamily) -> list[UpstreamAnswer]:
        """
        Query the records of one address family.

        Raises an exception when the query fails; the "no such record"
        case must be distinguishable (see errors.is_no_data).
        """
        pass

    async def close(self) -> None:
        """Release transport resources"""
        pass


class AddressStore(ABC):
    """Resolution cache interface"""

    @abstractmethod
    def get(self, hostname: str) -> Optional[list[AddressRecord]]:
        """Get the raw record list, or None if the hostname was never cached"""
        pass

    @abstractmethod
    def read(
        self,
        hostname: str,
        family: Optional[AddressFamily] = None,
        now: Optional[float] = None,
    ) -> list[AddressRecord]:
        """Get live records, optionally of one family"""
        pass

    @abstractmethod
    def replace_family(
        self,
        hostname: str,
        family: AddressFamily,
        records: list[AddressRecord],
    ) -> None:
        """Swap out the records of one family, keeping the others"""
        pass

    @abstractmethod
    def delete(self, hostname: str) -> bool:
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        pass

    @abstractmethod
    def size(self) -> int:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass
