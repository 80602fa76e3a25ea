"""
Caching hostname lookup with hosts file overrides, per-family TTLs and request coalescing.
"""
from .types import (
    IPV4,
    IPV6,
    Family,
    AddressFamily,
    AddressRecord,
    AddressInfo,
    UpstreamAnswer,
    LookupConfig,
    LookupStats,
    LookupEvent,
    LookupEventListener,
    UpstreamResolver,
    AddressStore,
)
from .errors import (
    ENODATA,
    ENOTFOUND,
    ETIMEOUT,
    ESERVFAIL,
    EUPSTREAM,
    CacheLookupError,
    UpstreamFamilyError,
    NoDataError,
    NoMatchingFamilyError,
    is_no_data,
)
from .config import (
    MIN_TTL_SECONDS,
    default_hosts_file,
    merge_config,
    load_config_from_env,
    ip_family,
    record_expiry,
)
from .throttle import ThrottleCoordinator, ThrottleTask, ThrottleOutcome
from .hosts import HostsTable, parse_hosts, load_hosts_file
from .stores import MemoryAddressStore, create_memory_store
from .upstream import DnsPythonUpstream
from .context import LookupContext
from .resolver import LookupResolver, LookupResult, create_lookup_resolver, shape_result
from .api import (
    LookupOptions,
    parse_lookup_options,
    lookup,
    lookup_callback,
    get_default_resolver,
    set_default_resolver,
    shutdown_default_resolver,
)


__all__ = [
    # Types
    "IPV4",
    "IPV6",
    "Family",
    "AddressFamily",
    "AddressRecord",
    "AddressInfo",
    "UpstreamAnswer",
    "LookupConfig",
    "LookupStats",
    "LookupEvent",
    "LookupEventListener",
    "UpstreamResolver",
    "AddressStore",
    # Errors
    "ENODATA",
    "ENOTFOUND",
    "ETIMEOUT",
    "ESERVFAIL",
    "EUPSTREAM",
    "CacheLookupError",
    "UpstreamFamilyError",
    "NoDataError",
    "NoMatchingFamilyError",
    "is_no_data",
    # Config
    "MIN_TTL_SECONDS",
    "default_hosts_file",
    "merge_config",
    "load_config_from_env",
    "ip_family",
    "record_expiry",
    # Throttle
    "ThrottleCoordinator",
    "ThrottleTask",
    "ThrottleOutcome",
    # Hosts
    "HostsTable",
    "parse_hosts",
    "load_hosts_file",
    # Stores
    "MemoryAddressStore",
    "create_memory_store",
    # Upstream
    "DnsPythonUpstream",
    # Resolver
    "LookupContext",
    "LookupResolver",
    "LookupResult",
    "create_lookup_resolver",
    "shape_result",
    # Module-level API
    "LookupOptions",
    "parse_lookup_options",
    "lookup",
    "lookup_callback",
    "get_default_resolver",
    "set_default_resolver",
    "shutdown_default_resolver",
]


__version__ = "1.0.0"
