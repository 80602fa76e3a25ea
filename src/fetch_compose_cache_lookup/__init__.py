"""
Cached hostname lookups for httpx transports.
"""
from cache_lookup import (
    AddressInfo,
    Family,
    LookupConfig,
    LookupContext,
    LookupResolver,
)
from .hook import (
    HookInstallError,
    LookupFunction,
    LookupHookInstaller,
    SupportsConnectionCreator,
    SupportsConnectionOptions,
    get_default_installer,
    install,
)
from .transport import LookupTransport, host_selected
from .factory import (
    compose_transport,
    create_lookup_transport,
    install_on_http_transport,
    create_lookup_client,
)


__all__ = [
    # Re-exported types from base package
    "AddressInfo",
    "Family",
    "LookupConfig",
    "LookupContext",
    "LookupResolver",
    # Hook
    "HookInstallError",
    "LookupFunction",
    "LookupHookInstaller",
    "SupportsConnectionCreator",
    "SupportsConnectionOptions",
    "get_default_installer",
    "install",
    # Transport wrapper
    "LookupTransport",
    "host_selected",
    # Factory functions
    "compose_transport",
    "create_lookup_transport",
    "install_on_http_transport",
    "create_lookup_client",
]

__version__ = "1.0.0"
