"""
Factory functions for cached lookup transports
"""
from typing import Any, Callable, Optional

import httpx

from cache_lookup import Family
from .hook import HookInstallError, LookupHookInstaller, install
from .transport import LookupTransport


def compose_transport(
    base: httpx.AsyncBaseTransport,
    *wrappers: Callable[[httpx.AsyncBaseTransport], httpx.AsyncBaseTransport],
) -> httpx.AsyncBaseTransport:
    """
    Compose multiple transport wrappers.

    Example:
        base = httpx.AsyncHTTPTransport()
        transport = compose_transport(
            base,
            lambda inner: create_lookup_transport(inner, family=4),
            lambda inner: RateLimitTransport(inner, max_per_second=10),
        )
        client = httpx.AsyncClient(transport=transport)
    """
    transport = base
    for wrapper in wrappers:
        transport = wrapper(transport)
    return transport


def create_lookup_transport(
    inner: httpx.AsyncBaseTransport,
    *,
    family: Family = 0,
    installer: Optional[LookupHookInstaller] = None,
    **transport_kwargs: Any,
) -> LookupTransport:
    """
    Wrap a transport so requests go to addresses from the lookup cache.

    Example:
        transport = create_lookup_transport(httpx.AsyncHTTPTransport(), family=4)
    """
    transport = LookupTransport(inner, **transport_kwargs)
    return install(transport, family, installer=installer)


def install_on_http_transport(
    transport: httpx.AsyncHTTPTransport,
    family: Family = 0,
    *,
    installer: Optional[LookupHookInstaller] = None,
) -> httpx.AsyncHTTPTransport:
    """
    Instrument the network backend of an httpx connection pool.

    Connections then resolve their host through the lookup cache, while TLS
    still verifies the original hostname.

    Raises:
        HookInstallError: the transport has no httpcore network backend
    """
    # httpx 0.26-0.28 keep the httpcore 1.x pool in `_pool`, and the pool
    # keeps its backend in `_network_backend`.
    backend = getattr(getattr(transport, "_pool", None), "_network_backend", None)
    if backend is None:
        raise HookInstallError(
            f"Cannot find the network backend of {type(transport).__name__}"
        )
    install(backend, family, installer=installer)
    return transport


def create_lookup_client(
    *,
    family: Family = 0,
    installer: Optional[LookupHookInstaller] = None,
    base_url: Optional[str] = None,
    proxy: Optional[str] = None,
    **client_kwargs: Any,
) -> httpx.AsyncClient:
    """
    Create an async client resolving hostnames through the lookup cache.

    Example:
        client = create_lookup_client(family=4)
        response = await client.get("https://api.example.com/data")
    """
    transport = install_on_http_transport(
        httpx.AsyncHTTPTransport(proxy=proxy),
        family,
        installer=installer,
    )
    if base_url is not None:
        client_kwargs["base_url"] = base_url
    return httpx.AsyncClient(transport=transport, **client_kwargs)
