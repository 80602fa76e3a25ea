"""
Cached lookup transport wrapper for httpx
"""
import fnmatch
import logging
from typing import Any, Optional

import httpx

from cache_lookup import ip_family

logger = logging.getLogger("fetch_compose_cache_lookup.transport")


def host_selected(
    host: str,
    include: Optional[list[str]] = None,
    exclude: Optional[list[str]] = None,
) -> bool:
    """
    Check a hostname against include and exclude patterns.

    Patterns are exact names or `fnmatch` globs; `*.example.com` also
    selects `example.com` itself. Exclusion wins. Without include patterns
    every host not excluded is selected.
    """
    host = host.lower()

    def matches(pattern: str) -> bool:
        pattern = pattern.lower()
        if pattern.startswith("*.") and host == pattern[2:]:
            return True
        return fnmatch.fnmatchcase(host, pattern)

    if exclude and any(matches(p) for p in exclude):
        return False
    return not include or any(matches(p) for p in include)


class LookupTransport(httpx.AsyncBaseTransport):
    """
    Address-resolving transport wrapper for httpx.

    Wraps another transport and, once a lookup function is present in
    `connection_options["lookup"]`, sends each request to the resolved
    address. The original hostname stays in the `Host` header and is used
    as the TLS server name.

    Example:
        transport = install(LookupTransport(httpx.AsyncHTTPTransport()))
        client = httpx.AsyncClient(transport=transport)
    """

    def __init__(
        self,
        inner: httpx.AsyncBaseTransport,
        *,
        connection_options: Optional[dict[str, Any]] = None,
        methods: Optional[list[str]] = None,
        hosts: Optional[list[str]] = None,
        exclude_hosts: Optional[list[str]] = None,
    ) -> None:
        """
        Create a new LookupTransport.

        Args:
            inner: The wrapped transport to delegate requests to
            connection_options: Initial options; "lookup" holds the lookup
                function and "family" the preferred address family
            methods: HTTP methods to resolve for. Default: all
            hosts: Host patterns to resolve for. Default: all
            exclude_hosts: Host patterns to leave alone
        """
        self._inner = inner
        self.connection_options: dict[str, Any] = dict(connection_options or {})
        self._methods = [m.upper() for m in methods] if methods else None
        self._hosts = hosts
        self._exclude_hosts = exclude_hosts

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Handle an async HTTP request, connecting to the resolved address"""
        lookup = self.connection_options.get("lookup")
        host = request.url.host

        if (
            lookup is None
            or not host
            or ip_family(host) is not None
            or (self._methods and request.method not in self._methods)
            or not host_selected(host, self._hosts, self._exclude_hosts)
        ):
            return await self._inner.handle_async_request(request)

        address = await lookup(host, self.connection_options.get("family"))
        logger.debug(f"handle_async_request: {host} -> {address}")

        resolved_url = request.url.copy_with(
            host=f"[{address}]" if ":" in address else address,
        )

        # Keep the original hostname for virtual hosting and TLS
        headers = httpx.Headers(request.headers)
        if "host" not in headers:
            headers["host"] = request.url.netloc.decode("ascii")

        extensions = dict(request.extensions)
        if request.url.scheme == "https":
            extensions.setdefault("sni_hostname", host)

        modified_request = httpx.Request(
            method=request.method,
            url=resolved_url,
            headers=headers,
            stream=request.stream,
            extensions=extensions,
        )
        return await self._inner.handle_async_request(modified_request)

    async def aclose(self) -> None:
        """Close the transport"""
        await self._inner.aclose()
