"""
Installing cached lookups into connection-establishing objects.

Two shapes can be instrumented:

- connection creators exposing an async `connect_tcp(host, port, ...)`, such
  as an httpcore network backend. The host is resolved through the cache
  before the original `connect_tcp` runs.
- connection options holders exposing a mutable `connection_options`
  mapping, such as `LookupTransport`. A `"lookup"` function is added unless
  one is already present.
"""
import inspect
import logging
import weakref
from typing import Any, Awaitable, Callable, MutableMapping, Optional, Protocol, runtime_checkable

from cache_lookup import Family, LookupResolver, get_default_resolver

logger = logging.getLogger("fetch_compose_cache_lookup.hook")

LookupFunction = Callable[[str, Optional[int]], Awaitable[str]]


@runtime_checkable
class SupportsConnectionCreator(Protocol):
    """Creates TCP connections from a host and port"""

    async def connect_tcp(self, host: str, port: int, **kwargs: Any) -> Any:
        ...


@runtime_checkable
class SupportsConnectionOptions(Protocol):
    """Holds connection options consulted when connecting"""

    connection_options: MutableMapping[str, Any]


class HookInstallError(TypeError):
    """The target exposes neither supported capability"""

    code = "EHOOKINSTALL"


class LookupHookInstaller:
    """
    Installs cached lookups, at most once per target object.

    Instrumented targets are tracked by identity in a weak registry, so the
    targets themselves carry no extra markers.

    Example:
        installer = LookupHookInstaller(resolver)
        transport = installer.install(LookupTransport(httpx.AsyncHTTPTransport()))
    """

    def __init__(self, resolver: Optional[LookupResolver] = None) -> None:
        self._resolver = resolver
        self._instrumented: "weakref.WeakValueDictionary[int, Any]" = weakref.WeakValueDictionary()

    @property
    def resolver(self) -> LookupResolver:
        return self._resolver or get_default_resolver()

    def make_lookup(self, family: Family = 0) -> LookupFunction:
        """Create a lookup function resolving through this installer's resolver"""

        async def lookup(hostname: str, requested: Optional[int] = None) -> str:
            return await self.resolver.resolve(
                hostname,
                family if requested is None else requested,  # type: ignore[arg-type]
            )

        return lookup

    def is_installed(self, target: Any) -> bool:
        return self._instrumented.get(id(target)) is target

    def install(self, target: Any, family: Family = 0) -> Any:
        """
        Instrument `target` so connections resolve hostnames through the cache.

        `family` is the default address family when a connection does not
        ask for one. Installing twice on the same object is a no-op.

        Raises:
            HookInstallError: `target` supports neither capability
        """
        if self.is_installed(target):
            logger.debug(f"install: {type(target).__name__} already instrumented")
            return target

        try:
            weakref.ref(target)
        except TypeError as e:
            raise HookInstallError(
                f"Cannot track {type(target).__name__}: not weak-referenceable"
            ) from e

        if isinstance(target, SupportsConnectionCreator):
            self._wrap_connection_creator(target, family)
        elif isinstance(target, SupportsConnectionOptions):
            if "lookup" not in target.connection_options:
                target.connection_options["lookup"] = self.make_lookup(family)
        else:
            raise HookInstallError(
                f"Cannot install lookup function on {type(target).__name__}"
            )

        self._instrumented[id(target)] = target

        logger.debug(f"install: instrumented {type(target).__name__} (family={family})")
        return target

    def _wrap_connection_creator(self, target: Any, family: Family) -> None:
        original = target.connect_tcp
        if not inspect.iscoroutinefunction(original):
            raise HookInstallError(
                f"{type(target).__name__}.connect_tcp must be a coroutine function"
            )

        lookup = self.make_lookup(family)

        async def connect_tcp(host: str, port: int, **kwargs: Any) -> Any:
            address = await lookup(host, None)
            logger.debug(f"connect_tcp: {host} -> {address}")
            return await original(address, port, **kwargs)

        target.connect_tcp = connect_tcp


_default_installer = LookupHookInstaller()


def get_default_installer() -> LookupHookInstaller:
    return _default_installer


def install(
    target: Any,
    family: Family = 0,
    *,
    installer: Optional[LookupHookInstaller] = None,
) -> Any:
    """Instrument `target` with the default installer (see LookupHookInstaller.install)"""
    return (installer or _default_installer).install(target, family)
