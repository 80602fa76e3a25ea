"""
Module-level lookup functions backed by a default context.

`lookup()` is the awaited form; `lookup_callback()` delivers the same
outcome to a `callback(error, result, family)`.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Union

from .config import load_config_from_env
from .context import LookupContext
from .resolver import LookupResolver, LookupResult
from .types import Family

logger = logging.getLogger("cache_lookup.api")

LookupCallback = Callable[[Optional[BaseException], Any, Optional[int]], None]

_default_resolver: Optional[LookupResolver] = None


@dataclass
class LookupOptions:
    """Options for one lookup"""

    family: Family = 0
    """4 or 6 to restrict the address family, 0 for any"""

    all: bool = False
    """Return every matching address instead of the first one"""


def parse_lookup_options(
    options: Union[None, int, LookupOptions, Mapping[str, Any]] = None,
) -> LookupOptions:
    """Normalize a family number, an options mapping or LookupOptions"""
    if options is None:
        return LookupOptions()
    if isinstance(options, LookupOptions):
        return options
    if isinstance(options, bool):
        raise TypeError("Lookup options must be a family number or a mapping")
    if isinstance(options, int):
        return LookupOptions(family=options or 0)  # type: ignore[arg-type]
    if isinstance(options, Mapping):
        return LookupOptions(
            family=options.get("family") or 0,
            all=bool(options.get("all", False)),
        )
    raise TypeError(f"Unsupported lookup options: {options!r}")


def get_default_resolver() -> LookupResolver:
    """
    Get the default resolver, creating it from the environment on first use.

    When called from a running event loop, the periodic jobs of the default
    context are started as well.
    """
    global _default_resolver
    if _default_resolver is None:
        _default_resolver = LookupResolver(LookupContext(load_config_from_env()))
        logger.debug("get_default_resolver: created default lookup context")

    context = _default_resolver.context
    if not context.running:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            context.start()
    return _default_resolver


def set_default_resolver(resolver: Optional[LookupResolver]) -> None:
    """Replace the default resolver (None resets it)"""
    global _default_resolver
    _default_resolver = resolver


async def shutdown_default_resolver() -> None:
    """Stop and discard the default resolver"""
    global _default_resolver
    resolver, _default_resolver = _default_resolver, None
    if resolver is not None:
        await resolver.close()
        await resolver.context.close()


async def lookup(
    hostname: str,
    options: Union[None, int, LookupOptions, Mapping[str, Any]] = None,
    *,
    resolver: Optional[LookupResolver] = None,
) -> LookupResult:
    """
    Look up the address(es) of a hostname.

    Example:
        address = await lookup("example.com")
        address = await lookup("example.com", 6)
        addresses = await lookup("example.com", {"family": 4, "all": True})
    """
    opts = parse_lookup_options(options)
    resolver = resolver or get_default_resolver()
    return await resolver.resolve(hostname, opts.family, opts.all)


def lookup_callback(
    hostname: str,
    callback: LookupCallback,
    options: Union[None, int, LookupOptions, Mapping[str, Any]] = None,
    *,
    resolver: Optional[LookupResolver] = None,
) -> asyncio.Task:
    """
    Look up a hostname and deliver the outcome to `callback`.

    The callback receives `(error, address, family)`; with `all` it receives
    `(error, addresses, None)`. Must be called from a running event loop.
    """
    opts = parse_lookup_options(options)
    resolver = resolver or get_default_resolver()

    async def deliver() -> None:
        try:
            result = await resolver.resolve(hostname, opts.family, opts.all)
        except Exception as e:
            callback(e, None, None)
            return

        if opts.all:
            callback(None, result, None)
        else:
            callback(None, result, _family_of(result, opts.family))

    return asyncio.get_running_loop().create_task(deliver())


def _family_of(address: str, requested: Family) -> int:
    if requested:
        return requested
    return 6 if ":" in address else 4
