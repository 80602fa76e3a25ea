"""
Configuration utilities for cache_lookup
"""
import ipaddress
import logging
import os
import sys
from dataclasses import replace
from typing import Callable, Mapping, Optional, TypeVar

from .types import AddressFamily, LookupConfig

logger = logging.getLogger("cache_lookup.config")

T = TypeVar("T")

MIN_TTL_SECONDS = 10.0

# Extra idle time granted to a throttle task before the sweep may drop it
GC_GRACE_SECONDS = 0.005

WINDOWS_HOSTS_FILE = "c:\\Windows\\System32\\Drivers\\etc\\hosts"
POSIX_HOSTS_FILE = "/etc/hosts"

ENV_PREFIX = "CACHE_LOOKUP_"


def default_hosts_file(platform: Optional[str] = None) -> str:
    """Get the well-known hosts file location for a platform"""
    platform = platform or sys.platform
    if platform == "win32":
        return WINDOWS_HOSTS_FILE
    return POSIX_HOSTS_FILE


def merge_config(config: Optional[LookupConfig] = None) -> LookupConfig:
    """Merge user config with defaults"""
    config = replace(config) if config else LookupConfig()

    if config.min_ttl_seconds <= 0:
        raise ValueError("min_ttl_seconds must be greater than 0")
    if config.default_ttl_seconds is None:
        config.default_ttl_seconds = config.min_ttl_seconds
    if config.hosts_refresh_seconds is None:
        config.hosts_refresh_seconds = config.min_ttl_seconds
    if not config.hosts_file:
        config.hosts_file = default_hosts_file()
    return config


def _parse_env(
    env: Mapping[str, str],
    name: str,
    parse: Callable[[str], T],
) -> Optional[T]:
    raw = env.get(f"{ENV_PREFIX}{name}")
    if raw is None or raw.strip() == "":
        return None
    try:
        return parse(raw.strip())
    except ValueError:
        logger.warning(f"Ignoring invalid {ENV_PREFIX}{name}={raw!r}")
        return None


def _parse_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_config_from_env(env: Optional[Mapping[str, str]] = None) -> LookupConfig:
    """
    Build a config from CACHE_LOOKUP_* environment variables.

    Unset or unparsable variables keep their defaults.
    """
    if env is None:
        env = os.environ

    config = LookupConfig()
    overrides = {
        "min_ttl_seconds": _parse_env(env, "MIN_TTL_SECONDS", float),
        "default_ttl_seconds": _parse_env(env, "DEFAULT_TTL_SECONDS", float),
        "hosts_file": _parse_env(env, "HOSTS_FILE", str),
        "hosts_refresh_seconds": _parse_env(env, "HOSTS_REFRESH_SECONDS", float),
        "gc_interval_seconds": _parse_env(env, "GC_INTERVAL_SECONDS", float),
        "max_entries": _parse_env(env, "MAX_ENTRIES", int),
        "nameservers": _parse_env(env, "NAMESERVERS", _parse_list),
        "query_timeout_seconds": _parse_env(env, "QUERY_TIMEOUT_SECONDS", float),
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(config, key, value)

    logger.debug(f"load_config_from_env: {config!r}")
    return config


def ip_family(value: str) -> Optional[AddressFamily]:
    """Get the family of an IP literal, or None if `value` is not one"""
    try:
        return ipaddress.ip_address(value).version  # type: ignore[return-value]
    except ValueError:
        return None


def record_expiry(ttl_seconds: float, min_ttl_seconds: float, now: float) -> float:
    """Calculate the expiration of an upstream record, honouring the TTL floor"""
    return now + max(ttl_seconds, min_ttl_seconds)


def idle_threshold(interval: float, gc_interval: float) -> float:
    """Idle time after which a throttle task may be collected"""
    return max(interval + GC_GRACE_SECONDS, gc_interval)
