"""
Hosts file loading.

The hosts table is a static hostname -> addresses override, rebuilt from
scratch on every load.
"""
import asyncio
import logging
import re
import time
from pathlib import Path
from typing import Optional

from .config import MIN_TTL_SECONDS, default_hosts_file, ip_family
from .types import AddressRecord

logger = logging.getLogger("cache_lookup.hosts")

HostsTable = dict[str, list[AddressRecord]]

COMMENT_MARKER = "#"

_LINE_SPLIT = re.compile(r"\r\n|\n")
_TOKEN_SPLIT = re.compile(r"\s+")


def parse_hosts(text: str, expires_at: float) -> HostsTable:
    """
    Parse hosts file content.

    Each line maps the address in its first column to every alias after
    it, up to an inline comment. Lines whose first column is not an IP
    literal are skipped.
    """
    table: HostsTable = {}

    for raw_line in _LINE_SPLIT.split(text):
        line = raw_line.strip()
        if not line or line.startswith(COMMENT_MARKER):
            continue

        address, *aliases = _TOKEN_SPLIT.split(line)
        family = ip_family(address)
        if family is None:
            continue

        for alias in aliases:
            if alias.startswith(COMMENT_MARKER):
                break
            table.setdefault(alias, []).append(
                AddressRecord(address=address, family=family, expires_at=expires_at)
            )

    return table


async def load_hosts_file(
    path: Optional[str] = None,
    *,
    min_ttl_seconds: float = MIN_TTL_SECONDS,
    now: Optional[float] = None,
) -> HostsTable:
    """
    Read and parse a hosts file.

    Every record of one load expires `min_ttl_seconds` after the load.
    File errors propagate to the caller.
    """
    file = Path(path or default_hosts_file())

    # Read the file in a thread pool
    loop = asyncio.get_running_loop()
    text = await loop.run_in_executor(None, lambda: file.read_text(encoding="utf-8", errors="replace"))

    if now is None:
        now = time.time()
    table = parse_hosts(text, now + min_ttl_seconds)

    logger.debug(f"load_hosts_file: {file} -> {len(table)} hostname(s)")
    return table
