"""
Upstream A/AAAA queries through dnspython's asyncio resolver
"""
import logging
from typing import Optional

import dns.asyncresolver
import dns.exception
import dns.rdatatype
import dns.resolver

from .errors import (
    ENODATA,
    ENOTFOUND,
    ESERVFAIL,
    ETIMEOUT,
    EUPSTREAM,
    UpstreamFamilyError,
)
from .types import AddressFamily, UpstreamAnswer, UpstreamResolver

logger = logging.getLogger("cache_lookup.upstream")

RDTYPES = {
    4: dns.rdatatype.A,
    6: dns.rdatatype.AAAA,
}


def error_code(error: dns.exception.DNSException) -> str:
    """Map a dnspython failure to an upstream error code"""
    if isinstance(error, dns.resolver.NoAnswer):
        return ENODATA
    if isinstance(error, dns.resolver.NXDOMAIN):
        return ENOTFOUND
    if isinstance(error, dns.exception.Timeout):
        return ETIMEOUT
    if isinstance(error, dns.resolver.NoNameservers):
        return ESERVFAIL
    return EUPSTREAM


class DnsPythonUpstream(UpstreamResolver):
    """
    Upstream resolver backed by `dns.asyncresolver.Resolver`.

    The system resolver configuration is read on first use, so constructing
    the transport never touches the filesystem.

    Example:
        upstream = DnsPythonUpstream(nameservers=["1.1.1.1"], timeout_seconds=2.0)
        answers = await upstream.query("example.com", 4)
    """

    def __init__(
        self,
        nameservers: Optional[list[str]] = None,
        timeout_seconds: float = 5.0,
        resolver: Optional[dns.asyncresolver.Resolver] = None,
    ) -> None:
        self._nameservers = nameservers
        self._timeout = timeout_seconds
        self._resolver = resolver

    def _get_resolver(self) -> dns.asyncresolver.Resolver:
        if self._resolver is None:
            resolver = dns.asyncresolver.Resolver(configure=not self._nameservers)
            if self._nameservers:
                resolver.nameservers = list(self._nameservers)
            resolver.lifetime = self._timeout
            self._resolver = resolver
        return self._resolver

    async def query(self, hostname: str, family: AddressFamily) -> list[UpstreamAnswer]:
        """Query the A (family 4) or AAAA (family 6) records of `hostname`"""
        try:
            answer = await self._get_resolver().resolve(
                hostname,
                RDTYPES[family],
                search=False,
            )
        except dns.exception.DNSException as e:
            code = error_code(e)
            logger.debug(f"query: {hostname} family={family} failed with {code}: {e!r}")
            raise UpstreamFamilyError(hostname, family, code) from e

        ttl = answer.rrset.ttl if answer.rrset is not None else 0
        return [UpstreamAnswer(address=rdata.address, ttl=ttl) for rdata in answer]
