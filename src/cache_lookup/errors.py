"""
Errors raised by cache_lookup
"""
from typing import Optional


# Upstream error codes
ENODATA = "ENODATA"
ENOTFOUND = "ENOTFOUND"
ETIMEOUT = "ETIMEOUT"
ESERVFAIL = "ESERVFAIL"
EUPSTREAM = "EUPSTREAM"


def query_syscall(family: int) -> str:
    """Name of the query operation for an address family"""
    return "queryA" if family == 4 else "queryAaaa"


class CacheLookupError(Exception):
    """Base class for lookup failures"""

    code: Optional[str] = None


class UpstreamFamilyError(CacheLookupError):
    """An A or AAAA query failed"""

    def __init__(self, hostname: str, family: int, code: str) -> None:
        self.hostname = hostname
        self.family = family
        self.code = code
        self.syscall = query_syscall(family)
        super().__init__(f"{self.syscall} {code} {hostname}")

    @property
    def no_data(self) -> bool:
        return self.code == ENODATA


class NoDataError(CacheLookupError):
    """Neither the A nor the AAAA query produced an answer"""

    code = ENODATA

    def __init__(self, hostname: str) -> None:
        self.hostname = hostname
        super().__init__(f"queryA and queryAaaa {ENODATA} {hostname}")


class NoMatchingFamilyError(CacheLookupError):
    """Records exist for the hostname, but none of the requested family"""

    code = "ENOMATCH"

    def __init__(self, hostname: str, family: int, available: int) -> None:
        self.hostname = hostname
        self.family = family
        self.available = available
        super().__init__(
            f"No matching IPv{family} available for {hostname}, "
            f"{available} records in cache"
        )


def is_no_data(error: BaseException, family: int) -> bool:
    """Check if `error` reports that the name has no record of `family`"""
    if isinstance(error, UpstreamFamilyError):
        return error.no_data and error.family == family
    return (
        getattr(error, "code", None) == ENODATA
        and getattr(error, "syscall", None) == query_syscall(family)
    )
