"""Pytest configuration and fixtures for cache_lookup tests."""
import asyncio
from pathlib import Path
from typing import AsyncGenerator, Union

import pytest

from cache_lookup import (
    ENODATA,
    ENOTFOUND,
    LookupConfig,
    LookupContext,
    LookupResolver,
    ThrottleCoordinator,
    UpstreamAnswer,
    UpstreamFamilyError,
    UpstreamResolver,
)

START_TIME = 1_700_000_000.0


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUpstream(UpstreamResolver):
    """Upstream resolver answering from a table, recording every query."""

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.calls: list[tuple[str, int]] = []
        self._answers: dict[tuple[str, int], Union[list[UpstreamAnswer], Exception]] = {}

    def answer(self, hostname: str, family: int, addresses: list[str], ttl: float = 300) -> None:
        self._answers[(hostname, family)] = [
            UpstreamAnswer(address=address, ttl=ttl) for address in addresses
        ]

    def fail(self, hostname: str, family: int, code: str = ENOTFOUND) -> Exception:
        error = UpstreamFamilyError(hostname, family, code)
        self._answers[(hostname, family)] = error
        return error

    def no_data(self, hostname: str, family: int) -> Exception:
        return self.fail(hostname, family, ENODATA)

    async def query(self, hostname: str, family: int) -> list[UpstreamAnswer]:
        self.calls.append((hostname, family))
        await asyncio.sleep(self.delay)

        outcome = self._answers.get((hostname, family))
        if outcome is None:
            raise UpstreamFamilyError(hostname, family, ENOTFOUND)
        if isinstance(outcome, Exception):
            raise outcome
        return list(outcome)


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock shared by the store, context and coordinator."""
    return FakeClock()


@pytest.fixture
def upstream() -> FakeUpstream:
    """Create a fake upstream resolver."""
    return FakeUpstream()


@pytest.fixture
def hosts_file(tmp_path: Path) -> Path:
    """Create a hosts file with a few overrides."""
    path = tmp_path / "hosts"
    path.write_text(
        "# test hosts\n"
        "127.0.0.1 localhost\n"
        "::1 localhost ip6-localhost\n"
        "203.0.113.5 example.test\n"
        "10.0.0.1 merged.test\n"
        "::1 v6only.test\n"
    )
    return path


@pytest.fixture
def config(hosts_file: Path) -> LookupConfig:
    """Create a lookup config reading the test hosts file."""
    return LookupConfig(hosts_file=str(hosts_file), min_ttl_seconds=10.0)


@pytest.fixture
async def context(
    config: LookupConfig,
    upstream: FakeUpstream,
    clock: FakeClock,
) -> AsyncGenerator[LookupContext, None]:
    """Create a lookup context driven by the fake clock and upstream."""
    ctx = LookupContext(
        config,
        upstream=upstream,
        coordinator=ThrottleCoordinator(clock=clock),
        clock=clock,
    )
    yield ctx
    await ctx.close()


@pytest.fixture
async def resolver(context: LookupContext) -> AsyncGenerator[LookupResolver, None]:
    """Create a resolver over the test context."""
    res = LookupResolver(context)
    yield res
    await res.close()
