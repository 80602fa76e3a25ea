"""
Tests for the cached lookup transport

Coverage includes:
- LookupTransport pass-through cases
- URL rewriting to the resolved address
- Host header and TLS server name preservation
- Host filtering (include/exclude patterns)
- Method filtering
- Factory functions
"""
import pytest
import httpx

from cache_lookup import LookupResolver
from fetch_compose_cache_lookup import (
    LookupHookInstaller,
    LookupTransport,
    compose_transport,
    create_lookup_client,
    create_lookup_transport,
    host_selected,
)

from conftest import FakeUpstream


class MockAsyncTransport(httpx.AsyncBaseTransport):
    """Mock async transport for testing"""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.closed = False

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(200, content=b"OK")

    async def aclose(self) -> None:
        self.closed = True


def fixed_lookup(address: str):
    calls = []

    async def lookup(hostname, family=None):
        calls.append((hostname, family))
        return address

    lookup.calls = calls
    return lookup


class TestPassThrough:
    """Tests for requests forwarded unchanged"""

    @pytest.mark.asyncio
    async def test_without_lookup_function(self):
        """Should forward the request when nothing is installed"""
        inner = MockAsyncTransport()
        transport = LookupTransport(inner)

        request = httpx.Request("GET", "https://api.example.com/data")
        await transport.handle_async_request(request)

        assert inner.requests == [request]

    @pytest.mark.asyncio
    async def test_ip_literal_host(self):
        """Should not resolve IP literal hosts"""
        inner = MockAsyncTransport()
        lookup = fixed_lookup("192.0.2.1")
        transport = LookupTransport(inner, connection_options={"lookup": lookup})

        await transport.handle_async_request(httpx.Request("GET", "http://10.0.0.1/"))

        assert lookup.calls == []
        assert inner.requests[0].url.host == "10.0.0.1"

    @pytest.mark.asyncio
    async def test_method_filter(self):
        """Should only resolve for the listed methods"""
        inner = MockAsyncTransport()
        lookup = fixed_lookup("192.0.2.1")
        transport = LookupTransport(
            inner,
            connection_options={"lookup": lookup},
            methods=["get"],
        )

        await transport.handle_async_request(httpx.Request("POST", "http://api.example.com/"))
        await transport.handle_async_request(httpx.Request("GET", "http://api.example.com/"))

        assert inner.requests[0].url.host == "api.example.com"
        assert inner.requests[1].url.host == "192.0.2.1"

    @pytest.mark.asyncio
    async def test_host_filters(self):
        """Should honour include and exclude patterns"""
        inner = MockAsyncTransport()
        transport = LookupTransport(
            inner,
            connection_options={"lookup": fixed_lookup("192.0.2.1")},
            hosts=["*.example.com"],
            exclude_hosts=["internal.example.com"],
        )

        for url in (
            "http://api.example.com/",
            "http://example.com/",
            "http://internal.example.com/",
            "http://other.test/",
        ):
            await transport.handle_async_request(httpx.Request("GET", url))

        assert [r.url.host for r in inner.requests] == [
            "192.0.2.1",
            "192.0.2.1",
            "internal.example.com",
            "other.test",
        ]


class TestResolvedRequests:
    """Tests for requests sent to the resolved address"""

    @pytest.mark.asyncio
    async def test_rewrites_host_and_keeps_header(self):
        """Should connect to the address but keep the Host header"""
        inner = MockAsyncTransport()
        transport = LookupTransport(inner, connection_options={"lookup": fixed_lookup("192.0.2.1")})

        request = httpx.Request("GET", "http://api.example.com:8080/data?x=1")
        response = await transport.handle_async_request(request)

        sent = inner.requests[0]
        assert response.status_code == 200
        assert sent.url.host == "192.0.2.1"
        assert sent.url.port == 8080
        assert sent.url.path == "/data"
        assert sent.url.query == b"x=1"
        assert sent.headers["host"] == "api.example.com:8080"
        assert "sni_hostname" not in sent.extensions

    @pytest.mark.asyncio
    async def test_https_keeps_server_name(self):
        """Should verify TLS against the original hostname"""
        inner = MockAsyncTransport()
        transport = LookupTransport(inner, connection_options={"lookup": fixed_lookup("192.0.2.1")})

        await transport.handle_async_request(httpx.Request("GET", "https://api.example.com/"))

        assert inner.requests[0].extensions["sni_hostname"] == "api.example.com"

    @pytest.mark.asyncio
    async def test_ipv6_address(self):
        """Should bracket IPv6 addresses in the URL"""
        inner = MockAsyncTransport()
        transport = LookupTransport(
            inner,
            connection_options={"lookup": fixed_lookup("2001:db8::1"), "family": 6},
        )

        await transport.handle_async_request(httpx.Request("GET", "http://api.example.com/"))

        assert inner.requests[0].url.host == "2001:db8::1"
        assert inner.requests[0].headers["host"] == "api.example.com"

    @pytest.mark.asyncio
    async def test_passes_preferred_family(self):
        """Should pass the configured family to the lookup function"""
        inner = MockAsyncTransport()
        lookup = fixed_lookup("192.0.2.1")
        transport = LookupTransport(inner, connection_options={"lookup": lookup, "family": 4})

        await transport.handle_async_request(httpx.Request("GET", "http://api.example.com/"))

        assert lookup.calls == [("api.example.com", 4)]

    @pytest.mark.asyncio
    async def test_keeps_request_body(self):
        """Should forward the request body"""
        inner = MockAsyncTransport()
        transport = LookupTransport(inner, connection_options={"lookup": fixed_lookup("192.0.2.1")})

        request = httpx.Request("POST", "http://api.example.com/", content=b"payload")
        await transport.handle_async_request(request)

        assert await inner.requests[0].aread() == b"payload"

    @pytest.mark.asyncio
    async def test_aclose(self):
        """Should close the inner transport"""
        inner = MockAsyncTransport()

        await LookupTransport(inner).aclose()

        assert inner.closed


class TestFactories:
    """Tests for factory functions"""

    @pytest.mark.asyncio
    async def test_create_lookup_transport(
        self, resolver: LookupResolver, upstream: FakeUpstream
    ):
        """Should install the lookup function from the resolver"""
        upstream.answer("api.example.com", 4, ["192.0.2.20"])
        inner = MockAsyncTransport()

        transport = create_lookup_transport(
            inner,
            family=4,
            installer=LookupHookInstaller(resolver),
            methods=["GET"],
        )
        await transport.handle_async_request(httpx.Request("GET", "http://api.example.com/"))

        assert isinstance(transport, LookupTransport)
        assert inner.requests[0].url.host == "192.0.2.20"

    @pytest.mark.asyncio
    async def test_client_through_composed_transport(
        self, resolver: LookupResolver, upstream: FakeUpstream
    ):
        """Should resolve requests sent through an AsyncClient"""
        upstream.answer("api.example.com", 4, ["192.0.2.21"])
        inner = MockAsyncTransport()
        installer = LookupHookInstaller(resolver)

        transport = compose_transport(
            inner,
            lambda t: create_lookup_transport(t, family=4, installer=installer),
        )
        async with httpx.AsyncClient(transport=transport) as client:
            response = await client.get("http://api.example.com/items")

        assert response.text == "OK"
        assert inner.requests[0].url.host == "192.0.2.21"
        assert inner.requests[0].headers["host"] == "api.example.com"

    def test_compose_without_wrappers(self):
        """Should return the base transport"""
        inner = MockAsyncTransport()

        assert compose_transport(inner) is inner

    @pytest.mark.asyncio
    async def test_create_lookup_client(self, resolver: LookupResolver):
        """Should create a client whose connections resolve through the cache"""
        installer = LookupHookInstaller(resolver)

        client = create_lookup_client(
            family=4,
            installer=installer,
            base_url="https://api.example.com",
        )

        assert client.base_url.host == "api.example.com"
        assert installer.is_installed(client._transport._pool._network_backend)
        await client.aclose()


class TestHostSelected:
    """Tests for host include/exclude matching"""

    @pytest.mark.parametrize("host,include,exclude,expected", [
        ("api.example.com", None, None, True),
        ("api.example.com", ["api.example.com"], None, True),
        ("API.Example.com", ["api.example.com"], None, True),
        ("api.example.com", ["*.example.com"], None, True),
        ("example.com", ["*.example.com"], None, True),
        ("badexample.com", ["*.example.com"], None, False),
        ("api-1.test", ["api-?.test"], None, True),
        ("other.test", ["*.example.com"], None, False),
        ("internal.example.com", ["*.example.com"], ["internal.*"], False),
        ("api.example.com", None, ["*.example.com"], False),
    ])
    def test_matching(self, host, include, exclude, expected):
        assert host_selected(host, include, exclude) is expected
