"""重试传输层测试：分级退避、并发槽位释放、请求头."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from stockmaxwin.core.client import DEFAULT_HEADERS, RetryingTransport, truncate_for_log
from stockmaxwin.core.exceptions import ConfigurationError, NetworkError, RateLimitError
from stockmaxwin.core.patterns import ConcurrencyGate, Pacer, RetryPolicy

URL = "https://push2.example.test/api/qt/clist/get"


class Script:
    """Replays a fixed list of status codes (or exceptions) per request."""

    def __init__(self, steps: list[int | Exception], body: bytes = b'{"data":null}') -> None:
        self.steps = list(steps)
        self.body = body
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        step = self.steps.pop(0)
        if isinstance(step, Exception):
            raise step
        return httpx.Response(step, content=self.body if step == 200 else b"busy")


def build(script: Script, *, policy: RetryPolicy | None = None, sleeps: list[float] | None = None):
    recorded = sleeps if sleeps is not None else []

    async def fake_sleep(delay: float) -> None:
        recorded.append(delay)

    gate = ConcurrencyGate(2)
    transport = RetryingTransport(
        Pacer(0.0, 0.0),
        gate,
        policy or RetryPolicy(),
        client=httpx.AsyncClient(transport=httpx.MockTransport(script)),
        sleep=fake_sleep,
    )
    return transport, gate, recorded


class TestRetryPolicy:
    def test_delay_depends_on_previous_status(self):
        policy = RetryPolicy()
        assert policy.delay_for(429) == 5.0
        assert policy.delay_for(500) == 0.5
        assert policy.delay_for(None) == 0.5

    def test_invalid_policy(self):
        with pytest.raises(ConfigurationError):
            RetryPolicy(max_attempts=0)
        with pytest.raises(ConfigurationError):
            RetryPolicy(retry_delay=-1)


class TestRetryingTransport:
    @pytest.mark.asyncio
    async def test_rate_limited_twice_then_success(self):
        script = Script([429, 429, 200], body=b"ok")
        transport, gate, sleeps = build(script)

        body = await transport.fetch(URL)

        assert body == b"ok"
        assert sleeps == [5.0, 5.0]
        assert len(script.requests) == 3
        assert gate.in_flight == 0

    @pytest.mark.asyncio
    async def test_short_backoff_after_server_error(self):
        transport, _, sleeps = build(Script([500, 200]))

        await transport.fetch(URL)

        assert sleeps == [0.5]

    @pytest.mark.asyncio
    async def test_backoff_tracks_immediately_preceding_status(self):
        transport, _, sleeps = build(Script([429, 503, 429, 200]), policy=RetryPolicy(max_attempts=4))

        await transport.fetch(URL)

        assert sleeps == [5.0, 0.5, 5.0]

    @pytest.mark.asyncio
    async def test_exhausted_rate_limit_raises_rate_limit_error(self):
        transport, gate, sleeps = build(Script([429, 429, 429]))

        with pytest.raises(RateLimitError) as excinfo:
            await transport.fetch(URL)

        assert excinfo.value.status_code == 429
        assert sleeps == [5.0, 5.0]
        assert gate.in_flight == 0

    @pytest.mark.asyncio
    async def test_exhausted_server_errors_raise_network_error(self):
        transport, gate, _ = build(Script([500, 502, 503]))

        with pytest.raises(NetworkError) as excinfo:
            await transport.fetch(URL)

        assert not isinstance(excinfo.value, RateLimitError)
        assert excinfo.value.status_code == 503
        assert gate.in_flight == 0

    @pytest.mark.asyncio
    async def test_zero_attempts_raise_network_error(self):
        policy = RetryPolicy()
        object.__setattr__(policy, "max_attempts", 0)
        script = Script([200])
        transport, gate, _ = build(script, policy=policy)

        with pytest.raises(NetworkError) as excinfo:
            await transport.fetch(URL)

        assert excinfo.value.details["url"] == URL
        assert script.requests == []
        assert gate.in_flight == 0

    @pytest.mark.asyncio
    async def test_connection_errors_are_retried(self):
        script = Script([httpx.ConnectError("refused"), httpx.ReadTimeout("slow"), 200], body=b"{}")
        transport, gate, sleeps = build(script)

        assert await transport.fetch(URL) == b"{}"
        assert sleeps == [0.5, 0.5]
        assert gate.in_flight == 0

    @pytest.mark.asyncio
    async def test_connection_error_resets_rate_limit_backoff(self):
        transport, _, sleeps = build(Script([429, httpx.ConnectError("refused"), 200]))

        await transport.fetch(URL)

        assert sleeps == [5.0, 0.5]

    @pytest.mark.asyncio
    async def test_slot_held_until_body_closed(self):
        transport, gate, _ = build(Script([200]))

        async with transport.open(URL) as body:
            assert gate.in_flight == 1
            assert body.read() == b'{"data":null}'
            assert not body.closed

        assert body.closed
        assert gate.in_flight == 0
        body.close()
        assert gate.in_flight == 0

    @pytest.mark.asyncio
    async def test_slot_released_when_consumer_fails(self):
        transport, gate, _ = build(Script([200]))

        with pytest.raises(ValueError):
            async with transport.open(URL):
                raise ValueError("consumer blew up")

        assert gate.in_flight == 0

    @pytest.mark.asyncio
    async def test_headers_and_params_sent(self):
        script = Script([200])
        transport, _, _ = build(script)

        await transport.fetch(URL, params={"pn": 2, "fs": "m:1 t:2"})

        request = script.requests[0]
        assert request.headers["Referer"] == DEFAULT_HEADERS["Referer"]
        assert request.headers["User-Agent"].startswith("Mozilla/5.0")
        assert request.url.params["pn"] == "2"
        assert request.url.params["fs"] == "m:1 t:2"

    @pytest.mark.asyncio
    async def test_cancellation_during_backoff(self):
        script = Script([500, 200])
        gate = ConcurrencyGate(2)
        transport = RetryingTransport(
            Pacer(0.0, 0.0),
            gate,
            RetryPolicy(retry_delay=30.0),
            client=httpx.AsyncClient(transport=httpx.MockTransport(script)),
        )

        task = asyncio.create_task(transport.fetch(URL))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(script.requests) == 1
        assert gate.in_flight == 0

    @pytest.mark.asyncio
    async def test_owned_client_closed(self):
        transport = RetryingTransport(Pacer(0.0, 0.0))
        async with transport:
            assert transport._client is not None
        assert transport._client is None


def test_truncate_for_log():
    assert truncate_for_log(b"a\r\nb") == "a  b"
    long = truncate_for_log(b"x" * 1500)
    assert len(long) == 1203
    assert long.endswith("...")
    assert truncate_for_log("中文".encode()) == "中文"
