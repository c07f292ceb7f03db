"""
Throttled, retrying HTTP transport for the EastMoney push2 endpoints.

Each attempt waits on the shared :class:`Pacer`, takes a slot from the shared
:class:`ConcurrencyGate`, issues the request and reads the full body. Failed
attempts give their slot back immediately; a successful response keeps its
slot for as long as the caller holds the returned :class:`ResponseBody`.
"""

from __future__ import annotations

import asyncio
import io
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from contextlib import asynccontextmanager
from types import TracebackType

import httpx

from stockmaxwin.core.exceptions import NetworkError, RateLimitError
from stockmaxwin.core.logging import get_logger
from stockmaxwin.core.patterns import (
    HTTP_TOO_MANY_REQUESTS,
    ConcurrencyGate,
    Pacer,
    RetryPolicy,
)

logger = get_logger(__name__)

PROVIDER_NAME = "eastmoney"
DEFAULT_TIMEOUT = 5.0
MAX_LOG_BODY_CHARS = 1200

# 请求头（模拟浏览器）
DEFAULT_HEADERS: Mapping[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Referer": "https://quote.eastmoney.com/",
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
}

Params = Mapping[str, str | int]


def truncate_for_log(body: bytes, limit: int = MAX_LOG_BODY_CHARS) -> str:
    """Decode, cap at ``limit`` characters and collapse line breaks."""

    text = body.decode("utf-8", errors="replace")
    if len(text) > limit:
        text = text[:limit] + "..."
    return text.replace("\r", " ").replace("\n", " ")


class ResponseBody:
    """A fully read 200 response that holds a concurrency slot until closed.

    Readable like a binary file so decoders can pull it incrementally.
    ``close()`` is idempotent; the slot is released exactly once.
    """

    def __init__(
        self,
        content: bytes,
        *,
        url: str,
        status_code: int,
        release: Callable[[], None],
    ) -> None:
        self._buffer = io.BytesIO(content)
        self._length = len(content)
        self._release: Callable[[], None] | None = release
        self.url = url
        self.status_code = status_code

    def __len__(self) -> int:
        return self._length

    @property
    def closed(self) -> bool:
        return self._release is None

    def read(self, size: int = -1) -> bytes:
        return self._buffer.read(size)

    def getvalue(self) -> bytes:
        return self._buffer.getvalue()

    def close(self) -> None:
        release, self._release = self._release, None
        if release is not None:
            release()

    def __enter__(self) -> ResponseBody:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


class RetryingTransport:
    """HTTP GET with pacing, a concurrency ceiling and tiered retry backoff."""

    def __init__(
        self,
        pacer: Pacer | None = None,
        gate: ConcurrencyGate | None = None,
        policy: RetryPolicy | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Mapping[str, str] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.pacer = pacer or Pacer()
        self.gate = gate or ConcurrencyGate()
        self.policy = policy or RetryPolicy()
        self.timeout = timeout
        self.headers = dict(headers or DEFAULT_HEADERS)
        self._sleep = sleep
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> RetryingTransport:
        self._ensure_client()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the owned HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @asynccontextmanager
    async def open(
        self,
        url: str,
        params: Params | None = None,
        method: str = "GET",
    ) -> AsyncIterator[ResponseBody]:
        """Yield the body of a successful response; its slot is freed on exit."""

        body = await self._request_with_retry(method, url, params)
        try:
            yield body
        finally:
            body.close()

    async def fetch(self, url: str, params: Params | None = None, method: str = "GET") -> bytes:
        """Return the raw body of a successful response."""

        async with self.open(url, params=params, method=method) as body:
            return body.getvalue()

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        params: Params | None,
    ) -> ResponseBody:
        client = self._ensure_client()
        request_url = str(httpx.URL(url, params=dict(params) if params else None))
        last_error: NetworkError | None = None
        last_status: int | None = None

        for attempt in range(self.policy.max_attempts):
            if attempt > 0:
                backoff = self.policy.delay_for(last_status)
                if last_status == HTTP_TOO_MANY_REQUESTS:
                    logger.warning("api: 429 rate limited, waiting {}s before retry", backoff)
                else:
                    logger.info("api: retry {}/{} {}", attempt, self.policy.max_attempts, request_url)
                await self._sleep(backoff)

            await self.pacer.pace()
            await self.gate.acquire()
            try:
                logger.info("api: req {} {}", method, request_url)
                response = await client.request(method, request_url, headers=self.headers)
            except httpx.HTTPError as exc:
                self.gate.release()
                last_status = None
                last_error = NetworkError(
                    f"{type(exc).__name__}: {exc}",
                    PROVIDER_NAME,
                    details={"url": request_url, "attempt": attempt + 1},
                )
                logger.warning("api: attempt {} failed url={} err={}", attempt + 1, request_url, last_error.message)
                continue
            except BaseException:
                self.gate.release()
                raise

            content = response.content
            logger.info(
                "api: resp status={} len={} body={}",
                response.status_code,
                len(content),
                truncate_for_log(content),
            )
            if response.status_code != httpx.codes.OK:
                self.gate.release()
                last_status = response.status_code
                last_error = self._status_error(response.status_code, request_url, attempt)
                continue

            return ResponseBody(
                content,
                url=request_url,
                status_code=response.status_code,
                release=self.gate.release,
            )

        if last_error is None:
            last_error = NetworkError("no request attempts made", PROVIDER_NAME, details={"url": request_url})
        logger.error("api: request failed url={} err={}", request_url, last_error)
        raise last_error

    def _status_error(self, status_code: int, url: str, attempt: int) -> NetworkError:
        details = {"url": url, "attempt": attempt + 1}
        if status_code == HTTP_TOO_MANY_REQUESTS:
            return RateLimitError(
                "HTTP 429 too many requests",
                PROVIDER_NAME,
                retry_after=self.policy.rate_limit_delay,
                details=details,
            )
        return NetworkError(f"HTTP {status_code}", PROVIDER_NAME, status_code=status_code, details=details)
