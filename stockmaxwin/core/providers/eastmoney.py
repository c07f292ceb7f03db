"""
EastMoney push2 data provider.

Wraps the three public endpoints the screener needs: the paginated stock
list (brief and quote variants), daily klines per security and the headline
index quotes. All traffic goes through one shared :class:`RetryingTransport`.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TypeVar

from stockmaxwin.core.client.transport import Params, RetryingTransport
from stockmaxwin.core.data.decoding import (
    BriefListDecoder,
    ListDecoder,
    QuoteListDecoder,
    parse_index_quotes,
    parse_klines,
)
from stockmaxwin.core.logging import get_logger
from stockmaxwin.core.models import Bar, BriefRecord, IndexQuote, QuoteRecord

logger = get_logger(__name__)

# 东方财富接口地址
LIST_URL = "https://82.push2.eastmoney.com/api/qt/clist/get"
KLINE_URL = "https://push2his.eastmoney.com/api/qt/stock/kline/get"
INDEX_URL = "https://push2.eastmoney.com/api/qt/ulist.np/get"

INDEX_SECIDS = "1.000001,0.399001,0.399006"  # 上证指数、深证成指、创业板指
INDEX_FIELDS = "f12,f14,f2,f3"

# 市场板块过滤：沪深 A 股全量 / 沪深主板
SEGMENT_ALL_A = "m:0 t:6,m:0 t:80,m:1 t:2,m:1 t:23"
SEGMENT_MAIN_BOARD = "m:1 t:2,m:0 t:2"

FIELDS_BRIEF = "f12,f14"
FIELDS_MAIN_BOARD = "f2,f3,f6,f8,f10,f12,f14,f23,f20,f9"

PAGE_SIZE = 500
MAX_PAGE_SIZE = 500
MAX_KLINE_COUNT = 1000
DEFAULT_KLINE_COUNT = 30

RecordT = TypeVar("RecordT", BriefRecord, QuoteRecord)


def format_code(code: str) -> str:
    """Convert a raw code to an EastMoney secid (``0.600519`` / ``1.000001``)."""

    code = code.strip()
    if not code:
        return "0.000000"
    if code[0] in "659":
        return "0." + code
    return "1." + code


def _check_page_size(page_size: int) -> int:
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")
    return page_size


class Paginator:
    """Walk ``pn=1,2,...`` of a list endpoint until the listing is exhausted.

    Stops when the accumulated count reaches the reported total, when a page
    comes back short, or when a page is empty. Transport and decode errors
    propagate unchanged; nothing is retried here.
    """

    def __init__(self, transport: RetryingTransport, page_size: int = PAGE_SIZE) -> None:
        self.transport = transport
        self.page_size = _check_page_size(page_size)

    async def collect(
        self,
        url: str,
        params: Mapping[str, str | int],
        decoder: ListDecoder[RecordT],
        page_size: int | None = None,
    ) -> list[RecordT]:
        size = self.page_size if page_size is None else _check_page_size(page_size)
        records: list[RecordT] = []
        page = 1
        while True:
            query: Params = {**params, "pn": page, "pz": size}
            async with self.transport.open(url, params=query) as body:
                total, count = decoder.decode(body, records)
            logger.debug("api: page={} count={} total={} accumulated={}", page, count, total, len(records))
            if count == 0:
                break
            if total <= len(records) or count < size:
                break
            page += 1
        return records


class EastMoneyProvider:
    """东方财富行情数据提供商."""

    name = "eastmoney"

    def __init__(self, transport: RetryingTransport, page_size: int = PAGE_SIZE) -> None:
        self.transport = transport
        self.paginator = Paginator(transport, page_size)

    async def get_all_stocks(self) -> list[BriefRecord]:
        """全市场 A 股代码与名称."""

        params = {"fs": SEGMENT_ALL_A, "fields": FIELDS_BRIEF}
        stocks = await self.paginator.collect(LIST_URL, params, BriefListDecoder())
        logger.info("api: get_all_stocks done len={}", len(stocks))
        return stocks

    async def get_main_board_quotes(self) -> list[QuoteRecord]:
        """沪深主板实时行情."""

        logger.info("api: get_main_board_quotes start")
        params = {"fs": SEGMENT_MAIN_BOARD, "fields": FIELDS_MAIN_BOARD}
        quotes = await self.paginator.collect(LIST_URL, params, QuoteListDecoder())
        logger.info("api: get_main_board_quotes done len={}", len(quotes))
        if not quotes:
            logger.warning("api: main board result is empty, check whether data.diff was skipped")
        return quotes

    async def get_history_bars(self, code: str, count: int) -> list[Bar]:
        """最近 ``count`` 个交易日的前复权日 K 线，按日期升序.

        Raises:
            ValueError: blank code or non-positive count.
            ResponseDecodeError: payload without klines.
        """

        if not code or not code.strip() or count <= 0:
            raise ValueError("invalid code or count")
        params = {
            "secid": format_code(code),
            "fields1": "f1,f2,f3,f4,f5,f6",
            "fields2": "f51,f52,f53,f54,f55,f56",
            "klt": 101,
            "fqt": 1,
            "lmt": min(count, MAX_KLINE_COUNT),
        }
        body = await self.transport.fetch(KLINE_URL, params=params)
        return parse_klines(body, code)

    async def get_bars(self, code: str) -> list[Bar]:
        return await self.get_history_bars(code, DEFAULT_KLINE_COUNT)

    async def get_index_quotes(self) -> list[IndexQuote]:
        """上证指数、深证成指、创业板指."""

        params = {"secids": INDEX_SECIDS, "fields": INDEX_FIELDS}
        body = await self.transport.fetch(INDEX_URL, params=params)
        return parse_index_quotes(body)
