"""
列表接口流式解析.

List responses look like ``{"rc":0,"data":{"total":N,"diff":[...]}}`` where
``diff`` is either an array of records or an object of records keyed by
``"0"``, ``"1"``, .... The decoders walk ijson parse events and only ever hold
the scalar fields of the record currently being read.
"""

from __future__ import annotations

import io
from collections.abc import Iterator, MutableSequence
from typing import Any, BinaryIO, ClassVar, Generic, NamedTuple, TypeVar

import ijson

from stockmaxwin.core.exceptions import ResponseDecodeError
from stockmaxwin.core.logging import get_logger
from stockmaxwin.core.models import Bar, BriefRecord, IndexQuote, QuoteRecord

logger = get_logger(__name__)

_WHITESPACE = b" \t\r\n"
_SCALAR_EVENTS = frozenset({"null", "boolean", "integer", "double", "number", "string"})
_CONTAINER_START = frozenset({"start_map", "start_array"})
_CONTAINER_END = frozenset({"end_map", "end_array"})

Source = bytes | bytearray | BinaryIO

RecordT = TypeVar("RecordT", BriefRecord, QuoteRecord)


class DecodedPage(NamedTuple):
    """One decoder call: server-reported total and records appended."""

    total: int
    count: int


class _ByteSource:
    """File-like view over a payload that can tell whether it is blank."""

    def __init__(self, source: Source) -> None:
        if isinstance(source, (bytes, bytearray)):
            source = io.BytesIO(bytes(source))
        self._source = source
        self._head = b""
        self._eof = False

    def at_end(self) -> bool:
        while not self._head and not self._eof:
            chunk = self._source.read(8192)
            if not chunk:
                self._eof = True
                break
            self._head = chunk.lstrip(_WHITESPACE)
        return not self._head

    def read(self, size: int = -1) -> bytes:
        if size == 0:
            return b""
        if self._head:
            if size < 0 or size >= len(self._head):
                head, self._head = self._head, b""
                if size < 0:
                    return head + self._source.read()
                return head
            head, self._head = self._head[:size], self._head[size:]
            return head
        return self._source.read(size)


class _EventCursor:
    """Pull interface over ijson events with structural skipping."""

    def __init__(self, events: Iterator[tuple[str, Any]]) -> None:
        self._events = events

    def next(self) -> tuple[str, Any]:
        try:
            return next(self._events)
        except StopIteration:
            raise ResponseDecodeError("unexpected end of JSON payload") from None

    def skip_value(self) -> None:
        self.skip_started(self.next()[0])

    def skip_started(self, event: str) -> None:
        """Skip the rest of a value whose first event was ``event``."""

        if event not in _CONTAINER_START:
            return
        depth = 1
        while depth:
            event, _ = self.next()
            if event in _CONTAINER_START:
                depth += 1
            elif event in _CONTAINER_END:
                depth -= 1


def _open_events(source: Source) -> tuple[_ByteSource, _EventCursor]:
    stream = _ByteSource(source)
    return stream, _EventCursor(iter(ijson.basic_parse(stream, use_float=True)))


class ListDecoder(Generic[RecordT]):
    """Framing shared by the list decoders: envelope, ``total`` and ``diff``.

    Subclasses only pick the record type; its ``WIRE_FIELDS`` decide which
    scalar keys are buffered for ``from_wire``.
    """

    record_type: ClassVar[type]

    def decode(self, source: Source, accumulator: MutableSequence[RecordT]) -> DecodedPage:
        """Append decoded records to ``accumulator`` and report the page.

        Raises:
            ResponseDecodeError: malformed JSON or an unexpected shape where
                an object was required.
        """

        stream, cursor = _open_events(source)
        if stream.at_end():
            return DecodedPage(0, 0)

        start = len(accumulator)
        try:
            total = self._read_root(cursor, accumulator)
        except ijson.JSONError as exc:
            raise ResponseDecodeError(f"malformed list payload: {exc}") from exc
        return DecodedPage(total, len(accumulator) - start)

    def _read_root(self, cursor: _EventCursor, accumulator: MutableSequence[RecordT]) -> int:
        event, _ = cursor.next()
        if event != "start_map":
            raise ResponseDecodeError(f"expected object at root, got {event}")
        while True:
            event, value = cursor.next()
            if event == "end_map":
                return 0
            if value != "data":
                cursor.skip_value()
                continue
            # 只处理 data，之后的内容不再读取
            return self._read_data(cursor, accumulator)

    def _read_data(self, cursor: _EventCursor, accumulator: MutableSequence[RecordT]) -> int:
        event, _ = cursor.next()
        if event != "start_map":
            raise ResponseDecodeError(f"expected object under 'data', got {event}")
        total = 0
        while True:
            event, key = cursor.next()
            if event == "end_map":
                return total
            if key == "total":
                total = self._read_total(cursor)
            elif key == "diff":
                self._read_diff(cursor, accumulator)
            else:
                cursor.skip_value()

    @staticmethod
    def _read_total(cursor: _EventCursor) -> int:
        event, value = cursor.next()
        if event in ("integer", "double", "number"):
            return int(value)
        if event == "null":
            return 0
        raise ResponseDecodeError(f"expected number for 'total', got {event}")

    def _read_diff(self, cursor: _EventCursor, accumulator: MutableSequence[RecordT]) -> None:
        event, _ = cursor.next()
        if event == "start_array":
            while True:
                event, _ = cursor.next()
                if event == "end_array":
                    return
                self._read_record(cursor, event, accumulator)
        elif event == "start_map":
            while True:
                event, _ = cursor.next()
                if event == "end_map":
                    return
                self._read_record(cursor, cursor.next()[0], accumulator)
        else:
            logger.warning("api: data.diff is {}, not an array or object; skipped", event)

    def _read_record(
        self,
        cursor: _EventCursor,
        event: str,
        accumulator: MutableSequence[RecordT],
    ) -> None:
        if event != "start_map":
            raise ResponseDecodeError(f"expected object for diff item, got {event}")
        wanted = self.record_type.WIRE_FIELDS
        raw: dict[str, Any] = {}
        while True:
            event, key = cursor.next()
            if event == "end_map":
                break
            value_event, value = cursor.next()
            if value_event in _SCALAR_EVENTS:
                if key in wanted:
                    raw[key] = value
            else:
                cursor.skip_started(value_event)
        record = self.record_type.from_wire(raw)
        if record is not None:
            accumulator.append(record)


class BriefListDecoder(ListDecoder[BriefRecord]):
    record_type = BriefRecord


class QuoteListDecoder(ListDecoder[QuoteRecord]):
    record_type = QuoteRecord


def parse_klines(source: Source, code: str = "") -> list[Bar]:
    """Parse ``data.klines`` into bars, oldest first.

    Raises:
        ResponseDecodeError: payload is malformed or carries no klines.
    """

    stream = _ByteSource(source)
    if stream.at_end():
        raise ResponseDecodeError(f"empty kline payload for {code}", details={"code": code})
    bars: list[Bar] = []
    try:
        for line in ijson.items(stream, "data.klines.item", use_float=True):
            if not isinstance(line, str):
                continue
            bar = Bar.from_kline(line)
            if bar is not None:
                bars.append(bar)
    except ijson.JSONError as exc:
        raise ResponseDecodeError(f"malformed kline payload for {code}: {exc}", details={"code": code}) from exc
    if not bars:
        raise ResponseDecodeError(f"no klines for {code}", details={"code": code})
    return bars


def parse_index_quotes(source: Source) -> list[IndexQuote]:
    """Parse the index quote list (``data.diff`` array)."""

    stream = _ByteSource(source)
    if stream.at_end():
        raise ResponseDecodeError("empty index payload")
    try:
        diff = next(iter(ijson.items(stream, "data.diff", use_float=True)), None)
    except ijson.JSONError as exc:
        raise ResponseDecodeError(f"malformed index payload: {exc}") from exc
    if not isinstance(diff, list):
        raise ResponseDecodeError("no data.diff array for index")
    quotes: list[IndexQuote] = []
    for item in diff:
        if isinstance(item, dict):
            quote = IndexQuote.from_wire(item)
            if quote is not None:
                quotes.append(quote)
    return quotes
