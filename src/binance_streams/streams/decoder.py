"""
Frame decoder: raw WebSocket payload -> typed event.

- Combined-stream frames are unwrapped from their envelope first
- All-market frames decode to a list of events
- Raw mode passes bytes through untouched and never fails
"""

from __future__ import annotations

from typing import Any

import orjson
from pydantic import BaseModel, TypeAdapter, ValidationError

from binance_streams.contracts.events import (
    BookTickerEvent,
    MarginDataEvent,
    MarkPriceEvent,
    StreamEnvelope,
)
from binance_streams.errors import DecodeError
from binance_streams.streams.types import Endpoint, StreamKind

EVENT_MODELS: dict[StreamKind, type[BaseModel]] = {
    StreamKind.BOOK_TICKER: BookTickerEvent,
    StreamKind.MARK_PRICE: MarkPriceEvent,
    StreamKind.MARGIN_DATA: MarginDataEvent,
}


class FrameDecoder:
    """
    Decodes frames for one subscription.

    The decoder is fixed at subscription time; it holds no per-frame state.
    """

    def __init__(
        self,
        kind: StreamKind,
        *,
        combined: bool = False,
        many: bool = False,
        raw: bool = False,
    ) -> None:
        """
        Initialize the decoder.

        Args:
            kind: Stream kind selecting the event model.
            combined: Frames are wrapped in a StreamEnvelope.
            many: Frames carry a JSON array of events.
            raw: Skip decoding and return the frame bytes.
        """
        self._kind = kind
        self._combined = combined
        self._raw = raw
        model = EVENT_MODELS[kind]
        target: Any = list[model] if many else model  # type: ignore[valid-type]
        self._adapter: TypeAdapter[Any] = TypeAdapter(target)

    @classmethod
    def for_endpoint(cls, endpoint: Endpoint, *, raw: bool = False) -> FrameDecoder:
        """Build the decoder matching an endpoint's frame layout."""
        return cls(endpoint.kind, combined=endpoint.combined, many=endpoint.many, raw=raw)

    @property
    def raw(self) -> bool:
        return self._raw

    def decode(self, frame: bytes) -> Any:
        """
        Decode one frame.

        Args:
            frame: Payload as received from the transport.

        Returns:
            The typed event (or list of events), or the frame itself in raw mode.

        Raises:
            DecodeError: If the frame is not valid JSON or does not match the
                expected shape.
        """
        if self._raw:
            return frame

        try:
            payload = orjson.loads(frame)
            if self._combined:
                payload = StreamEnvelope.model_validate(payload).data
            return self._adapter.validate_python(payload)
        except orjson.JSONDecodeError as e:
            raise DecodeError(
                f"invalid JSON in {self._kind.value} frame: {e}",
                kind=self._kind.value,
                frame=frame,
            ) from e
        except ValidationError as e:
            raise DecodeError(
                f"unexpected {self._kind.value} frame shape: {e.error_count()} error(s), "
                f"first: {_first_error(e)}",
                kind=self._kind.value,
                frame=frame,
            ) from e


def _first_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "<root>"
    return f"{location}: {first.get('msg', '')}"
