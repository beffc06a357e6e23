# customapi_sdk/llm/stream_normalization.py
# SPDX-License-Identifier: Apache-2.0
"""
Raw Messages-stream event → NormalizedEvent mapping.

`normalize_event` is a pure function from one provider event to zero or more
normalized events:

    message_start                  -> usage (input/output, cache counts when reported)
    message_delta                  -> usage (input=0, output=delta output)
    message_stop                   -> nothing
    content_block_start  text      -> ["\\n" if index > 0], block text
    content_block_start  other     -> nothing
    content_block_delta  text_delta-> delta text
    content_block_delta  other     -> nothing
    content_block_stop             -> nothing
    error                          -> StreamProtocolError
    anything else (ping, ...)      -> nothing

Events may be `anthropic` SDK objects or plain mappings of the same shape.
"""

from __future__ import annotations

from typing import Any, AsyncIterable, AsyncIterator, List, Mapping, Optional

from customapi_sdk.llm.llm_base import (
    NormalizedEvent,
    StreamProtocolError,
    TextEvent,
    UsageEvent,
)

BLOCK_SEPARATOR = "\n"

_MISSING = object()


def _field(obj: Any, name: str, default: Any = None) -> Any:
    if obj is None:
        return default
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _required(obj: Any, name: str, kind: str) -> Any:
    value = _field(obj, name, _MISSING)
    if value is _MISSING or value is None:
        raise StreamProtocolError(f"{kind} event missing {name!r}")
    return value


def _count(usage: Any, name: str) -> int:
    return int(_field(usage, name) or 0)


def _optional_count(usage: Any, name: str) -> Optional[int]:
    # Zero and missing are both reported as "not present".
    value = _field(usage, name)
    return int(value) if value else None


def event_type(raw: Any) -> Optional[str]:
    return _field(raw, "type")


def normalize_event(raw: Any) -> List[NormalizedEvent]:
    """Map one raw provider event to its normalized events, in order."""
    kind = event_type(raw)

    if kind == "message_start":
        usage = _field(_required(raw, "message", kind), "usage")
        return [
            UsageEvent(
                input_tokens=_count(usage, "input_tokens"),
                output_tokens=_count(usage, "output_tokens"),
                cache_write_tokens=_optional_count(usage, "cache_creation_input_tokens"),
                cache_read_tokens=_optional_count(usage, "cache_read_input_tokens"),
            )
        ]

    if kind == "message_delta":
        usage = _field(raw, "usage")
        return [UsageEvent(input_tokens=0, output_tokens=_count(usage, "output_tokens"))]

    if kind == "content_block_start":
        block = _required(raw, "content_block", kind)
        if _field(block, "type") != "text":
            return []
        text = _field(block, "text") or ""
        if int(_field(raw, "index") or 0) > 0:
            return [TextEvent(BLOCK_SEPARATOR), TextEvent(text)]
        return [TextEvent(text)]

    if kind == "content_block_delta":
        delta = _required(raw, "delta", kind)
        if _field(delta, "type") != "text_delta":
            return []
        return [TextEvent(_field(delta, "text") or "")]

    if kind == "error":
        error = _field(raw, "error")
        message = _field(error, "message") or "provider reported an error"
        raise StreamProtocolError(
            str(message),
            details={"error_type": _field(error, "type")},
        )

    # message_stop, content_block_stop, ping and unknown events carry no output.
    return []


def is_terminal(raw: Any) -> bool:
    return event_type(raw) == "message_stop"


async def normalize_stream(raw_events: AsyncIterable[Any]) -> AsyncIterator[NormalizedEvent]:
    """
    Normalize an async iterable of raw events, stopping at message_stop.

    Errors propagate unwrapped; `CompletionStream` adds the
    CompletionRequestFailed wrapping and resource handling.
    """
    async for raw in raw_events:
        for event in normalize_event(raw):
            yield event
        if is_terminal(raw):
            return


__all__ = [
    "BLOCK_SEPARATOR",
    "event_type",
    "is_terminal",
    "normalize_event",
    "normalize_stream",
]
