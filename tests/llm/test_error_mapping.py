# SPDX-License-Identifier: Apache-2.0
"""
Custom API - failure surfacing.

Covers:
  • Mid-stream transport failure: consumer sees the events already produced,
    then CompletionRequestFailed, nothing duplicated or lost
  • Submission failures (before any event) surface from the stream
  • Provider status errors carry status_code and retry_after_ms hints
  • Malformed events and provider error events are wrapped too
  • Debug context is attached; the handler stays usable after a failure
"""

import httpx
import pytest
import anthropic

from customapi_sdk.core.error_context import get_context
from customapi_sdk.llm import (
    CompletionRequestFailed,
    StreamProtocolError,
    TextEvent,
    translate_error,
)
from tests.mock.mock_anthropic_client import (
    FakeRawStream,
    canonical_events,
    make_handler,
    text_block_start,
    text_delta,
)

pytestmark = pytest.mark.asyncio

TURNS = [{"role": "user", "content": "hello?"}]


def _status_error(cls, status, headers=None):
    request = httpx.Request("POST", "https://custom.example/v1/messages")
    response = httpx.Response(status, headers=headers or {}, request=request)
    return cls("upstream said no", response=response, body=None)


async def test_mid_stream_failure_keeps_prefix():
    cause = ConnectionError("connection reset by peer")
    raw = FakeRawStream(
        [text_block_start(0, "Hello"), text_delta(0, " world"), text_delta(0, " lost")],
        fail_after=2,
        error=cause,
    )
    handler, _ = make_handler(raw)
    received = []

    with pytest.raises(CompletionRequestFailed) as excinfo:
        async for event in handler.create_message("s", TURNS):
            received.append(event)

    assert received == [TextEvent("Hello"), TextEvent(" world")]
    assert excinfo.value.__cause__ is cause
    assert excinfo.value.cause is cause
    assert raw.close_calls == 1

    context = get_context(excinfo.value)
    assert context["component"] == "custom_api"
    assert context["operation"] == "create_message"
    assert context["events_emitted"] == 2
    assert context["turns_count"] == 1
    assert context["model"] == "custom-default"


async def test_submission_failure_surfaces_from_stream():
    handler, client = make_handler(create_error=anthropic.APIConnectionError(
        request=httpx.Request("POST", "https://custom.example/v1/messages")
    ))

    stream = handler.create_message("s", TURNS)
    with pytest.raises(CompletionRequestFailed) as excinfo:
        await stream.__anext__()

    assert isinstance(excinfo.value.__cause__, anthropic.APIConnectionError)
    assert excinfo.value.code == "COMPLETION_REQUEST_FAILED"
    assert stream.closed
    assert len(client.messages.calls) == 1


async def test_rate_limit_hints():
    err = _status_error(anthropic.RateLimitError, 429, {"retry-after": "3"})
    handler, _ = make_handler(create_error=err)

    with pytest.raises(CompletionRequestFailed) as excinfo:
        async for _ in handler.create_message("s", TURNS):
            pass

    assert excinfo.value.status_code == 429
    assert excinfo.value.retry_after_ms == 3000
    assert excinfo.value.details["cause"] == "RateLimitError"


async def test_server_error_without_retry_after():
    failure = translate_error(_status_error(anthropic.InternalServerError, 503))
    assert failure.status_code == 503
    assert failure.retry_after_ms is None


async def test_malformed_event_is_wrapped():
    raw = FakeRawStream([text_block_start(0, "ok"), {"type": "content_block_delta", "index": 0}])
    handler, _ = make_handler(raw)
    received = []

    with pytest.raises(CompletionRequestFailed) as excinfo:
        async for event in handler.create_message("s", TURNS):
            received.append(event)

    assert received == [TextEvent("ok")]
    assert isinstance(excinfo.value.__cause__, StreamProtocolError)
    assert raw.close_calls == 1


async def test_provider_error_event_is_wrapped():
    raw = FakeRawStream(
        [text_block_start(0, "partial"), {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}]
    )
    handler, _ = make_handler(raw)

    with pytest.raises(CompletionRequestFailed) as excinfo:
        async for _ in handler.create_message("s", TURNS):
            pass

    assert excinfo.value.details["error_type"] == "overloaded_error"
    assert "Overloaded" in str(excinfo.value)


async def test_handler_reusable_after_failure():
    failing = FakeRawStream([text_block_start(0, "x")], fail_after=1)
    healthy = FakeRawStream(canonical_events())
    handler, _ = make_handler(failing, healthy)

    with pytest.raises(CompletionRequestFailed):
        async for _ in handler.create_message("s", TURNS):
            pass

    events = [e async for e in handler.create_message("s", TURNS)]
    assert "".join(e.text for e in events if isinstance(e, TextEvent)) == "Hello world"
    assert handler.authenticated


async def test_already_wrapped_failure_is_not_its_own_cause():
    upstream = CompletionRequestFailed("relay gave up", status_code=502)
    raw = FakeRawStream([text_block_start(0, "x")], fail_after=1, error=upstream)
    handler, _ = make_handler(raw)

    with pytest.raises(CompletionRequestFailed) as excinfo:
        async for _ in handler.create_message("s", TURNS):
            pass

    assert excinfo.value is upstream
    assert excinfo.value.__cause__ is not excinfo.value
    assert excinfo.value.status_code == 502
    assert get_context(excinfo.value)["events_emitted"] == 1
    assert raw.close_calls == 1
