# customapi_sdk/llm/custom_adapter.py
# SPDX-License-Identifier: Apache-2.0
"""
Custom API handler: authenticated, prompt-cached, streaming completions.

This module turns a system prompt and conversation turns into one streamed
Messages API request against a custom, Anthropic-compatible endpoint and
republishes the provider's event stream as NormalizedEvent objects.

Usage
-----
    from customapi_sdk.config import ApiHandlerOptions
    from customapi_sdk.llm import CustomApiHandler, TextEvent, UsageEvent

    handler = CustomApiHandler(ApiHandlerOptions(api_key="...", api_secret="..."))

    async with handler.create_message(system_prompt, turns) as stream:
        async for event in stream:
            if isinstance(event, TextEvent):
                print(event.text, end="")
            elif isinstance(event, UsageEvent):
                record(event.input_tokens, event.output_tokens)

Notes
-----
- Authentication happens once, in the constructor. A failure raises there.
- `create_message` validates eagerly and never touches the network; the
  request is sent when the stream is first iterated (or entered).
- No retries. Transport retry/backoff belongs to the `anthropic` client or
  the calling application.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections import deque
from email.utils import parsedate_to_datetime
from typing import Any, Deque, Dict, Mapping, Optional, Sequence

import anthropic

from customapi_sdk.config import ApiHandlerOptions
from customapi_sdk.core.error_context import attach_context
from customapi_sdk.llm.auth import TokenAuthenticator
from customapi_sdk.llm.llm_base import (
    AuthenticationTransportError,
    Authenticator,
    BadRequest,
    CompletionRequestFailed,
    Credential,
    CUSTOM_MODEL_CAPABILITIES,
    CUSTOM_MODEL_DESCRIPTION,
    CUSTOM_MODEL_LIMITS,
    CUSTOM_MODEL_PRICING,
    DEFAULT_MODEL_ID,
    ModelDescriptor,
    NormalizedEvent,
    NotAuthenticatedError,
    Session,
    StreamProtocolError,
)
from customapi_sdk.llm.request_shaping import (
    TurnLike,
    build_request,
    cache_marked_indices,
    coerce_turns,
)
from customapi_sdk.llm.stream_normalization import is_terminal, normalize_event

logger = logging.getLogger(__name__)

_COMPONENT = "custom_api"


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------

def _extract_retry_after_ms(err: Any) -> Optional[int]:
    """
    Parse a Retry-After header from a provider error, if any.

    Handles both integer seconds and HTTP-date values.
    """
    response = getattr(err, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None

    val = headers.get("retry-after")
    if val is None:
        return None
    val_str = str(val).strip()

    try:
        return max(0, int(val_str)) * 1000
    except ValueError:
        pass

    try:
        retry_at = parsedate_to_datetime(val_str)
    except (TypeError, ValueError):
        return None
    return max(0, int(retry_at.timestamp() - time.time())) * 1000


def translate_error(exc: BaseException) -> CompletionRequestFailed:
    """Wrap any submission/stream failure as CompletionRequestFailed."""
    if isinstance(exc, CompletionRequestFailed):
        return exc

    status_code: Optional[int] = None
    retry_after_ms: Optional[int] = None
    details: Dict[str, Any] = {"cause": type(exc).__name__}

    if isinstance(exc, anthropic.APIStatusError):
        status_code = int(getattr(exc, "status_code", 0) or 0) or None
        retry_after_ms = _extract_retry_after_ms(exc)
    elif isinstance(exc, anthropic.APITimeoutError):
        details["timeout"] = True
    elif isinstance(exc, StreamProtocolError):
        details.update(exc.details)

    return CompletionRequestFailed(
        f"Custom API request failed: {exc}",
        cause=exc,
        status_code=status_code,
        retry_after_ms=retry_after_ms,
        details=details,
    )


# ---------------------------------------------------------------------------
# Completion stream
# ---------------------------------------------------------------------------

class CompletionStream:
    """
    Single-pass async iterator of NormalizedEvent for one request.

    The provider request is sent lazily on first `__anext__` (or on
    `__aenter__`). Events are produced in raw-event arrival order.

    The underlying provider stream is released exactly once, whichever way
    the stream ends: exhaustion, message_stop, error, `aclose()`, context
    manager exit, or task cancellation. After release, iteration ends.
    """

    def __init__(
        self,
        *,
        client: Any,
        request: Mapping[str, Any],
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._client = client
        self._request = dict(request)
        self._context = dict(context or {})
        self._raw: Any = None
        self._iterator: Any = None
        self._pending: Deque[NormalizedEvent] = deque()
        self._events_emitted = 0
        self._finished = False

    @property
    def events_emitted(self) -> int:
        return self._events_emitted

    @property
    def closed(self) -> bool:
        return self._finished

    def __aiter__(self) -> "CompletionStream":
        return self

    async def __aenter__(self) -> "CompletionStream":
        await self._ensure_open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def _ensure_open(self) -> None:
        if self._iterator is not None or self._finished:
            return
        logger.debug(
            "custom API stream opening (model=%s, messages=%d)",
            self._request.get("model"),
            len(self._request.get("messages") or ()),
        )
        try:
            self._raw = await self._client.messages.create(**self._request)
            self._iterator = self._raw.__aiter__()
        except asyncio.CancelledError:
            await self.aclose()
            raise
        except Exception as exc:  # noqa: BLE001
            await self.aclose()
            failure = self._failure(exc)
            if failure is exc:
                raise
            raise failure from exc

    async def __anext__(self) -> NormalizedEvent:
        while not self._pending:
            if self._finished:
                raise StopAsyncIteration
            await self._ensure_open()

            try:
                raw = await self._iterator.__anext__()
            except StopAsyncIteration:
                await self.aclose()
                raise
            except asyncio.CancelledError:
                await self.aclose()
                raise
            except Exception as exc:  # noqa: BLE001
                await self.aclose()
                failure = self._failure(exc)
                if failure is exc:
                    raise
                raise failure from exc

            try:
                self._pending.extend(normalize_event(raw))
            except Exception as exc:  # noqa: BLE001
                await self.aclose()
                failure = self._failure(exc)
                if failure is exc:
                    raise
                raise failure from exc

            if is_terminal(raw):
                # message_stop produces no events, so nothing pending is lost.
                await self.aclose()

        self._events_emitted += 1
        return self._pending.popleft()

    async def aclose(self) -> None:
        """Abandon the stream and release the provider connection. Idempotent."""
        self._finished = True
        self._pending.clear()
        raw, self._raw = self._raw, None
        self._iterator = None
        if raw is None:
            return

        close = getattr(raw, "close", None) or getattr(raw, "aclose", None)
        if close is None:
            return
        try:
            result = close()
            if inspect.isawaitable(result):
                await result
        except Exception:  # noqa: BLE001
            # Best-effort release; the request outcome is already decided.
            logger.debug("custom API stream release failed", exc_info=True)
        logger.debug("custom API stream released (events=%d)", self._events_emitted)

    def _failure(self, exc: BaseException) -> CompletionRequestFailed:
        err = translate_error(exc)
        attach_context(
            err,
            _COMPONENT,
            operation="create_message",
            events_emitted=self._events_emitted,
            **self._context,
        )
        logger.warning(
            "custom API completion failed after %d events: %s",
            self._events_emitted,
            err,
        )
        return err


# ---------------------------------------------------------------------------
# Handler
# ---------------------------------------------------------------------------

class CustomApiHandler:
    """
    Streaming handler for the custom API.

    Parameters
    ----------
    options:
        Credential pair, optional model id and optional endpoint override.
    authenticator:
        Credential → Session capability. Defaults to `TokenAuthenticator`
        configured with `options.base_url`.

    Raises
    ------
    AuthenticationError:
        Key or secret missing or empty.
    AuthenticationTransportError:
        Token or client construction failed.
    """

    def __init__(
        self,
        options: ApiHandlerOptions,
        *,
        authenticator: Optional[Authenticator] = None,
    ) -> None:
        self._options = options
        self._model = ModelDescriptor(
            id=options.model_id or DEFAULT_MODEL_ID,
            limits=CUSTOM_MODEL_LIMITS,
            capabilities=CUSTOM_MODEL_CAPABILITIES,
            pricing=CUSTOM_MODEL_PRICING,
            description=CUSTOM_MODEL_DESCRIPTION,
        )
        self._session: Optional[Session] = None
        self._authenticator: Authenticator = authenticator or TokenAuthenticator(
            base_url=options.base_url
        )
        self._session = self._authenticate(
            Credential(key=options.api_key, secret=options.api_secret)
        )

    @classmethod
    def from_env(cls, *, authenticator: Optional[Authenticator] = None) -> "CustomApiHandler":
        return cls(ApiHandlerOptions.load_from_env(), authenticator=authenticator)

    def _authenticate(self, credential: Credential) -> Session:
        session = self._authenticator.authenticate(credential)
        if not isinstance(session, Session) or not session.token or session.client is None:
            raise AuthenticationTransportError(
                "authenticator returned an incomplete session",
                details={"authenticator": type(self._authenticator).__name__},
            )
        return session

    @property
    def authenticated(self) -> bool:
        return self._session is not None

    # --- async context management ---------------------------------------------

    async def __aenter__(self) -> "CustomApiHandler":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """
        Drop the session and close the underlying client.

        The handler is unusable afterwards; `create_message` raises
        NotAuthenticatedError.
        """
        session, self._session = self._session, None
        if session is None:
            return
        close = getattr(session.client, "close", None)
        if close is None:
            return
        try:
            result = close()
            if inspect.isawaitable(result):
                await result
        except Exception:  # noqa: BLE001
            logger.debug("CustomApiHandler close() failed", exc_info=True)

    # --- public API -------------------------------------------------------------

    def get_model(self) -> ModelDescriptor:
        return self._model

    def create_message(
        self,
        system_prompt: str,
        turns: Sequence[TurnLike],
    ) -> CompletionStream:
        """
        Start a streamed completion.

        Raises NotAuthenticatedError / BadRequest immediately, before any
        network activity. Failures after that surface from the returned
        stream as CompletionRequestFailed.
        """
        session = self._session
        if session is None:
            raise NotAuthenticatedError()

        conversation = coerce_turns(turns)
        if not conversation:
            raise BadRequest("turns must not be empty")

        request = build_request(self._model, system_prompt, conversation)
        logger.debug(
            "custom API request built (model=%s, turns=%d, cache_marked=%s)",
            self._model.id,
            len(conversation),
            sorted(cache_marked_indices(conversation)),
        )
        return CompletionStream(
            client=session.client,
            request=request,
            context={"model": self._model.id, "turns_count": len(conversation)},
        )


__all__ = [
    "CompletionStream",
    "CustomApiHandler",
    "translate_error",
]
