# customapi_sdk/llm/llm_base.py
# SPDX-License-Identifier: Apache-2.0
"""
Custom API SDK - shared contract types

Purpose
-------
Provider-neutral types shared by the authenticator, the request shaper,
the stream normalizer and the handler:

- Normalized error taxonomy (machine-actionable `code`, JSON-safe `details`)
- Credential / Session binding
- Conversation turns and content parts
- Static model descriptor (limits, capabilities, pricing)
- NormalizedEvent union: the only data handed back to callers

Design Philosophy
-----------------
- Immutable value objects (frozen dataclasses) for everything supplied at
  construction time.
- Provider SDK types never cross this boundary; the adapter erases them.
- No retries, routing or fallback. Those live in the calling application.

Normalized event wire form
--------------------------
    {"type": "text", "text": "<fragment>"}

    {
        "type": "usage",
        "inputTokens": <int>,
        "outputTokens": <int>,
        "cacheWriteTokens": <int>,   # only when reported
        "cacheReadTokens": <int>     # only when reported
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import (
    Any,
    Dict,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    Union,
    runtime_checkable,
)


CUSTOM_API_PROTOCOL_VERSION = "1.0.0"

DEFAULT_MODEL_ID = "custom-default"
DEFAULT_MAX_OUTPUT_TOKENS = 4096

_ALLOWED_ROLES = {"user", "assistant"}

# =============================================================================
# Normalized Errors
# =============================================================================

class LLMAdapterError(Exception):
    """
    Base exception for all custom API adapter errors.

    Attributes:
        message:
            Human-readable description (safe for logs and clients).
        code:
            Upper-snake-case machine code; set by each subclass.
        details:
            Additional JSON-safe context (never include secrets).
    """
    def __init__(
        self,
        message: str = "",
        *,
        code: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = dict(details or {})

    def __str__(self) -> str:
        base = self.message or self.__class__.__name__
        if self.code:
            base += f" [code={self.code}]"
        if self.details:
            base += f" details={self.details}"
        return base


class AuthenticationError(LLMAdapterError):
    """
    Credential shape is invalid: key or secret missing or empty.

    Detected before any I/O. Fatal to the handler instance.
    """
    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("code", "AUTHENTICATION_ERROR")
        super().__init__(message, **kwargs)


class AuthenticationTransportError(LLMAdapterError):
    """
    Credential was well-formed but token derivation or client construction
    failed. Fatal to the handler instance; the cause is chained.
    """
    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("code", "AUTHENTICATION_TRANSPORT_ERROR")
        super().__init__(message, **kwargs)


class NotAuthenticatedError(LLMAdapterError):
    """Completion requested on a handler that holds no session."""
    def __init__(self, message: str = "Not authenticated. Please check your credentials.", **kwargs: Any):
        kwargs.setdefault("code", "NOT_AUTHENTICATED")
        super().__init__(message, **kwargs)


class BadRequest(LLMAdapterError):
    """
    Caller error: empty conversation, unknown role or malformed turn.
    """
    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("code", "BAD_REQUEST")
        super().__init__(message, **kwargs)


class StreamProtocolError(LLMAdapterError):
    """
    Raw stream event is malformed or reports a provider-side error.

    Never reaches callers directly: the completion stream wraps it in
    CompletionRequestFailed.
    """
    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("code", "STREAM_PROTOCOL_ERROR")
        super().__init__(message, **kwargs)


class CompletionRequestFailed(LLMAdapterError):
    """
    Any failure while submitting a request or reading its stream.

    Fatal to that call only; the handler stays usable. Events yielded before
    the failure remain valid.

    Attributes:
        cause:
            The underlying exception (also available as __cause__).
        status_code:
            HTTP status reported by the provider, when known.
        retry_after_ms:
            Backoff hint parsed from the provider's Retry-After header.
    """
    def __init__(
        self,
        message: str,
        *,
        cause: Optional[BaseException] = None,
        status_code: Optional[int] = None,
        retry_after_ms: Optional[int] = None,
        **kwargs: Any,
    ):
        kwargs.setdefault("code", "COMPLETION_REQUEST_FAILED")
        super().__init__(message, **kwargs)
        self.cause = cause
        self.status_code = status_code
        self.retry_after_ms = retry_after_ms

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            base += f" status_code={self.status_code}"
        if self.retry_after_ms is not None:
            base += f" retry_after_ms={self.retry_after_ms}"
        return base


# =============================================================================
# Credential / Session
# =============================================================================

@dataclass(frozen=True)
class Credential:
    """Key + secret pair supplied once at construction. Secret is never shown in repr."""
    key: Optional[str]
    secret: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class Session:
    """
    Authenticated binding between a credential and a transport client.

    Attributes:
        token:
            Opaque bearer token. Not reversible by contract, not security-bearing.
        client:
            Provider client configured to present `token` on every request.
    """
    token: str = field(repr=False)
    client: Any


@runtime_checkable
class Authenticator(Protocol):
    """Credential → Session capability; swap in a real provider auth flow here."""
    def authenticate(self, credential: Credential) -> Session: ...


# =============================================================================
# Conversation model
# =============================================================================

CacheControl = Mapping[str, str]
EPHEMERAL: CacheControl = MappingProxyType({"type": "ephemeral"})


@dataclass(frozen=True)
class TextPart:
    """Plain text span."""
    text: str
    cache_control: Optional[CacheControl] = None

    def to_block(self) -> Dict[str, Any]:
        block: Dict[str, Any] = {"type": "text", "text": self.text}
        if self.cache_control is not None:
            block["cache_control"] = dict(self.cache_control)
        return block


@dataclass(frozen=True)
class BlockPart:
    """Richer content (image, tool_result, ...) carried as a provider block mapping."""
    block: Mapping[str, Any]
    cache_control: Optional[CacheControl] = None

    def to_block(self) -> Dict[str, Any]:
        out = dict(self.block)
        if self.cache_control is not None:
            out["cache_control"] = dict(self.cache_control)
        return out


ContentPart = Union[TextPart, BlockPart]


@dataclass(frozen=True)
class ConversationTurn:
    """
    One message of the dialogue.

    `content` is either a plain string or an ordered tuple of content parts.
    """
    role: str
    content: Union[str, Tuple[ContentPart, ...]]

    def __post_init__(self) -> None:
        if self.role not in _ALLOWED_ROLES:
            raise BadRequest(f"unknown role: {self.role!r}")
        if isinstance(self.content, str):
            return
        if isinstance(self.content, (bytes, Mapping)) or not hasattr(self.content, "__iter__"):
            raise BadRequest(f"unsupported content type: {type(self.content).__name__}")
        parts = tuple(self.content)
        if not parts:
            raise BadRequest("content must not be empty")
        for part in parts:
            if not isinstance(part, (TextPart, BlockPart)):
                raise BadRequest(f"content part must be TextPart or BlockPart, got {type(part).__name__}")
        object.__setattr__(self, "content", parts)

    @classmethod
    def from_mapping(cls, message: Mapping[str, Any]) -> "ConversationTurn":
        """
        Build a turn from a provider-style message mapping:

            {"role": "user", "content": "hi"}
            {"role": "user", "content": [{"type": "text", "text": "hi"}, ...]}
        """
        if "role" not in message or "content" not in message:
            raise BadRequest("message must contain 'role' and 'content'")
        content = message["content"]
        if isinstance(content, str):
            return cls(role=str(message["role"]), content=content)
        if not isinstance(content, (list, tuple)):
            raise BadRequest(f"unsupported content type: {type(content).__name__}")

        parts = []
        for block in content:
            if not isinstance(block, Mapping):
                raise BadRequest(f"content block must be a mapping, got {type(block).__name__}")
            cache_control = block.get("cache_control")
            if block.get("type") == "text" and set(block) <= {"type", "text", "cache_control"}:
                parts.append(TextPart(text=str(block.get("text", "")), cache_control=cache_control))
            else:
                rest = {k: v for k, v in block.items() if k != "cache_control"}
                parts.append(BlockPart(block=rest, cache_control=cache_control))
        return cls(role=str(message["role"]), content=tuple(parts))


# =============================================================================
# Model descriptor
# =============================================================================

@dataclass(frozen=True)
class ModelLimits:
    max_output_tokens: int
    context_window: int


@dataclass(frozen=True)
class ModelCapabilities:
    supports_images: bool = False
    supports_cached_prompts: bool = False
    supports_tool_use: bool = False


@dataclass(frozen=True)
class ModelPricing:
    """Prices per million tokens."""
    input_per_unit: float
    output_per_unit: float


@dataclass(frozen=True)
class ModelDescriptor:
    """
    Static, read-only description of the configured model.

    Callers use it for token limits, pricing and feature flags without
    reaching into the adapter.
    """
    id: str
    limits: ModelLimits
    capabilities: ModelCapabilities
    pricing: ModelPricing
    description: str = ""


CUSTOM_MODEL_LIMITS = ModelLimits(max_output_tokens=DEFAULT_MAX_OUTPUT_TOKENS, context_window=16_384)
CUSTOM_MODEL_CAPABILITIES = ModelCapabilities(
    supports_images=False,
    supports_cached_prompts=True,
    supports_tool_use=True,
)
CUSTOM_MODEL_PRICING = ModelPricing(input_per_unit=0.5, output_per_unit=1.5)
CUSTOM_MODEL_DESCRIPTION = "Custom API model with authentication"


# =============================================================================
# Normalized events
# =============================================================================

@dataclass(frozen=True)
class TextEvent:
    """Incremental assistant text."""
    text: str
    kind: str = field(default="text", init=False)


@dataclass(frozen=True)
class UsageEvent:
    """
    Token accounting as it becomes known.

    Cache counts are None when the provider did not report them.
    """
    input_tokens: int
    output_tokens: int
    cache_write_tokens: Optional[int] = None
    cache_read_tokens: Optional[int] = None
    kind: str = field(default="usage", init=False)


NormalizedEvent = Union[TextEvent, UsageEvent]


def event_to_dict(event: NormalizedEvent) -> Dict[str, Any]:
    """Render a normalized event in its JSON wire form."""
    if isinstance(event, TextEvent):
        return {"type": "text", "text": event.text}
    if isinstance(event, UsageEvent):
        out: Dict[str, Any] = {
            "type": "usage",
            "inputTokens": event.input_tokens,
            "outputTokens": event.output_tokens,
        }
        if event.cache_write_tokens is not None:
            out["cacheWriteTokens"] = event.cache_write_tokens
        if event.cache_read_tokens is not None:
            out["cacheReadTokens"] = event.cache_read_tokens
        return out
    raise TypeError(f"not a normalized event: {type(event).__name__}")


__all__ = [
    "CUSTOM_API_PROTOCOL_VERSION",
    "DEFAULT_MODEL_ID",
    "DEFAULT_MAX_OUTPUT_TOKENS",
    "LLMAdapterError",
    "AuthenticationError",
    "AuthenticationTransportError",
    "NotAuthenticatedError",
    "BadRequest",
    "StreamProtocolError",
    "CompletionRequestFailed",
    "Credential",
    "Session",
    "Authenticator",
    "CacheControl",
    "EPHEMERAL",
    "TextPart",
    "BlockPart",
    "ContentPart",
    "ConversationTurn",
    "ModelLimits",
    "ModelCapabilities",
    "ModelPricing",
    "ModelDescriptor",
    "CUSTOM_MODEL_LIMITS",
    "CUSTOM_MODEL_CAPABILITIES",
    "CUSTOM_MODEL_PRICING",
    "CUSTOM_MODEL_DESCRIPTION",
    "TextEvent",
    "UsageEvent",
    "NormalizedEvent",
    "event_to_dict",
]
