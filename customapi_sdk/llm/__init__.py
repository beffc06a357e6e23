# customapi_sdk/llm/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""
Custom API LLM adapter - Public API

All public types and the handler are re-exported here for clean imports.
"""

from customapi_sdk.llm.llm_base import (
    # Protocol version
    CUSTOM_API_PROTOCOL_VERSION,
    DEFAULT_MODEL_ID,
    DEFAULT_MAX_OUTPUT_TOKENS,

    # Error types
    LLMAdapterError,
    AuthenticationError,
    AuthenticationTransportError,
    NotAuthenticatedError,
    BadRequest,
    StreamProtocolError,
    CompletionRequestFailed,

    # Authentication
    Credential,
    Session,
    Authenticator,

    # Conversation model
    EPHEMERAL,
    TextPart,
    BlockPart,
    ContentPart,
    ConversationTurn,

    # Model descriptor
    ModelLimits,
    ModelCapabilities,
    ModelPricing,
    ModelDescriptor,

    # Normalized events
    TextEvent,
    UsageEvent,
    NormalizedEvent,
    event_to_dict,
)
from customapi_sdk.llm.auth import TokenAuthenticator
from customapi_sdk.llm.request_shaping import (
    PROMPT_CACHING_BETA,
    build_request,
    cache_marked_indices,
    shape_messages,
)
from customapi_sdk.llm.stream_normalization import normalize_event, normalize_stream
from customapi_sdk.llm.custom_adapter import (
    CompletionStream,
    CustomApiHandler,
    translate_error,
)

__all__ = [
    # Protocol version
    "CUSTOM_API_PROTOCOL_VERSION",
    "DEFAULT_MODEL_ID",
    "DEFAULT_MAX_OUTPUT_TOKENS",

    # Error types
    "LLMAdapterError",
    "AuthenticationError",
    "AuthenticationTransportError",
    "NotAuthenticatedError",
    "BadRequest",
    "StreamProtocolError",
    "CompletionRequestFailed",

    # Authentication
    "Credential",
    "Session",
    "Authenticator",
    "TokenAuthenticator",

    # Conversation model
    "EPHEMERAL",
    "TextPart",
    "BlockPart",
    "ContentPart",
    "ConversationTurn",

    # Model descriptor
    "ModelLimits",
    "ModelCapabilities",
    "ModelPricing",
    "ModelDescriptor",

    # Normalized events
    "TextEvent",
    "UsageEvent",
    "NormalizedEvent",
    "event_to_dict",

    # Request shaping / normalization
    "PROMPT_CACHING_BETA",
    "build_request",
    "cache_marked_indices",
    "shape_messages",
    "normalize_event",
    "normalize_stream",

    # Handler
    "CompletionStream",
    "CustomApiHandler",
    "translate_error",
]

__version__ = CUSTOM_API_PROTOCOL_VERSION
