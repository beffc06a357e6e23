# customapi_sdk/llm/request_shaping.py
# SPDX-License-Identifier: Apache-2.0
"""
Request shaping for the custom API.

Builds the Messages API request and applies the cache-affinity policy:

- The system prompt is always marked.
- Only the last and second-to-last user turns are marked, on their final
  content part. Everything else is sent as given.

Marking is a pure annotation pass: turns are never reordered, dropped or
mutated in place.
"""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, List, Mapping, Sequence, Union

from customapi_sdk.llm.llm_base import (
    BadRequest,
    BlockPart,
    ConversationTurn,
    DEFAULT_MAX_OUTPUT_TOKENS,
    EPHEMERAL,
    ModelDescriptor,
    TextPart,
)

PROMPT_CACHING_BETA = "prompt-caching-2024-07-31"

TurnLike = Union[ConversationTurn, Mapping[str, Any]]


def coerce_turns(turns: Sequence[TurnLike]) -> List[ConversationTurn]:
    """Accept ConversationTurn objects or provider-style message mappings."""
    out: List[ConversationTurn] = []
    for turn in turns:
        if isinstance(turn, ConversationTurn):
            out.append(turn)
        elif isinstance(turn, Mapping):
            out.append(ConversationTurn.from_mapping(turn))
        else:
            raise BadRequest(f"unsupported turn type: {type(turn).__name__}")
    return out


def system_blocks(system_prompt: str) -> List[Dict[str, Any]]:
    return [TextPart(text=system_prompt, cache_control=EPHEMERAL).to_block()]


def cache_marked_indices(turns: Sequence[ConversationTurn]) -> FrozenSet[int]:
    """Positions of the last and second-to-last user turns (at most two)."""
    user_positions = [i for i, turn in enumerate(turns) if turn.role == "user"]
    return frozenset(user_positions[-2:])


def _part_to_block(part: Union[TextPart, BlockPart], *, marked: bool) -> Dict[str, Any]:
    block = part.to_block()
    if marked:
        block["cache_control"] = dict(EPHEMERAL)
    return block


def _shape_turn(turn: ConversationTurn, *, marked: bool) -> Dict[str, Any]:
    if isinstance(turn.content, str):
        if not marked:
            return {"role": turn.role, "content": turn.content}
        return {
            "role": turn.role,
            "content": [TextPart(text=turn.content, cache_control=EPHEMERAL).to_block()],
        }

    last = len(turn.content) - 1
    return {
        "role": turn.role,
        "content": [
            _part_to_block(part, marked=marked and i == last)
            for i, part in enumerate(turn.content)
        ],
    }


def shape_messages(turns: Sequence[ConversationTurn]) -> List[Dict[str, Any]]:
    """Render turns as Messages API params with cache markers applied."""
    marked = cache_marked_indices(turns)
    return [_shape_turn(turn, marked=i in marked) for i, turn in enumerate(turns)]


def build_request(
    model: ModelDescriptor,
    system_prompt: str,
    turns: Sequence[ConversationTurn],
) -> Dict[str, Any]:
    """
    Keyword arguments for `client.messages.create`.

    Sampling is deterministic (temperature 0) and the prompt-caching beta
    header is always sent.
    """
    return {
        "model": model.id,
        "max_tokens": model.limits.max_output_tokens or DEFAULT_MAX_OUTPUT_TOKENS,
        "temperature": 0,
        "system": system_blocks(system_prompt),
        "messages": shape_messages(turns),
        "stream": True,
        "extra_headers": {"anthropic-beta": PROMPT_CACHING_BETA},
    }


__all__ = [
    "PROMPT_CACHING_BETA",
    "TurnLike",
    "build_request",
    "cache_marked_indices",
    "coerce_turns",
    "shape_messages",
    "system_blocks",
]
