# customapi_sdk/core/error_context.py
# SPDX-License-Identifier: Apache-2.0

"""
Error context utilities.

Attach debugging metadata to exceptions as they leave the adapter, without
touching the exception's message, type or traceback:

    try:
        async for event in stream:
            ...
    except CompletionRequestFailed as exc:
        context = get_context(exc)
        logger.error(
            "completion failed",
            extra={
                "operation": context.get("operation"),
                "model": context.get("model"),
                "events_emitted": context.get("events_emitted"),
            },
        )

Context lives in `__customapi_context__` (canonical) and
`__<component>_context__`. Repeated calls merge rather than overwrite, so
several layers can contribute. Never put secrets or tokens in context.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping, Optional

logger = logging.getLogger(__name__)

_CANONICAL_ATTR = "__customapi_context__"


def attach_context(
    exc: BaseException,
    component: str,
    **context: Any,
) -> None:
    """
    Attach debugging context to an exception.

    Parameters
    ----------
    exc:
        The exception to enrich.
    component:
        Origin of the context (e.g. "custom_api"). Stored under the
        "component" key unless an earlier layer already set it.
    **context:
        Keys such as operation, model, turns_count, events_emitted.

    Attachment is best-effort: a failure here is logged at debug level and
    never masks the original exception.
    """
    try:
        merged_context: MutableMapping[str, Any] = {}

        existing = getattr(exc, _CANONICAL_ATTR, None)
        if isinstance(existing, Mapping):
            merged_context.update(existing)

        merged_context.setdefault("component", component)
        merged_context.update(context)

        setattr(exc, _CANONICAL_ATTR, merged_context)
        setattr(exc, f"__{component}_context__", merged_context)

    except Exception as attachment_error:  # noqa: BLE001
        logger.debug(
            "Failed to attach error context to %s: %s",
            type(exc).__name__,
            attachment_error,
            extra={"component": component},
        )


def get_context(
    exc: BaseException,
    *,
    component: Optional[str] = None,
) -> Mapping[str, Any]:
    """
    Retrieve attached context, preferring the component-specific attribute
    when `component` is given. Returns an empty dict when nothing is attached.
    """
    if component:
        ctx = getattr(exc, f"__{component}_context__", None)
        if isinstance(ctx, Mapping):
            return ctx

    ctx = getattr(exc, _CANONICAL_ATTR, None)
    if isinstance(ctx, Mapping):
        return ctx
    return {}


__all__ = ["attach_context", "get_context"]
