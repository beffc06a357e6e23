# customapi_sdk/llm/auth.py
# SPDX-License-Identifier: Apache-2.0
"""
Session authentication for the custom API.

`TokenAuthenticator` turns a key + secret pair into an opaque bearer token and
an `AsyncAnthropic` client that presents that token on every request.

The token is base64-encoded JSON of the credential pair. It is a placeholder
scheme: deterministic, trivially reversible, and carrying no security
meaning. Substitute a real flow by passing any object that satisfies
`Authenticator` to the handler.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
from typing import Any, Callable, Optional

from anthropic import AsyncAnthropic

from customapi_sdk.llm.llm_base import (
    AuthenticationError,
    AuthenticationTransportError,
    Credential,
    Session,
)

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], Any]


def token_fingerprint(token: str) -> str:
    """Short, log-safe fingerprint of a token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:12]


def derive_token(credential: Credential) -> str:
    payload = json.dumps(
        {"apiKey": credential.key, "apiSecret": credential.secret},
        separators=(",", ":"),
    )
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


class TokenAuthenticator:
    """
    Default authenticator.

    Parameters
    ----------
    base_url:
        Optional endpoint override passed to the default client.
    client_factory:
        Callable receiving the derived token and returning a provider client.
        Defaults to `anthropic.AsyncAnthropic(api_key=token, base_url=base_url)`.
    """

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self._base_url = base_url
        self._client_factory = client_factory or self._default_client

    def _default_client(self, token: str) -> Any:
        return AsyncAnthropic(api_key=token, base_url=self._base_url)

    def authenticate(self, credential: Credential) -> Session:
        if not credential.key or not credential.secret:
            raise AuthenticationError(
                "Custom API requires both API key and secret for authentication"
            )

        try:
            token = derive_token(credential)
            client = self._client_factory(token)
        except Exception as exc:  # noqa: BLE001
            raise AuthenticationTransportError(
                f"Custom API authentication failed: {exc}"
            ) from exc

        logger.debug("custom API session established (token=%s)", token_fingerprint(token))
        return Session(token=token, client=client)


__all__ = [
    "ClientFactory",
    "TokenAuthenticator",
    "derive_token",
    "token_fingerprint",
]
