# SPDX-License-Identifier: Apache-2.0
"""
Custom API - session authentication.

Covers:
  • Missing or empty key/secret → AuthenticationError, no session, no client
  • Token derivation is deterministic and the client is built with that token
  • Client construction failures → AuthenticationTransportError with the cause chained
  • Incomplete sessions from a pluggable authenticator are rejected
  • Closed handlers reject completions with NotAuthenticatedError, no network activity
"""

import base64
import json

import pytest

from customapi_sdk.config import ApiHandlerOptions
from customapi_sdk.llm import (
    AuthenticationError,
    AuthenticationTransportError,
    Credential,
    CustomApiHandler,
    NotAuthenticatedError,
    Session,
    TokenAuthenticator,
)
from tests.mock.mock_anthropic_client import FakeAnthropicClient, make_handler


@pytest.mark.parametrize(
    "key,secret",
    [
        (None, "secret"),
        ("key", None),
        ("", "secret"),
        ("key", ""),
        (None, None),
        ("", ""),
    ],
)
def test_missing_credential_half_fails_before_client_construction(key, secret):
    built = []

    def factory(token):
        built.append(token)
        return FakeAnthropicClient()

    with pytest.raises(AuthenticationError) as excinfo:
        CustomApiHandler(
            ApiHandlerOptions(api_key=key, api_secret=secret),
            authenticator=TokenAuthenticator(client_factory=factory),
        )

    assert excinfo.value.code == "AUTHENTICATION_ERROR"
    assert built == [], "no client may be constructed for an invalid credential"


def test_token_is_deterministic_and_presented_to_client():
    handler_a, client_a = make_handler()
    handler_b, client_b = make_handler()

    assert handler_a.authenticated and handler_b.authenticated
    assert client_a.token == client_b.token

    decoded = json.loads(base64.b64decode(client_a.token))
    assert decoded == {"apiKey": "key-123", "apiSecret": "secret-456"}


def test_client_construction_failure_is_transport_error():
    cause = RuntimeError("proxy unreachable")

    def factory(token):
        raise cause

    with pytest.raises(AuthenticationTransportError) as excinfo:
        CustomApiHandler(
            ApiHandlerOptions(api_key="k", api_secret="s"),
            authenticator=TokenAuthenticator(client_factory=factory),
        )

    assert excinfo.value.__cause__ is cause
    assert "proxy unreachable" in str(excinfo.value)


def test_default_client_uses_token_as_api_key():
    session = TokenAuthenticator(base_url="http://127.0.0.1:9").authenticate(
        Credential(key="k", secret="s")
    )
    assert session.client.api_key == session.token
    assert str(session.client.base_url).startswith("http://127.0.0.1:9")


class _HalfAuthenticator:
    def authenticate(self, credential):
        return Session(token="", client=object())


def test_incomplete_session_is_not_observable():
    with pytest.raises(AuthenticationTransportError):
        CustomApiHandler(
            ApiHandlerOptions(api_key="k", api_secret="s"),
            authenticator=_HalfAuthenticator(),
        )


def test_credential_repr_hides_secret():
    assert "hunter2" not in repr(Credential(key="k", secret="hunter2"))
    assert "hunter2" not in repr(ApiHandlerOptions(api_key="k", api_secret="hunter2"))


@pytest.mark.asyncio
async def test_closed_handler_rejects_completion_without_network():
    handler, client = make_handler()

    await handler.close()

    assert not handler.authenticated
    assert client.close_calls == 1
    with pytest.raises(NotAuthenticatedError) as excinfo:
        handler.create_message("system", [{"role": "user", "content": "hi"}])
    assert excinfo.value.code == "NOT_AUTHENTICATED"
    assert client.messages.calls == [], "no request may be attempted"

    # close is idempotent
    await handler.close()
    assert client.close_calls == 1


def test_logs_never_contain_secret_or_token(caplog):
    handler, client = make_handler()
    handler.create_message("system", [{"role": "user", "content": "hi"}])

    assert "custom API session established" in caplog.text
    assert "custom API request built" in caplog.text
    assert "secret-456" not in caplog.text
    assert client.token not in caplog.text
