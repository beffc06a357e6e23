# SPDX-License-Identifier: Apache-2.0
"""
Shared pytest configuration for the custom API test suite.

Tests run against a fake Anthropic transport (tests/mock); no network access
and no real credentials are needed.
"""

from __future__ import annotations

import logging

import pytest


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    markers = [
        "llm: custom API adapter tests",
    ]
    for marker in markers:
        config.addinivalue_line("markers", marker)


@pytest.fixture(autouse=True)
def _adapter_debug_logging(caplog):
    """Run every test with adapter debug logging on, so log calls are exercised."""
    caplog.set_level(logging.DEBUG, logger="customapi_sdk")
    yield


@pytest.fixture(autouse=True)
def _no_custom_api_env(monkeypatch):
    """Keep tests hermetic regardless of the developer's shell environment."""
    for name in ("CUSTOM_API_KEY", "CUSTOM_API_SECRET", "CUSTOM_MODEL_ID", "CUSTOM_API_BASE_URL"):
        monkeypatch.delenv(name, raising=False)
