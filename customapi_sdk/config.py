# customapi_sdk/config.py
# SPDX-License-Identifier: Apache-2.0
"""
Handler configuration.

Responsibilities:
- Carry the credential pair, model id and endpoint override
- Optionally read them from environment variables

Non-responsibilities:
- No credential storage
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional


@dataclass(frozen=True)
class ApiHandlerOptions:
    """
    Immutable handler options, supplied once at construction.

    Secrets are excluded from repr so options can be logged safely.
    """

    api_key: Optional[str] = field(default=None, repr=False)
    api_secret: Optional[str] = field(default=None, repr=False)
    model_id: Optional[str] = None
    base_url: Optional[str] = None

    @staticmethod
    def load_from_env(environ: Optional[Mapping[str, str]] = None) -> "ApiHandlerOptions":
        """
        Load options from environment variables.

            CUSTOM_API_KEY, CUSTOM_API_SECRET   credential pair
            CUSTOM_MODEL_ID                     optional model id
            CUSTOM_API_BASE_URL                 optional endpoint override

        Missing variables are left as None; the authenticator decides
        whether the resulting credential is usable.
        """
        env = os.environ if environ is None else environ
        return ApiHandlerOptions(
            api_key=env.get("CUSTOM_API_KEY"),
            api_secret=env.get("CUSTOM_API_SECRET"),
            model_id=env.get("CUSTOM_MODEL_ID") or None,
            base_url=env.get("CUSTOM_API_BASE_URL") or None,
        )


__all__ = ["ApiHandlerOptions"]
