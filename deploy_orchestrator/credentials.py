"""Credential helpers for reading platform tokens from the environment."""

from __future__ import annotations

import os
from typing import Dict, Optional

from deploy_orchestrator.errors import MissingCredentialsError

TOKEN_ENV_VARS: Dict[str, str] = {
    "vercel": "VERCEL_TOKEN",
    "render": "RENDER_TOKEN",
}


def _read_env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def fetch_token(platform: str) -> str:
    """Return the access token for ``platform``.

    The environment is consulted on every call so that a token exported after
    startup is picked up by the next request. Blank values count as missing.
    """

    env_var = TOKEN_ENV_VARS.get(platform)
    if env_var is None:
        raise MissingCredentialsError(f"No credential is configured for platform '{platform}'")

    token = _read_env(env_var)
    if not token:
        raise MissingCredentialsError(f"{env_var} environment variable is required")
    return token


def get_credentials_status() -> Dict[str, str]:
    """Return presence flags for every platform token.

    Secrets are never returned, only whether each variable is set.
    """

    return {
        f"{platform}_token": "present" if _read_env(env_var) else "missing"
        for platform, env_var in TOKEN_ENV_VARS.items()
    }
