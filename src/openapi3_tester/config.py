"""Tester settings.

Environment variables override defaults:

    OPENAPI3_TESTER_BASE_URL          base URL used when a call gives none
    OPENAPI3_TESTER_TIMEOUT           transport timeout in seconds (0 = no limit)
    OPENAPI3_TESTER_FOLLOW_REDIRECTS  true/false
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

ENV_PREFIX = "OPENAPI3_TESTER_"

_DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class Settings:
    """Immutable tester configuration."""

    base_url: Optional[str] = None
    timeout: Optional[float] = _DEFAULT_TIMEOUT  # None = no limit
    follow_redirects: bool = False


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes", "on")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build ``Settings`` from *environ* (defaults to ``os.environ``)."""
    env = os.environ if environ is None else environ

    base_url = env.get(ENV_PREFIX + "BASE_URL") or None

    timeout: Optional[float] = _DEFAULT_TIMEOUT
    timeout_str = env.get(ENV_PREFIX + "TIMEOUT", "")
    if timeout_str:
        try:
            timeout = float(timeout_str)
        except ValueError:
            raise ValueError(
                f"{ENV_PREFIX}TIMEOUT must be a number of seconds, got {timeout_str!r}"
            ) from None
        if timeout == 0:
            timeout = None

    follow_redirects = _env_bool(env.get(ENV_PREFIX + "FOLLOW_REDIRECTS", "false"))

    return Settings(base_url=base_url, timeout=timeout, follow_redirects=follow_redirects)
