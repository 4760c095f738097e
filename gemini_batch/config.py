"""Environment configuration for batch runs.

Values come from environment variables; command-line flags override
them at the entry point.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from gemini_batch.remote.gemini import DEFAULT_MODEL
from gemini_batch.utils.errors import ConfigurationError

API_KEY_VARIABLES = ("GEMINI_API_KEY", "GOOGLE_AI_KEY")


def _number(env: Mapping[str, str], name: str, default: float, kind: type) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return kind(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got: {raw!r}") from None


@dataclass
class Settings:
    """Credentials and batch defaults for one invocation."""

    api_key: str
    model: str = DEFAULT_MODEL
    timeout: float = 600.0
    jobs: int = 2
    delay: float = 5.0
    max_retries: int = 3

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        """Read settings from the environment.

        Args:
            env: Mapping to read instead of ``os.environ``.

        Raises:
            ConfigurationError: If no API key is set or a numeric value
                cannot be parsed.
        """
        env = os.environ if env is None else env
        api_key = next((env[name] for name in API_KEY_VARIABLES if env.get(name)), None)
        if api_key is None:
            raise ConfigurationError(
                "GEMINI_API_KEY or GOOGLE_AI_KEY environment variable not set"
            )
        return cls(
            api_key=api_key,
            model=env.get("GEMINI_MODEL") or DEFAULT_MODEL,
            timeout=_number(env, "GEMINI_TIMEOUT", 600.0, float),
            jobs=_number(env, "BATCH_JOBS", 2, int),
            delay=_number(env, "BATCH_DELAY", 5.0, float),
            max_retries=_number(env, "BATCH_MAX_RETRIES", 3, int),
        )
