"""Engine configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

LOG_LEVEL_ENV_VAR = "PLANMOD_LOG_LEVEL"
"""Environment variable read by the CLI for the default log level."""

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class EngineOptions:
    """
    Tunables for one reconciliation pass.

    Attributes:
        warn_on_ambiguous_match: Emit a warning when a set element that
            carries prior state forward cannot be matched to a unique prior
            element
        stop_chain_on_error: Skip the remaining modifiers of an attribute
            once one of them reports an error
    """

    warn_on_ambiguous_match: bool = True
    stop_chain_on_error: bool = True

    @classmethod
    def from_environment(cls) -> EngineOptions:
        """Create EngineOptions from environment variables."""
        return cls(
            warn_on_ambiguous_match=_env_flag("PLANMOD_WARN_AMBIGUOUS", True),
            stop_chain_on_error=_env_flag("PLANMOD_STOP_CHAIN_ON_ERROR", True),
        )
