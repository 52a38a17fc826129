"""Engine configuration.

Defaults can be overridden in code or from the environment:

    CORRELATOR_MAX_IDENTIFIER            Highest identifier the engine will issue
    CORRELATOR_UNMATCHED_LOG_LEVEL       Level for unmatched-response logs (DEBUG)
    CORRELATOR_PENDING_WARNING_THRESHOLD Warn every N outstanding calls ("none" disables)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

# Identifiers stay within a signed 64-bit integer so peers using
# fixed-width ids can carry them unchanged.
MAX_IDENTIFIER = 2**63 - 1

DEFAULT_PENDING_WARNING_THRESHOLD = 10_000


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for a CorrelationEngine."""

    # Identifier allocation
    max_identifier: int = MAX_IDENTIFIER

    # Observability for dropped responses and outstanding calls
    unmatched_log_level: int = logging.DEBUG
    pending_warning_threshold: int | None = DEFAULT_PENDING_WARNING_THRESHOLD

    def __post_init__(self) -> None:
        if self.max_identifier < 0:
            raise ValueError(f"max_identifier must be >= 0, got {self.max_identifier}")
        if self.pending_warning_threshold is not None and self.pending_warning_threshold <= 0:
            raise ValueError(
                f"pending_warning_threshold must be positive, got {self.pending_warning_threshold}"
            )

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Build a config from CORRELATOR_* environment variables."""
        kwargs: dict[str, object] = {}

        if raw := os.getenv("CORRELATOR_MAX_IDENTIFIER"):
            kwargs["max_identifier"] = _parse_int("CORRELATOR_MAX_IDENTIFIER", raw)

        if raw := os.getenv("CORRELATOR_UNMATCHED_LOG_LEVEL"):
            kwargs["unmatched_log_level"] = _parse_level(raw)

        if raw := os.getenv("CORRELATOR_PENDING_WARNING_THRESHOLD"):
            if raw.strip().lower() in ("none", "off", "0"):
                kwargs["pending_warning_threshold"] = None
            else:
                kwargs["pending_warning_threshold"] = _parse_int(
                    "CORRELATOR_PENDING_WARNING_THRESHOLD", raw
                )

        return cls(**kwargs)  # type: ignore[arg-type]


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _parse_level(raw: str) -> int:
    """Accept a level name ("warning") or number ("30")."""
    value = raw.strip()
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    if not isinstance(level, int):
        raise ValueError(f"CORRELATOR_UNMATCHED_LOG_LEVEL is not a logging level: {raw!r}")
    return level
