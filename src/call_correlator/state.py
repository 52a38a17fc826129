"""Engine state: the identifier counter plus the pending call registry."""

from __future__ import annotations

from dataclasses import dataclass, field

from .registry import EMPTY_REGISTRY, Registry


@dataclass(frozen=True)
class EngineState:
    """Entire mutable state of the engine, held as an immutable value.

    Transitions in ``dispatch`` return a new EngineState instead of
    modifying this one.
    """

    next_id: int = 0
    registry: Registry = field(default_factory=lambda: EMPTY_REGISTRY)

    @property
    def pending_count(self) -> int:
        """Number of calls issued and not yet matched."""
        return len(self.registry)

    def is_pending(self, envelope_id: int) -> bool:
        return envelope_id in self.registry


def init() -> EngineState:
    """Fresh state: no pending calls, first identifier 0."""
    return EngineState()
