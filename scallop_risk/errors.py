"""Error types for the three failure tiers of the query layer."""
from __future__ import annotations

from dataclasses import dataclass


class ScallopRiskError(Exception):
    """Base class for errors raised by this package."""


class RequiredObjectNotFound(ScallopRiskError):
    """An object the whole query anchors on could not be resolved.

    Terminal for the query; this layer never retries it.
    """

    def __init__(self, kind: str, object_id: str) -> None:
        self.kind = kind
        self.object_id = object_id
        super().__init__(f"Required {kind} object not found: {object_id}")


class InvariantViolation(ScallopRiskError, AssertionError):
    """Raw ledger data breaks a structural invariant.

    Indicates a bug in the fetch layer. Never clamped away, since the
    values feed transaction-safety decisions.
    """


@dataclass(frozen=True)
class PoolDataUnavailable:
    """Returned instead of pool metrics when the balance sheet is incomplete."""

    coin_name: str
    reason: str

    def __bool__(self) -> bool:
        return False


def require(condition: bool, message: str) -> None:
    """Raise :class:`InvariantViolation` unless ``condition`` holds."""
    if not condition:
        raise InvariantViolation(message)
