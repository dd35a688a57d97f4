"""Exception hierarchy for the hummingbird environment."""

from __future__ import annotations


class HummingbirdError(Exception):
    """Base class for errors raised by this package."""


class FlowerNotFoundError(HummingbirdError, KeyError):
    """A nectar collider was looked up that no flower area registered."""

    def __init__(self, collider) -> None:
        super().__init__(f"no flower registered for collider {collider!r}")
        self.collider = collider


class SafePlacementError(HummingbirdError):
    """Every spawn candidate overlapped existing geometry."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"could not find a collision-free spawn point in {attempts} attempts")
        self.attempts = attempts


class TrainingModeError(HummingbirdError):
    """An operation was requested that is not supported in training mode."""
