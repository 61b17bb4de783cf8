"""Exceptions raised by the draw engine."""

from __future__ import annotations


class DrawError(Exception):
    """Base class for every failure surfaced by the engine."""


class CapacityError(DrawError):
    """The eligible pool is smaller than the number of winners required."""

    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            f"Not enough participants: {required} required, {available} available"
        )
        self.required = required
        self.available = available


class ExhaustedError(DrawError):
    """The selected prize has no remaining slots (or no prize is selected)."""


class MalformedEventError(DrawError):
    """A live registration payload could not be understood."""


class ResourceTeardownError(DrawError):
    """The engine was used after :meth:`DrawEngine.teardown`."""


__all__ = [
    "DrawError",
    "CapacityError",
    "ExhaustedError",
    "MalformedEventError",
    "ResourceTeardownError",
]
