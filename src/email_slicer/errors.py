from __future__ import annotations

__all__ = [
    "NoArtifactsError",
    "NoGuidesError",
    "RegionCapacityError",
    "SceneError",
    "SlicerError",
]


class SlicerError(RuntimeError):
    """Base class for user-facing slicing and export failures."""


class NoGuidesError(SlicerError):
    """Raised when the selected frame has no usable horizontal guides."""


class RegionCapacityError(SlicerError):
    """Raised when the guides would produce more regions than allowed."""

    def __init__(self, count: int, limit: int) -> None:
        super().__init__(f"Too many slices ({count}). Consider reducing guides.")
        self.count = count
        self.limit = limit


class NoArtifactsError(SlicerError):
    """Raised when there are no slice artifacts to export."""


class SceneError(SlicerError):
    """Raised when the scene host cannot satisfy a request."""
