"""Concrete scene hosts."""

from __future__ import annotations

from .document import (
    DocumentArtifact,
    DocumentFrame,
    DocumentGroup,
    DocumentScene,
    load_scene,
    save_scene,
)

__all__ = [
    "DocumentArtifact",
    "DocumentFrame",
    "DocumentGroup",
    "DocumentScene",
    "load_scene",
    "save_scene",
]
