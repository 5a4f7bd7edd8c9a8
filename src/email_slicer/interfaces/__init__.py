"""Typed interface definitions for the host and UI adapters."""

from __future__ import annotations

from .scene import (
    ArtifactNode,
    FrameNode,
    GroupNode,
    MessageSink,
    SceneNode,
    SceneService,
)

__all__ = [
    "ArtifactNode",
    "FrameNode",
    "GroupNode",
    "MessageSink",
    "SceneNode",
    "SceneService",
]
