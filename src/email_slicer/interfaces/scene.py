"""Protocols describing the design host and the UI message channel."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Optional, Protocol

from src.email_slicer.models import Guide

__all__ = [
    "ArtifactNode",
    "FrameNode",
    "GroupNode",
    "MessageSink",
    "SceneNode",
    "SceneService",
]


class SceneNode(Protocol):
    """Any node the host can report as selected."""

    id: str
    name: str
    node_type: str


class FrameNode(SceneNode, Protocol):
    """Rectangular container whose guides drive slicing."""

    width: float
    height: float
    absolute_x: float
    absolute_y: float
    guides: Sequence[Guide]


class ArtifactNode(SceneNode, Protocol):
    """Export boundary placed on the page; always a rectangle."""

    width: float
    height: float
    absolute_x: float
    absolute_y: float
    tags: Mapping[str, str]


class GroupNode(SceneNode, Protocol):
    """Named container of artifacts at page root."""

    children: Sequence[ArtifactNode]


class SceneService(Protocol):
    """Capabilities the slicer needs from the design host."""

    def get_selection(self) -> Sequence[SceneNode]:
        """Return the nodes currently selected on the active page."""
        ...

    def find_group(self, name: str) -> Optional[GroupNode]:
        """Return the page-root group called *name*, if any."""
        ...

    def remove_node(self, node: SceneNode) -> None:
        """Remove *node* (and any children) from the page."""
        ...

    def create_artifact(
        self,
        *,
        x: float,
        y: float,
        width: float,
        height: float,
        name: str = "",
        tags: Optional[Mapping[str, str]] = None,
    ) -> ArtifactNode:
        """Create an ungrouped artifact at page-absolute coordinates."""
        ...

    def group(self, nodes: Sequence[ArtifactNode], name: str) -> GroupNode:
        """Group *nodes* at page root under *name*."""
        ...

    async def export_artifact(self, artifact: ArtifactNode, *, image_format: str, scale: float) -> bytes:
        """Rasterise everything beneath *artifact* and return the encoded image."""
        ...

    def set_guides(self, frame: FrameNode, guides: Sequence[Guide]) -> None:
        """Replace the guides of *frame*."""
        ...


class MessageSink(Protocol):
    """One-way, ordered channel from the core to the UI."""

    def post_message(self, message: Mapping[str, Any]) -> None:
        """Deliver *message*; the core never waits for a reply."""
        ...
