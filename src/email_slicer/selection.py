"""Selection validation and the ``selection-changed`` broadcast."""

from __future__ import annotations

from typing import Optional, cast

from src.email_slicer.interfaces import FrameNode, SceneService
from src.email_slicer.models import FRAME_NODE, SelectionJSON
from src.email_slicer.regions import round_half_up

__all__ = ["describe_selection", "get_selected_frame"]


def get_selected_frame(scene: SceneService) -> Optional[FrameNode]:
    """Return the selected frame when exactly one frame is selected, else ``None``."""

    selection = scene.get_selection()
    if len(selection) != 1:
        return None
    node = selection[0]
    if node.node_type != FRAME_NODE:
        return None
    return cast(FrameNode, node)


def describe_selection(scene: SceneService) -> SelectionJSON:
    """Build the ``selection-changed`` message for the current selection."""

    frame = get_selected_frame(scene)
    if frame is None:
        return SelectionJSON(type="selection-changed", valid=False)
    return SelectionJSON(
        type="selection-changed",
        valid=True,
        frameName=frame.name,
        frameWidth=round_half_up(frame.width),
        frameHeight=round_half_up(frame.height),
        guideCount=sum(1 for guide in frame.guides if guide.axis == "Y"),
    )
