"""In-memory SceneService double that records every host call."""

from __future__ import annotations

import itertools
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from src.email_slicer.models import FRAME_NODE, GROUP_NODE, SLICE_NODE, Guide

_ids = itertools.count(1)


@dataclass(eq=False)
class FakeFrame:
    name: str = "Newsletter"
    width: float = 600.0
    height: float = 900.0
    absolute_x: float = 100.0
    absolute_y: float = 50.0
    guides: List[Guide] = field(default_factory=list)
    id: str = field(default_factory=lambda: f"frame:{next(_ids)}")
    node_type: str = FRAME_NODE


@dataclass(eq=False)
class FakeArtifact:
    absolute_x: float
    absolute_y: float
    width: float
    height: float
    name: str = "Slice"
    tags: Dict[str, str] = field(default_factory=dict)
    id: str = field(default_factory=lambda: f"slice:{next(_ids)}")
    node_type: str = SLICE_NODE


@dataclass(eq=False)
class FakeGroup:
    name: str
    children: List[Any] = field(default_factory=list)
    id: str = field(default_factory=lambda: f"group:{next(_ids)}")
    node_type: str = GROUP_NODE


class FakeScene:
    def __init__(self, frame: Optional[FakeFrame] = None, *, selection: Optional[List[Any]] = None) -> None:
        self.frame = frame or FakeFrame()
        self.selection: List[Any] = [self.frame] if selection is None else selection
        self.groups: List[FakeGroup] = []
        self.loose: List[FakeArtifact] = []
        self.calls: List[tuple[str, Any]] = []
        self.export_hook: Optional[Callable[[FakeArtifact], bytes]] = None
        self.fail_remove_temp = False

    def get_selection(self) -> Sequence[Any]:
        return list(self.selection)

    def find_group(self, name: str) -> Optional[FakeGroup]:
        return next((group for group in self.groups if group.name == name), None)

    def remove_node(self, node: Any) -> None:
        self.calls.append(("remove", node))
        if node in self.groups:
            self.groups.remove(node)
            return
        if self.fail_remove_temp:
            raise RuntimeError("host refused removal")
        self.loose.remove(node)

    def create_artifact(
        self,
        *,
        x: float,
        y: float,
        width: float,
        height: float,
        name: str = "",
        tags: Optional[Mapping[str, str]] = None,
    ) -> FakeArtifact:
        artifact = FakeArtifact(x, y, width, height, name=name or "Slice", tags=dict(tags or {}))
        self.calls.append(("create", artifact))
        self.loose.append(artifact)
        return artifact

    def group(self, nodes: Sequence[Any], name: str) -> FakeGroup:
        for node in nodes:
            self.loose.remove(node)
        group = FakeGroup(name=name, children=list(nodes))
        self.groups.append(group)
        self.calls.append(("group", group))
        return group

    async def export_artifact(self, artifact: Any, *, image_format: str, scale: float) -> bytes:
        self.calls.append(("export", (artifact, image_format, scale)))
        if self.export_hook is not None:
            return self.export_hook(artifact)
        return f"{image_format}:{artifact.absolute_y:g}:{artifact.height:g}".encode()

    def set_guides(self, frame: Any, guides: Sequence[Guide]) -> None:
        self.calls.append(("set_guides", list(guides)))
        frame.guides = list(guides)

    def calls_named(self, name: str) -> List[Any]:
        return [payload for call, payload in self.calls if call == name]


class RecordingSink:
    def __init__(self) -> None:
        self.messages: List[Dict[str, Any]] = []

    def post_message(self, message: Mapping[str, Any]) -> None:
        self.messages.append(dict(message))

    def of_type(self, kind: str) -> List[Dict[str, Any]]:
        return [message for message in self.messages if message.get("type") == kind]

    @property
    def types(self) -> List[str]:
        return [str(message.get("type")) for message in self.messages]


def horizontal(*offsets: float) -> List[Guide]:
    return [Guide(axis="Y", offset=offset) for offset in offsets]
