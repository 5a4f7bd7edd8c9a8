"""Scene host backed by a JSON document and pre-rendered frame images."""

from __future__ import annotations

import asyncio
import io
import itertools
import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from PIL import Image, ImageColor, UnidentifiedImageError

from src.email_slicer.errors import SceneError
from src.email_slicer.models import FRAME_NODE, GROUP_NODE, SLICE_NODE, Guide
from src.email_slicer.regions import round_half_up

logger = logging.getLogger(__name__)

_PIL_FORMATS = {"jpg": "JPEG", "png": "PNG"}

__all__ = [
    "DocumentArtifact",
    "DocumentFrame",
    "DocumentGroup",
    "DocumentScene",
    "load_scene",
    "save_scene",
]


@dataclass(eq=False)
class DocumentFrame:
    id: str
    name: str
    absolute_x: float
    absolute_y: float
    width: float
    height: float
    guides: List[Guide] = field(default_factory=list)
    image: Optional[str] = None
    fill: str = "#ffffff"
    node_type: str = FRAME_NODE


@dataclass(eq=False)
class DocumentArtifact:
    id: str
    name: str
    absolute_x: float
    absolute_y: float
    width: float
    height: float
    tags: Dict[str, str] = field(default_factory=dict)
    node_type: str = SLICE_NODE


@dataclass(eq=False)
class DocumentGroup:
    id: str
    name: str
    children: List[DocumentArtifact] = field(default_factory=list)
    node_type: str = GROUP_NODE


Node = Union[DocumentFrame, DocumentArtifact, DocumentGroup]


class DocumentScene:
    """
    In-process stand-in for a design host.

    Frames carry an optional rendered image (at 1x, relative to ``base_dir``) and
    a fill colour used where no image is available. Artifacts are exported by
    compositing every frame beneath them onto a white canvas.
    """

    def __init__(
        self,
        frames: Sequence[DocumentFrame],
        *,
        groups: Sequence[DocumentGroup] = (),
        selection: Sequence[str] = (),
        base_dir: Optional[Path] = None,
        jpeg_quality: int = 90,
    ) -> None:
        self.frames: List[DocumentFrame] = list(frames)
        self.groups: List[DocumentGroup] = list(groups)
        self.loose: List[DocumentArtifact] = []
        self.selection: List[str] = list(selection)
        self.base_dir = base_dir or Path.cwd()
        self.jpeg_quality = jpeg_quality
        self._images: Dict[str, Image.Image] = {}
        self._ids = itertools.count(self._next_free_id())
        for group in self.groups:
            if not group.id:
                group.id = self._new_id()

    def _iter_nodes(self) -> Iterator[Node]:
        yield from self.frames
        for group in self.groups:
            yield group
            yield from group.children
        yield from self.loose

    def _next_free_id(self) -> int:
        highest = 0
        for node in self._iter_nodes():
            prefix, _, suffix = node.id.partition(":")
            if prefix == "node" and suffix.isdigit():
                highest = max(highest, int(suffix))
        return highest + 1

    def _new_id(self) -> str:
        return f"node:{next(self._ids)}"

    def get_node(self, node_id: str) -> Optional[Node]:
        for node in self._iter_nodes():
            if node.id == node_id:
                return node
        return None

    def get_selection(self) -> List[Node]:
        nodes = [self.get_node(node_id) for node_id in self.selection]
        return [node for node in nodes if node is not None]

    def select(self, *node_ids: str) -> None:
        self.selection = list(node_ids)

    def select_frame(self, name: str) -> DocumentFrame:
        """Select the frame called *name*, raising :class:`SceneError` when absent."""

        for frame in self.frames:
            if frame.name == name:
                self.select(frame.id)
                return frame
        raise SceneError(f"No frame named {name!r} in the scene.")

    def find_group(self, name: str) -> Optional[DocumentGroup]:
        for group in self.groups:
            if group.name == name:
                return group
        return None

    def remove_node(self, node: Any) -> None:
        if node in self.loose:
            self.loose.remove(node)
        elif node in self.groups:
            self.groups.remove(node)
        elif node in self.frames:
            self.frames.remove(node)
        else:
            for group in self.groups:
                if node in group.children:
                    group.children.remove(node)
                    break
            else:
                raise SceneError(f"Node {getattr(node, 'id', node)!r} is not on the page.")
        if getattr(node, "id", None) in self.selection:
            self.selection.remove(node.id)

    def create_artifact(
        self,
        *,
        x: float,
        y: float,
        width: float,
        height: float,
        name: str = "",
        tags: Optional[Mapping[str, str]] = None,
    ) -> DocumentArtifact:
        if width <= 0 or height <= 0:
            raise SceneError(f"Slice size must be positive, got {width}x{height}.")
        artifact = DocumentArtifact(
            id=self._new_id(),
            name=name or "Slice",
            absolute_x=x,
            absolute_y=y,
            width=width,
            height=height,
            tags=dict(tags or {}),
        )
        self.loose.append(artifact)
        return artifact

    def group(self, nodes: Sequence[Any], name: str) -> DocumentGroup:
        if not nodes:
            raise SceneError("Cannot group an empty selection.")
        children: List[DocumentArtifact] = []
        for node in nodes:
            if node not in self.loose:
                raise SceneError(f"Node {node.id!r} cannot be grouped.")
            self.loose.remove(node)
            children.append(node)
        group = DocumentGroup(id=self._new_id(), name=name, children=children)
        self.groups.append(group)
        return group

    def set_guides(self, frame: Any, guides: Sequence[Guide]) -> None:
        frame.guides = list(guides)

    def _frame_image(self, frame: DocumentFrame, size: tuple[int, int]) -> Image.Image:
        if frame.image is None:
            try:
                color = ImageColor.getrgb(frame.fill)
            except ValueError as exc:
                raise SceneError(f"Frame {frame.name!r} has an invalid fill {frame.fill!r}.") from exc
            return Image.new("RGB", size, color)
        cached = self._images.get(frame.id)
        if cached is None:
            path = (self.base_dir / frame.image).resolve()
            try:
                with Image.open(path) as handle:
                    cached = handle.convert("RGBA")
            except (OSError, UnidentifiedImageError) as exc:
                raise SceneError(f"Cannot read image for frame {frame.name!r}: {path}") from exc
            if cached.size != size:
                logger.debug("Resizing %s from %s to frame size %s", path.name, cached.size, size)
                cached = cached.resize(size, Image.Resampling.LANCZOS)
            self._images[frame.id] = cached
        return cached

    def rasterise(self, x: float, y: float, width: float, height: float, *, scale: float = 1.0) -> Image.Image:
        """Composite every frame intersecting the rectangle onto a white canvas."""

        left, top = round_half_up(x), round_half_up(y)
        right, bottom = round_half_up(x + width), round_half_up(y + height)
        canvas = Image.new("RGBA", (right - left, bottom - top), (255, 255, 255, 255))
        for frame in self.frames:
            f_left, f_top = round_half_up(frame.absolute_x), round_half_up(frame.absolute_y)
            f_right = round_half_up(frame.absolute_x + frame.width)
            f_bottom = round_half_up(frame.absolute_y + frame.height)
            box = (max(left, f_left), max(top, f_top), min(right, f_right), min(bottom, f_bottom))
            if box[0] >= box[2] or box[1] >= box[3]:
                continue
            source = self._frame_image(frame, (f_right - f_left, f_bottom - f_top))
            crop = source.crop((box[0] - f_left, box[1] - f_top, box[2] - f_left, box[3] - f_top))
            canvas.alpha_composite(crop.convert("RGBA"), (box[0] - left, box[1] - top))
        if scale != 1:
            target = (max(1, round_half_up(canvas.width * scale)), max(1, round_half_up(canvas.height * scale)))
            canvas = canvas.resize(target, Image.Resampling.LANCZOS)
        return canvas

    def _encode(self, image: Image.Image, image_format: str) -> bytes:
        pil_format = _PIL_FORMATS.get(image_format.lower())
        if pil_format is None:
            raise SceneError(f"Unsupported export format {image_format!r}.")
        buffer = io.BytesIO()
        if pil_format == "JPEG":
            image.convert("RGB").save(buffer, format="JPEG", quality=self.jpeg_quality)
        else:
            image.save(buffer, format="PNG")
        return buffer.getvalue()

    async def export_artifact(self, artifact: Any, *, image_format: str, scale: float) -> bytes:
        if self.get_node(artifact.id) is None:
            raise SceneError(f"Slice {artifact.id!r} is not on the page.")

        def _render() -> bytes:
            image = self.rasterise(
                artifact.absolute_x,
                artifact.absolute_y,
                artifact.width,
                artifact.height,
                scale=scale,
            )
            return self._encode(image, image_format)

        return await asyncio.to_thread(_render)

    def to_document(self) -> Dict[str, Any]:
        """Return the JSON-serialisable scene document."""

        def _artifact(node: DocumentArtifact) -> Dict[str, Any]:
            return {
                "id": node.id,
                "name": node.name,
                "x": node.absolute_x,
                "y": node.absolute_y,
                "width": node.width,
                "height": node.height,
                "tags": dict(node.tags),
            }

        return {
            "selection": list(self.selection),
            "frames": [
                {
                    "id": frame.id,
                    "name": frame.name,
                    "x": frame.absolute_x,
                    "y": frame.absolute_y,
                    "width": frame.width,
                    "height": frame.height,
                    "image": frame.image,
                    "fill": frame.fill,
                    "guides": [{"axis": guide.axis, "offset": guide.offset} for guide in frame.guides],
                }
                for frame in self.frames
            ],
            "groups": [
                {"id": group.id, "name": group.name, "artifacts": [_artifact(child) for child in group.children]}
                for group in self.groups
            ],
        }

    @classmethod
    def from_document(
        cls,
        document: Mapping[str, Any],
        *,
        base_dir: Optional[Path] = None,
        jpeg_quality: int = 90,
    ) -> "DocumentScene":
        """
        Build a scene from a parsed document.

        Raises:
            SceneError: If required keys are missing or have the wrong type.
        """

        try:
            frames = [
                DocumentFrame(
                    id=str(raw["id"]),
                    name=str(raw.get("name", "")),
                    absolute_x=float(raw.get("x", 0)),
                    absolute_y=float(raw.get("y", 0)),
                    width=float(raw["width"]),
                    height=float(raw["height"]),
                    guides=[_parse_guide(entry) for entry in raw.get("guides", [])],
                    image=raw.get("image"),
                    fill=str(raw.get("fill", "#ffffff")),
                )
                for raw in document.get("frames", [])
            ]
            groups = [
                DocumentGroup(
                    id=str(raw.get("id", "")),
                    name=str(raw["name"]),
                    children=[
                        DocumentArtifact(
                            id=str(item["id"]),
                            name=str(item.get("name", "")),
                            absolute_x=float(item["x"]),
                            absolute_y=float(item["y"]),
                            width=float(item["width"]),
                            height=float(item["height"]),
                            tags={str(k): str(v) for k, v in item.get("tags", {}).items()},
                        )
                        for item in raw.get("artifacts", [])
                    ],
                )
                for raw in document.get("groups", [])
            ]
        except (KeyError, TypeError, ValueError) as exc:
            raise SceneError(f"Malformed scene document: {exc}") from exc
        return cls(
            frames,
            groups=groups,
            selection=[str(node_id) for node_id in document.get("selection", [])],
            base_dir=base_dir,
            jpeg_quality=jpeg_quality,
        )


def _parse_guide(raw: Mapping[str, Any]) -> Guide:
    axis = str(raw.get("axis", "Y")).upper()
    if axis not in ("X", "Y"):
        raise ValueError(f"guide axis must be X or Y, got {axis!r}")
    return Guide(axis=axis, offset=float(raw["offset"]))  # type: ignore[arg-type]


def load_scene(path: Union[str, Path], *, jpeg_quality: int = 90) -> DocumentScene:
    """Read a scene document; image paths resolve relative to the document."""

    scene_path = Path(path)
    try:
        document = json.loads(scene_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise SceneError(f"Cannot read scene document {scene_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise SceneError(f"Scene document {scene_path} is not valid JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise SceneError(f"Scene document {scene_path} must contain a JSON object.")
    return DocumentScene.from_document(document, base_dir=scene_path.resolve().parent, jpeg_quality=jpeg_quality)


def save_scene(scene: DocumentScene, path: Union[str, Path]) -> Path:
    """Write *scene* back to *path*; temporary ungrouped slices are not persisted."""

    scene_path = Path(path)
    scene_path.write_text(json.dumps(scene.to_document(), indent=2) + "\n", encoding="utf-8")
    return scene_path
