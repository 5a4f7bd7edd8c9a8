"""Value types shared by the slicer pipeline and the message channel."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Literal, Mapping, Optional, TypedDict

SLICE_KIND = "email-slice"

FRAME_NODE = "FRAME"
SLICE_NODE = "SLICE"
GROUP_NODE = "GROUP"

GuideAxis = Literal["X", "Y"]


@dataclass(frozen=True)
class Guide:
    """A guide line placed on a frame; ``Y`` guides mark row boundaries."""

    axis: GuideAxis
    offset: float


@dataclass(frozen=True)
class Region:
    """
    A row interval of the selected frame.

    Attributes:
        index (int): Zero-based position in the emitted region list.
        y0 (int): Top edge, relative to the frame.
        y1 (int): Bottom edge (exclusive), relative to the frame.
        default_name (str): Generated label such as ``slice-001``.
    """

    index: int
    y0: int
    y1: int
    default_name: str

    @property
    def height(self) -> int:
        return self.y1 - self.y0


@dataclass(frozen=True)
class SliceTag:
    """Tags written onto generated artifacts so they can be recognised later."""

    index: int
    y0: int
    y1: int
    kind: str = SLICE_KIND

    def to_tags(self) -> dict[str, str]:
        return {
            "kind": self.kind,
            "index": str(self.index),
            "y0": str(self.y0),
            "y1": str(self.y1),
        }

    @classmethod
    def from_tags(cls, tags: Mapping[str, str]) -> Optional["SliceTag"]:
        """Return the tag stored in *tags*, or ``None`` when it is absent or malformed."""

        if tags.get("kind") != SLICE_KIND:
            return None
        try:
            return cls(index=int(tags["index"]), y0=int(tags["y0"]), y1=int(tags["y1"]))
        except (KeyError, ValueError):
            return None

    @classmethod
    def from_region(cls, region: Region) -> "SliceTag":
        return cls(index=region.index, y0=region.y0, y1=region.y1)


@dataclass
class NamedEntry:
    """An artifact paired with its resolved display name, file name and link."""

    artifact: Any
    display_name: str
    file_name: str
    link_url: Optional[str] = None


@dataclass
class ExportedArtifact:
    """Rasterised slice handed over to the packaging collaborator."""

    file_name: str
    image_bytes: bytes
    width: int
    height: int
    absolute_x: float
    absolute_y: float
    link_url: Optional[str] = None

    def to_message(self) -> "SliceJSON":
        return SliceJSON(
            fileName=self.file_name,
            bytes=self.image_bytes,
            width=self.width,
            height=self.height,
            absX=self.absolute_x,
            absY=self.absolute_y,
            linkUrl=self.link_url,
        )

    @classmethod
    def from_message(cls, payload: Mapping[str, Any]) -> "ExportedArtifact":
        return cls(
            file_name=str(payload["fileName"]),
            image_bytes=bytes(payload["bytes"]),
            width=int(payload["width"]),
            height=int(payload["height"]),
            absolute_x=float(payload.get("absX", 0.0)),
            absolute_y=float(payload.get("absY", 0.0)),
            link_url=payload.get("linkUrl"),
        )


class SliceJSON(TypedDict):
    fileName: str
    bytes: bytes
    width: int
    height: int
    absX: float
    absY: float
    linkUrl: Optional[str]


class SelectionJSON(TypedDict, total=False):
    type: str
    valid: bool
    frameName: str
    frameWidth: int
    frameHeight: int
    guideCount: int


class PackageZipJSON(TypedDict, total=False):
    type: str
    html: str
    slices: List[SliceJSON]
    frameName: str
    addFooter: bool


__all__ = [
    "FRAME_NODE",
    "GROUP_NODE",
    "SLICE_KIND",
    "SLICE_NODE",
    "ExportedArtifact",
    "Guide",
    "GuideAxis",
    "NamedEntry",
    "PackageZipJSON",
    "Region",
    "SelectionJSON",
    "SliceJSON",
    "SliceTag",
]
