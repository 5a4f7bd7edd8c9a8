"""Slice artifact creation, sequential export and handoff to the packager."""

from __future__ import annotations

import logging
from typing import List, Optional

from src.datatypes import AppConfig
from src.email_slicer.errors import NoArtifactsError, NoGuidesError
from src.email_slicer.interfaces import ArtifactNode, FrameNode, MessageSink, SceneService
from src.email_slicer.models import (
    SLICE_NODE,
    ExportedArtifact,
    NamedEntry,
    PackageZipJSON,
    SliceTag,
)
from src.email_slicer.regions import (
    check_capacity,
    compute_regions,
    horizontal_offsets,
    round_half_up,
)
from src.email_slicer.render.naming import resolve_entries, sanitise_file_stem
from src.email_slicer.render.template import render_html
from src.email_slicer.selection import describe_selection, get_selected_frame

logger = logging.getLogger(__name__)

__all__ = ["SliceOrchestrator"]


class SliceOrchestrator:
    """
    Runs the slicing operations against a scene host and reports to the UI.

    Every operation requires a valid selection (one frame); without one it is a
    silent no-op. User-facing failures raise :class:`~src.email_slicer.errors.SlicerError`
    subclasses before any scene mutation happens.
    """

    def __init__(self, scene: SceneService, sink: MessageSink, config: Optional[AppConfig] = None) -> None:
        self.scene = scene
        self.sink = sink
        self.config = config or AppConfig()

    @property
    def group_name(self) -> str:
        return self.config.slicer.group_name

    def _remove_slice_group(self) -> bool:
        group = self.scene.find_group(self.group_name)
        if group is None:
            return False
        self.scene.remove_node(group)
        return True

    def broadcast_selection(self) -> None:
        self.sink.post_message(describe_selection(self.scene))

    async def generate_slices(self) -> int:
        """
        Materialise one tagged artifact per guide region under the reserved group.

        Returns:
            int: Number of artifacts created, ``0`` when the selection is invalid.

        Raises:
            NoGuidesError: If the frame has no horizontal guides.
            RegionCapacityError: If the guides produce more regions than allowed.
        """

        frame = get_selected_frame(self.scene)
        if frame is None:
            return 0

        slicer_cfg = self.config.slicer
        regions = compute_regions(
            frame.height,
            horizontal_offsets(frame.guides),
            prefix=slicer_cfg.name_prefix,
            digits=slicer_cfg.name_digits,
        )
        if not regions:
            raise NoGuidesError("No horizontal guides found in the selected frame.")
        check_capacity(regions, slicer_cfg.max_regions)

        if self._remove_slice_group():
            logger.info("Replaced existing %s group", self.group_name)

        artifacts: List[ArtifactNode] = []
        for region in regions:
            artifacts.append(
                self.scene.create_artifact(
                    x=frame.absolute_x,
                    y=frame.absolute_y + region.y0,
                    width=frame.width,
                    height=region.height,
                    name=region.default_name,
                    tags=SliceTag.from_region(region).to_tags(),
                )
            )
        self.scene.group(artifacts, self.group_name)
        logger.info("Generated %d slices for frame %r", len(regions), frame.name)
        self.sink.post_message({"type": "slices-generated", "count": len(regions)})
        return len(regions)

    def _read_entries(self) -> List[NamedEntry]:
        group = self.scene.find_group(self.group_name)
        if group is None:
            raise NoArtifactsError("No slices found. Add horizontal guides and generate slices first.")
        entries = resolve_entries(
            [child for child in group.children if child.node_type == SLICE_NODE],
            self.config.export.format,
            tolerance=self.config.export.position_tolerance,
        )
        if not entries:
            raise NoArtifactsError(f"No slice nodes found in {self.group_name} group.")
        return entries

    async def _export_entry(self, entry: NamedEntry) -> ExportedArtifact:
        source: ArtifactNode = entry.artifact
        temp = self.scene.create_artifact(
            x=source.absolute_x,
            y=source.absolute_y,
            width=source.width,
            height=source.height,
        )
        try:
            image_bytes = await self.scene.export_artifact(
                temp,
                image_format=self.config.export.format,
                scale=self.config.export.scale,
            )
        finally:
            try:
                self.scene.remove_node(temp)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to remove temporary slice for %s: %s", entry.file_name, exc)
        return ExportedArtifact(
            file_name=entry.file_name,
            image_bytes=image_bytes,
            width=round_half_up(source.width),
            height=round_half_up(source.height),
            absolute_x=source.absolute_x,
            absolute_y=source.absolute_y,
            link_url=entry.link_url,
        )

    def render(self, exported: List[ExportedArtifact], *, add_footer: bool, title: str = "") -> str:
        template_cfg = self.config.template
        return render_html(
            exported,
            content_width=template_cfg.content_width,
            title=template_cfg.title or title,
            add_footer=add_footer,
            footer_html=template_cfg.footer_html,
            image_dir=template_cfg.image_dir,
            background_color=template_cfg.background_color,
        )

    async def export_html(self, add_footer: bool = True) -> Optional[PackageZipJSON]:
        """
        Export every slice artifact in reading order and hand the batch to the packager.

        Slices are generated from the guides first when the reserved group is missing.
        Exports run one at a time; the temporary artifact used for each is always removed.

        Returns:
            Optional[PackageZipJSON]: The ``package-zip`` message posted, or ``None`` when the selection is invalid.

        Raises:
            NoArtifactsError: If there is nothing to export after auto-generation.
        """

        frame = get_selected_frame(self.scene)
        if frame is None:
            return None

        if self.scene.find_group(self.group_name) is None:
            logger.info("No %s group present; generating slices from guides", self.group_name)
            await self.generate_slices()

        entries = self._read_entries()
        total = len(entries)
        exported: List[ExportedArtifact] = []
        for position, entry in enumerate(entries, start=1):
            self.sink.post_message({"type": "export-progress", "current": position, "total": total})
            logger.debug("Exporting %s (%d/%d)", entry.file_name, position, total)
            exported.append(await self._export_entry(entry))

        message = PackageZipJSON(
            type="package-zip",
            html=self.render(exported, add_footer=add_footer, title=frame.name),
            slices=[artifact.to_message() for artifact in exported],
            frameName=sanitise_file_stem(frame.name),
            addFooter=add_footer,
        )
        logger.info("Exported %d slices from frame %r", total, frame.name)
        self.sink.post_message(message)
        return message

    async def clear_slices(self) -> None:
        self._remove_slice_group()
        self.sink.post_message({"type": "slices-cleared"})

    async def clear_guides(self) -> None:
        frame: Optional[FrameNode] = get_selected_frame(self.scene)
        if frame is None:
            return
        remaining = [guide for guide in frame.guides if guide.axis != "Y"]
        self.scene.set_guides(frame, remaining)
        self.sink.post_message({"type": "guides-cleared"})
        self.broadcast_selection()
