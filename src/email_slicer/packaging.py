"""Writes ``package-zip`` handoffs to a ZIP archive."""

from __future__ import annotations

import logging
import zipfile
from collections.abc import Mapping
from pathlib import Path, PurePosixPath
from typing import Any, Optional

from src.datatypes import PackageConfig, TemplateConfig
from src.email_slicer.errors import SlicerError
from src.email_slicer.models import ExportedArtifact
from src.email_slicer.render.naming import sanitise_file_stem
from src.email_slicer.render.template import render_html

logger = logging.getLogger(__name__)

__all__ = ["PackageError", "ZipPackager"]


class PackageError(SlicerError):
    """Raised when a ``package-zip`` payload cannot be written."""


class ZipPackager:
    """Packages the exported HTML and slice images into ``<frameName>.zip``."""

    def __init__(
        self,
        output_dir: Path,
        *,
        package_cfg: Optional[PackageConfig] = None,
        template_cfg: Optional[TemplateConfig] = None,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.package_cfg = package_cfg or PackageConfig()
        self.template_cfg = template_cfg or TemplateConfig()

    def _html_for(self, payload: Mapping[str, Any], slices: list[ExportedArtifact]) -> str:
        html = payload.get("html")
        if isinstance(html, str) and html:
            return html
        cfg = self.template_cfg
        return render_html(
            slices,
            content_width=cfg.content_width,
            title=cfg.title,
            add_footer=payload.get("addFooter") is not False,
            footer_html=cfg.footer_html,
            image_dir=cfg.image_dir,
            background_color=cfg.background_color,
        )

    def package(self, payload: Mapping[str, Any]) -> Path:
        """
        Write the archive described by *payload* and return its path.

        Raises:
            PackageError: If the payload is malformed or the archive cannot be written.
        """

        try:
            slices = [ExportedArtifact.from_message(item) for item in payload.get("slices", [])]
        except (KeyError, TypeError, ValueError) as exc:
            raise PackageError(f"Malformed package payload: {exc}") from exc
        if not slices:
            raise PackageError("Package payload contains no slices.")

        stem = sanitise_file_stem(str(payload.get("frameName") or "email"))
        archive_path = self.output_dir / f"{stem}.zip"
        image_dir = PurePosixPath(self.template_cfg.image_dir) if self.template_cfg.image_dir else None
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
                archive.writestr(self.package_cfg.html_filename, self._html_for(payload, slices))
                for artifact in slices:
                    member = str(image_dir / artifact.file_name) if image_dir else artifact.file_name
                    archive.writestr(member, artifact.image_bytes)
        except OSError as exc:
            raise PackageError(f"Could not write {archive_path}: {exc}") from exc
        logger.info("Wrote %s (%d images)", archive_path, len(slices))
        return archive_path
