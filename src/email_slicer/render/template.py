"""Static HTML email template built from exported slices."""

from __future__ import annotations

from collections.abc import Sequence
from html import escape
from pathlib import PurePosixPath
from typing import Final, Optional

from src.datatypes import DEFAULT_FOOTER_HTML
from src.email_slicer.models import ExportedArtifact

DEFAULT_CONTENT_WIDTH: Final[int] = 600

__all__ = [
    "DEFAULT_CONTENT_WIDTH",
    "DEFAULT_FOOTER_HTML",
    "escape_attribute",
    "render_html",
]

_HEAD_STYLE: Final[str] = """\
    body { margin:0; padding:0; width:100% !important; -webkit-text-size-adjust:100%; -ms-text-size-adjust:100%; }
    table { border-collapse:collapse; mso-table-lspace:0pt; mso-table-rspace:0pt; }
    td { padding:0; margin:0; line-height:0; font-size:0; }
    img { border:0; outline:none; text-decoration:none; display:block; -ms-interpolation-mode:bicubic; }
    a img { border:0; }"""


def escape_attribute(value: str) -> str:
    """Escape ``& " < >`` for use inside a double-quoted attribute."""

    return escape(value, quote=False).replace('"', "&quot;")


def _image_row(artifact: ExportedArtifact, *, content_width: int, image_dir: str) -> str:
    src = str(PurePosixPath(image_dir) / artifact.file_name) if image_dir else artifact.file_name
    alt = PurePosixPath(artifact.file_name).stem
    image = (
        f'<img src="{src}" width="{content_width}" alt="{alt}" '
        f'style="display:block;width:100%;max-width:{content_width}px;height:auto;border:0;">'
    )
    if artifact.link_url is not None:
        href = escape_attribute(artifact.link_url)
        image = f'<a href="{href}" target="_blank" style="display:block;">{image}</a>'
    return f"        <tr>\n          <td align=\"center\" valign=\"top\" style=\"padding:0;\">{image}</td>\n        </tr>"


def render_html(
    artifacts: Sequence[ExportedArtifact],
    *,
    content_width: int = DEFAULT_CONTENT_WIDTH,
    title: str = "",
    add_footer: bool = False,
    footer_html: Optional[str] = None,
    image_dir: str = "images",
    background_color: str = "#ffffff",
) -> str:
    """
    Render a standalone single-column HTML email for *artifacts*.

    Parameters:
        artifacts (Sequence[ExportedArtifact]): Slices in top-to-bottom order; each becomes one table row.
        content_width (int): Nominal email width in pixels.
        title (str): Document title, HTML-escaped.
        add_footer (bool): Append the footer block below the slice table.
        footer_html (Optional[str]): Footer markup; defaults to :data:`DEFAULT_FOOTER_HTML`.
        image_dir (str): Relative directory the images are referenced from.
        background_color (str): Page background colour.

    Returns:
        str: The complete HTML document.
    """

    rows = "\n".join(
        _image_row(artifact, content_width=content_width, image_dir=image_dir) for artifact in artifacts
    )
    footer = ""
    if add_footer:
        markup = DEFAULT_FOOTER_HTML if footer_html is None else footer_html
        footer = (
            f'\n    <div style="max-width:{content_width}px;margin:0 auto;padding:16px 0;'
            f'font-family:Arial,Helvetica,sans-serif;font-size:12px;line-height:18px;'
            f'color:#666666;text-align:center;">{markup}</div>'
        )
    return f"""<!DOCTYPE html>
<html lang="en" xmlns="http://www.w3.org/1999/xhtml">
<head>
  <meta charset="utf-8">
  <meta http-equiv="Content-Type" content="text/html; charset=utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <meta http-equiv="X-UA-Compatible" content="IE=edge">
  <meta name="x-apple-disable-message-reformatting">
  <title>{escape(title)}</title>
  <style type="text/css">
{_HEAD_STYLE}
  </style>
</head>
<body style="margin:0;padding:0;background-color:{escape_attribute(background_color)};">
  <div role="article" style="margin:0;padding:0;background-color:{escape_attribute(background_color)};">
    <table role="presentation" align="center" width="{content_width}" cellpadding="0" cellspacing="0" border="0" style="width:100%;max-width:{content_width}px;margin:0 auto;border-collapse:collapse;mso-table-lspace:0pt;mso-table-rspace:0pt;">
      <tbody>
{rows}
      </tbody>
    </table>{footer}
  </div>
</body>
</html>
"""
