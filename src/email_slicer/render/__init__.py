"""Pure render-time helpers: file naming and the HTML template."""

from __future__ import annotations

from . import naming, template

__all__ = ["naming", "template"]
